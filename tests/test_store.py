import pytest
from sqlalchemy import update
from sellerdesk.common.custom_exceptions import StoreError
from sellerdesk.common.utils import chunked
from sellerdesk.otp.models import OtpSessionRecord
from sellerdesk.otp.repository import SqlSessionStore
from sellerdesk.otp.utils import make_handle
from sellerdesk.schema.otp_session import OtpSession


def _record(**overrides):
    data = dict(handle=make_handle(), subject_id="subj-x", purpose="email_verification",
                code_hash="ab" * 32, salt="cd" * 16, attempts=0, created_at=1_000, expires_at=601_000)
    data.update(overrides)
    return OtpSessionRecord(**data)


@pytest.mark.asyncio
async def test_create_and_get(otp):
    record = _record()
    handle = await otp.store.create(record)
    assert await otp.store.get(handle) == record


@pytest.mark.asyncio
async def test_duplicate_handle_is_store_error(otp):
    record = _record()
    await otp.store.create(record)
    with pytest.raises(StoreError):
        await otp.store.create(record)


@pytest.mark.asyncio
async def test_increment_deletes_at_ceiling(otp):
    handle = await otp.store.create(_record())

    assert await otp.store.increment_attempts(handle, 3) == 1
    assert await otp.store.increment_attempts(handle, 3) == 2
    assert await otp.store.increment_attempts(handle, 3) == 3
    assert await otp.store.get(handle) is None
    assert await otp.store.increment_attempts(handle, 3) is None


@pytest.mark.asyncio
async def test_consume_reports_single_winner(otp):
    handle = await otp.store.create(_record())
    assert await otp.store.consume(handle) is True
    assert await otp.store.consume(handle) is False
    # idempotent
    await otp.store.delete(handle)


@pytest.mark.asyncio
async def test_unreadable_record_is_store_error(otp, session_maker):
    handle = await otp.store.create(_record())
    async with session_maker.begin() as session:
        await session.execute(update(OtpSession).where(OtpSession.handle == handle).values(expires_at=0))

    with pytest.raises(StoreError):
        await otp.store.get(handle)


@pytest.mark.asyncio
async def test_missing_table_is_store_error(engine, session_maker):
    async with engine.begin() as conn:
        await conn.exec_driver_sql("DROP TABLE otpsession")

    store = SqlSessionStore(session_maker)
    with pytest.raises(StoreError):
        await store.create(_record())


def test_record_rejects_inverted_window():
    with pytest.raises(ValueError):
        _record(created_at=5_000, expires_at=5_000)


def test_chunked_batches():
    assert list(chunked(range(5), 2)) == [[0, 1], [2, 3], [4]]
    assert list(chunked([], 2)) == []
    with pytest.raises(ValueError):
        list(chunked([1], 0))
