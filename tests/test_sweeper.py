import pytest
from sqlalchemy import event
from sellerdesk.otp.models import OtpSessionRecord
from sellerdesk.otp.sweeper import SessionSweeper
from sellerdesk.otp.utils import make_handle


def _record(subject_id, created_at=1_000):
    return OtpSessionRecord(handle=make_handle(), subject_id=subject_id, purpose="email_verification",
                            code_hash="ab" * 32, salt="cd" * 16, attempts=0,
                            created_at=created_at, expires_at=created_at + 600_000)


class RecordingStore:
    """Wraps the real store and remembers the batch size each sweep asked for."""

    def __init__(self, store):
        self.store = store
        self.batch_sizes = []

    async def delete_all_for_subject(self, subject_id, batch_size):
        self.batch_sizes.append(batch_size)
        return await self.store.delete_all_for_subject(subject_id, batch_size=batch_size)


@pytest.mark.asyncio
async def test_sweep_removes_every_session_in_batches(otp):
    handles = [await otp.store.create(_record("subj-s")) for _ in range(5)]
    keep = await otp.store.create(_record("someone-else"))

    store = RecordingStore(otp.store)
    sweeper = SessionSweeper(store, batch_size=2)
    assert await sweeper.sweep("subj-s") == 5

    assert store.batch_sizes == [2]
    for handle in handles:
        assert await otp.store.get(handle) is None
    assert await otp.store.get(keep) is not None


@pytest.mark.asyncio
async def test_sweep_issues_one_delete_per_batch(otp, engine):
    for _ in range(5):
        await otp.store.create(_record("subj-b"))

    statements = []

    def _record_statement(conn, cursor, statement, parameters, context, executemany):
        statements.append(statement.lstrip().split(None, 1)[0].upper())

    event.listen(engine.sync_engine, "before_cursor_execute", _record_statement)
    try:
        assert await SessionSweeper(otp.store, batch_size=2).sweep("subj-b") == 5
    finally:
        event.remove(engine.sync_engine, "before_cursor_execute", _record_statement)

    # 2 + 2 + 1
    assert statements.count("DELETE") == 3


@pytest.mark.asyncio
async def test_sweep_with_nothing_to_delete(otp):
    sweeper = SessionSweeper(otp.store, batch_size=2)
    assert await sweeper.sweep("nobody") == 0


def test_sweeper_rejects_bad_batch_size(otp):
    with pytest.raises(ValueError):
        SessionSweeper(otp.store, batch_size=0)


def test_default_batch_size_stays_under_backend_limit(otp):
    assert 0 < otp.sweeper.batch_size <= 450
