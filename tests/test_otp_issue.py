import asyncio
import pytest
from sqlalchemy import func, select
from sellerdesk.otp.services import CodeIssuer
from sellerdesk.otp.utils import is_handle_shaped
from sellerdesk.schema.otp_session import OtpPurpose, OtpSession


async def _count_sessions(session_maker, subject_id):
    async with session_maker() as session:
        stmt = select(func.count()).select_from(OtpSession).where(OtpSession.subject_id == subject_id)
        return (await session.execute(stmt)).scalar_one()


@pytest.mark.asyncio
async def test_issue_persists_hashed_record(otp, notifier, clock):
    issued = await otp.issuer.issue("subj-1", "a@example.com", OtpPurpose.EMAIL_VERIFICATION, user_agent="pytest")
    await otp.dispatcher.drain()

    assert is_handle_shaped(issued.handle)
    assert issued.expires_at == clock() + 600 * 1000

    record = await otp.store.get(issued.handle)
    code = notifier.last_code("a@example.com")
    assert record.subject_id == "subj-1"
    assert record.attempts == 0
    assert record.user_agent == "pytest"
    assert record.code_hash != code
    assert record.code_hash == otp.policy.hash(record.salt, code)


@pytest.mark.asyncio
async def test_new_code_supersedes_previous(otp, notifier, session_maker):
    first = await otp.issuer.issue("subj-2", "b@example.com", OtpPurpose.EMAIL_VERIFICATION)
    second = await otp.issuer.issue("subj-2", "b@example.com", OtpPurpose.EMAIL_VERIFICATION)
    await otp.dispatcher.drain()

    assert first.handle != second.handle
    assert await otp.store.get(first.handle) is None
    assert await otp.store.get(second.handle) is not None
    assert await _count_sessions(session_maker, "subj-2") == 1
    assert len(notifier.sent) == 2


@pytest.mark.asyncio
async def test_issue_for_one_subject_leaves_others_alone(otp, session_maker):
    await otp.issuer.issue("subj-a", "a@example.com", OtpPurpose.EMAIL_VERIFICATION)
    await otp.issuer.issue("subj-b", "b@example.com", OtpPurpose.EMAIL_VERIFICATION)

    assert await _count_sessions(session_maker, "subj-a") == 1
    assert await _count_sessions(session_maker, "subj-b") == 1


@pytest.mark.asyncio
async def test_code_keeps_leading_zeros(otp, notifier, monkeypatch):
    monkeypatch.setattr("sellerdesk.otp.utils.secrets.randbelow", lambda upper: 42)

    issued = await otp.issuer.issue("subj-3", "c@example.com", OtpPurpose.EMAIL_VERIFICATION)
    await otp.dispatcher.drain()

    assert notifier.last_code() == "000042"
    record = await otp.store.get(issued.handle)
    assert otp.policy.matches(record.salt, "000042", record.code_hash)


@pytest.mark.asyncio
async def test_codes_are_six_digits(otp, notifier):
    for _ in range(20):
        await otp.issuer.issue("subj-4", "d@example.com", OtpPurpose.EMAIL_VERIFICATION)
    await otp.dispatcher.drain()

    codes = [item["code"] for item in notifier.sent]
    assert all(len(c) == 6 and c.isdigit() for c in codes)


@pytest.mark.asyncio
async def test_delivery_failure_keeps_session(otp, notifier):
    notifier.fail = True

    issued = await otp.issuer.issue("subj-5", "e@example.com", OtpPurpose.EMAIL_VERIFICATION)
    await otp.dispatcher.drain()

    assert notifier.sent == []
    assert await otp.store.get(issued.handle) is not None
    assert otp.dispatcher.pending == 0


@pytest.mark.asyncio
async def test_decoy_is_stored_under_an_unroutable_subject(otp, notifier, clock):
    handle = await otp.issuer.decoy_handle(OtpPurpose.PASSWORD_RESET)
    await otp.dispatcher.drain()

    assert is_handle_shaped(handle)
    record = await otp.store.get(handle)
    assert record.subject_id.startswith("decoy:")
    assert record.purpose == OtpPurpose.PASSWORD_RESET
    assert record.expires_at == clock() + 600 * 1000
    assert notifier.sent == []
    assert otp.dispatcher.pending == 0


@pytest.mark.asyncio
async def test_concurrent_issues_leave_one_session(otp, session_maker):
    results = await asyncio.gather(*[
        otp.issuer.issue("subj-race", "race@example.com", OtpPurpose.EMAIL_VERIFICATION) for _ in range(5)
    ])
    await otp.dispatcher.drain()

    assert await _count_sessions(session_maker, "subj-race") == 1
    survivors = [r.handle for r in results if await otp.store.get(r.handle) is not None]
    assert len(survivors) == 1


def test_issuer_exposes_policy(otp):
    assert isinstance(otp.issuer, CodeIssuer)
    assert otp.issuer.policy is otp.policy
