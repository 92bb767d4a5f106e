from typing import Awaitable, Callable, Optional
from sellerdesk.otp.constants import logger
from sellerdesk.otp.models import IssuedOtp, OtpSessionRecord, VerifyFailure, VerifyOutcome
from sellerdesk.otp.notifier import DeliveryDispatcher
from sellerdesk.otp.policy import OtpPolicy
from sellerdesk.otp.sweeper import SessionSweeper
from sellerdesk.otp.utils import is_handle_shaped, make_handle, make_salt

SuccessEffect = Callable[[str], Awaitable[None]]


class CodeIssuer:
    def __init__(self, store, sweeper: SessionSweeper, dispatcher: DeliveryDispatcher, policy: OtpPolicy):
        self.store = store
        self.sweeper = sweeper
        self.dispatcher = dispatcher
        self.policy = policy

    async def issue(self, subject_id: str, destination: str, purpose: str,
                    user_agent: Optional[str] = None) -> IssuedOtp:
        return await self._issue(subject_id, destination, purpose, user_agent, notify=True)

    async def decoy_handle(self, purpose: str, user_agent: Optional[str] = None) -> str:
        """Issue for an account that doesn't exist , with the same reads, writes and dispatch as a real one.

        The record belongs to an unroutable subject, so no caller can ever verify it , and nothing is sent.
        """
        issued = await self._issue(f"decoy:{make_salt()}", None, purpose, user_agent, notify=False)
        return issued.handle

    async def _issue(self, subject_id: str, destination: Optional[str], purpose: str,
                     user_agent: Optional[str], notify: bool) -> IssuedOtp:
        code = self.policy.new_code()
        salt = make_salt()
        code_hash = self.policy.hash(salt, code)

        async with self.store.subject_lock(subject_id):
            # only the newest code may be valid
            superseded = await self.sweeper.sweep(subject_id)

            created_at = self.policy.clock()
            record = OtpSessionRecord(
                handle=make_handle(),
                subject_id=subject_id,
                purpose=purpose,
                code_hash=code_hash,
                salt=salt,
                attempts=0,
                created_at=created_at,
                expires_at=created_at + self.policy.ttl_ms,
                user_agent=user_agent[:512] if user_agent else None,
            )
            handle = await self.store.create(record)

        logger.info("otp.issued", extra={"subject_id": subject_id, "purpose": purpose,
                                         "handle": handle[:8], "superseded": superseded})

        self.dispatcher.dispatch(destination, code, purpose, notify=notify)
        return IssuedOtp(handle=handle, expires_at=record.expires_at)


class Verifier:
    def __init__(self, store, sweeper: SessionSweeper, policy: OtpPolicy):
        self.store = store
        self.sweeper = sweeper
        self.policy = policy

    async def verify(self, handle: Optional[str], submitted_code: str, caller_subject_id: Optional[str], *,
                     purpose: str, effect: SuccessEffect) -> VerifyOutcome:

        session = await self.store.get(handle) if is_handle_shaped(handle) else None
        if session is None:
            return self._fail(VerifyFailure.SESSION_INVALID, "not_found", handle)
        if session.purpose != purpose:
            return self._fail(VerifyFailure.SESSION_INVALID, "purpose_mismatch", handle)

        # wrong caller must not burn the owner's attempt budget , no writes on this path
        if session.subject_id != caller_subject_id:
            return self._fail(VerifyFailure.FORBIDDEN, "subject_mismatch", handle)

        if self.policy.clock() > session.expires_at:
            await self.store.delete(handle)
            return self._fail(VerifyFailure.SESSION_INVALID, "expired", handle)

        if session.attempts >= self.policy.max_attempts:
            await self.store.delete(handle)
            return self._fail(VerifyFailure.TOO_MANY_ATTEMPTS, "exhausted", handle)

        if not self.policy.matches(session.salt, submitted_code, session.code_hash):
            return await self._record_mismatch(session)

        return await self._consume(session, effect)

    async def _record_mismatch(self, session: OtpSessionRecord) -> VerifyOutcome:
        attempts = await self.store.increment_attempts(session.handle, self.policy.max_attempts)
        if attempts is None:
            # deleted by a concurrent request (exhausted / consumed / superseded)
            return self._fail(VerifyFailure.SESSION_INVALID, "vanished", session.handle)
        if attempts >= self.policy.max_attempts:
            return self._fail(VerifyFailure.TOO_MANY_ATTEMPTS, "exhausted", session.handle, attempts=attempts)
        return self._fail(VerifyFailure.CODE_MISMATCH, "code_mismatch", session.handle, attempts=attempts)

    async def _consume(self, session: OtpSessionRecord, effect: SuccessEffect) -> VerifyOutcome:
        if not await self.store.consume(session.handle):
            return self._fail(VerifyFailure.SESSION_INVALID, "already_consumed", session.handle)

        # the binder is idempotent , a crash after this point at worst repeats it on a new code
        await effect(session.subject_id)
        swept = await self.sweeper.sweep(session.subject_id)

        logger.info("otp.verify.success", extra={"subject_id": session.subject_id, "purpose": session.purpose,
                                                 "handle": session.handle[:8], "siblings_swept": swept})
        return VerifyOutcome.success()

    @staticmethod
    def _fail(failure: VerifyFailure, reason: str, handle: Optional[str], **fields) -> VerifyOutcome:
        # the true reason only goes to the log , callers get the merged failure kind
        logger.warning("otp.verify.failed", extra={"failure": failure.value, "reason": reason,
                                                   "handle": (handle or "")[:8], **fields})
        return VerifyOutcome.failed(failure)
