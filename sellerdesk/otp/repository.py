import asyncio
import functools
import weakref
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional
from pydantic import ValidationError
from sqlalchemy import delete, select, text, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sellerdesk.common.custom_exceptions import StoreError
from sellerdesk.common.retries import retry_async
from sellerdesk.common.utils import chunked
from sellerdesk.otp.constants import SWEEP_BATCH_SIZE, logger
from sellerdesk.otp.models import OtpSessionRecord
from sellerdesk.schema.otp_session import OtpSession

_otp_table = OtpSession.__table__


def translate_store_errors(fn):
    @functools.wraps(fn)
    async def wrapper(*args, **kwargs):
        try:
            return await fn(*args, **kwargs)
        except StoreError:
            raise
        except SQLAlchemyError as exc:
            logger.error("otp.store.failure", extra={"op": fn.__name__, "error": type(exc).__name__})
            raise StoreError(f"otp session store failed during {fn.__name__}") from exc
    return wrapper


class SqlSessionStore:
    """OTP session persistence , one short transaction per operation."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker
        self._subject_locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    @asynccontextmanager
    async def subject_lock(self, subject_id: str) -> AsyncIterator[None]:
        """Serialises sweep + create for one subject so two issues can't both survive.

        In-process lock always ; on postgres also a session advisory lock so other workers wait too.
        """
        lock = self._subject_locks.get(subject_id)
        if lock is None:
            lock = asyncio.Lock()
            self._subject_locks[subject_id] = lock

        bind = self._session_maker.kw.get("bind")
        async with lock:
            if bind is None or bind.dialect.name != "postgresql":
                yield
                return

            key = {"key": f"otp:{subject_id}"}
            async with self._session_maker() as session:
                await session.execute(text("SELECT pg_advisory_lock(hashtext(:key))"), key)
                try:
                    yield
                finally:
                    await session.execute(text("SELECT pg_advisory_unlock(hashtext(:key))"), key)

    @translate_store_errors
    async def create(self, record: OtpSessionRecord) -> str:
        try:
            async with self._session_maker.begin() as session:
                await session.execute(_otp_table.insert().values(**record.model_dump()))
        except IntegrityError as exc:
            # 192 bit handles , a collision means something is badly wrong upstream
            raise StoreError("otp session handle collision") from exc
        return record.handle

    @translate_store_errors
    @retry_async()
    async def get(self, handle: str) -> Optional[OtpSessionRecord]:
        async with self._session_maker() as session:
            res = await session.execute(select(_otp_table).where(_otp_table.c.handle == handle))
            row = res.mappings().one_or_none()

        if row is None:
            return None
        try:
            return OtpSessionRecord.model_validate(dict(row))
        except ValidationError as exc:
            logger.error("otp.store.bad_record", extra={"handle": handle[:8]})
            raise StoreError("unreadable otp session record") from exc

    @translate_store_errors
    async def increment_attempts(self, handle: str, max_attempts: int) -> Optional[int]:
        """Atomically bump the attempt counter , returns the new count or None when the handle is gone.

        The row never stays at the ceiling: the increment that reaches ``max_attempts``
        deletes it inside the same transaction.
        """
        async with self._session_maker.begin() as session:
            stmt = (
                update(OtpSession)
                .where(OtpSession.handle == handle, OtpSession.attempts < max_attempts)
                .values(attempts=OtpSession.attempts + 1)
                .returning(OtpSession.attempts)
                .execution_options(synchronize_session=False)
            )
            new_count = (await session.execute(stmt)).scalar_one_or_none()

            if new_count is None:
                # gone , or stuck at the ceiling , either way it must not survive
                await session.execute(self._delete_stmt(handle))
                return None

            if new_count >= max_attempts:
                await session.execute(self._delete_stmt(handle))

        return new_count

    @translate_store_errors
    @retry_async()
    async def delete(self, handle: str) -> None:
        async with self._session_maker.begin() as session:
            await session.execute(self._delete_stmt(handle))

    @translate_store_errors
    async def consume(self, handle: str) -> bool:
        """Delete the record and report whether this call was the one that removed it."""
        async with self._session_maker.begin() as session:
            res = await session.execute(self._delete_stmt(handle))
            deleted = res.rowcount or 0
        return deleted == 1

    @translate_store_errors
    @retry_async()
    async def delete_all_for_subject(self, subject_id: str, batch_size: int = SWEEP_BATCH_SIZE) -> int:
        async with self._session_maker() as session:
            res = await session.execute(select(OtpSession.handle).where(OtpSession.subject_id == subject_id))
            handles = res.scalars().all()

        deleted = 0
        for batch in chunked(handles, batch_size):
            async with self._session_maker.begin() as session:
                res = await session.execute(
                    delete(OtpSession)
                    .where(OtpSession.handle.in_(batch))
                    .execution_options(synchronize_session=False)
                )
                deleted += res.rowcount or 0
        return deleted

    @staticmethod
    def _delete_stmt(handle: str):
        return delete(OtpSession).where(OtpSession.handle == handle).execution_options(synchronize_session=False)
