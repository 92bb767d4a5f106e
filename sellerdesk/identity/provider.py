from typing import Optional, Protocol
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sellerdesk.identity.constants import logger
from sellerdesk.identity.repository import mark_email_verified, upsert_password_credential, user_by_email, user_by_public_id
from sellerdesk.identity.utils import decode_token, hash_password


class IdentityProvider(Protocol):
    async def verify_caller_token(self, token: str) -> Optional[str]: ...
    async def subject_for_email(self, email: str) -> Optional[str]: ...
    async def email_for_subject(self, subject_id: str) -> Optional[str]: ...
    async def set_verified(self, subject_id: str) -> None: ...
    async def set_password(self, subject_id: str, new_value: str) -> None: ...


class LocalIdentityProvider:
    """Identity backed by the users / credential tables and our own access tokens."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker

    async def verify_caller_token(self, token: str) -> Optional[str]:
        claims = decode_token(token) if token else None
        if not claims or not claims.get("sub"):
            return None

        async with self._session_maker() as session:
            user = await user_by_public_id(session, claims["sub"])
        if not user:
            logger.warning("identity.token.unknown_subject")
            return None
        return user.public_id

    async def subject_for_email(self, email: str) -> Optional[str]:
        async with self._session_maker() as session:
            user = await user_by_email(session, email)
        return user.public_id if user else None

    async def email_for_subject(self, subject_id: str) -> Optional[str]:
        async with self._session_maker() as session:
            user = await user_by_public_id(session, subject_id)
        return user.email if user else None

    async def set_verified(self, subject_id: str) -> None:
        async with self._session_maker.begin() as session:
            user = await user_by_public_id(session, subject_id)
            if not user:
                logger.warning("identity.set_verified.unknown_subject", extra={"subject_id": subject_id})
                return
            changed = await mark_email_verified(session, user.id)

        logger.info("identity.email_verified", extra={"subject_id": subject_id, "already_verified": not changed})

    async def set_password(self, subject_id: str, new_value: str) -> None:
        pwd_hash = hash_password(new_value)
        async with self._session_maker.begin() as session:
            user = await user_by_public_id(session, subject_id)
            if not user:
                logger.warning("identity.set_password.unknown_subject", extra={"subject_id": subject_id})
                return
            await upsert_password_credential(session, user.id, pwd_hash)

        logger.info("identity.password_rotated", extra={"subject_id": subject_id})
