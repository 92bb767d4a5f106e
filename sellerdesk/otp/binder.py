from sellerdesk.identity.provider import IdentityProvider
from sellerdesk.otp.constants import logger


class IdentityBinder:
    """Side effects applied after a successful verify. Both are safe to repeat."""

    def __init__(self, provider: IdentityProvider):
        self.provider = provider

    async def mark_verified(self, subject_id: str) -> None:
        await self.provider.set_verified(subject_id)
        logger.info("otp.binder.mark_verified", extra={"subject_id": subject_id})

    async def rotate_credential(self, subject_id: str, new_value: str) -> None:
        await self.provider.set_password(subject_id, new_value)
        logger.info("otp.binder.rotate_credential", extra={"subject_id": subject_id})
