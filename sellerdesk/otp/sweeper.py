from sellerdesk.otp.constants import SWEEP_BATCH_SIZE, logger


class SessionSweeper:
    """Removes every otp session of a subject , in batches the backend accepts."""

    def __init__(self, store, batch_size: int = SWEEP_BATCH_SIZE):
        if batch_size < 1:
            raise ValueError("batch_size must be positive")
        self.store = store
        self.batch_size = batch_size

    async def sweep(self, subject_id: str) -> int:
        deleted = await self.store.delete_all_for_subject(subject_id, batch_size=self.batch_size)
        if deleted:
            logger.debug("otp.sweep.done", extra={"subject_id": subject_id, "deleted": deleted})
        return deleted
