from sellerdesk.common.logging_setup import get_logger

logger = get_logger("sellerdesk.common")
