from sellerdesk.config.settings import config_settings
from sellerdesk.common.logging_setup import get_logger

logger = get_logger("sellerdesk.identity")

ACCESS_TOKEN_TTL_SECONDS = int(config_settings.ACCESS_TOKEN_EXPIRE_MINUTES) * 60
