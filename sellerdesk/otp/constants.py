from sellerdesk.config.settings import config_settings
from sellerdesk.common.logging_setup import get_logger

logger = get_logger("sellerdesk.otp")

OTP_TTL_SECONDS = int(config_settings.OTP_TTL_SECONDS)

OTP_COOKIE_NAME = config_settings.OTP_COOKIE_NAME

RESET_COOKIE_NAME = config_settings.RESET_COOKIE_NAME

HANDLE_BYTES = 24       # 48 hex chars

SALT_BYTES = 16

# backend batch ceiling is 500 , stay under it
SWEEP_BATCH_SIZE = int(config_settings.OTP_SWEEP_BATCH_SIZE)

SESSION_INVALID_MESSAGE = "Verification session is invalid or expired. Request a new code."
CODE_MISMATCH_MESSAGE = "Incorrect code."
TOO_MANY_ATTEMPTS_MESSAGE = "Too many attempts. Request a new code."
FORBIDDEN_MESSAGE = "Verification session does not belong to this account."
CODE_SENT_MESSAGE = "If the account exists, a verification code has been sent."
