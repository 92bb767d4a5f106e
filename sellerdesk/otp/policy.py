from dataclasses import dataclass, field
from typing import Callable
from sellerdesk.common.utils import now_ms
from sellerdesk.config.settings import config_settings
from sellerdesk.otp.utils import codes_match, generate_code, hash_code, make_hasher


@dataclass(frozen=True)
class OtpPolicy:
    """TTL / attempt budget / hashing / clock used by the issuer and verifier.

    ``clock`` returns epoch milliseconds so tests can drive expiry deterministically.
    """
    ttl_seconds: int = 600
    max_attempts: int = 5
    code_length: int = 6
    hasher: Callable[[str], str] = field(default_factory=make_hasher)
    clock: Callable[[], int] = now_ms

    def __post_init__(self):
        if self.ttl_seconds < 1:
            raise ValueError("ttl_seconds must be positive")
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be positive")
        if not 4 <= self.code_length <= 12:
            raise ValueError("code_length must be between 4 and 12")

    @property
    def ttl_ms(self) -> int:
        return self.ttl_seconds * 1000

    def new_code(self) -> str:
        return generate_code(self.code_length)

    def hash(self, salt: str, code: str) -> str:
        return hash_code(self.hasher, salt, code)

    def matches(self, salt: str, code: str, expected_hash: str) -> bool:
        return codes_match(self.hasher, salt, code, expected_hash)


def policy_from_settings(clock: Callable[[], int] | None = None) -> OtpPolicy:
    return OtpPolicy(
        ttl_seconds=int(config_settings.OTP_TTL_SECONDS),
        max_attempts=int(config_settings.OTP_MAX_ATTEMPTS),
        code_length=int(config_settings.OTP_CODE_LENGTH),
        hasher=make_hasher(config_settings.OTP_HASH_ALGO),
        clock=clock or now_ms,
    )
