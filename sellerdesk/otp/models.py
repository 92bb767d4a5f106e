import enum
import re
from dataclasses import dataclass
from typing import Annotated, Optional
from pydantic import AfterValidator, BaseModel, ConfigDict, Field, model_validator

_CODE_RE = re.compile(r"^\d{4,12}$")


def _normalize_code(value: str) -> str:
    value = (value or "").strip()
    if not _CODE_RE.match(value):
        raise ValueError("code must be digits only")
    return value

OtpCode = Annotated[str, AfterValidator(_normalize_code)]


# --- request bodies ------------------------------------------------------------------------

class OtpStartIn(BaseModel):
    caller_token: Optional[str] = Field(None, description="falls back to the Authorization bearer token")
    destination: Optional[str] = Field(None, examples=["seller@example.com"])

class OtpVerifyIn(BaseModel):
    code: OtpCode = Field(..., examples=["042917"])
    caller_token: Optional[str] = None

class PasswordResetStartIn(BaseModel):
    email: str = Field(..., examples=["seller@example.com"])

class PasswordResetVerifyIn(BaseModel):
    email: str = Field(...)
    code: OtpCode = Field(...)
    new_password: str = Field(..., min_length=1)


# --- store boundary ------------------------------------------------------------------------

class OtpSessionRecord(BaseModel):
    """The only shape the store hands back ; rows that don't fit are rejected."""
    model_config = ConfigDict(frozen=True, extra="forbid")

    handle: str = Field(..., min_length=1, max_length=64)
    subject_id: str = Field(..., min_length=1, max_length=64)
    purpose: str
    code_hash: str = Field(..., min_length=1)
    salt: str = Field(..., min_length=1)
    attempts: int = Field(..., ge=0)
    created_at: int
    expires_at: int
    user_agent: Optional[str] = None

    @model_validator(mode="after")
    def _check_window(self):
        if self.expires_at <= self.created_at:
            raise ValueError("expires_at must be after created_at")
        return self


# --- outcomes ------------------------------------------------------------------------------

class VerifyFailure(str, enum.Enum):
    SESSION_INVALID = "session_invalid"     # not found / expired / consumed
    FORBIDDEN = "forbidden"
    CODE_MISMATCH = "code_mismatch"
    TOO_MANY_ATTEMPTS = "too_many_attempts"


@dataclass(frozen=True)
class VerifyOutcome:
    ok: bool
    failure: Optional[VerifyFailure] = None

    @classmethod
    def success(cls) -> "VerifyOutcome":
        return cls(ok=True)

    @classmethod
    def failed(cls, failure: VerifyFailure) -> "VerifyOutcome":
        return cls(ok=False, failure=failure)


@dataclass(frozen=True)
class IssuedOtp:
    handle: str
    expires_at: int


@dataclass(frozen=True)
class DeliveryReceipt:
    destination: str
    channel: str
    message_id: Optional[str] = None
