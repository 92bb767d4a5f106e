from typing import Optional
from sqlalchemy import BigInteger, Column, Index, Integer, String
from sqlmodel import SQLModel, Field


class OtpPurpose:
    EMAIL_VERIFICATION = "email_verification"
    PASSWORD_RESET = "password_reset"


class OtpSession(SQLModel, table=True):
    # opaque random handle , also the cookie value
    handle: str = Field(sa_column=Column(String(64), primary_key=True))
    subject_id: str = Field(sa_column=Column(String(64), nullable=False, index=True))
    purpose: str = Field(sa_column=Column(String(32), nullable=False))

    code_hash: str = Field(sa_column=Column(String(128), nullable=False))  # hashed otp, never store plaintext
    salt: str = Field(sa_column=Column(String(64), nullable=False))
    attempts: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))

    # epoch milliseconds
    created_at: int = Field(sa_column=Column(BigInteger, nullable=False))
    expires_at: int = Field(sa_column=Column(BigInteger, nullable=False))
    user_agent: Optional[str] = Field(default=None, sa_column=Column(String(512), nullable=True))

    __table_args__ = (Index("ix_otpsession_subject_purpose", "subject_id", "purpose"),)
