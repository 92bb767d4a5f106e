import enum
from datetime import datetime
from typing import List, Optional
from uuid6 import uuid7
from sqlalchemy import DateTime, Enum, ForeignKey, Text, UniqueConstraint
from sqlmodel import Column, SQLModel, Field, Relationship, String
from sellerdesk.common.utils import now
from sellerdesk.schema.otp_session import OtpPurpose, OtpSession


def new_public_id() -> str:
    return str(uuid7())


class CredentialType(str, enum.Enum):
    PASSWORD = "password"
    OAUTH = "oauth"


class Users(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)  #* optional just means for the created object before saving in db .
    public_id: str = Field(
        default_factory=new_public_id,
        sa_column=Column(String(36), unique=True, index=True, nullable=False)
    )
    email: Optional[str] = Field(default=None,sa_column=Column(String(320), nullable=True,unique=True))
    name: Optional[str] = Field(default=None, sa_column=Column(String(128), nullable=True))
    email_verified_at: Optional[datetime] = Field(default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True))
    created_at: datetime = Field(default_factory=now,
        sa_column=Column(DateTime(timezone=True), nullable=False,default=now))
    updated_at: datetime = Field(default_factory=now,
        sa_column=Column(DateTime(timezone=True), nullable=False,default=now, onupdate=now))

    deleted_at: Optional[datetime] = Field(default=None,
        sa_column=Column(DateTime(timezone=True)))

    credentials: List["Credential"] = Relationship(back_populates="user")


class Credential(SQLModel, table=True):
    """Holds password hashes and oauth provider ids."""
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(sa_column=Column(ForeignKey("users.id", ondelete="CASCADE"),
            index=True,nullable=False))
    type: CredentialType = Field(sa_column=Column(Enum(CredentialType), nullable=False))
    provider: Optional[str] = Field(default=None, sa_column=Column(String(64), nullable=True))
    password_hash: Optional[str] = Field(default=None, sa_column=Column(Text(),nullable=True))
    created_at: datetime = Field(default_factory=now,
        sa_column=Column(DateTime(timezone=True), default=now,nullable=False))
    updated_at: datetime = Field(default_factory=now,
        sa_column=Column(DateTime(timezone=True), default=now,nullable=False, onupdate=now))
    revoked_at: Optional[datetime] = Field(default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True))

    user: "Users" = Relationship(back_populates="credentials")  # every credential must be linked to user .

    __table_args__ = (UniqueConstraint("user_id", "provider", name="uq_credential_user_id_provider"),)


__all__ = ["Users", "Credential", "CredentialType", "OtpSession", "OtpPurpose"]
