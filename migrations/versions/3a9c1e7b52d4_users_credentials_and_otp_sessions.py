"""users, credentials and otp sessions

Revision ID: 3a9c1e7b52d4
Revises: 
Create Date: 2026-10-19 14:55:12.104233

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3a9c1e7b52d4'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("public_id", sa.String(length=36), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=True),
        sa.Column("name", sa.String(length=128), nullable=True),
        sa.Column("email_verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("email"),
    )
    op.create_index("ix_users_public_id", "users", ["public_id"], unique=True)

    op.create_table(
        "credential",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("type", sa.Enum("PASSWORD", "OAUTH", name="credentialtype"), nullable=False),
        sa.Column("provider", sa.String(length=64), nullable=True),
        sa.Column("password_hash", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("user_id", "provider", name="uq_credential_user_id_provider"),
    )
    op.create_index("ix_credential_user_id", "credential", ["user_id"])

    # expires_at / created_at are epoch milliseconds
    op.create_table(
        "otpsession",
        sa.Column("handle", sa.String(length=64), primary_key=True),
        sa.Column("subject_id", sa.String(length=64), nullable=False),
        sa.Column("purpose", sa.String(length=32), nullable=False),
        sa.Column("code_hash", sa.String(length=128), nullable=False),
        sa.Column("salt", sa.String(length=64), nullable=False),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.BigInteger(), nullable=False),
        sa.Column("expires_at", sa.BigInteger(), nullable=False),
        sa.Column("user_agent", sa.String(length=512), nullable=True),
    )
    op.create_index("ix_otpsession_subject_id", "otpsession", ["subject_id"])
    op.create_index("ix_otpsession_subject_purpose", "otpsession", ["subject_id", "purpose"])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index("ix_otpsession_subject_purpose", table_name="otpsession")
    op.drop_index("ix_otpsession_subject_id", table_name="otpsession")
    op.drop_table("otpsession")
    op.drop_index("ix_credential_user_id", table_name="credential")
    op.drop_table("credential")
    op.drop_index("ix_users_public_id", table_name="users")
    op.drop_table("users")
    sa.Enum(name="credentialtype").drop(op.get_bind(), checkfirst=True)
