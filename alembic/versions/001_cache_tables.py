"""Add cache_versions and eligibility_cache.

Revision ID: 001_cache
Revises: 000_base
Create Date: 2026-10-19 00:00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001_cache"
down_revision: Union[str, None] = "000_base"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "cache_versions",
        sa.Column("scope", sa.String(64), primary_key=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
    )

    op.create_table(
        "eligibility_cache",
        sa.Column("cache_key", sa.String(255), primary_key=True),
        sa.Column("partition_id", sa.String(255), nullable=False),
        sa.Column("cache_version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("payload_json", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_eligibility_cache_partition_id", "eligibility_cache", ["partition_id"], unique=False)
    op.create_index("ix_eligibility_cache_expires_at", "eligibility_cache", ["expires_at"], unique=False)
    op.create_index("ix_eligibility_cache_version", "eligibility_cache", ["cache_version"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_eligibility_cache_version", table_name="eligibility_cache")
    op.drop_index("ix_eligibility_cache_expires_at", table_name="eligibility_cache")
    op.drop_index("ix_eligibility_cache_partition_id", table_name="eligibility_cache")
    op.drop_table("eligibility_cache")
    op.drop_table("cache_versions")
