"""Base schema: content_items, item_meta, item_terms.

Migration 001 adds the cache tables.
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "000_base"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# SQLite only autoincrements INTEGER PRIMARY KEY columns.
SURROGATE_KEY = sa.BigInteger().with_variant(sa.Integer(), "sqlite")


def upgrade() -> None:
    # 1) content_items (meta and terms reference it)
    op.create_table(
        "content_items",
        sa.Column("id", SURROGATE_KEY, primary_key=True, autoincrement=True),
        sa.Column("partition_id", sa.String(255), nullable=False),
        sa.Column("content_type", sa.String(64), nullable=False, server_default="post"),
        sa.Column("status", sa.String(32), nullable=False, server_default="publish"),
        sa.Column("author_id", sa.BigInteger(), nullable=True),
        sa.Column("title", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
    )
    op.create_index(
        "ix_content_items_partition_type_status",
        "content_items",
        ["partition_id", "content_type", "status"],
        unique=False,
    )
    op.create_index("ix_content_items_partition_author", "content_items", ["partition_id", "author_id"], unique=False)

    # 2) item_meta
    op.create_table(
        "item_meta",
        sa.Column("meta_id", SURROGATE_KEY, primary_key=True, autoincrement=True),
        sa.Column(
            "item_id",
            sa.BigInteger(),
            sa.ForeignKey("content_items.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("meta_key", sa.String(255), nullable=False),
        sa.Column("meta_value", sa.Text(), nullable=True),
    )
    op.create_index("ix_item_meta_item_key", "item_meta", ["item_id", "meta_key"], unique=False)

    # 3) item_terms
    op.create_table(
        "item_terms",
        sa.Column(
            "item_id",
            sa.BigInteger(),
            sa.ForeignKey("content_items.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("term_id", sa.BigInteger(), primary_key=True),
        sa.Column("taxonomy", sa.String(32), primary_key=True, server_default="category"),
    )
    op.create_index("ix_item_terms_taxonomy_term", "item_terms", ["taxonomy", "term_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_item_terms_taxonomy_term", table_name="item_terms")
    op.drop_table("item_terms")
    op.drop_index("ix_item_meta_item_key", table_name="item_meta")
    op.drop_table("item_meta")
    op.drop_index("ix_content_items_partition_author", table_name="content_items")
    op.drop_index("ix_content_items_partition_type_status", table_name="content_items")
    op.drop_table("content_items")
