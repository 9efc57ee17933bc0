"""Create the modules table.

Revision ID: 001_create_modules
Revises:
Create Date: 2026-10-18

The primary-store table for catalog modules:
- slug is unique and joins a module to its Webflow item
- mirror_id holds the Webflow item id once a push succeeded
- updated_at drives sync direction; synced_at is informational only
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import ARRAY, UUID

# revision identifiers, used by Alembic.
revision: str = "001_create_modules"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "modules",
        sa.Column(
            "id",
            UUID(as_uuid=True),
            primary_key=True,
            server_default=sa.text("gen_random_uuid()"),
        ),
        sa.Column("slug", sa.String(200), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("category", sa.String(200), nullable=False),
        sa.Column(
            "tags",
            ARRAY(sa.String()),
            server_default=sa.text("ARRAY[]::varchar[]"),
            nullable=False,
        ),
        sa.Column("summary", sa.Text(), nullable=True),
        sa.Column("source_url", sa.Text(), nullable=True),
        sa.Column("source_label", sa.Text(), nullable=True),
        sa.Column("latest_version", sa.Integer(), server_default=sa.text("1"), nullable=False),
        sa.Column("status", sa.String(20), server_default=sa.text("'draft'"), nullable=False),
        sa.Column("enrichment", sa.JSON(), server_default=sa.text("'{}'::json"), nullable=False),
        sa.Column("mirror_id", sa.String(100), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column("synced_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "status IN ('draft', 'published', 'archived')", name="ck_modules_status"
        ),
    )
    op.create_index("ix_modules_slug", "modules", ["slug"], unique=True)
    op.create_index("ix_modules_category", "modules", ["category"])
    op.create_index("ix_modules_status", "modules", ["status"])
    op.create_index("ix_modules_mirror_id", "modules", ["mirror_id"])


def downgrade() -> None:
    op.drop_index("ix_modules_mirror_id", table_name="modules")
    op.drop_index("ix_modules_status", table_name="modules")
    op.drop_index("ix_modules_category", table_name="modules")
    op.drop_index("ix_modules_slug", table_name="modules")
    op.drop_table("modules")
