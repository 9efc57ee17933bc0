"""Catalog persistence model -- the ``modules`` table of the primary store.

ModuleModel is the system of record for module content and metadata. The
``mirror_id`` column links a module to its Webflow CMS item once a push has
succeeded; ``synced_at`` is informational and never drives sync direction.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Integer, String, Text, func, text
from sqlalchemy.dialects.postgresql import ARRAY, JSON, UUID
from sqlalchemy.orm import Mapped, mapped_column

from src.currentprompt.core.database import Base


class ModuleModel(Base):
    """Markdown content module with catalog metadata.

    ``slug`` is unique and immutable once assigned; it is the join key
    between the primary store and the mirror. ``updated_at`` is bumped by
    the ORM on every write unless the writer sets it explicitly.
    """

    __tablename__ = "modules"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=text("gen_random_uuid()"),
    )
    slug: Mapped[str] = mapped_column(String(200), nullable=False, unique=True, index=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    tags: Mapped[list[str]] = mapped_column(
        ARRAY(String), default=list, server_default=text("ARRAY[]::varchar[]")
    )
    summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    source_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    source_label: Mapped[str | None] = mapped_column(Text, nullable=True)
    latest_version: Mapped[int] = mapped_column(
        Integer, default=1, server_default=text("1")
    )
    status: Mapped[str] = mapped_column(
        String(20), default="draft", server_default=text("'draft'"), index=True
    )
    enrichment: Mapped[dict] = mapped_column(
        JSON, default=dict, server_default=text("'{}'::json")
    )
    mirror_id: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
    synced_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
