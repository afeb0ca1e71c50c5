"""
FontFlow Backend — FontAsset SQLAlchemy Model
===============================================

What:  ORM model representing the `font_assets` table.
How:   Inherits from SQLAlchemy's DeclarativeBase; Alembic reads this for migrations.
Who:   Used by FontService for create/find/delete and by Alembic for schema management.

Table Design:
    - UUID primary key, generated in Python (works on PostgreSQL and SQLite alike)
    - user_id: opaque identity from the auth service (no local users table)
    - original_file: object storage key of the uploaded binary, NEVER NULL
    - woff2_file: object storage key of the derived WOFF2, NULL when transcoding
      failed or was not applicable
    - metadata columns are NOT NULL and default to '' (a font missing optional
      name records is still a valid upload)

Index on (user_id, created_at DESC):
    Every read is owner-scoped and the listing is newest-first.
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, Index, Integer, String, Text, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from fontflow.database import Base


# Owner ids longer than this are rejected at authentication
USER_ID_MAX_LENGTH = 128


class FontAsset(Base):
    """
    One uploaded font and its derived artifacts.

    Lifecycle:
        1. Created by FontService.upload_font() only after both storage writes
           succeeded (original always, WOFF2 when produced)
        2. Never updated
        3. Deleted together with its backing storage objects
    """

    __tablename__ = "font_assets"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    user_id: Mapped[str] = mapped_column(
        String(USER_ID_MAX_LENGTH),
        nullable=False,
        comment="Owning user id as issued by the auth service",
    )

    # Original upload filename, shown in the UI
    name: Mapped[str] = mapped_column(String(255), nullable=False, default="")

    # ── Metadata from the font's name / OS/2 tables ───────────────────────
    family: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    full_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    postscript_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    style: Mapped[str] = mapped_column(String(128), nullable=False, default="")
    weight: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=400,
        comment="OS/2 usWeightClass (400 when the font has no OS/2 table)",
    )
    manufacturer: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    designer: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    version: Mapped[str] = mapped_column(String(128), nullable=False, default="")
    copyright: Mapped[str] = mapped_column(Text, nullable=False, default="")
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    license: Mapped[str] = mapped_column(Text, nullable=False, default="")

    # ── Storage keys ──────────────────────────────────────────────────────
    original_file: Mapped[str] = mapped_column(
        String(512),
        nullable=False,
        comment="Object storage key of the uploaded binary",
    )
    woff2_file: Mapped[Optional[str]] = mapped_column(
        String(512),
        nullable=True,
        default=None,
        comment="Object storage key of the WOFF2 variant; NULL when conversion failed",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )

    __table_args__ = (
        Index("idx_font_assets_user_created", user_id, created_at.desc()),
    )

    @property
    def storage_keys(self) -> list[str]:
        """Distinct storage keys backing this record (WOFF2 uploads reuse the original key)."""
        keys = [self.original_file]
        if self.woff2_file and self.woff2_file != self.original_file:
            keys.append(self.woff2_file)
        return keys

    def __repr__(self) -> str:
        return (
            f"<FontAsset(id={self.id}, family='{self.family}', "
            f"style='{self.style}', weight={self.weight})>"
        )
