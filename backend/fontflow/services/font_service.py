"""
FontFlow Backend — Font Service (Business Logic Orchestrator)
===============================================================

What:  Central orchestrator for the upload → detect → store → transcode → persist
       workflow, plus owner-scoped reads and deletion.
How:   Composes the detector, transcoder, an injected ObjectStore and the
       database session handed in by the route.
Who:   Called by route handlers in routes/fonts.py.

Orchestration Flow (POST /api/fonts/upload):
    ┌──────────┐   ┌──────────┐   ┌──────────┐   ┌───────────┐   ┌──────────┐   ┌──────────┐
    │  Upload  │──▶│  Detect  │──▶│  Store   │──▶│ Transcode │──▶│  Store   │──▶│  Insert  │
    │  (Route) │   │ Validate │   │ original │   │  → WOFF2  │   │  WOFF2   │   │ FontAsset│
    └──────────┘   └──────────┘   └──────────┘   └───────────┘   └──────────┘   └──────────┘

    Detection failures reject the upload before any storage write.
    Storage writes always complete before the row is inserted, so a FontAsset
    never references a key that was not written. When a later step fails,
    the objects already written are deleted best-effort.

FontService is stateless: the session and the store are passed to every call.
"""

import logging
import re
import time
import unicodedata
import uuid
from pathlib import PurePosixPath
from typing import List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from fontflow.config import settings
from fontflow.exceptions import (
    DatabaseError,
    FileTooLargeError,
    FontFlowError,
    NoFileProvidedError,
    NotFoundError,
)
from fontflow.models.font_asset import FontAsset
from fontflow.schemas.font import (
    DeleteResponse,
    FontAssetResponse,
    FontListResponse,
    UploadResponse,
)
from fontflow.services.css_service import generate_css
from fontflow.services.font_detector import FONT_MIME_TYPES, FontFormat, detect_and_validate
from fontflow.services.font_transcoder import ensure_woff2
from fontflow.services.storage import ObjectStore, content_type_for_key

logger = logging.getLogger(__name__)

KEY_PREFIX = "fonts"
FALLBACK_FILENAME = "font"
CONVERSION_WARNING = "WOFF2 conversion failed; only the original file is available."

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")
_WHITESPACE = re.compile(r"\s+")


# ── Storage Keys ──────────────────────────────────────────────────────────
def sanitize_filename(filename: Optional[str]) -> str:
    """
    Reduce a client filename to a safe key segment.

    "My Font.ttf" → "My_Font.ttf", "Ñandú Bold.otf" → "Nandu_Bold.otf".
    Directory parts are dropped; an empty result becomes "font".
    """
    name = PurePosixPath((filename or "").replace("\\", "/")).name
    name = unicodedata.normalize("NFKD", name).encode("ascii", "ignore").decode("ascii")
    name = _WHITESPACE.sub("_", name.strip())
    name = _UNSAFE_CHARS.sub("", name).lstrip(".")
    return name or FALLBACK_FILENAME


def build_storage_key(user_id: str, filename: Optional[str], ext: FontFormat) -> str:
    """
    Collision-resistant key: fonts/<user_id>/<epoch-ms>-<8 hex>-<sanitized name>.

    The detected extension is appended when the filename does not already
    carry it, so the key suffix always reflects the real container.
    """
    name = sanitize_filename(filename)
    suffix = f".{FontFormat(ext).value}"
    if not name.lower().endswith(suffix):
        name = f"{name}{suffix}"
    owner = _UNSAFE_CHARS.sub("_", user_id) or "anonymous"
    return f"{KEY_PREFIX}/{owner}/{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}-{name}"


def derive_woff2_key(original_key: str) -> str:
    """Same key with a .woff2 suffix; a WOFF2 original maps onto itself."""
    return str(PurePosixPath(original_key).with_suffix(".woff2"))


def _fit_columns(values: dict) -> dict:
    """Truncate metadata strings to their column lengths (name records are unbounded)."""
    columns = FontAsset.__table__.c
    for field, value in values.items():
        length = getattr(columns[field].type, "length", None)
        if length and isinstance(value, str):
            values[field] = value[:length]
    return values


class FontService:
    """
    Business logic layer for font operations.

    Every read and delete is scoped to the calling user. A font owned by
    someone else behaves exactly like a missing one (NotFoundError).
    """

    # ── Response building ─────────────────────────────────────────────────
    def _to_response(
        self,
        font: FontAsset,
        store: Optional[ObjectStore] = None,
    ) -> FontAssetResponse:
        response = FontAssetResponse.model_validate(font)
        if store is not None:
            ttl = settings.signed_url_ttl
            response.preview_url = store.signed_url(font.woff2_file or font.original_file, ttl)
            if font.woff2_file:
                response.woff2_url = store.signed_url(font.woff2_file, ttl)
        return response

    async def _delete_objects(self, store: ObjectStore, keys: Sequence[str]) -> List[str]:
        """Delete every key, returning the ones that could not be removed."""
        orphaned = []
        for key in keys:
            try:
                await store.delete(key)
            except FontFlowError as e:
                logger.error("Orphaned storage object %s: %s | Context: %s", key, e.message, e.context)
                orphaned.append(key)
        return orphaned

    async def _cleanup(self, store: ObjectStore, keys: Sequence[str]) -> None:
        """Best-effort removal of objects written by a failed upload."""
        for key in keys:
            try:
                await store.delete(key)
                logger.info("Cleaned up orphaned object: %s", key)
            except Exception as e:
                logger.warning("Failed to clean up object %s: %s", key, e)

    # ── Upload ────────────────────────────────────────────────────────────
    async def upload_font(
        self,
        db: AsyncSession,
        store: ObjectStore,
        user_id: str,
        filename: Optional[str],
        content: Optional[bytes],
    ) -> UploadResponse:
        """
        Validate, store, transcode and record one uploaded font.

        Args:
            db: Async database session (injected by FastAPI)
            store: Object storage backend (injected by FastAPI)
            user_id: Authenticated owner
            filename: Client filename; only used for the key and display name
            content: Raw upload bytes

        Returns:
            UploadResponse with the created record. `warning` is set when no
            WOFF2 variant could be produced.

        Raises:
            NoFileProvidedError: No buffer, or an empty one
            FileTooLargeError: Buffer exceeds MAX_FILE_SIZE
            UnsupportedFormatError / CorruptFontError: Detection failed (no writes)
            ObjectStorageError: A storage write failed
            DatabaseError: The insert failed
        """
        if not content:
            raise NoFileProvidedError()
        if len(content) > settings.max_file_size:
            raise FileTooLargeError(size=len(content), max_size=settings.max_file_size)

        # ── Step 1: Detect & validate (pure, CPU-bound) ───────────────────
        info = await run_in_threadpool(detect_and_validate, content)
        logger.info(
            "Upload accepted: user=%s filename=%s format=%s family=%r",
            user_id,
            filename,
            info.ext.value,
            info.metadata.family,
        )

        original_key = build_storage_key(user_id, filename, info.ext)
        written: List[str] = []
        try:
            # ── Step 2: Persist the original ──────────────────────────────
            await store.put(original_key, content, info.mime)
            written.append(original_key)

            # ── Step 3: Transcode ─────────────────────────────────────────
            woff2 = await run_in_threadpool(ensure_woff2, content, info.ext)
            woff2_key: Optional[str] = None
            warning: Optional[str] = None

            # ── Step 4: Persist the WOFF2 variant ─────────────────────────
            if woff2 is None:
                warning = CONVERSION_WARNING
            else:
                woff2_key = derive_woff2_key(original_key)
                if woff2_key != original_key:
                    await store.put(woff2_key, woff2, FONT_MIME_TYPES[FontFormat.WOFF2])
                    written.append(woff2_key)

            # ── Step 5: Create the record ─────────────────────────────────
            font = FontAsset(
                user_id=user_id,
                name=(filename or sanitize_filename(filename))[:255],
                original_file=original_key,
                woff2_file=woff2_key,
                **_fit_columns(info.metadata.model_dump()),
            )
            db.add(font)
            await db.flush()

        except FontFlowError:
            await self._cleanup(store, written)
            raise
        except SQLAlchemyError as e:
            await self._cleanup(store, written)
            logger.error("Database error creating font record: %s", e, exc_info=True)
            raise DatabaseError(
                message="An error occurred while saving your font. Please try again.",
                context={"error_type": type(e).__name__},
            ) from e
        except Exception:
            await self._cleanup(store, written)
            raise

        logger.info(
            "Font %s stored: original=%s woff2=%s",
            font.id,
            original_key,
            woff2_key or "none",
        )
        return UploadResponse(font=self._to_response(font, store), warning=warning)

    # ── Reads ─────────────────────────────────────────────────────────────
    async def get_font(self, db: AsyncSession, user_id: str, font_id: UUID) -> FontAsset:
        """
        Fetch one font owned by `user_id`.

        Raises:
            NotFoundError: No such font, or owned by another user (→ 404)
            DatabaseError: Query execution failed (→ 500)
        """
        try:
            result = await db.execute(
                select(FontAsset).where(
                    FontAsset.id == font_id,
                    FontAsset.user_id == user_id,
                )
            )
            font = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error("Database error fetching font %s: %s", font_id, e)
            raise DatabaseError(
                message="Could not retrieve the font. Please try again.",
                context={"font_id": str(font_id)},
            ) from e

        if font is None:
            raise NotFoundError(resource="font", resource_id=str(font_id))
        return font

    async def get_font_detail(
        self,
        db: AsyncSession,
        store: ObjectStore,
        user_id: str,
        font_id: UUID,
    ) -> FontAssetResponse:
        font = await self.get_font(db, user_id, font_id)
        return self._to_response(font, store)

    async def _query_fonts(
        self,
        db: AsyncSession,
        user_id: str,
        ids: Optional[Sequence[UUID]] = None,
    ) -> List[FontAsset]:
        query = select(FontAsset).where(FontAsset.user_id == user_id)
        if ids:
            query = query.where(FontAsset.id.in_(list(ids)))
        query = query.order_by(FontAsset.created_at.desc())
        try:
            result = await db.execute(query)
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error("Database error listing fonts: %s", e, exc_info=True)
            raise DatabaseError(
                message="Could not retrieve fonts. Please try again.",
                context={"error_type": type(e).__name__},
            ) from e

    async def list_fonts(
        self,
        db: AsyncSession,
        store: ObjectStore,
        user_id: str,
    ) -> FontListResponse:
        """The caller's fonts, newest first, each with a signed preview URL."""
        fonts = await self._query_fonts(db, user_id)
        return FontListResponse(
            fonts=[self._to_response(font, store) for font in fonts],
            total_count=len(fonts),
        )

    async def get_font_file(
        self,
        db: AsyncSession,
        store: ObjectStore,
        user_id: str,
        font_id: UUID,
        variant: str = "original",
    ) -> Tuple[bytes, str, str]:
        """
        Load a stored binary for download.

        Returns:
            (data, content_type, download filename)

        Raises:
            NotFoundError: Unknown font, or variant="woff2" without a WOFF2 key
        """
        font = await self.get_font(db, user_id, font_id)
        if variant == "woff2":
            if not font.woff2_file:
                raise NotFoundError(resource="WOFF2 variant", resource_id=str(font_id))
            key = font.woff2_file
        else:
            key = font.original_file

        data = await store.get(key)
        return data, content_type_for_key(key), PurePosixPath(key).name

    async def get_fonts_css(
        self,
        db: AsyncSession,
        store: ObjectStore,
        user_id: str,
        ids: Optional[Sequence[UUID]] = None,
    ) -> str:
        """@font-face CSS for the caller's fonts (restricted to `ids` when given)."""
        fonts = await self._query_fonts(db, user_id, ids)
        ttl = settings.signed_url_ttl
        return generate_css(fonts, lambda key: store.signed_url(key, ttl))

    # ── Delete ────────────────────────────────────────────────────────────
    async def delete_font(
        self,
        db: AsyncSession,
        store: ObjectStore,
        user_id: str,
        font_id: UUID,
    ) -> DeleteResponse:
        """
        Delete a font's record and its storage objects.

        The row delete is committed before any object is touched. Object
        deletes are then attempted for every key; a failure leaves an orphaned
        object (logged), never a record pointing at missing storage.

        Raises:
            NotFoundError: No such font, or owned by another user
            DatabaseError: The row delete failed (no object was deleted)
        """
        font = await self.get_font(db, user_id, font_id)
        keys = font.storage_keys

        try:
            await db.delete(font)
            await db.commit()
        except SQLAlchemyError as e:
            logger.error("Database error deleting font %s: %s", font_id, e, exc_info=True)
            raise DatabaseError(
                message="Could not delete the font. Please try again.",
                context={"font_id": str(font_id)},
            ) from e

        orphaned = await self._delete_objects(store, keys)
        logger.info(
            "Font %s deleted (%d objects removed, %d orphaned)",
            font_id,
            len(keys) - len(orphaned),
            len(orphaned),
        )
        return DeleteResponse(id=font_id)


# ── Singleton Instance ────────────────────────────────────────────────────
font_service = FontService()
