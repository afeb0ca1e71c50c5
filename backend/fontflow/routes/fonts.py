"""
FontFlow Backend — Font Route Handlers
========================================

What:  Upload, list, inspect, download, stylesheet and delete endpoints for fonts.
How:   Reads the multipart upload, resolves the user and the object store via
       dependencies, delegates to FontService.
Who:   Called by the FontFlow dashboard and by pages embedding the CSS.

Every route requires a bearer token. Fonts of other users are reported as
404 so their ids cannot be probed.

Caching:
    - GET /api/fonts/{id} and /file: private, short-lived. Responses embed
      signed URLs that expire after SIGNED_URL_TTL.
    - GET /api/fonts/css: private, no-store for the same reason.
"""

import logging
from typing import List, Literal, Optional
from urllib.parse import quote
from uuid import UUID

from fastapi import APIRouter, Depends, File, Query, Response, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from fontflow.database import get_db_session
from fontflow.dependencies import get_object_store
from fontflow.schemas.font import (
    DeleteResponse,
    ErrorResponse,
    FontAssetResponse,
    FontListResponse,
    UploadResponse,
)
from fontflow.security import CurrentUser, get_current_user
from fontflow.services.font_service import font_service
from fontflow.services.storage import ObjectStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/fonts", tags=["Fonts"])

_AUTH_RESPONSES = {
    401: {"description": "Missing or invalid bearer token", "model": ErrorResponse},
    500: {"description": "Server error", "model": ErrorResponse},
}


@router.post(
    "/upload",
    status_code=201,
    response_model=UploadResponse,
    responses={
        201: {"description": "Font stored and recorded", "model": UploadResponse},
        400: {
            "description": "no_file_provided, file_too_large, unsupported_format or corrupt_font",
            "model": ErrorResponse,
        },
        **_AUTH_RESPONSES,
    },
    summary="Upload a font",
    description=(
        "Upload a TTF, OTF, WOFF or WOFF2 file in the multipart field `font`. "
        "The format is detected from the file content, metadata is read from the "
        "font's name and OS/2 tables, and a WOFF2 variant is produced for web use. "
        "When WOFF2 conversion fails the upload still succeeds and `warning` is set."
    ),
)
async def upload_font(
    font: Optional[UploadFile] = File(
        None,
        description="Font file (TTF, OTF, WOFF or WOFF2)",
    ),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
    store: ObjectStore = Depends(get_object_store),
) -> UploadResponse:
    content = await font.read() if font is not None else None
    filename = font.filename if font is not None else None

    logger.info(
        "Received font upload: user=%s filename=%s size=%d bytes",
        user.id,
        filename or "unknown",
        len(content or b""),
    )

    try:
        return await font_service.upload_font(
            db=db,
            store=store,
            user_id=user.id,
            filename=filename,
            content=content,
        )
    finally:
        if font is not None:
            await font.close()


@router.get(
    "",
    response_model=FontListResponse,
    responses={200: {"model": FontListResponse}, **_AUTH_RESPONSES},
    summary="List your fonts",
    description="Returns the caller's fonts, newest first, each with a signed preview URL.",
)
async def list_fonts(
    response: Response,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
    store: ObjectStore = Depends(get_object_store),
) -> FontListResponse:
    result = await font_service.list_fonts(db=db, store=store, user_id=user.id)
    response.headers["X-Total-Count"] = str(result.total_count)
    return result


# Declared before /{font_id} so "css" is not parsed as a font id
@router.get(
    "/css",
    response_class=Response,
    responses={
        200: {"description": "@font-face stylesheet", "content": {"text/css": {}}},
        **_AUTH_RESPONSES,
    },
    summary="Generate @font-face CSS",
    description=(
        "One @font-face block per font weight, pointing at signed URLs of the WOFF2 "
        "variant (or the original when there is none). Restricted to `ids` when given."
    ),
)
async def get_fonts_css(
    ids: Optional[List[UUID]] = Query(default=None, description="Font ids to include"),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
    store: ObjectStore = Depends(get_object_store),
) -> Response:
    css = await font_service.get_fonts_css(db=db, store=store, user_id=user.id, ids=ids)
    return Response(
        content=css,
        media_type="text/css",
        headers={"Cache-Control": "private, no-store"},
    )


@router.get(
    "/{font_id}",
    response_model=FontAssetResponse,
    responses={
        200: {"model": FontAssetResponse},
        404: {"description": "Font not found", "model": ErrorResponse},
        **_AUTH_RESPONSES,
    },
    summary="Get a single font",
)
async def get_font(
    font_id: UUID,
    response: Response,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
    store: ObjectStore = Depends(get_object_store),
) -> FontAssetResponse:
    result = await font_service.get_font_detail(db=db, store=store, user_id=user.id, font_id=font_id)
    response.headers["Cache-Control"] = "private, max-age=60"
    return result


@router.get(
    "/{font_id}/file",
    response_class=Response,
    responses={
        200: {"description": "Font binary", "content": {"font/woff2": {}, "font/ttf": {}}},
        404: {"description": "Font or variant not found", "model": ErrorResponse},
        **_AUTH_RESPONSES,
    },
    summary="Download a stored font file",
)
async def get_font_file(
    font_id: UUID,
    variant: Literal["original", "woff2"] = Query(default="original"),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
    store: ObjectStore = Depends(get_object_store),
) -> Response:
    data, content_type, filename = await font_service.get_font_file(
        db=db,
        store=store,
        user_id=user.id,
        font_id=font_id,
        variant=variant,
    )
    return Response(
        content=data,
        media_type=content_type,
        headers={
            "Content-Disposition": f"attachment; filename*=UTF-8''{quote(filename)}",
            "Cache-Control": "private, max-age=3600",
        },
    )


@router.delete(
    "/{font_id}",
    response_model=DeleteResponse,
    responses={
        200: {"model": DeleteResponse},
        404: {"description": "Font not found", "model": ErrorResponse},
        **_AUTH_RESPONSES,
    },
    summary="Delete a font",
    description="Deletes the font record and both of its stored files.",
)
async def delete_font(
    font_id: UUID,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
    store: ObjectStore = Depends(get_object_store),
) -> DeleteResponse:
    return await font_service.delete_font(db=db, store=store, user_id=user.id, font_id=font_id)
