"""
FontFlow Backend — Signed File Downloads (local storage backend)
==================================================================

What:  Serves objects of the LocalObjectStore behind HMAC-signed, expiring URLs.
How:   GET /api/files/{key}?expires=<unix ts>&signature=<hex>; the signature
       is checked by LocalObjectStore.verify_signature().
Who:   Browsers following preview_url / CSS src links. No bearer token: the
       signature is the credential, so @font-face can load the file.

With the S3 backend, signed URLs point at S3 directly and this route answers 404.
"""

import logging

from fastapi import APIRouter, Depends, Query, Response

from fontflow.dependencies import get_object_store
from fontflow.exceptions import AuthenticationError, NotFoundError
from fontflow.services.storage import LocalObjectStore, ObjectStore, content_type_for_key

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Files"])


@router.get(
    "/files/{key:path}",
    response_class=Response,
    summary="Serve a stored font file through a signed URL",
    responses={
        200: {"description": "Font binary"},
        401: {"description": "Signature invalid or expired"},
        404: {"description": "File not found"},
    },
)
async def serve_file(
    key: str,
    expires: int = Query(..., description="Expiry as a unix timestamp"),
    signature: str = Query(..., description="HMAC-SHA256 of key and expiry"),
    store: ObjectStore = Depends(get_object_store),
) -> Response:
    if not isinstance(store, LocalObjectStore):
        raise NotFoundError(resource="file", resource_id=key)

    if not store.verify_signature(key, expires, signature):
        logger.info("Rejected signed URL for %s (expired or bad signature)", key)
        raise AuthenticationError(message="Invalid or expired file link")

    data = await store.get(key)
    # Cacheable until the link itself expires
    return Response(
        content=data,
        media_type=content_type_for_key(key),
        headers={
            "Cache-Control": "private, max-age=3600",
            "Access-Control-Allow-Origin": "*",
        },
    )
