"""
FontFlow Backend — Font Format Detector & Validator
=====================================================

What:  Classifies an uploaded byte buffer as a supported font container and
       extracts descriptive metadata from its table directory.
How:   1. Signature sniffing of the leading bytes with `filetype`'s font matchers
          (never the filename or the declared content type)
       2. Table directory + `name` / `OS/2` parsing with fontTools
Who:   Called by FontService.upload_font() before any storage write.

Recognized signatures:
    ttf    00 01 00 00   TrueType outlines (sfnt 1.0)
    otf    4F 54 54 4F   "OTTO", CFF outlines
    woff   77 4F 46 46   "wOFF", zlib-compressed sfnt
    woff2  77 4F 46 32   "wOF2", Brotli-compressed sfnt

Failure modes:
    UnsupportedFormatError  no signature matched (text, images, empty buffer)
    CorruptFontError        signature matched, table directory did not parse

Both functions in this module are pure: no I/O, no shared state, safe to run
in a worker thread.
"""

import logging
from enum import Enum
from io import BytesIO
from typing import Optional

import filetype
from fontTools.ttLib import TTFont
from pydantic import BaseModel

from fontflow.exceptions import CorruptFontError, UnsupportedFormatError

logger = logging.getLogger(__name__)


class FontFormat(str, Enum):
    TTF = "ttf"
    OTF = "otf"
    WOFF = "woff"
    WOFF2 = "woff2"


# Content types written to object storage (RFC 8081)
FONT_MIME_TYPES = {
    FontFormat.TTF: "font/ttf",
    FontFormat.OTF: "font/otf",
    FontFormat.WOFF: "font/woff",
    FontFormat.WOFF2: "font/woff2",
}

# OpenType name table record IDs
NAME_COPYRIGHT = 0
NAME_FAMILY = 1
NAME_SUBFAMILY = 2
NAME_FULL_NAME = 4
NAME_VERSION = 5
NAME_POSTSCRIPT = 6
NAME_MANUFACTURER = 8
NAME_DESIGNER = 9
NAME_DESCRIPTION = 10
NAME_LICENSE = 13
NAME_TYPOGRAPHIC_FAMILY = 16
NAME_TYPOGRAPHIC_SUBFAMILY = 17

DEFAULT_WEIGHT = 400


class FontMetadata(BaseModel):
    """Descriptive fields read from the font. Absent records are empty strings."""

    family: str = ""
    full_name: str = ""
    postscript_name: str = ""
    style: str = ""
    weight: int = DEFAULT_WEIGHT
    manufacturer: str = ""
    designer: str = ""
    version: str = ""
    copyright: str = ""
    description: str = ""
    license: str = ""


class FontTypeInfo(BaseModel):
    """Result of a successful detection."""

    ext: FontFormat
    mime: str
    metadata: FontMetadata


def sniff_format(buffer: bytes) -> Optional[FontFormat]:
    """
    Identify the font container from the leading bytes.

    Returns:
        The detected FontFormat, or None when no font signature matches.
    """
    if not buffer:
        return None
    kind = filetype.font_match(buffer)
    if kind is None:
        return None
    try:
        return FontFormat(kind.extension)
    except ValueError:
        return None


def _name(name_table, *name_ids: int) -> str:
    """First non-empty record among name_ids, stripped; '' when none exists."""
    for name_id in name_ids:
        value = name_table.getDebugName(name_id)
        if value:
            return value.strip()
    return ""


def _weight_class(font: TTFont) -> int:
    if "OS/2" not in font:
        return DEFAULT_WEIGHT
    weight = font["OS/2"].usWeightClass
    # usWeightClass is specified as 1..1000; some old fonts ship 0
    if not 1 <= weight <= 1000:
        return DEFAULT_WEIGHT
    return weight


def extract_metadata(font: TTFont) -> FontMetadata:
    """Read descriptive metadata from an opened font."""
    if "name" not in font:
        return FontMetadata(weight=_weight_class(font))

    names = font["name"]
    return FontMetadata(
        family=_name(names, NAME_FAMILY, NAME_TYPOGRAPHIC_FAMILY),
        full_name=_name(names, NAME_FULL_NAME),
        postscript_name=_name(names, NAME_POSTSCRIPT),
        style=_name(names, NAME_SUBFAMILY, NAME_TYPOGRAPHIC_SUBFAMILY),
        weight=_weight_class(font),
        manufacturer=_name(names, NAME_MANUFACTURER),
        designer=_name(names, NAME_DESIGNER),
        version=_name(names, NAME_VERSION),
        copyright=_name(names, NAME_COPYRIGHT),
        description=_name(names, NAME_DESCRIPTION),
        license=_name(names, NAME_LICENSE),
    )


def detect_and_validate(buffer: bytes) -> FontTypeInfo:
    """
    Classify `buffer` as a supported font and extract its metadata.

    Args:
        buffer: Raw upload bytes. The size bound is enforced by the caller.

    Returns:
        FontTypeInfo with the detected extension, storage content type and metadata.

    Raises:
        UnsupportedFormatError: No recognized font signature. Nothing else is attempted.
        CorruptFontError: Signature matched but the table directory, `head`,
            `name` or `OS/2` table could not be decoded.
    """
    ext = sniff_format(buffer)
    if ext is None:
        raise UnsupportedFormatError(
            context={"leading_bytes": bytes(buffer[:8]).hex(), "size": len(buffer)},
        )

    try:
        with TTFont(BytesIO(buffer)) as font:
            # Every sfnt needs a head table; a directory without one is not a font
            font["head"]
            metadata = extract_metadata(font)
    except Exception as e:
        logger.info("Font parsing failed for %s buffer (%d bytes): %s", ext.value, len(buffer), e)
        raise CorruptFontError(
            ext=ext.value,
            context={"parse_error": type(e).__name__},
        ) from e

    logger.debug(
        "Detected %s font: family=%r style=%r weight=%d",
        ext.value,
        metadata.family,
        metadata.style,
        metadata.weight,
    )
    return FontTypeInfo(ext=ext, mime=FONT_MIME_TYPES[ext], metadata=metadata)
