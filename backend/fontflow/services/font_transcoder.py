"""
FontFlow Backend — Web-Format Transcoder
==========================================

What:  Produces a WOFF2 variant of a validated font for low-bandwidth web delivery.
How:   fontTools does all binary work in memory:
           TTF   → WOFF2          flavor="woff2" + Brotli
           OTF   → TTF → WOFF2    CFF cubics re-drawn as quadratic glyf outlines
           WOFF  → sfnt → WOFF2   wrapper decoded, then one of the paths above
           WOFF2 → WOFF2          identity
Who:   Called by FontService.upload_font() after the original is stored.

Failure policy:
    Every step raises ConversionFailedError. ensure_woff2() is the only public
    entry point that swallows it: it logs a warning and returns None, and the
    upload continues without a WOFF2 key. An OTF buffer is never compressed
    directly when its TTF conversion fails.

No I/O happens here; callers run these functions in a worker thread.
"""

import logging
from io import BytesIO
from typing import Dict, Optional

from fontTools.pens.cu2quPen import Cu2QuPen
from fontTools.pens.ttGlyphPen import TTGlyphPen
from fontTools.ttLib import TTFont, newTable

from fontflow.exceptions import ConversionFailedError
from fontflow.services.font_detector import FontFormat

logger = logging.getLogger(__name__)

# Maximum distance (font units) between a cubic and its quadratic approximation
MAX_APPROXIMATION_ERROR = 1.0

# CFF contours run counter-clockwise; TrueType expects clockwise
REVERSE_CONTOUR_DIRECTION = True

# post format 2.0 keeps glyph names; 3.0 drops them when they do not fit
POST_FORMAT_WITH_NAMES = 2.0
POST_FORMAT_WITHOUT_NAMES = 3.0

SFNT_VERSION_TRUETYPE = "\x00\x01\x00\x00"
SFNT_VERSION_CFF = "OTTO"


def _serialize(font: TTFont, flavor: Optional[str]) -> bytes:
    font.flavor = flavor
    out = BytesIO()
    font.save(out)
    return out.getvalue()


def _quadratic_glyphs(glyph_set) -> Dict[str, object]:
    """Redraw every glyph of a CFF glyph set as a TrueType glyph."""
    glyphs = {}
    for glyph_name in glyph_set.keys():
        tt_pen = TTGlyphPen(glyph_set)
        cu2qu_pen = Cu2QuPen(
            tt_pen,
            MAX_APPROXIMATION_ERROR,
            reverse_direction=REVERSE_CONTOUR_DIRECTION,
        )
        glyph_set[glyph_name].draw(cu2qu_pen)
        glyphs[glyph_name] = tt_pen.glyph()
    return glyphs


def _cff_to_glyf(font: TTFont) -> None:
    """
    Replace the CFF table of an opened OTF with equivalent glyf/loca tables.

    Mutates `font` in place: glyf + loca added, CFF/VORG removed, maxp rebuilt
    as version 1.0, hmtx left side bearings synced to the new glyph bounds,
    post rebuilt, sfntVersion switched to TrueType.
    """
    if font.sfntVersion != SFNT_VERSION_CFF or "CFF " not in font:
        raise ConversionFailedError(
            step="otf_to_ttf",
            context={"reason": "font has no CFF outlines"},
        )

    glyph_order = font.getGlyphOrder()
    quadratic = _quadratic_glyphs(font.getGlyphSet())

    font["loca"] = newTable("loca")
    font["glyf"] = glyf = newTable("glyf")
    glyf.glyphOrder = glyph_order
    glyf.glyphs = quadratic
    del font["CFF "]
    if "VORG" in font:
        del font["VORG"]
    glyf.compile(font)

    hmtx = font["hmtx"]
    for glyph_name, glyph in glyf.glyphs.items():
        if hasattr(glyph, "xMin"):
            hmtx[glyph_name] = (hmtx[glyph_name][0], glyph.xMin)

    font["maxp"] = maxp = newTable("maxp")
    maxp.tableVersion = 0x00010000
    maxp.maxZones = 1
    maxp.maxTwilightPoints = 0
    maxp.maxStorage = 0
    maxp.maxFunctionDefs = 0
    maxp.maxInstructionDefs = 0
    maxp.maxStackElements = 0
    maxp.maxSizeOfInstructions = 0
    maxp.maxComponentElements = max(
        (len(getattr(glyph, "components", [])) for glyph in glyf.glyphs.values()),
        default=0,
    )
    maxp.compile(font)

    post = font["post"]
    post.formatType = POST_FORMAT_WITH_NAMES
    post.extraNames = []
    post.mapping = {}
    post.glyphOrder = glyph_order
    try:
        post.compile(font)
    except OverflowError:
        logger.warning("Dropping glyph names: they do not fit in a format 2 'post' table")
        post.formatType = POST_FORMAT_WITHOUT_NAMES

    font.sfntVersion = SFNT_VERSION_TRUETYPE


def convert_otf_to_ttf(buffer: bytes) -> bytes:
    """
    Convert an OTF (CFF outlines) buffer into a TTF (glyf outlines) buffer.

    Raises:
        ConversionFailedError: Not a CFF font, or any fontTools failure.
    """
    try:
        with TTFont(BytesIO(buffer)) as font:
            _cff_to_glyf(font)
            return _serialize(font, flavor=None)
    except ConversionFailedError:
        raise
    except Exception as e:
        raise ConversionFailedError(
            step="otf_to_ttf",
            context={"error": str(e), "error_type": type(e).__name__},
        ) from e


def convert_ttf_to_woff2(buffer: bytes) -> bytes:
    """
    Compress a TTF buffer into WOFF2.

    Raises:
        ConversionFailedError: Buffer has no glyf outlines, or compression failed.
    """
    try:
        with TTFont(BytesIO(buffer)) as font:
            if "glyf" not in font:
                raise ConversionFailedError(
                    step="ttf_to_woff2",
                    context={"reason": "font has no TrueType outlines"},
                )
            return _serialize(font, flavor="woff2")
    except ConversionFailedError:
        raise
    except Exception as e:
        raise ConversionFailedError(
            step="ttf_to_woff2",
            context={"error": str(e), "error_type": type(e).__name__},
        ) from e


def convert_woff_to_sfnt(buffer: bytes) -> bytes:
    """
    Strip the WOFF wrapper, returning the plain sfnt (TTF or OTF) buffer.

    Raises:
        ConversionFailedError: The WOFF tables could not be decompressed.
    """
    try:
        with TTFont(BytesIO(buffer)) as font:
            return _serialize(font, flavor=None)
    except Exception as e:
        raise ConversionFailedError(
            step="woff_to_sfnt",
            context={"error": str(e), "error_type": type(e).__name__},
        ) from e


def _sfnt_to_woff2(sfnt: bytes) -> bytes:
    """Route a plain sfnt to the right compressor by its outline flavour."""
    if sfnt[:4] == SFNT_VERSION_CFF.encode("ascii"):
        return convert_ttf_to_woff2(convert_otf_to_ttf(sfnt))
    return convert_ttf_to_woff2(sfnt)


def transcode_to_woff2(buffer: bytes, ext: FontFormat) -> bytes:
    """
    Strict variant of ensure_woff2(): same state machine, but failures raise.

    Raises:
        ConversionFailedError: Any step failed, or `ext` is not a known format.
    """
    if ext == FontFormat.WOFF2:
        return buffer
    if ext == FontFormat.TTF:
        return convert_ttf_to_woff2(buffer)
    if ext == FontFormat.OTF:
        # The intermediate TTF must succeed; the OTF itself is never compressed
        return convert_ttf_to_woff2(convert_otf_to_ttf(buffer))
    if ext == FontFormat.WOFF:
        return _sfnt_to_woff2(convert_woff_to_sfnt(buffer))
    raise ConversionFailedError(step="dispatch", context={"ext": str(ext)})


def ensure_woff2(buffer: bytes, ext: FontFormat) -> Optional[bytes]:
    """
    Produce a WOFF2 buffer for `buffer`, or None when no conversion was possible.

    Args:
        buffer: A buffer already accepted by detect_and_validate().
        ext:    The format detect_and_validate() reported for it.

    Returns:
        WOFF2 bytes (the input itself for WOFF2, so repeated calls are
        byte-identical), or None when a conversion step failed.
    """
    try:
        fmt = FontFormat(ext)
    except ValueError:
        logger.warning("WOFF2 conversion requested for unknown format %r", ext)
        return None

    try:
        return transcode_to_woff2(buffer, fmt)
    except ConversionFailedError as e:
        logger.warning(
            "WOFF2 conversion failed for %s font (%d bytes) at step '%s': %s",
            fmt.value,
            len(buffer),
            e.step,
            e.context.get("error") or e.context.get("reason", ""),
        )
        return None
