"""
FontFlow Backend — @font-face CSS Generation
==============================================

What:  Renders embeddable `@font-face` rules for a set of stored fonts.
How:   Pure string building. The caller supplies a `url_for(key)` callable,
       so the same renderer works with S3 presigned URLs and local signed URLs.
Who:   Called by GET /api/fonts/css via FontService.get_fonts_css().

Per font:
    - source key: woff2_file, falling back to original_file
    - format():   inferred from the key extension
    - family:     full name, then family, then "CustomFont"
    - weight:     OS/2 weight class, 400 when missing
    A font with no usable key is skipped with a warning.
"""

import logging
from typing import Callable, Iterable, List, Optional

from fontflow.models.font_asset import FontAsset

logger = logging.getLogger(__name__)

FALLBACK_FAMILY = "CustomFont"
DEFAULT_WEIGHT = 400


def css_format_for_key(key: str) -> str:
    """CSS format() token for a storage key."""
    lower = key.lower()
    if lower.endswith(".woff2"):
        return "woff2"
    if lower.endswith(".woff"):
        return "woff"
    return "truetype"


def css_font_style(style: Optional[str]) -> str:
    lower = (style or "").lower()
    if "italic" in lower:
        return "italic"
    if "oblique" in lower:
        return "oblique"
    return "normal"


def css_font_family(font: FontAsset) -> str:
    return font.full_name or font.family or FALLBACK_FAMILY


def _escape(value: str) -> str:
    # Values are emitted inside double-quoted CSS strings
    return value.replace("\\", "\\\\").replace('"', '\\"')


def source_key(font: FontAsset) -> Optional[str]:
    return font.woff2_file or font.original_file or None


def render_font_face(family: str, url: str, fmt: str, weight: int, style: str) -> str:
    return (
        "@font-face {\n"
        f'  font-family: "{_escape(family)}";\n'
        f"  font-style: {style};\n"
        f"  font-weight: {weight};\n"
        f'  src: url("{_escape(url)}") format("{fmt}");\n'
        "}"
    )


def generate_css(fonts: Iterable[FontAsset], url_for: Callable[[str], str]) -> str:
    """
    Build the stylesheet for `fonts`.

    Args:
        fonts:   FontAsset records, rendered in the given order.
        url_for: Maps a storage key to the URL placed in `src`.

    Returns:
        The CSS text, blocks separated by a blank line ('' for no usable fonts).
    """
    blocks: List[str] = []
    for font in fonts:
        family = css_font_family(font)
        key = source_key(font)
        if not key:
            logger.warning("Skipping font %r (id=%s): no file is stored", family, font.id)
            continue

        url = url_for(key)
        fmt = css_format_for_key(key)
        style = css_font_style(font.style)
        weight = font.weight or DEFAULT_WEIGHT
        blocks.append(render_font_face(family, url, fmt, weight, style))

    return "\n\n".join(blocks) + ("\n" if blocks else "")
