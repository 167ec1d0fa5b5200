"""
Business key normalization.
"""

import re
import unicodedata
from typing import Any

_WHITESPACE = re.compile(r"\s+")


def normalize_key(value: Any) -> str:
    """
    Normalize a raw key component for grouping and duplicate checks.

    Applies NFC so composed and decomposed accents compare equal, strips
    zero-width and other format characters (Unicode category Cf), maps
    no-break spaces to spaces, trims, collapses internal whitespace to one
    space and lowercases.
    None becomes the empty string.

    Examples:
        >>> normalize_key("  ORDER-1\\u200b ")
        'order-1'
        >>> normalize_key("Blue   Widget")
        'blue widget'
    """
    if value is None:
        return ""

    text = str(value).replace("\u00a0", " ")
    text = "".join(ch for ch in text if unicodedata.category(ch) != "Cf")
    text = _WHITESPACE.sub(" ", text).strip()
    return unicodedata.normalize("NFC", text.lower())


def composite_key(*parts: Any) -> str:
    """Join normalized key components with an underscore."""
    return "_".join(normalize_key(part) for part in parts)
