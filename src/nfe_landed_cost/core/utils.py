"""Utility helpers used across the project."""

from __future__ import annotations

import logging
import math
import re
import unicodedata
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional


LOGGER = logging.getLogger(__name__)


STOPWORDS_PT = {
    "de",
    "da",
    "do",
    "das",
    "dos",
    "para",
    "com",
    "em",
    "sem",
    "uma",
    "um",
    "e",
    "ou",
    "a",
    "o",
    "as",
    "os",
}


def ensure_directory(path: Path) -> None:
    """Create ``path`` when it does not exist."""

    path.mkdir(parents=True, exist_ok=True)


def strip_accents(text: str) -> str:
    """Remove diacritics from ``text``."""

    normalized = unicodedata.normalize("NFD", text)
    return "".join(char for char in normalized if unicodedata.category(char) != "Mn")


def normalize_text(text: str, stopwords: Iterable[str] | None = None) -> str:
    """Normalise text for comparisons.

    * lowercase
    * remove accents
    * remove punctuation
    * collapse whitespace
    * drop stop words
    """

    if text is None:
        return ""

    text = strip_accents(text).lower()
    text = re.sub(r"[^a-z0-9\s]", " ", text)
    words = [word for word in text.split() if word]
    if stopwords is None:
        stopwords = STOPWORDS_PT
    filtered = [word for word in words if word not in stopwords]
    return " ".join(filtered)


def safe_float(value, default: float = 0.0) -> float:
    """Convert ``value`` to a finite float, returning ``default`` otherwise."""

    if isinstance(value, str):
        value = value.strip()
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(number) or math.isinf(number):
        return default
    return number


def optional_float(value) -> Optional[float]:
    """Like :func:`safe_float` but keeps "not stated" apart from zero."""

    if value is None:
        return None
    if isinstance(value, str) and not value.strip():
        return None
    return safe_float(value)


def safe_int(value, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def to_datetime(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    value = str(value)
    try:
        if value.endswith("Z"):
            return datetime.fromisoformat(value.replace("Z", "+00:00")).replace(tzinfo=None)
        return datetime.fromisoformat(value)
    except ValueError:
        try:
            return datetime.strptime(value, "%Y-%m-%d")
        except ValueError:
            LOGGER.debug("Unable to parse datetime value '%s'", value)
            return None


def format_currency(value: float, digits: int = 2) -> str:
    """Format ``value`` the way Brazilian invoices print money (``R$ 1.234,56``)."""

    if value is None or math.isnan(value):
        value = 0.0
    text = f"{abs(value):,.{digits}f}"
    text = text.replace(",", "_").replace(".", ",").replace("_", ".")
    sign = "-" if value < 0 and float(f"{abs(value):.{digits}f}") != 0 else ""
    return f"{sign}R$ {text}"


def now_timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S")


__all__ = [
    "ensure_directory",
    "strip_accents",
    "normalize_text",
    "safe_float",
    "optional_float",
    "safe_int",
    "to_datetime",
    "format_currency",
    "now_timestamp",
    "STOPWORDS_PT",
]
