"""
Language detection
==================
Maps a file path to a SupportedLanguage tag by extension, or None.
"""

from __future__ import annotations

from enum import Enum
from pathlib import PurePath
from typing import Optional


class SupportedLanguage(str, Enum):
    JAVASCRIPT = "javascript"
    TYPESCRIPT = "typescript"
    TSX = "tsx"
    PYTHON = "python"
    MARKDOWN = "markdown"
    JSON = "json"
    CSS = "css"
    HTML = "html"
    XML = "xml"


_EXTENSIONS = {
    "js": SupportedLanguage.JAVASCRIPT,
    "jsx": SupportedLanguage.JAVASCRIPT,
    "mjs": SupportedLanguage.JAVASCRIPT,
    "cjs": SupportedLanguage.JAVASCRIPT,
    "ts": SupportedLanguage.TYPESCRIPT,
    "mts": SupportedLanguage.TYPESCRIPT,
    "cts": SupportedLanguage.TYPESCRIPT,
    "tsx": SupportedLanguage.TSX,
    "py": SupportedLanguage.PYTHON,
    "pyi": SupportedLanguage.PYTHON,
    "md": SupportedLanguage.MARKDOWN,
    "markdown": SupportedLanguage.MARKDOWN,
    "json": SupportedLanguage.JSON,
    "css": SupportedLanguage.CSS,
    "html": SupportedLanguage.HTML,
    "htm": SupportedLanguage.HTML,
    "xml": SupportedLanguage.XML,
}


def detect_language(file_path: str) -> Optional[SupportedLanguage]:
    suffix = PurePath(file_path).suffix.lower().lstrip(".")
    return _EXTENSIONS.get(suffix)


def coerce_language(value: Optional[str]) -> Optional[SupportedLanguage]:
    """Accepts a tag like "python" (or an existing enum member); unknown -> None."""
    if value is None:
        return None
    if isinstance(value, SupportedLanguage):
        return value
    try:
        return SupportedLanguage(value.lower())
    except ValueError:
        return None
