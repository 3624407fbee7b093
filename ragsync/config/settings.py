"""
Settings
========
Centralised, cached access to environment configuration.
A `.env` file in the working directory is loaded once, on first access.
"""
import os
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv


class Settings:
    _CACHE: Dict[str, Any] = {}
    _DOTENV_LOADED: bool = False

    @classmethod
    def _load_dotenv(cls) -> None:
        if not cls._DOTENV_LOADED:
            load_dotenv()
            cls._DOTENV_LOADED = True

    @classmethod
    def get(cls, key: str, default: Any | None = None) -> Any:
        cls._load_dotenv()
        if key not in cls._CACHE:
            cls._CACHE[key] = os.getenv(key, default)
        return cls._CACHE[key]

    @classmethod
    def get_bool(cls, key: str, default: bool) -> bool:
        raw = cls.get(key)
        if raw is None or raw == "":
            return default
        return str(raw).strip().lower() in ("1", "true", "yes", "on")

    @classmethod
    def get_int(cls, key: str, default: int) -> int:
        raw = cls.get(key)
        if raw is None or raw == "":
            return default
        return int(raw)

    @classmethod
    def get_list(cls, key: str) -> Optional[List[str]]:
        """Comma-separated values; None when the variable is unset or empty."""
        raw = cls.get(key)
        if not raw:
            return None
        return [part.strip() for part in str(raw).split(",") if part.strip()]

    @classmethod
    def clear_cache(cls) -> None:
        cls._CACHE.clear()
