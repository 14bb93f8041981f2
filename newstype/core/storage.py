from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

API_KEY = "apiKey"
TYPING_STREAK = "typingStreak"
LAST_VISIT_DATE = "lastVisitDate"


def default_data_dir() -> Path:
    return Path.home() / ".newstype"


class LocalStore:
    """Small key/value store persisted as JSON.

    File: ~/.newstype/storage.json unless another path is given. Holds the API
    key and the streak bookkeeping; nothing here is shared between users.
    """

    def __init__(self, file_path: Optional[Path] = None) -> None:
        self._file_path = file_path or default_data_dir() / "storage.json"
        self._file_path.parent.mkdir(parents=True, exist_ok=True)
        self._values = self._load()

    @property
    def file_path(self) -> Path:
        return self._file_path

    def get(self, key: str, default: Any = None) -> Any:
        return self._values.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._values[key] = value
        self._save()

    def remove(self, key: str) -> None:
        if self._values.pop(key, None) is not None:
            self._save()

    def clear(self) -> None:
        self._values = {}
        self._save()

    def _load(self) -> Dict[str, Any]:
        if not self._file_path.exists():
            return {}
        try:
            payload = json.loads(self._file_path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as e:
            logger.warning("Could not load local storage from %s: %s", self._file_path, e)
            return {}
        if not isinstance(payload, dict):
            logger.warning("Ignoring local storage in %s: expected an object", self._file_path)
            return {}
        return payload

    def _save(self) -> None:
        self._file_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            self._file_path.write_text(json.dumps(self._values, indent=2), encoding="utf-8")
        except OSError as e:
            logger.warning("Could not save local storage to %s: %s", self._file_path, e)


class CredentialStore:
    """Keeps the user's news API key in the local store."""

    def __init__(self, store: LocalStore) -> None:
        self._store = store

    def get(self) -> Optional[str]:
        value = self._store.get(API_KEY)
        if isinstance(value, str) and value.strip():
            return value
        return None

    def set(self, api_key: str) -> None:
        self._store.set(API_KEY, api_key)
        logger.info("Stored news API key")

    def clear(self) -> None:
        self._store.remove(API_KEY)
        logger.info("Cleared news API key")


def mask_api_key(api_key: Optional[str]) -> str:
    """Show only the first and last four characters of a key."""
    if not api_key:
        return ""
    if len(api_key) <= 8:
        return "****"
    return f"{api_key[:4]}...{api_key[-4:]}"
