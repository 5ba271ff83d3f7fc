"""Local key-value storage for cached identity and student context."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Dict, Iterable, Optional, Protocol, Tuple

from .utils.logger import logger


class KeyValueStore(Protocol):
    """String key-value storage injected into the cache and session helpers."""

    def get_item(self, key: str) -> Optional[str]:
        """Return the stored value or None."""

    def set_item(self, key: str, value: str) -> None:
        """Store a string value."""

    def remove_item(self, key: str) -> None:
        """Delete a key if present."""

    def multi_set(self, pairs: Iterable[Tuple[str, Optional[str]]]) -> None:
        """Write several values at once."""

    def multi_remove(self, keys: Iterable[str]) -> None:
        """Delete several keys."""


class JsonFileStore:
    """Persist string values as a flat JSON object on disk."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self.data: Dict[str, str] = {}
        self._load()

    def _load(self) -> None:
        if not self.path.exists():
            return
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable storage file %s: %s", self.path, exc)
            return
        if isinstance(payload, dict):
            self.data.update({str(k): str(v) for k, v in payload.items() if v is not None})

    def save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(self.data, indent=2), encoding="utf-8")

    def get_item(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set_item(self, key: str, value: str) -> None:
        self.data[key] = str(value)
        self.save()

    def multi_set(self, pairs: Iterable[Tuple[str, Optional[str]]]) -> None:
        """Write several values at once; None values remove the key."""
        for key, value in pairs:
            if value is None:
                self.data.pop(key, None)
            else:
                self.data[key] = str(value)
        self.save()

    def remove_item(self, key: str) -> None:
        if self.data.pop(key, None) is not None:
            self.save()

    def multi_remove(self, keys: Iterable[str]) -> None:
        for key in keys:
            self.data.pop(key, None)
        self.save()
