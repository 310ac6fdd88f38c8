"""
Persistent key-value memory shared by every step of a run.

The whole document is loaded once and rewritten on every store, so an
interrupted run never loses values it already reported as stored.
"""

import json
from pathlib import Path
from typing import Any, Dict, Iterator, Optional, Union

from e2e_replay.monitoring.logger import get_logger

logger = get_logger(__name__)


class MemoryStore:
    """JSON-file backed memory for values captured during a scenario."""

    def __init__(self, path: Union[str, Path]):
        """
        Initialize the store and load the backing file.

        Args:
            path: Location of the JSON memory document
        """
        self.path = Path(path)
        self._data: Dict[str, Any] = {}
        self._load()

    def _load(self) -> None:
        if not self.path.exists():
            self._data = {}
            return

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Could not read memory file {self.path}: {e}")
            self._data = {}
            return

        if not isinstance(data, dict):
            logger.warning(f"Memory file {self.path} does not hold an object, starting empty")
            data = {}
        self._data = data
        logger.debug(f"Loaded {len(self._data)} memory entries from {self.path}")

    def _save(self) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(self._data, f, indent=2, default=str)
        except OSError as e:
            logger.error(f"Failed to persist memory to {self.path}: {e}")

    def store(self, key: str, value: Any) -> None:
        """Store a value, overwriting any previous one, and persist immediately."""
        self._data[key] = value
        self._save()
        logger.info(f"Stored memory key '{key}'", extra={"component": "memory"})

    def read(self, key: str, default: Optional[Any] = None) -> Any:
        """Read a value, returning ``default`` when the key is absent."""
        return self._data.get(key, default)

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def snapshot(self) -> Dict[str, Any]:
        """Return a copy of the whole memory."""
        return dict(self._data)

    def reload(self) -> None:
        """Re-read the backing file, picking up external resets."""
        self._load()

    def reset(self) -> None:
        """Clear all entries and persist the empty document."""
        self._data = {}
        self._save()
        logger.info("Memory cleared", extra={"component": "memory"})
