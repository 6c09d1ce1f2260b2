"""
Daxue Reader - Analytics Persistence Backends
Where the analytics document lives between calls.
"""

import copy
import json
from pathlib import Path
from typing import Any, Dict, Optional

from core.errors import AnalyticsStorageError


class AnalyticsBackend:
    """
    Storage for the raw analytics document.

    read() returns None when nothing has been stored yet and raises
    AnalyticsStorageError when stored data cannot be read.
    """

    def read(self) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def write(self, data: Dict[str, Any]) -> None:
        raise NotImplementedError


class JsonFileBackend(AnalyticsBackend):
    """The whole document as one pretty-printed UTF-8 JSON file."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def read(self) -> Optional[Dict[str, Any]]:
        if not self.path.exists():
            return None
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            raise AnalyticsStorageError(f"Corrupt analytics file {self.path}: {e}") from e
        except (OSError, UnicodeDecodeError) as e:
            raise AnalyticsStorageError(f"Cannot read analytics file {self.path}: {e}") from e

    def write(self, data: Dict[str, Any]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
        except (OSError, TypeError, ValueError) as e:
            raise AnalyticsStorageError(f"Cannot write analytics file {self.path}: {e}") from e


class MemoryBackend(AnalyticsBackend):
    """In-process storage, used by tests."""

    def __init__(self, data: Optional[Dict[str, Any]] = None):
        self._data = copy.deepcopy(data)
        self.writes = 0

    def read(self) -> Optional[Dict[str, Any]]:
        return copy.deepcopy(self._data)

    def write(self, data: Dict[str, Any]) -> None:
        self._data = copy.deepcopy(data)
        self.writes += 1
