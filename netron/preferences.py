"""
Preference Stores

Small key/value stores for client preferences (theme, collapsed
sections, last device address). The core never reads ambient global
storage; callers inject one of these.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional
import json
import logging
import os

logger = logging.getLogger(__name__)


class PreferenceStore(ABC):
    """Key/value preference store."""

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        pass

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        pass

    @abstractmethod
    def remove(self, key: str) -> None:
        pass


class MemoryPreferenceStore(PreferenceStore):
    """Preferences kept for the lifetime of the process."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._values: Dict[str, Any] = dict(initial or {})

    def get(self, key: str, default: Any = None) -> Any:
        return self._values.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._values[key] = value

    def remove(self, key: str) -> None:
        self._values.pop(key, None)


class JsonFilePreferenceStore(PreferenceStore):
    """
    Preferences persisted to a JSON file, rewritten on every change.

    An unreadable file starts the store empty.
    """

    def __init__(self, path: str):
        self.path = path
        self._values: Dict[str, Any] = self._read()

    def _read(self) -> Dict[str, Any]:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, 'r') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Error reading preferences {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring preferences {self.path}: not a JSON object")
            return {}
        return data

    def _write(self) -> None:
        with open(self.path, 'w') as f:
            json.dump(self._values, f, indent=2)

    def get(self, key: str, default: Any = None) -> Any:
        return self._values.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._values[key] = value
        self._write()

    def remove(self, key: str) -> None:
        if key in self._values:
            del self._values[key]
            self._write()
