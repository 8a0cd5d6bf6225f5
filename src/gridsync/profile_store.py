"""
Named-key persistence for serialized profile snapshots.

A store only needs ``get``, ``set``, ``list`` and ``delete`` by name. Values
are plain JSON-compatible dicts (``ProfileSnapshot.to_dict()`` output); the
store never sees a callable. Durability is the backend's business.
"""

from abc import ABC, abstractmethod
import copy
import json
import logging
import os
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class ProfileStore(ABC):
    """Abstract named-key profile store."""

    @abstractmethod
    def get(self, name: str) -> Optional[Dict[str, Any]]:
        """Stored value for ``name``, or None."""

    @abstractmethod
    def set(self, name: str, data: Dict[str, Any]) -> None:
        """Store ``data`` under ``name``, replacing any previous value."""

    @abstractmethod
    def list(self) -> List[str]:
        """Every stored name, in insertion order."""

    @abstractmethod
    def delete(self, name: str) -> bool:
        """Remove ``name``. Returns False when it was not stored."""


class InMemoryProfileStore(ProfileStore):
    """Dict-backed store. Values are deep-copied in and out."""

    def __init__(self, initial: Optional[Dict[str, Dict[str, Any]]] = None):
        self._data: Dict[str, Dict[str, Any]] = copy.deepcopy(initial) if initial else {}

    def get(self, name: str) -> Optional[Dict[str, Any]]:
        value = self._data.get(name)
        return copy.deepcopy(value) if value is not None else None

    def set(self, name: str, data: Dict[str, Any]) -> None:
        self._data[name] = copy.deepcopy(data)

    def list(self) -> List[str]:
        return list(self._data)

    def delete(self, name: str) -> bool:
        return self._data.pop(name, None) is not None


class JsonFileProfileStore(ProfileStore):
    """Store that keeps every entry in one JSON file.

    The file is read once on construction and rewritten on every change.
    A missing file starts an empty store; an unreadable one is logged and
    treated as empty (it is overwritten on the next write).
    """

    def __init__(self, filepath: str):
        self.filepath = filepath
        self._data: Dict[str, Dict[str, Any]] = self._read()

    def _read(self) -> Dict[str, Dict[str, Any]]:
        if not os.path.exists(self.filepath):
            return {}
        try:
            with open(self.filepath, 'r') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Could not read profile store {self.filepath}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring profile store {self.filepath}: top level is {type(data).__name__}")
            return {}
        return data

    def _write(self) -> None:
        directory = os.path.dirname(self.filepath)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(self.filepath, 'w') as f:
            json.dump(self._data, f, indent=2)
        logger.debug(f"Wrote {len(self._data)} entries to {self.filepath}")

    def get(self, name: str) -> Optional[Dict[str, Any]]:
        value = self._data.get(name)
        return copy.deepcopy(value) if value is not None else None

    def set(self, name: str, data: Dict[str, Any]) -> None:
        # Round-trip through JSON so unserializable values fail here, not on reload
        self._data[name] = json.loads(json.dumps(data))
        self._write()

    def list(self) -> List[str]:
        return list(self._data)

    def delete(self, name: str) -> bool:
        if name not in self._data:
            return False
        del self._data[name]
        self._write()
        return True
