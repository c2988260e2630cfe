"""Persistence slots: synchronous, string-keyed, whole-value blob storage.

The store serializes the entire collection to one key after every mutation
and reads it back once at startup. There is no incremental format and no
schema version field.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from threading import Lock
from typing import Dict, List, Optional, Sequence

from pydantic import TypeAdapter

from ..config import Settings
from ..exceptions import PersistenceError
from ..models.task import Task

logger = logging.getLogger(__name__)

_TASK_LIST = TypeAdapter(List[Task])


def serialize_tasks(tasks: Sequence[Task]) -> str:
    """Serialize a collection to the persisted JSON array format."""
    return _TASK_LIST.dump_json(list(tasks), by_alias=True).decode("utf-8")


def deserialize_tasks(raw: str) -> List[Task]:
    """Parse a persisted JSON array back into tasks.

    Raises:
        ValueError: If the payload is not a valid list of task records
    """
    return _TASK_LIST.validate_json(raw)


class PersistenceSlot:
    """Interface for a synchronous key/value string store (local storage)."""

    name = "abstract"

    def get(self, key: str) -> Optional[str]:  # pragma: no cover - interface only
        raise NotImplementedError

    def set(self, key: str, value: str) -> None:  # pragma: no cover - interface only
        raise NotImplementedError

    def remove(self, key: str) -> None:  # pragma: no cover - interface only
        raise NotImplementedError


class MemorySlot(PersistenceSlot):
    """Process-local slot; contents are lost on exit."""

    name = "memory"

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._values: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value

    def remove(self, key: str) -> None:
        self._values.pop(key, None)


class JsonFileSlot(PersistenceSlot):
    """Slot backed by one JSON file holding a ``{key: string}`` object.

    Writes go to a temporary file in the same directory which then replaces
    the original, so a crash mid-write leaves the previous contents intact.
    """

    name = "file"

    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = Lock()

    def _read_all(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise PersistenceError("read", str(self.path), e) from e

        if not isinstance(data, dict):
            raise PersistenceError("read", str(self.path), ValueError("storage file must hold a JSON object"))
        return data

    def _write_all(self, data: Dict[str, str]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(data, f, ensure_ascii=False)
                os.replace(tmp_name, self.path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as e:
            raise PersistenceError("write", str(self.path), e) from e

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            value = self._read_all().get(key)
        if value is not None and not isinstance(value, str):
            raise PersistenceError("read", key, TypeError("slot value is not a string"))
        return value

    def set(self, key: str, value: str) -> None:
        with self._lock:
            try:
                data = self._read_all()
            except PersistenceError as e:
                logger.warning(f"Overwriting unreadable storage file {self.path}: {e}")
                data = {}
            data[key] = value
            self._write_all(data)

    def remove(self, key: str) -> None:
        with self._lock:
            data = self._read_all()
            if key in data:
                del data[key]
                self._write_all(data)


def create_slot(settings: Settings) -> PersistenceSlot:
    """Build the persistence slot selected by configuration.

    Raises:
        ValueError: If the configured backend is unknown
    """
    backend = settings.storage_backend.lower()
    if backend == "memory":
        return MemorySlot()
    if backend == "file":
        return JsonFileSlot(settings.storage_path)
    raise ValueError(f"Unknown storage backend: {settings.storage_backend}")
