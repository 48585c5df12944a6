"""JSON file storage shared by the workflow components."""

import json
import logging
import os
import tempfile
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Optional

from filelock import FileLock

logger = logging.getLogger(__name__)

LOCK_FILE = ".lock"


class DirectoryLock:
    """
    Re-entrant lock on a data directory.

    The thread lock serializes callers inside one process; the file lock is
    taken on the outermost entry and serializes processes (CLI, API workers)
    sharing the directory.
    """

    def __init__(self, data_dir: Path):
        self._thread_lock = threading.RLock()
        self._file_lock = FileLock(str(data_dir / LOCK_FILE))
        self._depth = 0

    def __enter__(self) -> "DirectoryLock":
        self._thread_lock.acquire()
        if self._depth == 0:
            try:
                self._file_lock.acquire()
            except BaseException:
                self._thread_lock.release()
                raise
        self._depth += 1
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self._depth -= 1
        if self._depth == 0:
            self._file_lock.release()
        self._thread_lock.release()


# One lock per data directory, shared by every store instance on it
_DIR_LOCKS: dict[str, DirectoryLock] = {}
_DIR_LOCKS_GUARD = threading.Lock()


def _lock_for(data_dir: Path) -> DirectoryLock:
    key = str(data_dir.resolve())
    with _DIR_LOCKS_GUARD:
        if key not in _DIR_LOCKS:
            _DIR_LOCKS[key] = DirectoryLock(data_dir)
        return _DIR_LOCKS[key]


class JsonStore:
    """
    Persists record collections as JSON files in a data directory.

    Lists (projects, applications, payments, ledger_events) hold serialized
    records. Maps (hire_slots, profile_views) hold small keyed values and
    back the conditional writes. Reads and writes hold the directory lock,
    so conditional writes stay atomic across processes.
    """

    LIST_COLLECTIONS = ("projects", "applications", "payments", "ledger_events")
    MAP_COLLECTIONS = ("hire_slots", "profile_views")

    def __init__(self, data_dir: Path):
        """Initialize the store with a data directory."""
        self.data_dir = Path(data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self._lock = _lock_for(self.data_dir)
        self._ensure_data_files()

    def _ensure_data_files(self) -> None:
        """Ensure data files exist."""
        with self._lock:
            for name in self.LIST_COLLECTIONS:
                if not self._path(name).exists():
                    self._write(name, [])
            for name in self.MAP_COLLECTIONS:
                if not self._path(name).exists():
                    self._write(name, {})

    def _path(self, name: str) -> Path:
        if name not in self.LIST_COLLECTIONS and name not in self.MAP_COLLECTIONS:
            raise KeyError(f"Unknown collection: {name}")
        return self.data_dir / f"{name}.json"

    def _write(self, name: str, data: Any) -> None:
        """Write a collection atomically via a uniquely named temp file."""
        path = self._path(name)
        with tempfile.NamedTemporaryFile(
            "w", dir=self.data_dir, prefix=f".{name}.", suffix=".tmp", delete=False
        ) as f:
            json.dump(data, f, indent=2)
            tmp_path = f.name
        try:
            os.replace(tmp_path, path)
        except OSError:
            os.unlink(tmp_path)
            raise

    @contextmanager
    def transaction(self) -> Iterator["JsonStore"]:
        """Hold the directory lock for a read-check-write sequence."""
        with self._lock:
            yield self

    def load(self, name: str) -> list[dict]:
        """Load all records of a list collection."""
        with self._lock:
            with open(self._path(name), "r") as f:
                return json.load(f)

    def save(self, name: str, records: list[dict]) -> None:
        """Replace all records of a list collection."""
        with self._lock:
            self._write(name, records)

    def append(self, name: str, record: dict) -> None:
        """Append one record to a list collection."""
        with self._lock:
            records = self.load(name)
            records.append(record)
            self._write(name, records)

    def load_map(self, name: str) -> dict:
        with self._lock:
            with open(self._path(name), "r") as f:
                return json.load(f)

    def get(self, name: str, key: str, default: Any = None) -> Any:
        return self.load_map(name).get(key, default)

    def increment(self, name: str, key: str, amount: int = 1) -> int:
        """Increment a counter in a map collection and return the new value."""
        with self._lock:
            data = self.load_map(name)
            data[key] = data.get(key, 0) + amount
            self._write(name, data)
            return data[key]

    def compare_and_set(self, name: str, key: str, expected: Optional[Any], new: Any) -> bool:
        """
        Set data[key] = new only if its current value equals expected.

        A missing key compares equal to None. Returns True when the write
        happened.
        """
        with self._lock:
            data = self.load_map(name)
            current = data.get(key)
            if current != expected:
                logger.debug("CAS miss on %s[%s]: expected %r, found %r", name, key, expected, current)
                return False
            data[key] = new
            self._write(name, data)
            return True
