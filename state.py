"""JSON-snapshot deduplication store with time-bounded retention."""

import json
import logging
import os
import stat
import tempfile
import threading
import time
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_SNAPSHOT_MODE = 0o644


class StateError(Exception):
    """Base class for snapshot persistence failures."""


class DeserializationError(StateError):
    """Snapshot file exists but cannot be parsed."""


class SerializationError(StateError):
    """Snapshot file cannot be written."""


class SeenStore:
    """Tracks seen notification IDs to prevent duplicate alerts.

    The in-memory map is authoritative while the process runs. Retention is
    applied only when a snapshot is loaded, so an entry stays seen for the
    rest of the process lifetime once added.

    Reads and writes are serialized on one mutex; the stdlib has no
    reader-writer lock and each source checks its own store sequentially.
    """

    def __init__(self, file_path: str | Path, retention_seconds: float):
        self.file_path = Path(file_path)
        self.retention_seconds = retention_seconds
        self._seen: dict[str, int] = {}
        self._lock = threading.Lock()

    def is_seen(self, uid: str) -> bool:
        with self._lock:
            return uid in self._seen

    def add(self, uid: str, timestamp: int) -> None:
        with self._lock:
            self._seen[uid] = int(timestamp)

    def count(self) -> int:
        with self._lock:
            return len(self._seen)

    def snapshot(self) -> dict[str, int]:
        with self._lock:
            return dict(self._seen)

    def load(self, now: Optional[float] = None) -> int:
        """Merge the on-disk snapshot into memory, dropping expired entries.

        Returns the number of entries loaded. A missing file loads nothing.
        Raises DeserializationError on a malformed file, leaving memory as is.
        """
        try:
            raw = self.file_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.info("[%s] State file not found. Starting fresh.", self.file_path)
            return 0
        except OSError as e:
            raise DeserializationError(f"Cannot read {self.file_path}: {e}") from e

        entries = _parse_entries(raw, self.file_path)

        cutoff = int((time.time() if now is None else now) - self.retention_seconds)
        recent = {uid: ts for uid, ts in entries if ts >= cutoff}

        with self._lock:
            self._seen.update(recent)

        logger.info(
            "[%s] Loaded %d recent IDs (%d expired).",
            self.file_path,
            len(recent),
            len(entries) - len(recent),
        )
        return len(recent)

    def save(self) -> None:
        """Replace the snapshot file with the full in-memory map."""
        entries = [{"id": uid, "timestamp": ts} for uid, ts in self.snapshot().items()]
        directory = self.file_path.parent
        try:
            directory.mkdir(parents=True, exist_ok=True)
            mode = _snapshot_mode(self.file_path)
            fd, tmp_path = tempfile.mkstemp(
                prefix=f".{self.file_path.name}.", suffix=".tmp", dir=directory
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(entries, f, indent=2)
                # mkstemp creates 0600; keep the mode the snapshot had before
                os.chmod(tmp_path, mode)
                os.replace(tmp_path, self.file_path)
            except BaseException:
                Path(tmp_path).unlink(missing_ok=True)
                raise
        except (OSError, TypeError, ValueError) as e:
            raise SerializationError(f"Cannot write {self.file_path}: {e}") from e
        logger.debug("[%s] Saved %d IDs.", self.file_path, len(entries))


def _snapshot_mode(path: Path) -> int:
    try:
        return stat.S_IMODE(path.stat().st_mode)
    except FileNotFoundError:
        return DEFAULT_SNAPSHOT_MODE


def _parse_entries(raw: str, path: Path) -> list[tuple[str, int]]:
    try:
        data = json.loads(raw)
    except ValueError as e:
        raise DeserializationError(f"Invalid JSON in {path}: {e}") from e

    if not isinstance(data, list):
        raise DeserializationError(f"Expected a JSON array in {path}")

    entries = []
    for entry in data:
        if not isinstance(entry, dict):
            raise DeserializationError(f"Expected an object entry in {path}, got {entry!r}")
        uid = entry.get("id")
        ts = entry.get("timestamp")
        # bool is an int subclass; reject it explicitly
        if not isinstance(uid, str) or not isinstance(ts, int) or isinstance(ts, bool):
            raise DeserializationError(f"Malformed entry in {path}: {entry!r}")
        entries.append((uid, ts))
    return entries
