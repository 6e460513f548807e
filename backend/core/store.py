"""
store.py — Roster data access.

RosterStore keeps the current roster as two JSON documents ("students" and
"teachers") in a data directory and tells subscribers when they change.
RemoteRosterSource reads the same roster from a remote document store.

Both expose load_data(), which never raises: unreadable data degrades to
empty collections plus a user-facing message.
"""

import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx

logger = logging.getLogger(__name__)

STUDENTS_KEY = "students"
TEACHERS_KEY = "teachers"

CORRUPT_DATA_MESSAGE = (
    "Yerel depodaki bazı veriler bozuk olabilir. Lütfen Admin Panelinden "
    "verileri kontrol edin veya yeniden yükleyin."
)
UNEXPECTED_ERROR_MESSAGE = (
    "Veri yüklenirken beklenmedik bir hata oluştu. Lütfen Admin Panelini kontrol edin."
)
REMOTE_ERROR_MESSAGE = (
    "Veriler uzak kaynaktan alınamadı. Gösterilen listeler boş olabilir."
)

DEFAULT_DATA_DIR = Path(__file__).resolve().parent.parent / "data"

ChangeCallback = Callable[[Tuple[str, ...]], None]


def is_record_list(data: Any) -> bool:
    """True for a list of flat objects (no nested lists or objects as values)."""
    if not isinstance(data, list):
        return False
    return all(
        isinstance(rec, dict) and not any(isinstance(v, (list, dict)) for v in rec.values())
        for rec in data
    )


@dataclass
class LoadResult:
    """One complete roster snapshot, or empty collections and an error message."""

    students: List[Dict[str, Any]] = field(default_factory=list)
    teachers: List[Dict[str, Any]] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class RosterStore:
    """JSON-file key-value store for the roster."""

    def __init__(self, data_dir):
        self.data_dir = Path(data_dir)
        self._subscribers: List[ChangeCallback] = []

    def _path(self, key: str) -> Path:
        return self.data_dir / f"{key}.json"

    def _read_key(self, key: str) -> Tuple[List[Dict[str, Any]], bool]:
        """Return (records, corrupt). A missing key is an empty, healthy list."""
        path = self._path(key)
        if not path.exists():
            return [], False
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError):
            logger.exception("Failed to parse %s from %s", key, path)
            return [], True
        if not is_record_list(data):
            logger.warning("Invalid %s data in %s (not a list of records), using empty list.", key, path)
            return [], True
        return data, False

    def load_data(self) -> LoadResult:
        try:
            teachers, teachers_corrupt = self._read_key(TEACHERS_KEY)
            students, students_corrupt = self._read_key(STUDENTS_KEY)
        except OSError:
            logger.exception("Unexpected error while loading roster from %s", self.data_dir)
            return LoadResult(error=UNEXPECTED_ERROR_MESSAGE)

        # Corrupt files are left on disk; a fresh upload replaces them.
        if teachers_corrupt or students_corrupt:
            return LoadResult(students=students, teachers=teachers, error=CORRUPT_DATA_MESSAGE)
        return LoadResult(students=students, teachers=teachers)

    def _write_key(self, key: str, records: List[Dict[str, Any]]):
        self.data_dir.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.data_dir, prefix=f".{key}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(records, f, ensure_ascii=False, default=str)
            os.replace(tmp_path, self._path(key))
        except BaseException:
            Path(tmp_path).unlink(missing_ok=True)
            raise

    def save_roster(self, students: List[Dict[str, Any]], teachers: List[Dict[str, Any]]):
        """Replace both collections wholesale."""
        self._write_key(TEACHERS_KEY, list(teachers))
        self._write_key(STUDENTS_KEY, list(students))
        logger.info("Saved roster: %d students, %d teachers", len(students), len(teachers))
        self._notify((TEACHERS_KEY, STUDENTS_KEY))

    def clear(self):
        for key in (TEACHERS_KEY, STUDENTS_KEY):
            self._path(key).unlink(missing_ok=True)
        logger.info("Cleared roster in %s", self.data_dir)
        self._notify((TEACHERS_KEY, STUDENTS_KEY))

    def subscribe(self, callback: ChangeCallback) -> Callable[[], None]:
        """Call ``callback(changed_keys)`` after every change. Returns an unsubscribe function."""
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _notify(self, keys: Tuple[str, ...]):
        for callback in list(self._subscribers):
            try:
                callback(keys)
            except Exception:
                logger.exception("Roster change subscriber %r failed", callback)


class RemoteRosterSource:
    """Reads {"students": [...], "teachers": [...]} from a remote JSON endpoint."""

    def __init__(self, url: str, timeout: float = 10.0, client: Optional[httpx.Client] = None):
        self.url = url
        self.timeout = timeout
        self._client = client

    def _fetch(self) -> Any:
        if self._client is not None:
            resp = self._client.get(self.url, timeout=self.timeout)
        else:
            resp = httpx.get(self.url, timeout=self.timeout)
        resp.raise_for_status()
        return resp.json()

    def load_data(self) -> LoadResult:
        try:
            payload = self._fetch()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Failed to fetch roster from %s: %s", self.url, e)
            return LoadResult(error=REMOTE_ERROR_MESSAGE)

        if not isinstance(payload, dict):
            logger.warning("Remote roster from %s is not an object", self.url)
            return LoadResult(error=REMOTE_ERROR_MESSAGE)

        students = payload.get(STUDENTS_KEY) or []
        teachers = payload.get(TEACHERS_KEY) or []
        if not is_record_list(students) or not is_record_list(teachers):
            logger.warning("Remote roster from %s has malformed collections", self.url)
            return LoadResult(error=REMOTE_ERROR_MESSAGE)
        return LoadResult(students=students, teachers=teachers)


# ── Process-wide defaults ───────────────────────────────────────────

_default_store: Optional[RosterStore] = None


def get_store() -> RosterStore:
    """The local store, created from DATA_DIR on first use."""
    global _default_store
    if _default_store is None:
        _default_store = RosterStore(os.getenv("DATA_DIR", str(DEFAULT_DATA_DIR)))
    return _default_store


def set_store(store: Optional[RosterStore]) -> Optional[RosterStore]:
    """Replace the process-wide store (None resets to DATA_DIR on next use)."""
    global _default_store
    _default_store = store
    return store


def get_roster_source():
    """RemoteRosterSource when REMOTE_ROSTER_URL is set, otherwise the local store."""
    url = os.getenv("REMOTE_ROSTER_URL", "").strip()
    if url:
        timeout = float(os.getenv("REMOTE_TIMEOUT_SECONDS", "10"))
        return RemoteRosterSource(url, timeout=timeout)
    return get_store()
