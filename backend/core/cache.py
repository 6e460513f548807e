"""
cache.py — Memoized dashboard computation.

The dashboard is recomputed only when the roster content changes. The
single cached entry is keyed by a SHA-256 fingerprint of both collections
and is dropped wholesale when a watched store reports a change.
"""

import hashlib
import json
import logging
from typing import Any, Callable, Dict, Optional

import pandas as pd

from core.stats import Records, compute_dashboard

logger = logging.getLogger(__name__)


def _records(collection: Optional[Records]) -> list:
    if collection is None:
        return []
    if isinstance(collection, pd.DataFrame):
        return collection.to_dict(orient="records")
    return list(collection)


def roster_fingerprint(students: Records, teachers: Records) -> str:
    """Content hash of a roster snapshot."""
    canonical = json.dumps(
        {"students": _records(students), "teachers": _records(teachers)},
        sort_keys=True,
        ensure_ascii=False,
        default=str,
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


class DashboardCache:
    def __init__(self):
        self._key: Optional[str] = None
        self._value: Optional[Dict[str, Any]] = None
        self._store = None
        self._unsubscribe: Optional[Callable[[], None]] = None

    def get(self, students: Records, teachers: Records) -> Dict[str, Any]:
        students = _records(students)
        teachers = _records(teachers)
        key = roster_fingerprint(students, teachers)
        if key == self._key and self._value is not None:
            logger.debug("Dashboard cache hit %s", key[:12])
            return self._value

        logger.debug("Dashboard cache miss %s", key[:12])
        self._value = compute_dashboard(students, teachers)
        self._key = key
        return self._value

    def invalidate(self, *_changed_keys):
        self._key = None
        self._value = None

    def watch(self, store):
        """Invalidate whenever ``store`` changes. Re-watching the same store is a no-op."""
        if store is self._store:
            return
        if self._unsubscribe is not None:
            self._unsubscribe()
        self._store = store
        self._unsubscribe = store.subscribe(self.invalidate)
