import logging
import math
import threading
import time
from typing import Any, Callable

from .storage import KeyValueStore, StorageError

CHART_STORE_NAMESPACE = "syllabus_charts"
CHART_TTL_SECONDS = 24 * 60 * 60
CHART_VERSION = 2
OVERVIEW_LIMIT = 200

SLIM_FIELDS = (
    "id",
    "title",
    "name",
    "poster_path",
    "release_date",
    "first_air_date",
    "vote_average",
    "unified_rating",
    "genre_ids",
    "genres",
    "original_language",
    "overview",
)

logger = logging.getLogger(__name__)


def chart_key(media_type: str, scope: str | int | None = None) -> str:
    return f"{media_type}:{scope if scope not in (None, '') else 'all'}"


def slim_item(item: dict) -> dict:
    slim = {field: item[field] for field in SLIM_FIELDS if item.get(field) is not None}
    overview = slim.get("overview")
    if isinstance(overview, str):
        slim["overview"] = overview[:OVERVIEW_LIMIT]
    return slim


class ChartCache:
    """Ranked listing snapshots with lazy 24h expiry and a schema version gate."""

    def __init__(
        self,
        storage: KeyValueStore,
        *,
        namespace: str = CHART_STORE_NAMESPACE,
        version: int = CHART_VERSION,
        ttl_seconds: float = CHART_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._storage = storage
        self._namespace = namespace
        self.version = version
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._charts: dict[str, Any] | None = None
        self._lock = threading.RLock()

    def _store(self) -> dict[str, Any]:
        if self._charts is not None:
            return self._charts
        try:
            raw = self._storage.read(self._namespace)
        except StorageError:
            logger.warning("Chart cache unreadable, starting empty", exc_info=True)
            raw = {"_v": self.version}
        if raw.get("_v") != self.version:
            logger.info("Chart cache version %s != %s, discarding", raw.get("_v"), self.version)
            self._charts = {"_v": self.version}
            self._persist()
        else:
            self._charts = raw
        return self._charts

    def _persist(self) -> None:
        try:
            self._storage.write(self._namespace, self._charts or {"_v": self.version})
        except StorageError:
            logger.warning("Chart cache not persisted", exc_info=True)

    def _entry(self, key: str) -> dict | None:
        entry = self._store().get(key)
        if not isinstance(entry, dict) or not isinstance(entry.get("ts"), (int, float)):
            return None
        return entry

    def get(self, key: str) -> list[dict] | None:
        with self._lock:
            entry = self._entry(key)
            if entry is None:
                return None
            if self._clock() - entry["ts"] >= self.ttl_seconds:
                return None
            return list(entry.get("items") or [])

    def get_age(self, key: str) -> float:
        """Age of the snapshot in milliseconds, ``math.inf`` when there is none."""
        with self._lock:
            entry = self._entry(key)
            if entry is None:
                return math.inf
            return (self._clock() - entry["ts"]) * 1000

    def save(self, key: str, items: list[dict]) -> None:
        with self._lock:
            store = self._store()
            store[key] = {"items": [slim_item(item) for item in items], "ts": self._clock()}
            store["_v"] = self.version
            self._persist()
