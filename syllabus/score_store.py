import logging
import threading
from typing import Any

from .storage import KeyValueStore, StorageError

SCORE_STORE_NAMESPACE = "syllabus_scores"

logger = logging.getLogger(__name__)


def score_key(media_type: str, item_id: Any) -> str:
    return f"{media_type}:{item_id}"


class ScoreStore:
    """Unified ratings keyed by ``{media_type}:{id}``. Entries never expire."""

    def __init__(self, storage: KeyValueStore, namespace: str = SCORE_STORE_NAMESPACE) -> None:
        self._storage = storage
        self._namespace = namespace
        self._scores: dict[str, float] | None = None
        self._lock = threading.RLock()

    def _store(self) -> dict[str, float]:
        if self._scores is None:
            try:
                raw = self._storage.read(self._namespace)
            except StorageError:
                logger.warning("Score store unreadable, starting empty", exc_info=True)
                raw = {}
            self._scores = {key: value for key, value in raw.items() if isinstance(value, (int, float))}
        return self._scores

    def _persist(self) -> None:
        try:
            self._storage.write(self._namespace, self._store())
        except StorageError:
            logger.warning("Score store not persisted", exc_info=True)

    def get_score(self, media_type: str, item_id: Any) -> float | None:
        with self._lock:
            return self._store().get(score_key(media_type, item_id))

    def set_score(self, media_type: str, item_id: Any, score: float | None) -> None:
        if score is None or not item_id:
            return
        with self._lock:
            self._store()[score_key(media_type, item_id)] = score
            self._persist()

    def merge_missing(self, entries: dict[str, float]) -> int:
        """Insert scores whose key is absent. Existing values always win."""
        merged = 0
        with self._lock:
            store = self._store()
            for key, score in entries.items():
                if score is None or store.get(key) is not None:
                    continue
                store[key] = score
                merged += 1
            if merged:
                self._persist()
        return merged

    def apply_stored_scores(self, items: list[dict], media_type: str) -> list[dict]:
        with self._lock:
            store = self._store()
            for item in items:
                stored = store.get(score_key(media_type, item.get("id")))
                if stored is not None:
                    item["unified_rating"] = stored
        return items

    def __len__(self) -> int:
        with self._lock:
            return len(self._store())
