import logging
import threading

from pydantic import ValidationError

from .models import OmdbRatings
from .storage import KeyValueStore, StorageError

RATING_CACHE_NAMESPACE = "syllabus_omdb"

logger = logging.getLogger(__name__)


class _Missing:
    def __repr__(self) -> str:
        return "MISSING"


# Never looked up, as opposed to None: looked up and nothing was found.
MISSING = _Missing()


def title_key(title: str, year: str | int | None, media_type: str) -> str:
    omdb_type = "series" if media_type == "tv" else "movie"
    return f"t:{title}:{year or ''}:{omdb_type}"


def imdb_key(imdb_id: str) -> str:
    return f"i:{imdb_id}"


class RatingCache:
    """OMDb bundles keyed per title, with negative results held in memory only
    until the next fresh load: stored ``None`` entries are pruned on first read
    so a lookup that found nothing gets retried in the next session.
    """

    def __init__(self, storage: KeyValueStore, namespace: str = RATING_CACHE_NAMESPACE) -> None:
        self._storage = storage
        self._namespace = namespace
        self._entries: dict[str, dict | None] | None = None
        self._lock = threading.RLock()

    def _store(self) -> dict[str, dict | None]:
        if self._entries is not None:
            return self._entries
        try:
            raw = self._storage.read(self._namespace)
        except StorageError:
            logger.warning("Rating cache unreadable, starting empty", exc_info=True)
            raw = {}
        entries = {key: value for key, value in raw.items() if isinstance(value, dict)}
        self._entries = entries
        if len(entries) != len(raw):
            logger.debug("Pruned %d negative rating entries", len(raw) - len(entries))
            self._persist()
        return entries

    def _persist(self) -> None:
        try:
            self._storage.write(self._namespace, self._store())
        except StorageError:
            logger.warning("Rating cache not persisted", exc_info=True)

    def get(self, key: str) -> OmdbRatings | None | _Missing:
        with self._lock:
            store = self._store()
            if key not in store:
                return MISSING
            raw = store[key]
        if raw is None:
            return None
        try:
            return OmdbRatings.model_validate(raw)
        except ValidationError:
            logger.warning("Discarding malformed rating cache entry %s", key)
            return MISSING

    def set(self, key: str, entry: OmdbRatings | None) -> None:
        with self._lock:
            self._store()[key] = entry.model_dump(exclude_none=True) if entry is not None else None
            self._persist()

    def __len__(self) -> int:
        with self._lock:
            return len(self._store())
