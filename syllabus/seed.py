import json
import logging
import time
from pathlib import Path
from typing import Callable

import httpx

from .score_store import ScoreStore, score_key
from .storage import KeyValueStore, StorageError

SEED_TIMESTAMP_NAMESPACE = "syllabus_static_db_ts"
SEED_TTL_SECONDS = 12 * 60 * 60
SEED_MEDIA_TYPES = ("movie", "tv")

logger = logging.getLogger(__name__)


def seed_scores(db: dict) -> dict[str, float]:
    """Flatten a ``{movie: {id: {s: ...}}, tv: {...}}`` seed into score-store keys."""
    scores: dict[str, float] = {}
    for media_type in SEED_MEDIA_TYPES:
        bucket = db.get(media_type)
        if not isinstance(bucket, dict):
            continue
        for item_id, entry in bucket.items():
            score = entry.get("s") if isinstance(entry, dict) else None
            if isinstance(score, (int, float)):
                scores[score_key(media_type, item_id)] = score
    return scores


class StaticSeedLoader:
    """Merges the batch-built score database into the score store.

    Runs at most once per process and at most once per 12h window across
    processes. The merge only fills gaps: a live score is never overwritten.
    """

    def __init__(
        self,
        score_store: ScoreStore,
        storage: KeyValueStore,
        *,
        url: str | None = None,
        path: Path | str | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float = 8.0,
        ttl_seconds: float = SEED_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.score_store = score_store
        self._storage = storage
        self.url = url
        self.path = Path(path) if path else None
        self._client = client
        self._timeout = timeout
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._loaded = False

    def _last_load(self) -> float:
        try:
            value = self._storage.read(SEED_TIMESTAMP_NAMESPACE).get("ts", 0)
        except StorageError:
            logger.warning("Seed timestamp unreadable", exc_info=True)
            return 0.0
        return float(value) if isinstance(value, (int, float)) else 0.0

    def _record_load(self) -> None:
        try:
            self._storage.write(SEED_TIMESTAMP_NAMESPACE, {"ts": self._clock()})
        except StorageError:
            logger.warning("Seed timestamp not persisted", exc_info=True)

    async def _fetch(self) -> dict | None:
        if self.url:
            if self._client is not None:
                resp = await self._client.get(self.url)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    resp = await client.get(self.url)
            if resp.status_code != 200:
                logger.warning("Seed fetch returned %s", resp.status_code)
                return None
            return resp.json()
        if self.path and self.path.exists():
            return json.loads(self.path.read_text(encoding="utf-8"))
        return None

    async def load_once(self) -> int:
        """Return the number of scores merged (0 when skipped or failed)."""
        if self._loaded:
            return 0
        self._loaded = True

        if self._clock() - self._last_load() < self.ttl_seconds:
            return 0

        try:
            db = await self._fetch()
        except (httpx.HTTPError, OSError, ValueError):
            logger.warning("Static score seed unavailable", exc_info=True)
            return 0
        if not isinstance(db, dict):
            return 0

        merged = self.score_store.merge_missing(seed_scores(db))
        if merged:
            logger.info("Merged %d seed scores", merged)
        self._record_load()
        return merged
