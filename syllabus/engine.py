from .charts import ChartCache
from .config import Settings
from .enrich import ChartEnricher, GenerationCounter
from .jikan import JikanClient
from .lookup import RatingLookup
from .omdb import KeyRotator, OmdbClient
from .rating_cache import RatingCache
from .score_store import ScoreStore
from .seed import StaticSeedLoader
from .storage import JsonFileStore, KeyValueStore


class ScoringEngine:
    """One instance per process; owns every cache layer and rating client."""

    def __init__(self, settings: Settings, storage: KeyValueStore | None = None) -> None:
        self.settings = settings
        self.storage = storage if storage is not None else JsonFileStore(settings.data_dir)
        self.scores = ScoreStore(self.storage)
        self.rating_cache = RatingCache(self.storage)
        self.charts = ChartCache(self.storage)
        self.seed = StaticSeedLoader(
            self.scores,
            self.storage,
            url=settings.seed_url,
            path=settings.seed_path,
            timeout=settings.http_timeout,
        )
        self.omdb = OmdbClient(
            KeyRotator(settings.omdb_api_keys, recycle=True),
            timeout=settings.http_timeout,
        )
        self.jikan = JikanClient(timeout=settings.http_timeout)
        self.lookup = RatingLookup(self.omdb, self.rating_cache)
        self.enricher = ChartEnricher(self.scores, self.lookup, self.charts, self.jikan)
        self.generations: dict[str, GenerationCounter] = {}

    def generation_for(self, key: str) -> GenerationCounter:
        counter = self.generations.get(key)
        if counter is None:
            counter = self.generations[key] = GenerationCounter()
        return counter

    async def close(self) -> None:
        await self.omdb.close()
        await self.jikan.close()
