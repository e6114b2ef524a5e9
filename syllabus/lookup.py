import logging

import httpx

from .models import OmdbRatings
from .omdb import OmdbClient
from .rating_cache import MISSING, RatingCache, imdb_key, title_key

logger = logging.getLogger(__name__)


class RatingLookup:
    """OMDb lookups served through the persistent :class:`RatingCache`.

    ``OmdbRateLimitError`` always propagates and is never cached. Transport
    and payload failures yield ``None`` and are not cached either, so the
    next call tries again.
    """

    def __init__(self, omdb: OmdbClient, cache: RatingCache) -> None:
        self.omdb = omdb
        self.cache = cache

    async def by_title(self, title: str, year: str | int | None, media_type: str) -> OmdbRatings | None:
        if not title:
            return None
        key = title_key(title, year, media_type)
        cached = self.cache.get(key)
        if cached is not MISSING:
            return cached

        try:
            result = await self.omdb.by_title(title, year, media_type)
        except (httpx.HTTPError, ValueError):
            logger.warning("OMDb title lookup failed for %r (%s)", title, year, exc_info=True)
            return None
        self.cache.set(key, result)
        return result

    async def by_imdb_id(
        self,
        imdb_id: str,
        title: str | None = None,
        media_type: str | None = None,
    ) -> OmdbRatings | None:
        if not imdb_id:
            return None
        key = imdb_key(imdb_id)
        cached = self.cache.get(key)
        if cached is not MISSING:
            return cached

        try:
            result = await self.omdb.by_imdb_id(imdb_id)
        except (httpx.HTTPError, ValueError):
            logger.warning("OMDb id lookup failed for %s", imdb_id, exc_info=True)
            return None

        if result is not None and result.rotten_tomatoes is None and title:
            # Id lookups often miss the Rotten Tomatoes block; the title
            # endpoint sometimes has it.
            fallback = await self.by_title(title, None, media_type or "movie")
            if fallback is not None and fallback.rotten_tomatoes is not None:
                result = result.model_copy(update={"rotten_tomatoes": fallback.rotten_tomatoes})

        self.cache.set(key, result)
        return result
