"""Chart enrichment: turn raw TMDB listings into unified-rating rankings.

Items that already have a stored score are filled in straight away. The rest
are looked up on OMDb (and MyAnimeList for anime) in small sequential
batches, since OMDb keys carry a tight daily quota. Every computed score is
written to the score store as soon as it exists, so an early stop never
throws away finished work.
"""

import asyncio
import logging
from typing import Awaitable, Callable

from .charts import ChartCache
from .jikan import JikanClient
from .lookup import RatingLookup
from .models import EnrichCancelled, EnrichProgress, MalRating
from .omdb import OmdbRateLimitError
from .score_store import ScoreStore
from .scoring import best_rating, compute_unified_rating, display_title, is_anime_item, release_year

BATCH_SIZE = 3
BATCH_DELAY_SECONDS = 0.5

ProgressCallback = Callable[[EnrichProgress], None]

logger = logging.getLogger(__name__)


class CancelToken:
    def __init__(self, generation: int = 0) -> None:
        self.generation = generation
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True


class GenerationCounter:
    """Hands out tokens where each new request cancels the previous one."""

    def __init__(self) -> None:
        self.generation = 0
        self._current: CancelToken | None = None

    def next(self) -> CancelToken:
        if self._current is not None:
            self._current.cancel()
        self.generation += 1
        self._current = CancelToken(self.generation)
        return self._current

    def is_current(self, token: CancelToken) -> bool:
        return token is self._current and not token.cancelled


class _Run:
    def __init__(self) -> None:
        self.rate_limited = False


class ChartEnricher:
    def __init__(
        self,
        score_store: ScoreStore,
        lookup: RatingLookup,
        chart_cache: ChartCache,
        jikan: JikanClient,
        *,
        batch_size: int = BATCH_SIZE,
        batch_delay: float = BATCH_DELAY_SECONDS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.score_store = score_store
        self.lookup = lookup
        self.chart_cache = chart_cache
        self.jikan = jikan
        self.batch_size = batch_size
        self.batch_delay = batch_delay
        self._sleep = sleep

    async def _enrich_item(self, item: dict, media_type: str, run: _Run) -> None:
        if run.rate_limited:
            return
        title = display_title(item)
        year = release_year(item)
        anime = is_anime_item(item)
        try:
            omdb = await self.lookup.by_title(title, year, media_type)
            mal: MalRating | None = None
            if anime:
                mal = await self.jikan.mal_rating(title)
        except OmdbRateLimitError:
            if not run.rate_limited:
                logger.warning("OMDb rate limit reached, stopping enrichment at %r", title)
            run.rate_limited = True
            return
        except Exception:
            logger.warning("Rating lookup failed for %s:%s", media_type, item.get("id"), exc_info=True)
            return

        item["unified_rating"] = compute_unified_rating(omdb, mal, anime)
        if item["unified_rating"] is not None:
            self.score_store.set_score(media_type, item.get("id"), item["unified_rating"])

    async def enrich(
        self,
        items: list[dict],
        media_type: str,
        chart_key: str | None = None,
        on_progress: ProgressCallback | None = None,
        cancel_token: CancelToken | None = None,
    ) -> list[dict] | EnrichCancelled:
        enriched = [dict(item) for item in items]
        needs_fetch: list[dict] = []
        for item in enriched:
            stored = self.score_store.get_score(media_type, item.get("id"))
            if stored is not None:
                item["unified_rating"] = stored
            else:
                needs_fetch.append(item)

        total = len(needs_fetch)
        completed = 0
        if total and on_progress:
            on_progress(EnrichProgress(completed=0, total=total, phase="enriching"))

        run = _Run()
        for start in range(0, total, self.batch_size):
            batch = needs_fetch[start : start + self.batch_size]
            await asyncio.gather(*(self._enrich_item(item, media_type, run) for item in batch))
            completed += len(batch)
            if on_progress:
                on_progress(EnrichProgress(completed=completed, total=total, phase="enriching"))
            if cancel_token is not None and cancel_token.cancelled:
                return EnrichCancelled(completed=completed, total=total)
            if run.rate_limited:
                break
            if start + self.batch_size < total:
                await self._sleep(self.batch_delay)
                if cancel_token is not None and cancel_token.cancelled:
                    return EnrichCancelled(completed=completed, total=total)

        enriched.sort(key=best_rating, reverse=True)

        if chart_key:
            self.chart_cache.save(chart_key, enriched)

        if on_progress:
            on_progress(EnrichProgress(completed=total, total=total, phase="done"))
        return enriched
