"""Offline score database builder.

Walks TMDB in priority tiers (browse lists, top-voted, year backfill, decade
backfill), asks OMDb for IMDb and Rotten Tomatoes scores, and accumulates them
into the static seed file that web processes merge on startup. Runs are
monotonic: titles already in the file are never fetched again, and the two
backfill tiers resume where the previous run stopped.
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Awaitable, Callable

import httpx

from . import tmdb
from .omdb import OmdbClient, OmdbRateLimitError
from .scoring import display_title, release_year, seed_score

BACKFILL_START_YEAR = 2025
BACKFILL_END_YEAR = 2000
DECADE_START = 1990
DECADE_END = 1960
ITEM_DELAY_SECONDS = 0.2
PROGRESS_EVERY = 50
DEFAULT_CALL_LIMIT = 1800

PageFetcher = Callable[..., Awaitable[list[dict]]]

logger = logging.getLogger(__name__)


class ScoreDatabase:
    def __init__(self, path: Path | str, data: dict | None = None) -> None:
        self.path = Path(path)
        self.data = data if data is not None else {}
        for section in ("_meta", "movie", "tv"):
            if not isinstance(self.data.get(section), dict):
                self.data[section] = {}

    @classmethod
    def load(cls, path: Path | str) -> "ScoreDatabase":
        path = Path(path)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            data = {}
        return cls(path, data if isinstance(data, dict) else {})

    @property
    def meta(self) -> dict:
        return self.data["_meta"]

    def has(self, media_type: str, item_id) -> bool:
        return bool(self.data[media_type].get(str(item_id)))

    def add(self, media_type: str, item_id, entry: dict) -> None:
        self.data[media_type][str(item_id)] = entry

    def count(self, media_type: str) -> int:
        return len(self.data[media_type])

    def count_new(self, media_type: str, items: list[dict]) -> int:
        return sum(1 for item in items if not self.has(media_type, item.get("id")))

    def save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(self.data, separators=(",", ":")), encoding="utf-8")

    def size_kb(self) -> float:
        return len(json.dumps(self.data, separators=(",", ":")).encode("utf-8")) / 1024


@dataclass(frozen=True)
class BatchOptions:
    call_limit: int = DEFAULT_CALL_LIMIT
    movies_only: bool = False
    tv_only: bool = False
    backfill_only: bool = False

    def __post_init__(self) -> None:
        if self.movies_only and self.tv_only:
            raise ValueError("movies_only and tv_only are mutually exclusive")

    @property
    def movies(self) -> bool:
        return not self.tv_only

    @property
    def tv(self) -> bool:
        return not self.movies_only


class BatchEnricher:
    def __init__(
        self,
        db: ScoreDatabase,
        omdb: OmdbClient,
        options: BatchOptions,
        *,
        fetch_pages: PageFetcher = tmdb.get_pages,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.db = db
        self.omdb = omdb
        self.options = options
        self._fetch_pages = fetch_pages
        self._sleep = sleep

    def has_budget(self) -> bool:
        return self.omdb.has_budget()

    async def _pages(self, path: str, pages: int, params: dict | None = None) -> list[dict]:
        return tmdb.dedup(await self._fetch_pages(path, pages, params))

    async def enrich_items(self, items: list[dict], media_type: str) -> int:
        new_scores = 0
        for index, item in enumerate(items):
            item_id = item.get("id")
            if item_id is None or self.db.has(media_type, item_id):
                continue
            if not self.has_budget():
                logger.info(
                    "Budget reached (%d/%s calls), stopping tier",
                    self.omdb.calls,
                    self.omdb.call_budget,
                )
                break

            title = display_title(item)
            year = release_year(item)
            try:
                parsed = await self.omdb.by_title(title, year, media_type)
            except OmdbRateLimitError:
                logger.warning("All OMDb keys exhausted after %d calls", self.omdb.calls)
                break
            except (httpx.HTTPError, ValueError):
                logger.warning("OMDb lookup failed for %r", title, exc_info=True)
                continue

            if parsed is not None and (parsed.imdb_rating or parsed.rotten_tomatoes):
                self.db.add(
                    media_type,
                    item_id,
                    {
                        "t": title,
                        "s": seed_score(parsed.imdb_rating, parsed.rotten_tomatoes),
                        "i": parsed.imdb_rating,
                        "r": parsed.rotten_tomatoes,
                        "ii": parsed.imdb_id,
                        "y": year or None,
                    },
                )
                new_scores += 1

            if (index + 1) % PROGRESS_EVERY == 0:
                logger.info(
                    "%s: %d/%d processed (%d new, %d calls)",
                    media_type,
                    index + 1,
                    len(items),
                    new_scores,
                    self.omdb.calls,
                )
            await self._sleep(ITEM_DELAY_SECONDS)
        return new_scores

    async def _enrich_list(self, items: list[dict], media_type: str, label: str) -> int:
        logger.info("%s: %d found, %d new", label, len(items), self.db.count_new(media_type, items))
        return await self.enrich_items(items, media_type)

    async def tier_browse(self) -> int:
        logger.info("Tier 1: browse lists")
        total_new = 0
        if self.options.movies:
            lists = await asyncio.gather(
                self._fetch_pages("/trending/movie/week", 2),
                self._fetch_pages("/movie/now_playing", 3),
                self._fetch_pages("/movie/top_rated", 3),
                self._fetch_pages("/movie/popular", 5),
            )
            movies = tmdb.dedup([item for page in lists for item in page])
            total_new += await self._enrich_list(movies, "movie", "browse movies")
        if self.options.tv and self.has_budget():
            lists = await asyncio.gather(
                self._fetch_pages("/trending/tv/week", 2),
                self._fetch_pages("/tv/airing_today", 3),
                self._fetch_pages("/tv/top_rated", 3),
                self._fetch_pages("/tv/popular", 5),
            )
            shows = tmdb.dedup([item for page in lists for item in page])
            total_new += await self._enrich_list(shows, "tv", "browse TV")
        logger.info("Tier 1 done: +%d new scores (%d calls used)", total_new, self.omdb.calls)
        return total_new

    async def tier_top_voted(self) -> int:
        logger.info("Tier 2: top-voted titles")
        total_new = 0
        if self.options.movies:
            movies = await self._pages(
                "/discover/movie", 10, {"sort_by": "vote_average.desc", "vote_count.gte": 1000}
            )
            total_new += await self._enrich_list(movies, "movie", "top-voted movies")
        if self.options.tv and self.has_budget():
            shows = await self._pages("/discover/tv", 10, {"sort_by": "vote_average.desc", "vote_count.gte": 500})
            total_new += await self._enrich_list(shows, "tv", "top-voted TV")
        logger.info("Tier 2 done: +%d new scores (%d calls used)", total_new, self.omdb.calls)
        return total_new

    async def tier_year_backfill(self) -> int:
        logger.info("Tier 3: year backfill")
        current = self.db.meta.get("backfillYear", BACKFILL_START_YEAR)
        total_new = 0
        years = 0
        while current >= BACKFILL_END_YEAR and self.has_budget():
            year_new = 0
            if self.options.movies and self.has_budget():
                movies = await self._pages(
                    "/discover/movie",
                    5,
                    {"primary_release_year": current, "sort_by": "popularity.desc", "vote_count.gte": 50},
                )
                year_new += await self._enrich_list(movies, "movie", f"{current} movies")
            if self.options.tv and self.has_budget():
                shows = await self._pages(
                    "/discover/tv",
                    3,
                    {"first_air_date_year": current, "sort_by": "popularity.desc", "vote_count.gte": 50},
                )
                year_new += await self._enrich_list(shows, "tv", f"{current} TV")
            total_new += year_new
            years += 1
            logger.info("%d complete: +%d scores", current, year_new)
            current -= 1
            self.db.meta["backfillYear"] = current
            self.db.save()

        if current < BACKFILL_END_YEAR:
            logger.info("Year backfill complete (%d-%d)", BACKFILL_START_YEAR, BACKFILL_END_YEAR)
            self.db.meta["backfillYear"] = "done"
        logger.info("Tier 3 done: %d years, +%d new scores (%d calls used)", years, total_new, self.omdb.calls)
        return total_new

    async def tier_decade_backfill(self) -> int:
        logger.info("Tier 4: decade backfill")
        current = self.db.meta.get("backfillDecade", DECADE_START)
        total_new = 0
        while current >= DECADE_END and self.has_budget():
            last_year = current + 9
            decade_new = 0
            if self.options.movies and self.has_budget():
                movies = await self._pages(
                    "/discover/movie",
                    5,
                    {
                        "primary_release_date.gte": f"{current}-01-01",
                        "primary_release_date.lte": f"{last_year}-12-31",
                        "sort_by": "vote_count.desc",
                    },
                )
                decade_new += await self._enrich_list(movies, "movie", f"{current}s movies")
            if self.options.tv and self.has_budget():
                shows = await self._pages(
                    "/discover/tv",
                    3,
                    {
                        "first_air_date.gte": f"{current}-01-01",
                        "first_air_date.lte": f"{last_year}-12-31",
                        "sort_by": "vote_count.desc",
                    },
                )
                decade_new += await self._enrich_list(shows, "tv", f"{current}s TV")
            total_new += decade_new
            logger.info("%ds complete: +%d scores", current, decade_new)
            current -= 10
            self.db.meta["backfillDecade"] = current
            self.db.save()

        if current < DECADE_END:
            logger.info("Decade backfill complete")
            self.db.meta["backfillDecade"] = "done"
        logger.info("Tier 4 done: +%d new scores (%d calls used)", total_new, self.omdb.calls)
        return total_new

    async def run(self) -> int:
        """Run every pending tier and write the database. Returns new scores."""
        logger.info(
            "Score enrichment starting: %d keys, budget %s calls",
            len(self.omdb.rotator.keys),
            self.omdb.call_budget,
        )
        logger.info(
            "Existing database: %d movies, %d TV shows",
            self.db.count("movie"),
            self.db.count("tv"),
        )
        total_new = 0
        try:
            if not self.options.backfill_only and self.has_budget():
                total_new += await self.tier_browse()
            if not self.options.backfill_only and self.has_budget():
                total_new += await self.tier_top_voted()
            if self.has_budget() and self.db.meta.get("backfillYear") != "done":
                total_new += await self.tier_year_backfill()
            if (
                self.has_budget()
                and self.db.meta.get("backfillYear") == "done"
                and self.db.meta.get("backfillDecade") != "done"
            ):
                total_new += await self.tier_decade_backfill()
        finally:
            meta = self.db.meta
            meta["lastRun"] = datetime.now(timezone.utc).isoformat()
            meta["totalMovies"] = self.db.count("movie")
            meta["totalTV"] = self.db.count("tv")
            meta["omdbCallsThisRun"] = self.omdb.calls
            meta["newScoresThisRun"] = total_new
            self.db.save()

        logger.info(
            "Enrichment complete: %d movies + %d TV shows, %d new, %d OMDb calls, %s (%.1f KB)",
            self.db.count("movie"),
            self.db.count("tv"),
            total_new,
            self.omdb.calls,
            self.db.path,
            self.db.size_kb(),
        )
        return total_new
