import logging
import time
from typing import Callable

import httpx
from pydantic import ValidationError

from .models import MalRating

JIKAN_URL = "https://api.jikan.moe/v4/anime"
MEMO_TTL_SECONDS = 5 * 60
MEMO_MAX_ENTRIES = 1000

logger = logging.getLogger(__name__)


class JikanClient:
    """MyAnimeList community scores via the public Jikan API."""

    def __init__(
        self,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float = 8.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._client = client
        self._owns_client = client is None
        self._timeout = timeout
        self._clock = clock
        self._memo: dict[str, tuple[float, MalRating | None]] = {}

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def close(self) -> None:
        if self._client and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def search(self, query: str, limit: int = 1) -> dict:
        client = await self._get_client()
        resp = await client.get(JIKAN_URL, params={"q": query, "limit": limit})
        resp.raise_for_status()
        return resp.json()

    async def mal_rating(self, title: str) -> MalRating | None:
        if not title:
            return None
        now = self._clock()
        memo = self._memo.get(title)
        if memo:
            if now - memo[0] < MEMO_TTL_SECONDS:
                return memo[1]
            del self._memo[title]

        try:
            data = await self.search(title, limit=1)
        except (httpx.HTTPError, ValueError):
            logger.warning("Jikan lookup failed for %r", title, exc_info=True)
            return None

        results = (data.get("data") or []) if isinstance(data, dict) else []
        rating: MalRating | None = None
        if results and isinstance(results[0], dict):
            anime = results[0]
            try:
                rating = MalRating(
                    score=anime.get("score"),
                    scored_by=anime.get("scored_by"),
                    mal_id=anime.get("mal_id"),
                    url=anime.get("url"),
                )
            except ValidationError:
                logger.warning("Unexpected Jikan payload for %r", title)
        self._remember(title, now, rating)
        return rating

    def _remember(self, title: str, now: float, rating: MalRating | None) -> None:
        self._memo[title] = (now, rating)
        if len(self._memo) <= MEMO_MAX_ENTRIES:
            return
        for key, (stamp, _) in list(self._memo.items()):
            if now - stamp >= MEMO_TTL_SECONDS:
                del self._memo[key]
        while len(self._memo) > MEMO_MAX_ENTRIES:
            del self._memo[next(iter(self._memo))]
