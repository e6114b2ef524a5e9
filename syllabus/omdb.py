import logging
from typing import Any, Iterable

import httpx

from .models import OmdbRatings

OMDB_URL = "https://www.omdbapi.com/"
LIMIT_REACHED = "Request limit reached!"

logger = logging.getLogger(__name__)


class OmdbRateLimitError(Exception):
    """Every usable OMDb key answered with the limit-reached sentinel."""


def _parse_float(value: Any) -> float | None:
    if value is None:
        return None
    try:
        text = str(value).strip()
        if not text or text.upper() == "N/A":
            return None
        return float(text)
    except ValueError:
        return None


def _parse_int(value: Any) -> int | None:
    if value is None:
        return None
    text = str(value).strip()
    if not text or text.upper() == "N/A":
        return None
    digits = "".join(ch for ch in text if ch.isdigit())
    if not digits:
        return None
    return int(digits)


def _parse_percent(value: Any) -> int | None:
    if value is None:
        return None
    text = str(value).strip()
    if not text or text.upper() == "N/A":
        return None
    if text.endswith("%"):
        text = text[:-1]
    try:
        parsed = int(float(text))
    except ValueError:
        return None
    if parsed < 0 or parsed > 100:
        return None
    return parsed


def _parse_fraction(value: Any) -> float | None:
    # "8.5/10" -> 8.5, "74/100" -> 74.0
    if value is None:
        return None
    head = str(value).split("/", 1)[0]
    return _parse_float(head)


def _text(value: Any) -> str | None:
    text = str(value or "").strip()
    if not text or text.upper() == "N/A":
        return None
    return text


def is_limit_reached(data: dict | None) -> bool:
    return isinstance(data, dict) and data.get("Error") == LIMIT_REACHED


def parse_omdb_response(data: dict | None) -> OmdbRatings | None:
    if not data or str(data.get("Response", "")).lower() == "false":
        return None

    imdb_rating: float | None = None
    rotten: int | None = None
    metacritic: int | None = None
    for rating in data.get("Ratings") or []:
        source = rating.get("Source")
        value = rating.get("Value")
        if source == "Internet Movie Database":
            imdb_rating = _parse_fraction(value)
        elif source == "Rotten Tomatoes":
            rotten = _parse_percent(value)
        elif source == "Metacritic":
            parsed = _parse_fraction(value)
            metacritic = int(parsed) if parsed is not None else None

    if imdb_rating is None:
        imdb_rating = _parse_float(data.get("imdbRating"))
    if metacritic is None:
        metacritic = _parse_int(data.get("Metascore"))
    if imdb_rating is not None and not 0.0 <= imdb_rating <= 10.0:
        imdb_rating = None
    if metacritic is not None and not 0 <= metacritic <= 100:
        metacritic = None

    return OmdbRatings(
        imdb_id=_text(data.get("imdbID")),
        imdb_rating=imdb_rating,
        imdb_votes=_parse_int(data.get("imdbVotes")),
        rotten_tomatoes=rotten,
        metacritic=metacritic,
        director=_text(data.get("Director")),
        writer=_text(data.get("Writer")),
        awards=_text(data.get("Awards")),
        box_office=_text(data.get("BoxOffice")),
        rated=_text(data.get("Rated")),
        country=_text(data.get("Country")),
    )


class KeyRotator:
    """Round-robin over OMDb credentials, skipping the exhausted ones.

    With ``recycle`` set, a fully exhausted rotator starts over on the next
    acquire (daily quotas reset while a server stays up). Without it the
    rotator stays dry, which is what a budgeted batch run wants.
    """

    def __init__(self, keys: Iterable[str], *, recycle: bool = False) -> None:
        self.keys = [key for key in keys if key]
        self.recycle = recycle
        self.exhausted: set[int] = set()
        self._index = 0

    def peek(self) -> str | None:
        for offset in range(len(self.keys)):
            idx = (self._index + offset) % len(self.keys)
            if idx not in self.exhausted:
                return self.keys[idx]
        return None

    def acquire(self) -> str | None:
        key = self.peek()
        if key is None and self.recycle and self.keys:
            self.exhausted.clear()
            self._index = 0
            key = self.keys[0]
        return key

    def mark_exhausted(self, key: str) -> None:
        idx = self.keys.index(key)
        self.exhausted.add(idx)
        self._index = (idx + 1) % len(self.keys)
        logger.warning(
            "OMDb key %d exhausted (%d of %d left)",
            idx + 1,
            len(self.keys) - len(self.exhausted),
            len(self.keys),
        )


class OmdbClient:
    def __init__(
        self,
        rotator: KeyRotator,
        *,
        call_budget: int | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float = 8.0,
    ) -> None:
        self.rotator = rotator
        self.call_budget = call_budget
        self.calls = 0
        self._client = client
        self._owns_client = client is None
        self._timeout = timeout

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def close(self) -> None:
        if self._client and self._owns_client:
            await self._client.aclose()
            self._client = None

    def has_budget(self) -> bool:
        if self.call_budget is not None and self.calls >= self.call_budget:
            return False
        return self.rotator.peek() is not None or (self.rotator.recycle and bool(self.rotator.keys))

    async def fetch(self, params: dict[str, str]) -> dict:
        """Return the first payload that is not the limit-reached sentinel.

        Transport and decoding failures propagate as ``httpx.HTTPError`` or
        ``ValueError``.
        """
        client = await self._get_client()
        for _ in range(len(self.rotator.keys)):
            if self.call_budget is not None and self.calls >= self.call_budget:
                break
            api_key = self.rotator.acquire()
            if api_key is None:
                break
            resp = await client.get(OMDB_URL, params={**params, "apikey": api_key})
            self.calls += 1
            # OMDb reports quota and key errors with a 401 and a JSON body.
            data = resp.json()
            if not isinstance(data, dict):
                raise ValueError("Unexpected OMDb payload")
            if is_limit_reached(data):
                self.rotator.mark_exhausted(api_key)
                continue
            return data
        raise OmdbRateLimitError(LIMIT_REACHED)

    async def by_title(self, title: str, year: str | int | None, media_type: str) -> OmdbRatings | None:
        params = {"t": title, "type": "series" if media_type == "tv" else "movie"}
        if year:
            params["y"] = str(year)
        return parse_omdb_response(await self.fetch(params))

    async def by_imdb_id(self, imdb_id: str) -> OmdbRatings | None:
        return parse_omdb_response(await self.fetch({"i": imdb_id}))
