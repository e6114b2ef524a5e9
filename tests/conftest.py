"""Shared pytest fixtures."""

from pathlib import Path
from typing import Callable

import httpx
import pytest

from syllabus.config import Settings
from syllabus.storage import MemoryStore

LIMIT_PAYLOAD = {"Response": "False", "Error": "Request limit reached!"}


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def omdb_payload(
    title: str = "Heat",
    imdb: str | None = "8.3/10",
    rotten: str | None = "88%",
    **extra,
) -> dict:
    ratings = []
    if imdb is not None:
        ratings.append({"Source": "Internet Movie Database", "Value": imdb})
    if rotten is not None:
        ratings.append({"Source": "Rotten Tomatoes", "Value": rotten})
    payload = {
        "Title": title,
        "Response": "True",
        "imdbID": "tt0113277",
        "imdbVotes": "700,123",
        "Ratings": ratings,
        "Director": "Michael Mann",
        "BoxOffice": "N/A",
    }
    payload.update(extra)
    return payload


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def storage() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def mock_client() -> Callable[[Callable[[httpx.Request], httpx.Response]], httpx.AsyncClient]:
    def _factory(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    return _factory


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        tmdb_api_key="tmdb-test",
        omdb_api_keys=("key-1", "key-2"),
        data_dir=tmp_path / "cache",
        seed_url=None,
        seed_path=tmp_path / "data" / "scores.json",
        http_timeout=2.0,
        cors_origins=(),
    )
