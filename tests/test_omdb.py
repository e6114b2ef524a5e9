import httpx
import pytest

from syllabus.omdb import KeyRotator, OmdbClient, OmdbRateLimitError, parse_omdb_response

from .conftest import LIMIT_PAYLOAD, omdb_payload


def test_parse_full_payload():
    payload = omdb_payload(
        Ratings=[
            {"Source": "Internet Movie Database", "Value": "8.3/10"},
            {"Source": "Rotten Tomatoes", "Value": "88%"},
            {"Source": "Metacritic", "Value": "76/100"},
        ],
        Awards="Won 1 Oscar",
        Rated="R",
        Country="United States",
    )

    ratings = parse_omdb_response(payload)

    assert ratings.imdb_id == "tt0113277"
    assert ratings.imdb_rating == 8.3
    assert ratings.imdb_votes == 700123
    assert ratings.rotten_tomatoes == 88
    assert ratings.metacritic == 76
    assert ratings.director == "Michael Mann"
    assert ratings.awards == "Won 1 Oscar"
    assert ratings.box_office is None
    assert ratings.rated == "R"
    assert ratings.country == "United States"


def test_parse_falls_back_to_top_level_imdb_rating():
    payload = {"Response": "True", "imdbRating": "7.1", "Ratings": []}

    assert parse_omdb_response(payload).imdb_rating == 7.1


def test_parse_not_found():
    assert parse_omdb_response({"Response": "False", "Error": "Movie not found!"}) is None
    assert parse_omdb_response(None) is None


def test_rotator_skips_exhausted_keys():
    rotator = KeyRotator(["a", "b", "c"])
    rotator.mark_exhausted("a")

    assert rotator.acquire() == "b"
    rotator.mark_exhausted("b")
    assert rotator.acquire() == "c"
    rotator.mark_exhausted("c")
    assert rotator.acquire() is None


def test_recycling_rotator_starts_over():
    rotator = KeyRotator(["a", "b"], recycle=True)
    rotator.mark_exhausted("a")
    rotator.mark_exhausted("b")

    assert rotator.peek() is None
    assert rotator.acquire() == "a"
    assert rotator.exhausted == set()


def _handler(seen: list, limited: set[str]):
    def handler(request: httpx.Request) -> httpx.Response:
        key = request.url.params["apikey"]
        seen.append(key)
        if key in limited:
            return httpx.Response(401, json=LIMIT_PAYLOAD)
        return httpx.Response(200, json=omdb_payload(title=request.url.params.get("t", "")))

    return handler


@pytest.mark.asyncio
async def test_fetch_rotates_on_limit(mock_client):
    seen: list = []
    client = OmdbClient(KeyRotator(["k1", "k2"]), client=mock_client(_handler(seen, {"k1"})))

    data = await client.fetch({"t": "Heat"})

    assert data["Title"] == "Heat"
    assert seen == ["k1", "k2"]
    assert client.rotator.exhausted == {0}
    assert client.calls == 2

    await client.fetch({"t": "Ronin"})
    assert seen[-1] == "k2"


@pytest.mark.asyncio
async def test_fetch_raises_when_all_keys_exhausted(mock_client):
    seen: list = []
    client = OmdbClient(KeyRotator(["k1", "k2"]), client=mock_client(_handler(seen, {"k1", "k2"})))

    with pytest.raises(OmdbRateLimitError):
        await client.fetch({"t": "Heat"})
    assert not client.has_budget()

    with pytest.raises(OmdbRateLimitError):
        await client.fetch({"t": "Heat"})
    assert seen == ["k1", "k2"]


@pytest.mark.asyncio
async def test_call_budget(mock_client):
    seen: list = []
    client = OmdbClient(KeyRotator(["k1"]), call_budget=1, client=mock_client(_handler(seen, set())))

    await client.fetch({"t": "Heat"})
    assert not client.has_budget()
    with pytest.raises(OmdbRateLimitError):
        await client.fetch({"t": "Ronin"})
    assert len(seen) == 1


@pytest.mark.asyncio
async def test_by_title_maps_tv_to_series(mock_client):
    captured: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(200, json=omdb_payload(title="Dark"))

    client = OmdbClient(KeyRotator(["k1"]), client=mock_client(handler))
    ratings = await client.by_title("Dark", "2017", "tv")

    params = captured[0].url.params
    assert params["t"] == "Dark"
    assert params["type"] == "series"
    assert params["y"] == "2017"
    assert ratings.imdb_rating == 8.3


@pytest.mark.asyncio
async def test_non_json_body_raises_value_error(mock_client):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, text="<html>bad gateway</html>")

    client = OmdbClient(KeyRotator(["k1"]), client=mock_client(handler))

    with pytest.raises(ValueError):
        await client.fetch({"t": "Heat"})
