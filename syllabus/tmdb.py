import asyncio
import os

import httpx

BASE_URL = "https://api.themoviedb.org/3"
PAGE_DELAY_SECONDS = 0.1
_client: httpx.AsyncClient | None = None


def _get_api_key() -> str:
    key = os.environ.get("TMDB_API_KEY", "") or os.environ.get("TMDB_KEY", "")
    if not key:
        raise RuntimeError("TMDB_API_KEY environment variable not set.")
    return key


async def _get_client() -> httpx.AsyncClient:
    global _client
    if _client is None:
        _client = httpx.AsyncClient(timeout=10)
    return _client


async def close_client() -> None:
    global _client
    if _client:
        await _client.aclose()
        _client = None


async def get(path: str, params: dict | None = None) -> dict:
    params = dict(params or {})
    params["api_key"] = _get_api_key()
    client = await _get_client()
    resp = await client.get(f"{BASE_URL}/{path.lstrip('/')}", params=params)
    resp.raise_for_status()
    return resp.json()


async def get_pages(path: str, pages: int = 5, params: dict | None = None) -> list[dict]:
    results: list[dict] = []
    for page in range(1, pages + 1):
        data = await get(path, {**(params or {}), "page": page})
        results.extend(data.get("results") or [])
        if page >= (data.get("total_pages") or pages):
            break
        await asyncio.sleep(PAGE_DELAY_SECONDS)
    return results


def dedup(items: list[dict]) -> list[dict]:
    seen: set = set()
    unique: list[dict] = []
    for item in items:
        item_id = item.get("id")
        if item_id in seen:
            continue
        seen.add(item_id)
        unique.append(item)
    return unique

