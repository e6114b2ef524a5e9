from contextlib import asynccontextmanager
from typing import Any

from dotenv import load_dotenv
load_dotenv()

import httpx
import uvicorn
from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel, Field
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from . import tmdb
from .charts import chart_key
from .config import load_settings
from .engine import ScoringEngine
from .models import EnrichCancelled, MediaType
from .omdb import LIMIT_REACHED, OmdbRateLimitError

TMDB_CACHE_CONTROL = "public, s-maxage=300, stale-while-revalidate=600"
JIKAN_CACHE_CONTROL = "public, s-maxage=3600"

settings = load_settings()
limiter = Limiter(key_func=get_remote_address)


@asynccontextmanager
async def lifespan(app: FastAPI):
    engine = ScoringEngine(settings)
    app.state.engine = engine
    yield
    await engine.close()
    await tmdb.close_client()


app = FastAPI(lifespan=lifespan)
app.state.limiter = limiter


def get_engine(request: Request) -> ScoringEngine:
    return request.app.state.engine


class EnrichRequest(BaseModel):
    items: list[dict[str, Any]] = Field(max_length=500)
    media_type: MediaType
    # Listing scope; the chart is stored under "{media_type}:{scope}".
    scope: str | None = Field(default=None, max_length=64, pattern=r"^[A-Za-z0-9_-]+$")
    # Cancel any in-flight enrichment of the same chart started before this one.
    supersede: bool = False


# Rate limit error handler
@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    return JSONResponse(status_code=429, content={"detail": "Too many requests. Please try again later."})


# Security headers middleware
@app.middleware("http")
async def security_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    return response


# CORS
if settings.cors_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type"],
    )


@app.get("/api/omdb")
async def omdb_proxy(request: Request, engine: ScoringEngine = Depends(get_engine)):
    params = {key: value for key, value in request.query_params.items() if key != "apikey"}
    if not params:
        raise HTTPException(status_code=400, detail="Missing OMDb query parameters")
    try:
        return await engine.omdb.fetch(params)
    except OmdbRateLimitError:
        return {"Response": "False", "Error": LIMIT_REACHED}
    except (httpx.HTTPError, ValueError):
        raise HTTPException(status_code=502, detail="OMDb unavailable")


@app.get("/api/jikan")
async def jikan_proxy(
    q: str = Query(..., min_length=1),
    limit: int = Query(1, ge=1, le=25),
    engine: ScoringEngine = Depends(get_engine),
):
    try:
        data = await engine.jikan.search(q, limit=limit)
    except (httpx.HTTPError, ValueError):
        raise HTTPException(status_code=502, detail="Jikan unavailable")
    return JSONResponse(data, headers={"Cache-Control": JIKAN_CACHE_CONTROL})


@app.get("/api/tmdb/{path:path}")
async def tmdb_proxy(path: str, request: Request):
    params = {key: value for key, value in request.query_params.items() if key != "api_key"}
    try:
        data = await tmdb.get(path, params)
    except httpx.HTTPStatusError as exc:
        raise HTTPException(status_code=exc.response.status_code, detail="TMDB request failed")
    except httpx.HTTPError:
        raise HTTPException(status_code=502, detail="TMDB unavailable")
    return JSONResponse(data, headers={"Cache-Control": TMDB_CACHE_CONTROL})


@app.get("/api/scores/{media_type}/{item_id}")
async def get_score(
    media_type: MediaType,
    item_id: int,
    engine: ScoringEngine = Depends(get_engine),
):
    await engine.seed.load_once()
    return {"media_type": media_type, "id": item_id, "score": engine.scores.get_score(media_type, item_id)}


@app.get("/api/ratings/imdb/{imdb_id}")
async def imdb_ratings(
    imdb_id: str,
    title: str | None = None,
    media_type: MediaType | None = None,
    engine: ScoringEngine = Depends(get_engine),
):
    try:
        ratings = await engine.lookup.by_imdb_id(imdb_id, title=title, media_type=media_type)
    except OmdbRateLimitError:
        raise HTTPException(status_code=429, detail=LIMIT_REACHED)
    return {"imdb_id": imdb_id, "ratings": ratings.model_dump() if ratings else None}


@app.post("/api/enrich")
@limiter.limit("30/minute")
async def enrich(request: Request, body: EnrichRequest, engine: ScoringEngine = Depends(get_engine)):
    await engine.seed.load_once()
    key = chart_key(body.media_type, body.scope) if body.scope else None
    token = None
    if body.supersede and key:
        token = engine.generation_for(key).next()
    result = await engine.enricher.enrich(body.items, body.media_type, key, None, token)
    if isinstance(result, EnrichCancelled):
        raise HTTPException(status_code=409, detail="Superseded by a newer request")
    return {"results": result}


@app.get("/api/charts/{media_type}/{scope}")
async def get_chart(
    media_type: MediaType,
    scope: str,
    engine: ScoringEngine = Depends(get_engine),
):
    key = chart_key(media_type, scope)
    items = engine.charts.get(key)
    if items is None:
        raise HTTPException(status_code=404, detail="No fresh chart snapshot")
    return {"key": key, "items": items, "age_seconds": round(engine.charts.get_age(key) / 1000, 1)}


SEED_DIR = settings.seed_path.parent
if SEED_DIR.exists():
    app.mount("/data", StaticFiles(directory=SEED_DIR), name="data")


def run() -> None:
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
