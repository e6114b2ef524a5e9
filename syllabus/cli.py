import asyncio
import logging
from pathlib import Path
from typing import Annotated, Optional

import httpx
import typer

from . import tmdb
from .batch import DEFAULT_CALL_LIMIT, BatchEnricher, BatchOptions, ScoreDatabase
from .config import load_settings
from .omdb import KeyRotator, OmdbClient

app = typer.Typer(add_completion=False, help="Build the static score database from TMDB + OMDb.")

logger = logging.getLogger(__name__)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="[%(asctime)s] %(message)s",
        datefmt="%H:%M:%S",
    )


async def _run(options: BatchOptions, output: Path, keys: tuple[str, ...], timeout: float) -> int:
    omdb = OmdbClient(KeyRotator(keys), call_budget=options.call_limit, timeout=timeout)
    db = ScoreDatabase.load(output)
    try:
        return await BatchEnricher(db, omdb, options).run()
    finally:
        await omdb.close()
        await tmdb.close_client()


@app.command()
def enrich(
    limit: Annotated[int, typer.Option("--limit", min=0, help="Maximum OMDb calls for this run.")] = DEFAULT_CALL_LIMIT,
    movies_only: Annotated[bool, typer.Option("--movies-only", help="Only enrich movies.")] = False,
    tv_only: Annotated[bool, typer.Option("--tv-only", help="Only enrich TV shows.")] = False,
    backfill_only: Annotated[bool, typer.Option("--backfill-only", help="Skip the browse and top-voted tiers.")] = False,
    output: Annotated[Optional[Path], typer.Option("--output", help="Score database path.")] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v")] = False,
) -> None:
    """Accumulate IMDb + Rotten Tomatoes scores into the seed file."""
    _configure_logging(verbose)
    if movies_only and tv_only:
        raise typer.BadParameter("--movies-only and --tv-only are mutually exclusive")

    settings = load_settings()
    if not settings.omdb_api_keys:
        raise typer.BadParameter("No OMDb key configured (set OMDB_API_KEY_1 or OMDB_API_KEY)")

    options = BatchOptions(
        call_limit=limit,
        movies_only=movies_only,
        tv_only=tv_only,
        backfill_only=backfill_only,
    )
    if movies_only:
        logger.info("Mode: movies only")
    if tv_only:
        logger.info("Mode: TV only")
    if backfill_only:
        logger.info("Mode: backfill only")

    try:
        asyncio.run(_run(options, output or settings.seed_path, settings.omdb_api_keys, settings.http_timeout))
    except (httpx.HTTPError, RuntimeError) as exc:
        logger.error("Enrichment failed: %s", exc)
        raise typer.Exit(code=1) from exc


def main() -> None:
    app()


if __name__ == "__main__":
    main()
