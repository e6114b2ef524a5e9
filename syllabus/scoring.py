from decimal import ROUND_HALF_UP, Decimal

from .models import MalRating, OmdbRatings

ANIMATION_GENRE_ID = 16
ANIME_LANGUAGE = "ja"


def round_score(value: float) -> float:
    return float(Decimal(str(value)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def compute_unified_rating(
    omdb: OmdbRatings | None,
    mal: MalRating | None,
    is_anime: bool,
) -> float | None:
    """Mean of IMDb and one audience source, rounded to one decimal.

    Anime titles use the MyAnimeList score as the second source; everything
    else uses Rotten Tomatoes (percent, scaled to 0-10). The two are never
    averaged together.
    """
    scores: list[float] = []

    if omdb is not None and omdb.imdb_rating is not None:
        scores.append(omdb.imdb_rating)

    if is_anime:
        if mal is not None and mal.score:
            scores.append(mal.score)
    elif omdb is not None and omdb.rotten_tomatoes is not None:
        scores.append(omdb.rotten_tomatoes / 10)

    if not scores:
        return None
    return round_score(sum(scores) / len(scores))


def seed_score(imdb_rating: float | None, rotten_tomatoes: int | None) -> float | None:
    scores: list[float] = []
    if imdb_rating:
        scores.append(imdb_rating)
    if rotten_tomatoes:
        scores.append(rotten_tomatoes / 10)
    if not scores:
        return None
    return round_score(sum(scores) / len(scores))


def is_anime_item(item: dict) -> bool:
    if item.get("original_language") != ANIME_LANGUAGE:
        return False
    if ANIMATION_GENRE_ID in (item.get("genre_ids") or []):
        return True
    return any(
        isinstance(genre, dict) and genre.get("id") == ANIMATION_GENRE_ID
        for genre in item.get("genres") or []
    )


def display_title(item: dict) -> str:
    return str(item.get("title") or item.get("name") or "").strip()


def release_year(item: dict) -> str:
    return str(item.get("release_date") or item.get("first_air_date") or "")[:4]


def best_rating(item: dict) -> float:
    for field in ("unified_rating", "vote_average", "rating"):
        value = item.get(field)
        if value is not None:
            try:
                return float(value)
            except (TypeError, ValueError):
                continue
    return 0.0
