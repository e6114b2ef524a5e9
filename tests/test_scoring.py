from syllabus.models import MalRating, OmdbRatings
from syllabus.scoring import (
    best_rating,
    compute_unified_rating,
    display_title,
    is_anime_item,
    release_year,
    seed_score,
)


def test_imdb_and_rotten_tomatoes_are_averaged():
    omdb = OmdbRatings(imdb_rating=8.0, rotten_tomatoes=90)

    assert compute_unified_rating(omdb, None, False) == 8.5


def test_single_source():
    assert compute_unified_rating(OmdbRatings(imdb_rating=7.2), None, False) == 7.2
    assert compute_unified_rating(OmdbRatings(rotten_tomatoes=64), None, False) == 6.4


def test_no_sources():
    assert compute_unified_rating(None, None, False) is None
    assert compute_unified_rating(OmdbRatings(), MalRating(score=None), True) is None


def test_anime_uses_mal_instead_of_rotten_tomatoes():
    omdb = OmdbRatings(imdb_rating=8.0, rotten_tomatoes=100)

    assert compute_unified_rating(omdb, MalRating(score=9.0), True) == 8.5


def test_anime_without_mal_ignores_rotten_tomatoes():
    omdb = OmdbRatings(imdb_rating=8.0, rotten_tomatoes=100)

    assert compute_unified_rating(omdb, None, True) == 8.0


def test_non_anime_ignores_mal():
    omdb = OmdbRatings(imdb_rating=8.0)

    assert compute_unified_rating(omdb, MalRating(score=2.0), False) == 8.0


def test_result_has_one_decimal():
    omdb = OmdbRatings(imdb_rating=7.3, rotten_tomatoes=91)

    assert compute_unified_rating(omdb, None, False) == 8.2


def test_seed_score():
    assert seed_score(8.0, 90) == 8.5
    assert seed_score(None, 70) == 7.0
    assert seed_score(None, None) is None


def test_is_anime_item():
    assert is_anime_item({"original_language": "ja", "genre_ids": [16, 10759]})
    assert is_anime_item({"original_language": "ja", "genres": [{"id": 16, "name": "Animation"}]})
    assert not is_anime_item({"original_language": "ja", "genre_ids": [18]})
    assert not is_anime_item({"original_language": "en", "genre_ids": [16]})


def test_title_and_year_helpers():
    assert display_title({"name": "Dark", "first_air_date": "2017-12-01"}) == "Dark"
    assert release_year({"name": "Dark", "first_air_date": "2017-12-01"}) == "2017"
    assert release_year({"title": "Untitled"}) == ""


def test_best_rating_preference():
    assert best_rating({"unified_rating": 8.1, "vote_average": 7.0}) == 8.1
    assert best_rating({"unified_rating": None, "vote_average": 7.0}) == 7.0
    assert best_rating({"rating": 3.5}) == 3.5
    assert best_rating({}) == 0.0
    assert best_rating({"unified_rating": 0, "vote_average": 7.0}) == 0.0


def test_best_rating_skips_unparseable_values():
    assert best_rating({"vote_average": "n/a", "rating": "6.5"}) == 6.5
    assert best_rating({"vote_average": "n/a"}) == 0.0
    assert best_rating({"vote_average": {"bad": 1}}) == 0.0
