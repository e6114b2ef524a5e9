from syllabus.score_store import ScoreStore
from syllabus.storage import JsonFileStore, MemoryStore


def test_set_and_get(storage):
    store = ScoreStore(storage)
    store.set_score("movie", 1, 8.1)

    assert store.get_score("movie", 1) == 8.1
    assert store.get_score("tv", 1) is None


def test_set_ignores_missing_score_or_id(storage):
    store = ScoreStore(storage)
    store.set_score("movie", 1, None)
    store.set_score("movie", 0, 7.0)
    store.set_score("movie", "", 7.0)

    assert len(store) == 0
    assert storage.read("syllabus_scores") == {}


def test_writes_through_to_storage(storage):
    ScoreStore(storage).set_score("tv", 42, 9.0)

    assert storage.read("syllabus_scores") == {"tv:42": 9.0}
    assert ScoreStore(storage).get_score("tv", 42) == 9.0


def test_apply_stored_scores_mutates_in_place(storage):
    store = ScoreStore(storage)
    store.set_score("movie", 1, 8.4)
    items = [{"id": 1, "vote_average": 7.0}, {"id": 2, "vote_average": 6.0}]

    returned = store.apply_stored_scores(items, "movie")

    assert returned is items
    assert items[0]["unified_rating"] == 8.4
    assert "unified_rating" not in items[1]


def test_apply_stored_scores_is_idempotent(storage):
    store = ScoreStore(storage)
    store.set_score("movie", 1, 8.4)
    store.set_score("movie", 2, 6.5)
    items = [{"id": 1}, {"id": 2}, {"id": 3}]

    once = [item.get("unified_rating") for item in store.apply_stored_scores(items, "movie")]
    twice = [item.get("unified_rating") for item in store.apply_stored_scores(items, "movie")]

    assert once == twice == [8.4, 6.5, None]


def test_merge_missing_never_overwrites(storage):
    store = ScoreStore(storage)
    store.set_score("movie", 1, 5.0)

    merged = store.merge_missing({"movie:1": 9.9, "movie:2": 7.0})

    assert merged == 1
    assert store.get_score("movie", 1) == 5.0
    assert store.get_score("movie", 2) == 7.0


def test_unreadable_storage_starts_empty(tmp_path, caplog):
    (tmp_path / "syllabus_scores.json").write_text("garbage", encoding="utf-8")
    store = ScoreStore(JsonFileStore(tmp_path))

    assert store.get_score("movie", 1) is None
    assert "Score store unreadable" in caplog.text


def test_non_numeric_entries_are_ignored():
    store = ScoreStore(MemoryStore({"syllabus_scores": {"movie:1": "8.0", "movie:2": 7.5}}))

    assert store.get_score("movie", 1) is None
    assert store.get_score("movie", 2) == 7.5
