import os

import pytest

from syllabus.config import DEFAULT_HOST, DEFAULT_HTTP_TIMEOUT, DEFAULT_PORT, load_settings, omdb_api_keys


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in list(os.environ):
        if name.startswith(("OMDB_API_KEY", "SYLLABUS_", "TMDB_")) or name in ("CORS_ORIGINS", "HOST", "PORT"):
            monkeypatch.delenv(name, raising=False)


def test_numbered_keys_come_first_in_order(monkeypatch):
    monkeypatch.setenv("OMDB_API_KEY_10", "ten")
    monkeypatch.setenv("OMDB_API_KEY_2", "two")
    monkeypatch.setenv("OMDB_API_KEY_1", "one")
    monkeypatch.setenv("OMDB_API_KEYS", "list-a, two ,list-b")
    monkeypatch.setenv("OMDB_API_KEY", "single")

    assert omdb_api_keys() == ["one", "two", "ten", "list-a", "list-b", "single"]


def test_no_keys():
    assert omdb_api_keys() == []


def test_load_settings(monkeypatch, tmp_path):
    monkeypatch.setenv("TMDB_KEY", "tmdb")
    monkeypatch.setenv("OMDB_API_KEY", "omdb")
    monkeypatch.setenv("SYLLABUS_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("SYLLABUS_HTTP_TIMEOUT", "not-a-number")
    monkeypatch.setenv("CORS_ORIGINS", "https://a.example, https://b.example")

    settings = load_settings()

    assert settings.tmdb_api_key == "tmdb"
    assert settings.omdb_api_keys == ("omdb",)
    assert settings.data_dir == tmp_path
    assert settings.seed_url is None
    assert settings.http_timeout == DEFAULT_HTTP_TIMEOUT
    assert settings.cors_origins == ("https://a.example", "https://b.example")
    assert (settings.host, settings.port) == (DEFAULT_HOST, DEFAULT_PORT)


def test_server_address(monkeypatch):
    monkeypatch.setenv("HOST", "0.0.0.0")
    monkeypatch.setenv("PORT", "9000")

    settings = load_settings()

    assert settings.host == "0.0.0.0"
    assert settings.port == 9000
