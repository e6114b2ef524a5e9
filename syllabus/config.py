import os
import re
from dataclasses import dataclass
from pathlib import Path

DEFAULT_DATA_DIR = ".syllabus_cache"
DEFAULT_SEED_PATH = Path("public") / "data" / "scores.json"
DEFAULT_HTTP_TIMEOUT = 8.0
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8000

_NUMBERED_OMDB_KEY = re.compile(r"^OMDB_API_KEY_(\d+)$")


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def omdb_api_keys() -> list[str]:
    numbered: list[tuple[int, str]] = []
    for name, value in os.environ.items():
        match = _NUMBERED_OMDB_KEY.match(name)
        if match:
            numbered.append((int(match.group(1)), value))
    numbered.sort(key=lambda item: item[0])

    candidates = [value for _, value in numbered]
    candidates.extend(os.environ.get("OMDB_API_KEYS", "").split(","))
    candidates.append(os.environ.get("OMDB_API_KEY", ""))

    keys: list[str] = []
    for candidate in candidates:
        key = candidate.strip()
        if key and key not in keys:
            keys.append(key)
    return keys


@dataclass(frozen=True)
class Settings:
    tmdb_api_key: str
    omdb_api_keys: tuple[str, ...]
    data_dir: Path
    seed_url: str | None
    seed_path: Path
    http_timeout: float
    cors_origins: tuple[str, ...]
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT


def load_settings() -> Settings:
    tmdb_key = os.environ.get("TMDB_API_KEY", "").strip() or os.environ.get("TMDB_KEY", "").strip()
    origins = [o.strip() for o in os.environ.get("CORS_ORIGINS", "").split(",") if o.strip()]
    return Settings(
        tmdb_api_key=tmdb_key,
        omdb_api_keys=tuple(omdb_api_keys()),
        data_dir=Path(os.environ.get("SYLLABUS_DATA_DIR", "").strip() or DEFAULT_DATA_DIR),
        seed_url=os.environ.get("SYLLABUS_SEED_URL", "").strip() or None,
        seed_path=Path(os.environ.get("SYLLABUS_SEED_PATH", "").strip() or DEFAULT_SEED_PATH),
        http_timeout=_env_float("SYLLABUS_HTTP_TIMEOUT", DEFAULT_HTTP_TIMEOUT),
        cors_origins=tuple(origins),
        host=os.environ.get("HOST", "").strip() or DEFAULT_HOST,
        port=_env_int("PORT", DEFAULT_PORT),
    )
