from dataclasses import dataclass
from typing import Literal

from pydantic import BaseModel, Field

MediaType = Literal["movie", "tv"]


class OmdbRatings(BaseModel):
    imdb_id: str | None = None
    imdb_rating: float | None = Field(default=None, ge=0, le=10)
    imdb_votes: int | None = None
    rotten_tomatoes: int | None = Field(default=None, ge=0, le=100)
    metacritic: int | None = Field(default=None, ge=0, le=100)
    director: str | None = None
    writer: str | None = None
    awards: str | None = None
    box_office: str | None = None
    rated: str | None = None
    country: str | None = None


class MalRating(BaseModel):
    score: float | None = None
    scored_by: int | None = None
    mal_id: int | None = None
    url: str | None = None


@dataclass(frozen=True)
class EnrichProgress:
    completed: int
    total: int
    phase: Literal["enriching", "done"]


@dataclass(frozen=True)
class EnrichCancelled:
    completed: int
    total: int
