"""Persisted domain models: pure Pydantic v2 data types.

Celebrity is the root entity.  Relationships and daily games reference
celebrities by id but never own their lifecycle.
"""

from __future__ import annotations

from datetime import UTC, date, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field, field_validator

MIN_BIRTH_YEAR = 1900
MAX_BIRTH_YEAR = 2100

SUBJECTS_PER_GAME = 4


def _now() -> datetime:
    return datetime.now(tz=UTC)


class Gender(StrEnum):
    MALE = "male"
    FEMALE = "female"


class GameType(StrEnum):
    """Puzzle shape of a daily game."""

    GUESS_CONNECTION = "guess_connection"


class Celebrity(BaseModel):
    """A person who can appear as an answer or a subject."""

    id: int
    name: str
    birth_year: int = Field(ge=MIN_BIRTH_YEAR, le=MAX_BIRTH_YEAR)
    gender: Gender
    tagline: str | None = None
    photo_url: str | None = None
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)

    @property
    def key(self) -> tuple[str, int]:
        """(name, birth_year) pair used to match image results back."""
        return (self.name, self.birth_year)

    @property
    def has_photo(self) -> bool:
        return bool(self.photo_url and self.photo_url.strip())


class CelebrityRelationship(BaseModel):
    """Undirected link between two celebrities, stored as an ordered pair.

    ``celebrity_1_id`` holds the answer side, ``celebrity_2_id`` the partner.
    """

    id: int
    celebrity_1_id: int
    celebrity_2_id: int
    citation: str | None = None
    created_at: datetime = Field(default_factory=_now)

    @property
    def pair(self) -> frozenset[int]:
        return frozenset((self.celebrity_1_id, self.celebrity_2_id))

    def other(self, celebrity_id: int) -> int:
        """Return the id on the opposite side of *celebrity_id*."""
        if celebrity_id == self.celebrity_1_id:
            return self.celebrity_2_id
        return self.celebrity_1_id


class DailyGame(BaseModel):
    """The puzzle for one calendar date."""

    id: int
    game_date: date
    answer_id: int
    subject_ids: list[int] = Field(default_factory=list)
    type: GameType = GameType.GUESS_CONNECTION
    created_at: datetime = Field(default_factory=_now)

    @field_validator("subject_ids")
    @classmethod
    def _distinct_subjects(cls, value: list[int]) -> list[int]:
        if value and (len(value) != SUBJECTS_PER_GAME or len(set(value)) != len(value)):
            raise ValueError(f"a game needs exactly {SUBJECTS_PER_GAME} distinct subjects")
        return value


class Setting(BaseModel):
    """Generic key -> JSON value row (prompt text, UI copy)."""

    key: str
    value: Any = None
    updated_at: datetime = Field(default_factory=_now)
