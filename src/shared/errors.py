"""Error types and per-run reporting shared across the pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date


class RogerThatError(Exception):
    """Base error for the content pipeline."""


class ConfigError(RogerThatError):
    """Configuration or required settings are missing or invalid."""


class GenerationError(RogerThatError):
    """The model returned no usable content for a required step."""


class PuzzleGenerationError(GenerationError):
    """A daily puzzle could not be produced for a date."""

    def __init__(self, message: str, *, game_date: date | None = None) -> None:
        super().__init__(message)
        self.game_date = game_date


class StoreError(RogerThatError):
    """A persistence invariant was violated."""


class DuplicateGameError(StoreError):
    """A daily game already exists for the requested date."""


@dataclass
class PipelineReport:
    """Counters collected over one pipeline run.

    Components add to the report instead of raising for per-item
    problems, so a run can finish and still say what it skipped.
    """

    stage: str
    created: int = 0
    updated: int = 0
    skipped: int = 0
    linked: int = 0
    images: int = 0
    errors: list[str] = field(default_factory=list)

    def record_error(self, message: str) -> None:
        self.errors.append(message)

    @property
    def ok(self) -> bool:
        return not self.errors

    def summary(self) -> str:
        parts = [
            f"created={self.created}",
            f"updated={self.updated}",
            f"skipped={self.skipped}",
            f"linked={self.linked}",
            f"images={self.images}",
        ]
        if self.errors:
            parts.append(f"errors={len(self.errors)}")
        return f"{self.stage}: " + ", ".join(parts)
