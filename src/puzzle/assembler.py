"""Ensure exactly one daily game exists for a date."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import date
from typing import Any

from rogerthat.candidates import (
    REQUIRED_FIELDS,
    CelebrityCandidate,
    PuzzleCandidate,
    missing_fields,
    parse_celebrity_candidate,
)
from rogerthat.celebrities.relationships import RelationshipLinker
from rogerthat.celebrities.upsert import CelebrityUpserter
from rogerthat.puzzle.strategies import PuzzleStrategy
from rogerthat.shared.errors import DuplicateGameError, GenerationError, PuzzleGenerationError, StoreError
from rogerthat.store import CelebrityStore, DailyGame, GameType, Gender
from rogerthat.store.models import SUBJECTS_PER_GAME

logger = logging.getLogger(__name__)


def _is_http_url(value: str | None) -> bool:
    return isinstance(value, str) and value.lower().startswith(("http://", "https://"))


class PuzzleAssembler:
    """Generate, validate and persist the daily game for a date.

    Re-running for a date that already has a game returns it without a
    generation call.
    """

    def __init__(
        self,
        store: CelebrityStore,
        strategy: PuzzleStrategy,
        upserter: CelebrityUpserter,
        linker: RelationshipLinker,
        *,
        answer_gender: Gender = Gender.MALE,
        min_birth_year: int = 1900,
        max_birth_year: int = 2010,
        excluded_recent_answers: int = 30,
    ) -> None:
        self.store = store
        self.strategy = strategy
        self.upserter = upserter
        self.linker = linker
        self.answer_gender = answer_gender
        self.min_birth_year = min_birth_year
        self.max_birth_year = max_birth_year
        self.excluded_recent_answers = excluded_recent_answers

    def ensure_game(self, target_date: date) -> DailyGame:
        """Return the game for *target_date*, creating it if needed.

        Raises:
            PuzzleGenerationError: If no valid puzzle could be produced.
        """
        existing = self.store.get_game(target_date)
        if existing is not None:
            logger.info("Game for %s already exists (id %d)", target_date.isoformat(), existing.id)
            return existing

        excluded = self.store.recent_answer_names(target_date, self.excluded_recent_answers)
        try:
            raw = self.strategy.propose(target_date, excluded)
        except GenerationError as exc:
            raise PuzzleGenerationError(str(exc), game_date=target_date) from exc
        if raw is None:
            raise PuzzleGenerationError(
                f"No valid game data returned for {target_date.isoformat()}", game_date=target_date
            )

        candidate = self.validate(raw, target_date, excluded)
        return self._persist(candidate, target_date)

    def validate(
        self,
        raw: Mapping[str, Any],
        target_date: date,
        excluded: list[str] | None = None,
    ) -> PuzzleCandidate:
        """Turn a raw proposal into a :class:`PuzzleCandidate`.

        Raises:
            PuzzleGenerationError: On the first rule the proposal breaks.
        """

        def fail(reason: str) -> PuzzleGenerationError:
            logger.warning("Rejected puzzle for %s: %s", target_date.isoformat(), reason)
            return PuzzleGenerationError(
                f"Invalid puzzle for {target_date.isoformat()}: {reason}", game_date=target_date
            )

        answer_raw = raw.get("answer")
        if not isinstance(answer_raw, Mapping):
            raise fail("missing answer")
        missing = missing_fields(answer_raw, REQUIRED_FIELDS)
        if missing:
            raise fail(f"answer missing {', '.join(missing)}")
        answer = parse_celebrity_candidate(answer_raw)
        if answer is None:
            raise fail("answer has an invalid birth_year or gender")
        if answer.gender != self.answer_gender:
            raise fail(f"answer gender must be {self.answer_gender}, got {answer.gender}")
        if not self.min_birth_year <= answer.birth_year <= self.max_birth_year:
            raise fail(
                f"answer birth_year {answer.birth_year} outside {self.min_birth_year}..{self.max_birth_year}"
            )
        if excluded and answer.name.casefold() in {name.casefold() for name in excluded}:
            raise fail(f"{answer.name} was a recent answer")

        relationships_raw = raw.get("relationships")
        if relationships_raw is None:
            relationships_raw = raw.get("subjects")
        if not isinstance(relationships_raw, list) or len(relationships_raw) != SUBJECTS_PER_GAME:
            count = len(relationships_raw) if isinstance(relationships_raw, list) else 0
            raise fail(f"expected {SUBJECTS_PER_GAME} relationships, got {count}")

        partners: list[CelebrityCandidate] = []
        seen = {answer.name.casefold()}
        for index, item in enumerate(relationships_raw):
            if not isinstance(item, Mapping):
                raise fail(f"relationship {index} is not an object")
            missing = missing_fields(item, REQUIRED_FIELDS)
            if missing:
                raise fail(f"relationship {index} missing {', '.join(missing)}")
            partner = parse_celebrity_candidate(item)
            if partner is None:
                raise fail(f"relationship {index} has an invalid birth_year or gender")
            if partner.name.casefold() in seen:
                raise fail(f"duplicate name {partner.name}")
            seen.add(partner.name.casefold())
            if self.strategy.requires_citations and not _is_http_url(partner.citation):
                raise fail(f"relationship {index} ({partner.name}) has no citation URL")
            partners.append(partner)

        return PuzzleCandidate(answer=answer, relationships=partners)

    def _persist(self, candidate: PuzzleCandidate, target_date: date) -> DailyGame:
        try:
            answer = self.upserter.upsert_by_identity(candidate.answer)
        except StoreError as exc:
            raise PuzzleGenerationError(f"Could not store answer: {exc}", game_date=target_date) from exc

        subject_ids: list[int] = []
        for partner in candidate.relationships:
            stored = self.upserter.upsert(partner, refresh_photo=False)
            if stored is None:
                raise PuzzleGenerationError(f"Could not store subject {partner.name}", game_date=target_date)
            self.linker.link_ids(answer.id, stored.id, partner.citation)
            subject_ids.append(stored.id)

        if len(set(subject_ids)) != SUBJECTS_PER_GAME or answer.id in subject_ids:
            raise PuzzleGenerationError(
                "Subjects did not resolve to four distinct celebrities", game_date=target_date
            )

        try:
            game = self.store.create_game(
                game_date=target_date,
                answer_id=answer.id,
                subject_ids=subject_ids,
                game_type=GameType.GUESS_CONNECTION,
            )
        except DuplicateGameError:
            existing = self.store.get_game(target_date)
            if existing is None:
                raise
            logger.info("Game for %s was created concurrently", target_date.isoformat())
            return existing
        except StoreError as exc:
            raise PuzzleGenerationError(str(exc), game_date=target_date) from exc

        logger.info(
            "Created game %d for %s: %s with %d subjects",
            game.id,
            target_date.isoformat(),
            answer.name,
            len(subject_ids),
        )
        return game
