"""Ways of proposing a daily puzzle.

A strategy returns the raw ``{answer, relationships}`` mapping (or
``None``); the assembler owns validation and persistence.
"""

from __future__ import annotations

import logging
import random
from datetime import date
from typing import Any, Protocol

from rogerthat.celebrities.bank import CelebrityBankGenerator
from rogerthat.config import PUZZLE_SYSTEM_PROMPT, PUZZLE_USER_PROMPT, PromptSettings
from rogerthat.prompts import EXCLUDED_NAMES_TOKEN, GAME_DATE_TOKEN, format_names
from rogerthat.shared.errors import GenerationError
from rogerthat.shared.json_repair import extract_json_object
from rogerthat.shared.llm import LLMError, TextGenerator
from rogerthat.store import Celebrity, CelebrityStore, Gender
from rogerthat.store.models import SUBJECTS_PER_GAME

logger = logging.getLogger(__name__)


class PuzzleStrategy(Protocol):
    #: Whether every proposed relationship carries a citation URL.
    requires_citations: bool

    def propose(self, game_date: date, excluded_answers: list[str]) -> dict[str, Any] | None: ...


class CombinedPuzzleStrategy:
    """One model call that returns the answer and four cited partners."""

    requires_citations = True

    def __init__(self, generator: TextGenerator, prompts: PromptSettings, model: str) -> None:
        self.generator = generator
        self.prompts = prompts
        self.model = model

    def propose(self, game_date: date, excluded_answers: list[str]) -> dict[str, Any] | None:
        user_prompt = self.prompts.render(
            PUZZLE_USER_PROMPT,
            {
                GAME_DATE_TOKEN: game_date.isoformat(),
                EXCLUDED_NAMES_TOKEN: format_names(excluded_answers),
            },
        )
        logger.info(
            "Requesting puzzle for %s (%d excluded answers)", game_date.isoformat(), len(excluded_answers)
        )
        try:
            text = self.generator.generate(self.prompts.get(PUZZLE_SYSTEM_PROMPT), user_prompt, self.model)
        except LLMError as exc:
            raise GenerationError(f"Puzzle request failed: {exc}") from exc

        decoded = extract_json_object(text)
        if decoded is None:
            logger.warning("Puzzle response was not valid JSON: %s", text[:500])
        return decoded


def _as_record(celebrity: Celebrity, citation: str | None = None) -> dict[str, Any]:
    return {
        "name": celebrity.name,
        "birth_year": celebrity.birth_year,
        "gender": str(celebrity.gender),
        "tagline": celebrity.tagline,
        "citation": citation,
    }


class LegacyBankStrategy:
    """Grow the celebrity bank, then pick a stored answer with enough partners."""

    requires_citations = False

    def __init__(
        self,
        store: CelebrityStore,
        bank: CelebrityBankGenerator | None = None,
        *,
        min_birth_year: int = 1900,
        max_birth_year: int = 2010,
        rng: random.Random | None = None,
    ) -> None:
        self.store = store
        self.bank = bank
        self.min_birth_year = min_birth_year
        self.max_birth_year = max_birth_year
        self.rng = rng or random.Random()

    def propose(self, game_date: date, excluded_answers: list[str]) -> dict[str, Any] | None:
        if self.bank is not None:
            try:
                report = self.bank.run()
                logger.info(report.summary())
            except GenerationError as exc:
                logger.warning("Bank generation failed, using stored celebrities: %s", exc)

        excluded = {name.casefold() for name in excluded_answers}
        eligible: list[tuple[Celebrity, list[Celebrity]]] = []
        for celebrity in self.store.list_celebrities(Gender.MALE):
            if not celebrity.tagline or celebrity.name.casefold() in excluded:
                continue
            if not self.min_birth_year <= celebrity.birth_year <= self.max_birth_year:
                continue
            partners = [p for p in self.store.partners_of(celebrity.id) if p.tagline]
            if len(partners) >= SUBJECTS_PER_GAME:
                eligible.append((celebrity, partners))

        if not eligible:
            logger.warning("No stored celebrity has %d partners for %s", SUBJECTS_PER_GAME, game_date)
            return None

        answer, partners = self.rng.choice(eligible)
        chosen = self.rng.sample(partners, SUBJECTS_PER_GAME)
        relationships = []
        for partner in chosen:
            link = self.store.find_relationship(answer.id, partner.id)
            relationships.append(_as_record(partner, link.citation if link else None))
        return {"answer": _as_record(answer), "relationships": relationships}
