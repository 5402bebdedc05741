"""Tests for the combined and legacy puzzle strategies."""

from __future__ import annotations

import json
import random
from datetime import date
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from rogerthat.config import PUZZLE_PROMPT_KEYS, PUZZLE_SYSTEM_PROMPT, PromptSettings
from rogerthat.prompts import DEFAULT_SETTINGS
from rogerthat.puzzle import CombinedPuzzleStrategy, LegacyBankStrategy
from rogerthat.shared.errors import GenerationError, PipelineReport
from rogerthat.shared.llm import LLMError
from rogerthat.store import CelebrityStore

GAME_DATE = date(2026, 2, 14)


def _prompts() -> PromptSettings:
    return PromptSettings.from_settings(DEFAULT_SETTINGS, PUZZLE_PROMPT_KEYS)


class TestCombinedPuzzleStrategy:
    def test_prompt_contains_date_and_exclusions(self):
        generator = MagicMock()
        generator.generate.return_value = '```json\n{"answer": {"name": "Jon Doe"}, "relationships": []}\n```'

        strategy = CombinedPuzzleStrategy(generator, _prompts(), "haiku")
        result = strategy.propose(GAME_DATE, ["Sam Poe", "Tim Woe"])

        assert result == {"answer": {"name": "Jon Doe"}, "relationships": []}
        system_prompt, user_prompt, model = generator.generate.call_args.args
        assert system_prompt == DEFAULT_SETTINGS[PUZZLE_SYSTEM_PROMPT]
        assert "2026-02-14" in user_prompt
        assert "Sam Poe, Tim Woe" in user_prompt
        assert model == "haiku"
        assert strategy.requires_citations is True

    def test_unparseable_response(self):
        generator = MagicMock()
        generator.generate.return_value = "Sorry, I can't do that."
        assert CombinedPuzzleStrategy(generator, _prompts(), "haiku").propose(GAME_DATE, []) is None

    def test_upstream_failure_raises_generation_error(self):
        generator = MagicMock()
        generator.generate.side_effect = LLMError("overloaded")
        with pytest.raises(GenerationError):
            CombinedPuzzleStrategy(generator, _prompts(), "haiku").propose(GAME_DATE, [])


@pytest.fixture
def store(tmp_path: Path) -> CelebrityStore:
    return CelebrityStore(tmp_path)


def _seed_answer(store: CelebrityStore, name: str, partners: int, birth_year: int = 1970) -> int:
    answer = store.create_celebrity(name=name, birth_year=birth_year, gender="male", tagline=f"{name} tag")
    for i in range(partners):
        partner = store.create_celebrity(
            name=f"{name} Partner {i}", birth_year=1980, gender="female", tagline="Partner tag"
        )
        store.create_relationship_if_absent(answer.id, partner.id, f"https://news.test/{name}/{i}")
    return answer.id


class TestLegacyBankStrategy:
    def test_picks_answer_with_four_partners(self, store: CelebrityStore):
        _seed_answer(store, "Jon Doe", 5)
        _seed_answer(store, "Sam Poe", 3)

        proposal = LegacyBankStrategy(store, rng=random.Random(1)).propose(GAME_DATE, [])

        assert proposal["answer"]["name"] == "Jon Doe"
        assert len(proposal["relationships"]) == 4
        names = {r["name"] for r in proposal["relationships"]}
        assert len(names) == 4
        assert all(r["citation"].startswith("https://news.test/Jon Doe/") for r in proposal["relationships"])

    def test_excludes_recent_answers(self, store: CelebrityStore):
        _seed_answer(store, "Jon Doe", 4)
        assert LegacyBankStrategy(store).propose(GAME_DATE, ["jon doe"]) is None

    def test_answer_without_tagline_skipped(self, store: CelebrityStore):
        bare = _seed_answer(store, "No Tag", 4)
        store.update_celebrity(bare, tagline=None)
        _seed_answer(store, "Jon Doe", 4)

        for seed in range(5):
            proposal = LegacyBankStrategy(store, rng=random.Random(seed)).propose(GAME_DATE, [])
            assert proposal["answer"]["name"] == "Jon Doe"

    def test_respects_birth_year_bounds(self, store: CelebrityStore):
        _seed_answer(store, "Young Gun", 4, birth_year=2012)
        assert LegacyBankStrategy(store).propose(GAME_DATE, []) is None

    def test_runs_bank_first(self, store: CelebrityStore):
        bank = MagicMock()
        bank.run.return_value = PipelineReport(stage="celebrities")
        _seed_answer(store, "Jon Doe", 4)

        LegacyBankStrategy(store, bank).propose(GAME_DATE, [])

        bank.run.assert_called_once()

    def test_bank_failure_falls_back_to_stored(self, store: CelebrityStore):
        bank = MagicMock()
        bank.run.side_effect = GenerationError("empty")
        _seed_answer(store, "Jon Doe", 4)

        proposal = LegacyBankStrategy(store, bank).propose(GAME_DATE, [])

        assert proposal["answer"]["name"] == "Jon Doe"
        assert LegacyBankStrategy.requires_citations is False

    def test_proposal_is_json_serialisable(self, store: CelebrityStore):
        _seed_answer(store, "Jon Doe", 4)
        proposal = LegacyBankStrategy(store).propose(GAME_DATE, [])
        assert json.loads(json.dumps(proposal))["answer"]["gender"] == "male"
