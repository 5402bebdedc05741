"""Tests for PuzzleAssembler: one validated game per date."""

from __future__ import annotations

import copy
from datetime import date
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from rogerthat.celebrities import CelebrityUpserter, RelationshipLinker
from rogerthat.puzzle import PuzzleAssembler
from rogerthat.shared.errors import GenerationError, PuzzleGenerationError
from rogerthat.store import CelebrityStore, Gender

GAME_DATE = date(2026, 2, 14)

PUZZLE = {
    "answer": {"name": "Jon Doe", "birth_year": 1970, "gender": "male", "tagline": "Chaos in a tuxedo"},
    "relationships": [
        {
            "name": f"Partner {i}",
            "birth_year": 1980 + i,
            "gender": "female",
            "tagline": f"Tagline {i}",
            "citation": f"https://news.test/{i}",
        }
        for i in range(4)
    ],
}


class FakeStrategy:
    def __init__(self, proposal, requires_citations: bool = True) -> None:
        self.proposal = proposal
        self.requires_citations = requires_citations
        self.calls: list[tuple[date, list[str]]] = []

    def propose(self, game_date, excluded_answers):
        self.calls.append((game_date, list(excluded_answers)))
        if isinstance(self.proposal, Exception):
            raise self.proposal
        return copy.deepcopy(self.proposal)


@pytest.fixture
def store(tmp_path: Path) -> CelebrityStore:
    return CelebrityStore(tmp_path)


def _assembler(store: CelebrityStore, strategy: FakeStrategy, **kwargs) -> PuzzleAssembler:
    upserter = CelebrityUpserter(store, MagicMock(return_value=None))
    return PuzzleAssembler(store, strategy, upserter, RelationshipLinker(store, upserter), **kwargs)


def _with(**changes) -> dict:
    proposal = copy.deepcopy(PUZZLE)
    for key, value in changes.items():
        proposal[key] = value
    return proposal


class TestEnsureGame:
    def test_creates_game_with_links(self, store: CelebrityStore):
        game = _assembler(store, FakeStrategy(PUZZLE)).ensure_game(GAME_DATE)

        answer = store.get_celebrity(game.answer_id)
        assert answer.name == "Jon Doe"
        assert game.game_date == GAME_DATE
        assert len(game.subject_ids) == 4
        for i, subject_id in enumerate(game.subject_ids):
            rel = store.find_relationship(answer.id, subject_id)
            assert rel is not None
            assert rel.citation == f"https://news.test/{i}"

    def test_same_date_twice_generates_once(self, store: CelebrityStore):
        strategy = FakeStrategy(PUZZLE)
        assembler = _assembler(store, strategy)

        first = assembler.ensure_game(GAME_DATE)
        second = assembler.ensure_game(GAME_DATE)

        assert first.id == second.id
        assert len(store.list_games()) == 1
        assert len(strategy.calls) == 1

    def test_subjects_key_accepted(self, store: CelebrityStore):
        proposal = _with(subjects=PUZZLE["relationships"])
        del proposal["relationships"]
        game = _assembler(store, FakeStrategy(proposal)).ensure_game(GAME_DATE)
        assert len(game.subject_ids) == 4

    def test_recent_answers_passed_to_strategy(self, store: CelebrityStore):
        _assembler(store, FakeStrategy(PUZZLE)).ensure_game(date(2026, 2, 13))
        strategy = FakeStrategy(PUZZLE)

        with pytest.raises(PuzzleGenerationError, match="recent answer"):
            _assembler(store, strategy).ensure_game(GAME_DATE)

        assert strategy.calls == [(GAME_DATE, ["Jon Doe"])]

    def test_answer_matched_by_name_and_birth_year(self, store: CelebrityStore):
        store.create_celebrity(name="Jon Doe", birth_year=1950, gender="male", tagline="The other one")
        game = _assembler(store, FakeStrategy(PUZZLE)).ensure_game(GAME_DATE)
        assert store.get_celebrity(game.answer_id).birth_year == 1970
        assert len(store.list_celebrities(Gender.MALE)) == 2

    def test_existing_partner_reused(self, store: CelebrityStore):
        existing = store.create_celebrity(name="partner 0", birth_year=1980, gender="female", tagline="Kept")
        game = _assembler(store, FakeStrategy(PUZZLE)).ensure_game(GAME_DATE)
        assert existing.id in game.subject_ids
        assert store.get_celebrity(existing.id).tagline == "Kept"


class TestFailures:
    def test_strategy_returns_nothing(self, store: CelebrityStore):
        with pytest.raises(PuzzleGenerationError) as excinfo:
            _assembler(store, FakeStrategy(None)).ensure_game(GAME_DATE)
        assert excinfo.value.game_date == GAME_DATE
        assert store.list_games() == []

    def test_strategy_generation_error(self, store: CelebrityStore):
        with pytest.raises(PuzzleGenerationError):
            _assembler(store, FakeStrategy(GenerationError("upstream down"))).ensure_game(GAME_DATE)

    @pytest.mark.parametrize(
        "proposal",
        [
            _with(answer={**PUZZLE["answer"], "gender": "female"}),
            _with(answer={**PUZZLE["answer"], "tagline": ""}),
            _with(answer={**PUZZLE["answer"], "birth_year": 2015}),
            _with(answer="Jon Doe"),
            _with(relationships=PUZZLE["relationships"][:3]),
            _with(relationships=PUZZLE["relationships"] + [PUZZLE["relationships"][0]]),
            _with(relationships=[{**r, "name": "Same Name"} for r in PUZZLE["relationships"]]),
            _with(relationships=[{**PUZZLE["relationships"][0], "citation": "not a url"}] + PUZZLE["relationships"][1:]),
            _with(relationships=[{**PUZZLE["relationships"][0], "name": "JON DOE"}] + PUZZLE["relationships"][1:]),
        ],
        ids=[
            "answer-gender",
            "answer-tagline",
            "answer-birth-year",
            "answer-not-object",
            "three-relationships",
            "five-relationships",
            "duplicate-names",
            "bad-citation",
            "partner-is-answer",
        ],
    )
    def test_invalid_proposals_rejected(self, store: CelebrityStore, proposal: dict):
        with pytest.raises(PuzzleGenerationError):
            _assembler(store, FakeStrategy(proposal)).ensure_game(GAME_DATE)
        assert store.list_games() == []

    def test_citations_optional_when_strategy_does_not_promise_them(self, store: CelebrityStore):
        proposal = _with(relationships=[{**r, "citation": None} for r in PUZZLE["relationships"]])
        game = _assembler(store, FakeStrategy(proposal, requires_citations=False)).ensure_game(GAME_DATE)
        assert len(game.subject_ids) == 4

    def test_configurable_bounds(self, store: CelebrityStore):
        with pytest.raises(PuzzleGenerationError):
            _assembler(store, FakeStrategy(PUZZLE), max_birth_year=1960).ensure_game(GAME_DATE)
