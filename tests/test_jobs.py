"""Tests for rogerthat.jobs: wiring of the background units of work."""

from __future__ import annotations

import json
import subprocess
from datetime import date
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from rogerthat.config import RogerThatConfig
from rogerthat.jobs import (
    PipelineContext,
    create_daily_game,
    generate_celebrities,
    generate_missing_images,
    regenerate_celebrity_image,
    seed_settings,
)
from rogerthat.prompts import DEFAULT_SETTINGS
from rogerthat.shared.errors import ConfigError, PuzzleGenerationError
from rogerthat.store import CelebrityStore

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


@pytest.fixture
def config(tmp_path: Path) -> RogerThatConfig:
    return RogerThatConfig.model_validate(
        {
            "storage": {"directory": str(tmp_path / "data")},
            "images": {"output_dir": str(tmp_path / "images"), "command": ["gen"], "pause_seconds": 0},
        }
    )


def _context(config: RogerThatConfig, *responses: str, seed: bool = True) -> PipelineContext:
    store = CelebrityStore(config.storage_dir)
    if seed:
        seed_settings(store)
    generator = MagicMock()
    generator.generate.side_effect = list(responses)
    wikipedia = MagicMock()
    wikipedia.fetch_thumbnail_url.return_value = None
    wikipedia.fetch_page_image.return_value = None
    return PipelineContext.build(config, store=store, generator=generator, wikipedia=wikipedia)


def _process_output(*entries: dict) -> subprocess.CompletedProcess:
    stdout = json.dumps({"generated": list(entries), "failed": []})
    return subprocess.CompletedProcess(args=[], returncode=0, stdout=stdout, stderr="")


class TestCreateDailyGame:
    def test_creates_game(self, config: RogerThatConfig):
        context = _context(config, json.dumps(PUZZLE))
        game = create_daily_game(config, GAME_DATE, context=context)
        assert game.game_date == GAME_DATE
        assert context.store.get_celebrity(game.answer_id).name == "Jon Doe"

    def test_existing_game_skips_generation(self, config: RogerThatConfig):
        context = _context(config, json.dumps(PUZZLE))
        create_daily_game(config, GAME_DATE, context=context)
        create_daily_game(config, GAME_DATE, context=context)
        assert context.generator.generate.call_count == 1

    def test_missing_prompt_settings(self, config: RogerThatConfig):
        with pytest.raises(ConfigError):
            create_daily_game(config, GAME_DATE, context=_context(config, seed=False))

    def test_invalid_output_raises(self, config: RogerThatConfig):
        with pytest.raises(PuzzleGenerationError):
            create_daily_game(config, GAME_DATE, context=_context(config, "not json"))

    def test_unknown_strategy(self, config: RogerThatConfig):
        config.puzzle.strategy = "random"
        with pytest.raises(ConfigError):
            create_daily_game(config, GAME_DATE, context=_context(config))


class TestGenerateCelebrities:
    def test_runs_bank(self, config: RogerThatConfig):
        males = [{"name": "Jon Doe", "birth_year": 1970, "gender": "male", "tagline": "Chaos"}]
        context = _context(config, json.dumps(males))
        report = generate_celebrities(config, context=context)
        assert report.created == 1


class TestRegenerateCelebrityImage:
    @patch("rogerthat.jobs.time.time", return_value=1700000000)
    @patch("rogerthat.images.runner.subprocess.run")
    def test_appends_cache_buster(self, mock_run: MagicMock, _time: MagicMock, config: RogerThatConfig):
        context = _context(config)
        jon = context.store.create_celebrity(name="Jon Doe", birth_year=1970, gender="male", photo_url="old.png")
        mock_run.return_value = _process_output(
            {"name": "Jon Doe", "birth_year": 1970, "path": "celebrities/jon-doe.png"}
        )

        report = regenerate_celebrity_image(config, jon.id, context=context)

        assert report.ok
        assert context.store.get_celebrity(jon.id).photo_url == "celebrities/jon-doe.png?v=1700000000"

    @patch("rogerthat.images.runner.subprocess.run")
    def test_nothing_produced(self, mock_run: MagicMock, config: RogerThatConfig):
        context = _context(config)
        jon = context.store.create_celebrity(name="Jon Doe", birth_year=1970, gender="male", photo_url="old.png")
        mock_run.return_value = _process_output()

        report = regenerate_celebrity_image(config, jon.id, context=context)

        assert not report.ok
        assert context.store.get_celebrity(jon.id).photo_url == "old.png"

    def test_unknown_celebrity(self, config: RogerThatConfig):
        report = regenerate_celebrity_image(config, 404, context=_context(config))
        assert not report.ok


class TestGenerateMissingImages:
    @patch("rogerthat.images.runner.subprocess.run")
    def test_applies_paths(self, mock_run: MagicMock, config: RogerThatConfig):
        context = _context(config)
        jon = context.store.create_celebrity(name="Jon Doe", birth_year=1970, gender="male")
        context.store.create_celebrity(name="Sam Poe", birth_year=1975, gender="male", photo_url="sam.png")
        mock_run.return_value = _process_output(
            {"name": "Jon Doe", "birth_year": 1970, "path": "celebrities/jon-doe.png"}
        )

        report = generate_missing_images(config, context=context)

        assert report.images == 1
        assert context.store.get_celebrity(jon.id).photo_url == "celebrities/jon-doe.png"
        batch = json.loads(mock_run.call_args.kwargs["input"])["celebrities"]
        assert [c["name"] for c in batch] == ["Jon Doe"]

    def test_nothing_missing(self, config: RogerThatConfig):
        report = generate_missing_images(config, context=_context(config))
        assert report.images == 0


class TestSeedSettings:
    def test_seeds_and_respects_existing(self, tmp_path: Path):
        store = CelebrityStore(tmp_path)
        store.set_setting("DAILY_GAME_USER_PROMPT", "custom")

        written = seed_settings(store)

        assert "DAILY_GAME_USER_PROMPT" not in written
        assert len(written) == len(DEFAULT_SETTINGS) - 1
        assert store.get_setting("DAILY_GAME_USER_PROMPT") == "custom"

    def test_overwrite(self, tmp_path: Path):
        store = CelebrityStore(tmp_path)
        store.set_setting("DAILY_GAME_USER_PROMPT", "custom")
        assert len(seed_settings(store, overwrite=True)) == len(DEFAULT_SETTINGS)
        assert store.get_setting("DAILY_GAME_USER_PROMPT") == DEFAULT_SETTINGS["DAILY_GAME_USER_PROMPT"]
