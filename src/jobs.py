"""Background units of work: daily game, celebrity bank, image jobs.

Each job builds its collaborators from :class:`RogerThatConfig`, runs
once and returns what it produced.  Jobs are meant to run sequentially
(a scheduler or the CLI); uniqueness is enforced by the store.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import date, datetime
from zoneinfo import ZoneInfo

from rogerthat.celebrities import CelebrityBankGenerator, CelebrityUpserter, RelationshipLinker
from rogerthat.config import BANK_PROMPT_KEYS, PUZZLE_PROMPT_KEYS, PromptSettings, RogerThatConfig
from rogerthat.images import CaricatureScriptRunner, ImageOrchestrator
from rogerthat.prompts import DEFAULT_SETTINGS
from rogerthat.puzzle import CombinedPuzzleStrategy, LegacyBankStrategy, PuzzleAssembler
from rogerthat.puzzle.strategies import PuzzleStrategy
from rogerthat.shared.errors import ConfigError, PipelineReport
from rogerthat.shared.llm import TextGenerator, build_text_generator
from rogerthat.store import CelebrityStore, DailyGame, Gender
from rogerthat.wikipedia import WikipediaClient

logger = logging.getLogger(__name__)

STRATEGIES = ("combined", "legacy")


@dataclass
class PipelineContext:
    """Collaborators shared by the jobs of one run."""

    config: RogerThatConfig
    store: CelebrityStore
    generator: TextGenerator
    wikipedia: WikipediaClient
    upserter: CelebrityUpserter
    linker: RelationshipLinker

    @classmethod
    def build(
        cls,
        config: RogerThatConfig,
        *,
        store: CelebrityStore | None = None,
        generator: TextGenerator | None = None,
        wikipedia: WikipediaClient | None = None,
    ) -> PipelineContext:
        store = store or CelebrityStore(config.storage_dir)
        if generator is None:
            generator = build_text_generator(
                config.llm.provider,
                timeout=config.llm.timeout,
                max_tokens=config.llm.max_tokens,
            )
        wikipedia = wikipedia or WikipediaClient(
            user_agent=config.wikipedia.user_agent,
            timeout=config.wikipedia.timeout,
            download_timeout=config.wikipedia.download_timeout,
        )
        upserter = CelebrityUpserter(store, wikipedia.fetch_thumbnail_url)
        linker = RelationshipLinker(store, upserter)
        return cls(
            config=config,
            store=store,
            generator=generator,
            wikipedia=wikipedia,
            upserter=upserter,
            linker=linker,
        )

    def bank_generator(self) -> CelebrityBankGenerator:
        prompts = PromptSettings.from_settings(self.store.settings(), BANK_PROMPT_KEYS)
        return CelebrityBankGenerator(
            self.store,
            self.generator,
            prompts,
            self.upserter,
            self.linker,
            self.config.llm.model,
        )

    def image_orchestrator(self) -> ImageOrchestrator:
        images = self.config.images
        runner = CaricatureScriptRunner(
            images.command,
            timeout=images.timeout,
            env={"IMAGE_MODEL": images.image_model},
        )
        return ImageOrchestrator(
            runner,
            self.config.images_dir,
            fallback=self.wikipedia,
            public_prefix=images.public_prefix,
            max_attempts=images.max_attempts,
            variant_switch_attempt=images.variant_switch_attempt,
            pause_seconds=images.pause_seconds,
        )


def today(config: RogerThatConfig) -> date:
    """Calendar date in the configured puzzle timezone."""
    return datetime.now(ZoneInfo(config.puzzle.timezone)).date()


def _build_strategy(context: PipelineContext) -> PuzzleStrategy:
    puzzle = context.config.puzzle
    if puzzle.strategy == "combined":
        prompts = PromptSettings.from_settings(context.store.settings(), PUZZLE_PROMPT_KEYS)
        return CombinedPuzzleStrategy(context.generator, prompts, context.config.llm.model)
    if puzzle.strategy == "legacy":
        return LegacyBankStrategy(
            context.store,
            context.bank_generator(),
            min_birth_year=puzzle.min_birth_year,
            max_birth_year=puzzle.max_birth_year,
        )
    raise ConfigError(f"Unknown puzzle strategy {puzzle.strategy!r}; expected one of {', '.join(STRATEGIES)}")


def create_daily_game(
    config: RogerThatConfig,
    target_date: date | None = None,
    *,
    context: PipelineContext | None = None,
) -> DailyGame:
    """Ensure the daily game for *target_date* (default today) exists.

    Raises:
        ConfigError: If prompt settings or the strategy are misconfigured.
        PuzzleGenerationError: If no valid puzzle could be produced.
    """
    context = context or PipelineContext.build(config)
    target_date = target_date or today(config)
    existing = context.store.get_game(target_date)
    if existing is not None:
        logger.info("Game for %s already exists", target_date.isoformat())
        return existing

    try:
        answer_gender = Gender(config.puzzle.answer_gender)
    except ValueError as exc:
        raise ConfigError(f"Invalid puzzle.answer_gender {config.puzzle.answer_gender!r}") from exc

    assembler = PuzzleAssembler(
        context.store,
        _build_strategy(context),
        context.upserter,
        context.linker,
        answer_gender=answer_gender,
        min_birth_year=config.puzzle.min_birth_year,
        max_birth_year=config.puzzle.max_birth_year,
        excluded_recent_answers=config.puzzle.excluded_recent_answers,
    )
    return assembler.ensure_game(target_date)


def generate_celebrities(
    config: RogerThatConfig,
    *,
    context: PipelineContext | None = None,
) -> PipelineReport:
    """Run two-phase celebrity bank generation.

    Raises:
        ConfigError: If the bank prompt settings are missing.
        GenerationError: If the celebrity request returned nothing usable.
    """
    context = context or PipelineContext.build(config)
    report = context.bank_generator().run()
    logger.info(report.summary())
    return report


def regenerate_celebrity_image(
    config: RogerThatConfig,
    celebrity_id: int,
    *,
    context: PipelineContext | None = None,
) -> PipelineReport:
    """Force a new image for one celebrity and store a cache-busted URL."""
    context = context or PipelineContext.build(config)
    report = PipelineReport(stage="regenerate-image")
    celebrity = context.store.get_celebrity(celebrity_id)
    if celebrity is None:
        report.record_error(f"celebrity {celebrity_id} not found")
        logger.warning("Celebrity %d not found", celebrity_id)
        return report

    saved = context.image_orchestrator().generate([celebrity], force_regenerate=True)
    path = saved.get(celebrity.id)
    if path is None:
        logger.warning("No image produced for %s (%d)", celebrity.name, celebrity.id)
        report.record_error(f"no image produced for {celebrity.name}")
        return report

    context.store.update_celebrity(celebrity.id, photo_url=f"{path}?v={int(time.time())}")
    report.images = 1
    report.updated = 1
    logger.info("Regenerated image for %s: %s", celebrity.name, path)
    return report


def generate_missing_images(
    config: RogerThatConfig,
    *,
    context: PipelineContext | None = None,
) -> PipelineReport:
    """Generate images for every celebrity without a photo."""
    context = context or PipelineContext.build(config)
    report = PipelineReport(stage="images")
    missing = context.store.list_celebrities(missing_photo=True)
    if not missing:
        logger.info("Every celebrity already has a photo")
        return report

    saved = context.image_orchestrator().generate(missing)
    for celebrity_id, path in saved.items():
        context.store.update_celebrity(celebrity_id, photo_url=path)
        report.images += 1
    report.skipped = len(missing) - report.images
    for celebrity in missing:
        if celebrity.id not in saved:
            report.record_error(f"no image for {celebrity.name}")
    return report


def seed_settings(store: CelebrityStore, *, overwrite: bool = False) -> list[str]:
    """Write default prompt settings; return the keys written."""
    written: list[str] = []
    current = store.settings()
    for key, value in DEFAULT_SETTINGS.items():
        if not overwrite and isinstance(current.get(key), str) and current[key].strip():
            continue
        store.set_setting(key, value)
        written.append(key)
    return written
