"""Retrying caricature generation with a Wikipedia photo fallback.

One process call per attempt covers the whole pending batch.  Attempts
before ``variant_switch_attempt`` use prompt variant 1, the rest use
variant 2, and a single pause precedes the first variant-2 attempt.
Whatever is still missing after the last attempt falls back to the
celebrity's Wikipedia page image.

The orchestrator never writes to the store: it returns a map of
celebrity id to relative image path and the caller applies it.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Any

from rogerthat.images.runner import CaricatureScriptRunner, ImageBatchResult
from rogerthat.store import Celebrity
from rogerthat.wikipedia import IMAGE_EXTENSIONS, WikipediaClient, slugify

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 4
VARIANT_SWITCH_ATTEMPT = 3
PAUSE_SECONDS = 15.0


def _result_key(item: dict[str, Any]) -> tuple[str, int] | None:
    name = item.get("name")
    birth_year = item.get("birth_year")
    if not isinstance(name, str) or not name or birth_year is None:
        return None
    try:
        return (name, int(birth_year))
    except (TypeError, ValueError):
        return None


class ImageOrchestrator:
    def __init__(
        self,
        runner: CaricatureScriptRunner,
        output_dir: Path,
        *,
        fallback: WikipediaClient | None = None,
        public_prefix: str = "celebrities",
        max_attempts: int = MAX_ATTEMPTS,
        variant_switch_attempt: int = VARIANT_SWITCH_ATTEMPT,
        pause_seconds: float = PAUSE_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.runner = runner
        self.output_dir = output_dir
        self.fallback = fallback or WikipediaClient()
        self.public_prefix = public_prefix
        self.max_attempts = max_attempts
        self.variant_switch_attempt = variant_switch_attempt
        self.pause_seconds = pause_seconds
        self.sleep = sleep

    def prompt_variant(self, attempt: int) -> int:
        return 1 if attempt < self.variant_switch_attempt else 2

    def generate(
        self,
        celebrities: Iterable[Celebrity],
        *,
        force_regenerate: bool = False,
    ) -> dict[int, str]:
        """Produce an image for each celebrity where possible.

        Args:
            celebrities: Stored celebrities to illustrate.
            force_regenerate: Delete existing image files first so the
                process cannot skip them.

        Returns:
            Celebrity id -> relative path for every image saved.
        """
        by_key: dict[tuple[str, int], Celebrity] = {}
        for celebrity in celebrities:
            by_key.setdefault(celebrity.key, celebrity)
        if not by_key:
            return {}

        if force_regenerate:
            for celebrity in by_key.values():
                self._delete_existing(celebrity)

        saved: dict[int, str] = {}
        pending = list(by_key.values())
        attempt = 0
        last_success = True

        while pending and attempt < self.max_attempts:
            attempt += 1
            if attempt == self.variant_switch_attempt and attempt > 1:
                logger.info("Waiting %ss before attempt %d", self.pause_seconds, attempt)
                self.sleep(self.pause_seconds)

            variant = self.prompt_variant(attempt)
            logger.info(
                "Caricature attempt %d (variant %d) for %d celebrities: %s",
                attempt,
                variant,
                len(pending),
                ", ".join(c.name for c in pending),
            )
            result = self._run_batch(pending, variant)
            last_success = result.success

            applied = self._apply(result, by_key, saved)
            pending = [c for c in pending if c.id not in saved]
            logger.info(
                "Attempt %d applied %d, %d still missing", attempt, applied, len(pending)
            )
            for item in result.failed:
                logger.debug("Caricature failed for %s: %s", item.get("name"), item.get("error"))

        if pending and attempt >= self.max_attempts:
            logger.warning(
                "Caricature attempts exhausted, still missing: %s",
                ", ".join(c.name for c in pending),
            )
        if not last_success:
            logger.warning("Caricature process exited with an error; partial results were applied")

        for celebrity in pending:
            path = self.fallback.fetch_page_image(celebrity.name, self.output_dir, self.public_prefix)
            if path is None:
                logger.warning("No Wikipedia image for %s", celebrity.name)
                continue
            logger.info("Saved Wikipedia image for %s at %s", celebrity.name, path)
            saved[celebrity.id] = path

        return saved

    def _run_batch(self, pending: list[Celebrity], variant: int) -> ImageBatchResult:
        batch = [
            {"name": c.name, "birth_year": c.birth_year, "tagline": c.tagline or ""}
            for c in pending
        ]
        return self.runner.run(batch, self.output_dir, variant, self.public_prefix)

    def _apply(
        self,
        result: ImageBatchResult,
        by_key: dict[tuple[str, int], Celebrity],
        saved: dict[int, str],
    ) -> int:
        applied = 0
        for item in result.generated:
            key = _result_key(item)
            path = item.get("path")
            if key is None or not isinstance(path, str) or not path:
                continue
            celebrity = by_key.get(key)
            if celebrity is None:
                logger.debug("Ignoring result for unknown celebrity %s", key)
                continue
            saved[celebrity.id] = path
            applied += 1
        return applied

    def _delete_existing(self, celebrity: Celebrity) -> None:
        slug = slugify(celebrity.name)
        for ext in IMAGE_EXTENSIONS:
            path = self.output_dir / f"{slug}.{ext}"
            if path.is_file():
                path.unlink()
                logger.info("Deleted existing image %s for regeneration", path.name)
