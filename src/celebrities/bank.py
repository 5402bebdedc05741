"""Two-phase celebrity bank generation.

1. Ask the model for male celebrities with many public relationships and
   upsert them.
2. Ask for the verified partners of those that have a photo, upsert the
   partners and link them.

The first request is required; a failure there raises.  The second is
best-effort and only logs.
"""

from __future__ import annotations

import logging

from rogerthat.candidates import parse_relationship_group
from rogerthat.celebrities.relationships import RelationshipLinker
from rogerthat.celebrities.upsert import CelebrityUpserter
from rogerthat.config import (
    CELEBRITIES_SYSTEM_PROMPT,
    CELEBRITIES_USER_PROMPT,
    RELATIONSHIPS_SYSTEM_PROMPT,
    RELATIONSHIPS_USER_PROMPT,
    PromptSettings,
)
from rogerthat.prompts import CELEBRITY_NAMES_TOKEN, EXCLUDED_NAMES_TOKEN, format_names
from rogerthat.shared.errors import GenerationError, PipelineReport
from rogerthat.shared.json_repair import extract_json_list
from rogerthat.shared.llm import LLMError, TextGenerator
from rogerthat.store import Celebrity, CelebrityStore, Gender

logger = logging.getLogger(__name__)


class CelebrityBankGenerator:
    """Grow the celebrity and relationship tables from two model requests."""

    def __init__(
        self,
        store: CelebrityStore,
        generator: TextGenerator,
        prompts: PromptSettings,
        upserter: CelebrityUpserter,
        linker: RelationshipLinker,
        model: str,
    ) -> None:
        self.store = store
        self.generator = generator
        self.prompts = prompts
        self.upserter = upserter
        self.linker = linker
        self.model = model

    def run(self) -> PipelineReport:
        """Run both phases and return the counters.

        Raises:
            GenerationError: If the celebrity request fails or returns
                nothing parseable.
        """
        report = PipelineReport(stage="celebrities")
        stats = self.upserter.stats
        created_before, updated_before, skipped_before = stats.created, stats.updated, stats.skipped
        linked_before = self.linker.created

        males = self._generate_celebrities()
        with_photo = [c for c in males if c.has_photo]
        logger.info("%d male celebrities upserted, %d with a photo", len(males), len(with_photo))

        if with_photo:
            self._generate_relationships(with_photo, report)
        else:
            logger.info("No male celebrities with a photo; skipping relationship request")

        report.created = stats.created - created_before
        report.updated = stats.updated - updated_before
        report.skipped = stats.skipped - skipped_before
        report.linked = self.linker.created - linked_before
        return report

    def _generate_celebrities(self) -> list[Celebrity]:
        excluded = [c.name for c in self.store.list_celebrities(Gender.MALE)]
        user_prompt = self.prompts.render(
            CELEBRITIES_USER_PROMPT,
            {EXCLUDED_NAMES_TOKEN: format_names(excluded)},
        )
        try:
            text = self.generator.generate(
                self.prompts.get(CELEBRITIES_SYSTEM_PROMPT), user_prompt, self.model
            )
        except LLMError as exc:
            raise GenerationError(f"Celebrity generation request failed: {exc}") from exc

        items = extract_json_list(text)
        if not items:
            raise GenerationError("Celebrity generation returned no parseable list")

        males: list[Celebrity] = []
        for item in items:
            celebrity = self.upserter.upsert(item, gender=Gender.MALE)
            if celebrity is not None:
                males.append(celebrity)
        return males

    def _generate_relationships(self, males: list[Celebrity], report: PipelineReport) -> None:
        excluded = [c.name for c in self.store.list_celebrities(Gender.FEMALE, missing_photo=True)]
        user_prompt = self.prompts.render(
            RELATIONSHIPS_USER_PROMPT,
            {
                CELEBRITY_NAMES_TOKEN: format_names([c.name for c in males]),
                EXCLUDED_NAMES_TOKEN: format_names(excluded),
            },
        )
        try:
            text = self.generator.generate(
                self.prompts.get(RELATIONSHIPS_SYSTEM_PROMPT), user_prompt, self.model
            )
        except LLMError as exc:
            logger.warning("Relationship request failed: %s", exc)
            report.record_error(f"relationships request failed: {exc}")
            return

        items = extract_json_list(text)
        if not items:
            logger.warning("Relationship request returned no parseable list")
            report.record_error("relationships response was empty or unparseable")
            return

        by_name = {c.name.casefold(): c for c in males}
        for item in items:
            group = parse_relationship_group(item)
            if group is None:
                continue
            answer = by_name.get(group.celebrity_name.casefold()) or self.store.find_celebrity(
                group.celebrity_name, Gender.MALE
            )
            if answer is None:
                logger.debug("Relationship group for unknown celebrity %s", group.celebrity_name)
                continue
            for partner in group.relationships:
                self.linker.link(answer, partner)
