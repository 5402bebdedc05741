"""Link an answer celebrity to a partner, creating the partner if needed."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from rogerthat.candidates import CelebrityCandidate, parse_partner_candidate
from rogerthat.celebrities.upsert import CelebrityUpserter
from rogerthat.shared.errors import StoreError
from rogerthat.store import Celebrity, CelebrityStore

logger = logging.getLogger(__name__)


class RelationshipLinker:
    """Creates undirected relationship rows, at most one per pair."""

    def __init__(self, store: CelebrityStore, upserter: CelebrityUpserter) -> None:
        self.store = store
        self.upserter = upserter
        self.created = 0

    def link(
        self,
        answer: Celebrity,
        partner: CelebrityCandidate | Mapping[str, Any],
        citation: str | None = None,
    ) -> bool:
        """Upsert *partner* and link it to *answer*.

        The partner's photo is only looked up when it has none.  Returns
        True when a new relationship row was created.
        """
        if not isinstance(partner, CelebrityCandidate):
            parsed = parse_partner_candidate(partner)
            if parsed is None:
                logger.debug("Skipping unusable partner record for %s: %r", answer.name, partner)
                self.upserter.stats.skipped += 1
                return False
            partner = parsed

        if partner.name.casefold() == answer.name.casefold():
            logger.warning("Refusing to link %s to itself", answer.name)
            return False

        stored = self.upserter.upsert(partner, refresh_photo=False)
        if stored is None:
            return False
        return self.link_ids(answer.id, stored.id, citation or partner.citation)

    def link_ids(self, a_id: int, b_id: int, citation: str | None = None) -> bool:
        """Link two stored celebrities; False for self-links and existing pairs."""
        if a_id == b_id:
            return False
        try:
            _, created = self.store.create_relationship_if_absent(a_id, b_id, citation)
        except (StoreError, KeyError) as exc:
            logger.warning("Could not link %s and %s: %s", a_id, b_id, exc)
            return False
        if created:
            self.created += 1
            logger.debug("Linked celebrities %d and %d", a_id, b_id)
        return created
