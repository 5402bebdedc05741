"""Create-or-update celebrity records from model candidates."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from rogerthat.candidates import REQUIRED_FIELDS, CelebrityCandidate, parse_celebrity_candidate
from rogerthat.shared.errors import StoreError
from rogerthat.store import Celebrity, CelebrityStore, Gender
from rogerthat.wikipedia import WikipediaClient

logger = logging.getLogger(__name__)

ThumbnailLookup = Callable[[str], "str | None"]


@dataclass
class UpsertStats:
    created: int = 0
    updated: int = 0
    skipped: int = 0


class CelebrityUpserter:
    """Upsert candidates into the store, enriching them with a photo URL.

    Existing records are matched by name (case-insensitive).  On update
    the birth year always takes the new value, the photo takes the new
    lookup result when there is one, and the tagline is only filled in
    when the stored one is empty.
    """

    def __init__(
        self,
        store: CelebrityStore,
        thumbnail_lookup: ThumbnailLookup | None = None,
    ) -> None:
        self.store = store
        self.thumbnail_lookup = thumbnail_lookup or WikipediaClient().fetch_thumbnail_url
        self.stats = UpsertStats()

    def lookup_photo(self, name: str) -> str | None:
        """Best-effort photo lookup; never raises."""
        try:
            return self.thumbnail_lookup(name)
        except Exception:
            logger.warning("Photo lookup failed for %s", name, exc_info=True)
            return None

    def _coerce(
        self,
        candidate: CelebrityCandidate | Mapping[str, Any],
        required: tuple[str, ...],
    ) -> CelebrityCandidate | None:
        if isinstance(candidate, CelebrityCandidate):
            return candidate
        return parse_celebrity_candidate(candidate, required=required)

    def upsert(
        self,
        candidate: CelebrityCandidate | Mapping[str, Any],
        *,
        gender: Gender | None = None,
        refresh_photo: bool = True,
        required: tuple[str, ...] = REQUIRED_FIELDS,
    ) -> Celebrity | None:
        """Create or update one celebrity; return ``None`` if it was skipped.

        Args:
            candidate: A validated candidate or a raw decoded record.
            gender: Only accept candidates of this gender.
            refresh_photo: Look up a photo even when one is stored.  When
                False a lookup happens only for records without a photo.
            required: Fields a raw record must carry.
        """
        parsed = self._coerce(candidate, required)
        if parsed is None:
            self.stats.skipped += 1
            return None
        if gender is not None and parsed.gender != gender:
            logger.debug("Skipping %s: gender %s, wanted %s", parsed.name, parsed.gender, gender)
            self.stats.skipped += 1
            return None

        existing = self.store.find_celebrity(parsed.name)
        try:
            if existing is None:
                return self._create(parsed)
            return self._update(existing, parsed, refresh_photo=refresh_photo)
        except StoreError as exc:
            logger.warning("Skipping %s: %s", parsed.name, exc)
            self.stats.skipped += 1
            return None

    def upsert_by_identity(self, candidate: CelebrityCandidate) -> Celebrity:
        """Upsert matching on name *and* birth year.

        Keeps two people who share a common name apart.  An existing
        match only gains a missing tagline or photo.

        Raises:
            StoreError: If the candidate cannot be stored.
        """
        existing = self.store.find_celebrity_by_name_and_birth_year(candidate.name, candidate.birth_year)
        if existing is None:
            return self._create(candidate)

        changes: dict[str, Any] = {}
        if not existing.tagline and candidate.tagline:
            changes["tagline"] = candidate.tagline
        if not existing.has_photo:
            photo_url = self.lookup_photo(existing.name)
            if photo_url:
                changes["photo_url"] = photo_url
        self.stats.updated += 1
        if not changes:
            return existing
        return self.store.update_celebrity(existing.id, **changes)

    def _create(self, candidate: CelebrityCandidate) -> Celebrity:
        photo_url = self.lookup_photo(candidate.name)
        celebrity = self.store.create_celebrity(
            name=candidate.name,
            birth_year=candidate.birth_year,
            gender=candidate.gender,
            tagline=candidate.tagline,
            photo_url=photo_url,
        )
        self.stats.created += 1
        logger.info("Created celebrity %s (%d)", celebrity.name, celebrity.birth_year)
        return celebrity

    def _update(
        self,
        existing: Celebrity,
        candidate: CelebrityCandidate,
        *,
        refresh_photo: bool,
    ) -> Celebrity:
        photo_url = existing.photo_url
        if refresh_photo or not existing.has_photo:
            photo_url = self.lookup_photo(existing.name) or existing.photo_url

        changes: dict[str, Any] = {}
        if candidate.birth_year != existing.birth_year:
            changes["birth_year"] = candidate.birth_year
        if photo_url != existing.photo_url:
            changes["photo_url"] = photo_url
        if not existing.tagline and candidate.tagline:
            changes["tagline"] = candidate.tagline

        self.stats.updated += 1
        if not changes:
            return existing
        logger.info("Updated celebrity %s: %s", existing.name, ", ".join(sorted(changes)))
        return self.store.update_celebrity(existing.id, **changes)
