"""JSON-backed store for celebrities, relationships, daily games and settings.

Persists everything in a single JSON file.  Every write operation
re-reads the file first and replaces it atomically afterwards, so jobs
holding separate handles do not drop each other's records.  The store
owns the uniqueness rules the pipeline relies on: one relationship per
unordered pair and one daily game per date.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from datetime import UTC, date, datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from rogerthat.shared.errors import DuplicateGameError, StoreError
from rogerthat.store.models import (
    Celebrity,
    CelebrityRelationship,
    DailyGame,
    GameType,
    Gender,
    Setting,
)

logger = logging.getLogger(__name__)

STORE_FILENAME = ".rogerthat-store.json"


class _StoreData(BaseModel):
    """Internal wrapper for JSON serialization."""

    celebrities: list[Celebrity] = Field(default_factory=list)
    relationships: list[CelebrityRelationship] = Field(default_factory=list)
    games: list[DailyGame] = Field(default_factory=list)
    settings: list[Setting] = Field(default_factory=list)
    next_ids: dict[str, int] = Field(default_factory=dict)


class CelebrityStore:
    """JSON-backed CRUD store.

    Loads the store file on init, reloads it before every mutation and
    saves after it.
    """

    def __init__(self, directory: Path) -> None:
        self._path = directory / STORE_FILENAME
        self._data = self._load()

    @property
    def path(self) -> Path:
        return self._path

    # ── Private helpers ──────────────────────────────────────────

    def _load(self) -> _StoreData:
        if not self._path.exists():
            return _StoreData()
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
            return _StoreData.model_validate(raw)
        except (json.JSONDecodeError, ValueError, KeyError):
            self._quarantine()
            return _StoreData()

    def _quarantine(self) -> None:
        """Move a corrupt store file aside so the next save cannot overwrite it."""
        stamp = datetime.now(tz=UTC).strftime("%Y%m%dT%H%M%S%f")
        target = self._path.with_name(f"{self._path.name}.corrupt-{stamp}")
        try:
            os.replace(self._path, target)
        except OSError as exc:
            raise StoreError(f"Corrupt store at {self._path} could not be moved aside: {exc}") from exc
        logger.warning("Corrupt store at %s moved to %s, starting fresh", self._path, target.name)

    def _refresh(self) -> None:
        self._data = self._load()

    def _save(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f"{self._path.name}.", suffix=".tmp", dir=self._path.parent
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(self._data.model_dump_json(indent=2))
            os.replace(tmp_name, self._path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def _next_id(self, table: str) -> int:
        next_id = self._data.next_ids.get(table, 1)
        self._data.next_ids[table] = next_id + 1
        return next_id

    def _require_celebrity(self, celebrity_id: int) -> Celebrity:
        celebrity = self.get_celebrity(celebrity_id)
        if celebrity is None:
            raise KeyError(celebrity_id)
        return celebrity

    # ── Celebrities ──────────────────────────────────────────────

    def get_celebrity(self, celebrity_id: int) -> Celebrity | None:
        for celebrity in self._data.celebrities:
            if celebrity.id == celebrity_id:
                return celebrity
        return None

    def find_celebrity(self, name: str, gender: Gender | None = None) -> Celebrity | None:
        """Return the first celebrity whose name matches case-insensitively."""
        wanted = name.strip().casefold()
        for celebrity in self._data.celebrities:
            if celebrity.name.casefold() != wanted:
                continue
            if gender is not None and celebrity.gender != gender:
                continue
            return celebrity
        return None

    def find_celebrity_by_name_and_birth_year(self, name: str, birth_year: int) -> Celebrity | None:
        wanted = name.strip().casefold()
        for celebrity in self._data.celebrities:
            if celebrity.name.casefold() == wanted and celebrity.birth_year == birth_year:
                return celebrity
        return None

    def list_celebrities(
        self,
        gender: Gender | None = None,
        *,
        missing_photo: bool = False,
    ) -> list[Celebrity]:
        results = self._data.celebrities
        if gender is not None:
            results = [c for c in results if c.gender == gender]
        if missing_photo:
            results = [c for c in results if not c.has_photo]
        return list(results)

    def create_celebrity(
        self,
        *,
        name: str,
        birth_year: int,
        gender: Gender | str,
        tagline: str | None = None,
        photo_url: str | None = None,
    ) -> Celebrity:
        """Insert a new celebrity.

        Raises StoreError if the attributes fail validation.
        """
        self._refresh()
        try:
            celebrity = Celebrity(
                id=self._next_id("celebrities"),
                name=name.strip(),
                birth_year=birth_year,
                gender=Gender(gender),
                tagline=tagline,
                photo_url=photo_url,
            )
        except (ValidationError, ValueError) as exc:
            raise StoreError(f"Invalid celebrity {name!r}: {exc}") from exc
        self._data.celebrities.append(celebrity)
        self._save()
        return celebrity

    def update_celebrity(self, celebrity_id: int, **changes: Any) -> Celebrity:
        """Apply *changes* to a celebrity and return the updated record.

        Raises KeyError if the id does not exist and StoreError if the
        result fails validation.
        """
        self._refresh()
        existing = self._require_celebrity(celebrity_id)
        data = existing.model_dump()
        data.update(changes)
        data["id"] = existing.id
        data["updated_at"] = datetime.now(tz=UTC)
        try:
            updated = Celebrity.model_validate(data)
        except ValidationError as exc:
            raise StoreError(f"Invalid update for celebrity {celebrity_id}: {exc}") from exc
        self._data.celebrities = [updated if c.id == celebrity_id else c for c in self._data.celebrities]
        self._save()
        return updated

    def delete_celebrity(self, celebrity_id: int) -> None:
        """Delete a celebrity and every relationship that references it.

        Raises KeyError if the id does not exist.
        """
        self._refresh()
        self._require_celebrity(celebrity_id)
        self._data.celebrities = [c for c in self._data.celebrities if c.id != celebrity_id]
        before = len(self._data.relationships)
        self._data.relationships = [
            r for r in self._data.relationships if celebrity_id not in r.pair
        ]
        removed = before - len(self._data.relationships)
        if removed:
            logger.info("Deleted %d relationships of celebrity %d", removed, celebrity_id)
        self._save()

    # ── Relationships ────────────────────────────────────────────

    def find_relationship(self, a_id: int, b_id: int) -> CelebrityRelationship | None:
        """Return the link between *a_id* and *b_id* in either direction."""
        pair = frozenset((a_id, b_id))
        for relationship in self._data.relationships:
            if relationship.pair == pair:
                return relationship
        return None

    def create_relationship_if_absent(
        self,
        celebrity_1_id: int,
        celebrity_2_id: int,
        citation: str | None = None,
    ) -> tuple[CelebrityRelationship, bool]:
        """Create a link unless one exists for the unordered pair.

        Returns ``(relationship, created)``.  An existing link gains the
        citation if it had none.  Raises StoreError for self-links and
        KeyError for unknown ids.
        """
        self._refresh()
        if celebrity_1_id == celebrity_2_id:
            raise StoreError(f"Celebrity {celebrity_1_id} cannot be linked to itself")
        self._require_celebrity(celebrity_1_id)
        self._require_celebrity(celebrity_2_id)

        existing = self.find_relationship(celebrity_1_id, celebrity_2_id)
        if existing is not None:
            if citation and not existing.citation:
                existing.citation = citation
                self._save()
            return existing, False

        relationship = CelebrityRelationship(
            id=self._next_id("relationships"),
            celebrity_1_id=celebrity_1_id,
            celebrity_2_id=celebrity_2_id,
            citation=citation,
        )
        self._data.relationships.append(relationship)
        self._save()
        return relationship, True

    def relationships_for(self, celebrity_id: int) -> list[CelebrityRelationship]:
        return [r for r in self._data.relationships if celebrity_id in r.pair]

    def partners_of(self, celebrity_id: int) -> list[Celebrity]:
        partners: list[Celebrity] = []
        for relationship in self.relationships_for(celebrity_id):
            partner = self.get_celebrity(relationship.other(celebrity_id))
            if partner is not None:
                partners.append(partner)
        return partners

    def relationship_count(self) -> int:
        return len(self._data.relationships)

    # ── Daily games ──────────────────────────────────────────────

    def get_game(self, game_date: date) -> DailyGame | None:
        for game in self._data.games:
            if game.game_date == game_date:
                return game
        return None

    def list_games(self) -> list[DailyGame]:
        return sorted(self._data.games, key=lambda g: g.game_date)

    def create_game(
        self,
        *,
        game_date: date,
        answer_id: int,
        subject_ids: list[int],
        game_type: GameType = GameType.GUESS_CONNECTION,
    ) -> DailyGame:
        """Insert the game for *game_date*.

        Raises DuplicateGameError if the date already has a game and
        StoreError if the subjects are not exactly four distinct ids.
        """
        self._refresh()
        if self.get_game(game_date) is not None:
            raise DuplicateGameError(f"A game already exists for {game_date.isoformat()}")
        try:
            game = DailyGame(
                id=self._next_id("games"),
                game_date=game_date,
                answer_id=answer_id,
                subject_ids=subject_ids,
                type=game_type,
            )
        except ValidationError as exc:
            raise StoreError(f"Invalid game for {game_date.isoformat()}: {exc}") from exc
        self._data.games.append(game)
        self._save()
        return game

    def recent_answer_names(self, before: date, limit: int = 30) -> list[str]:
        """Names of the most recent distinct answers before *before*, newest first."""
        names: list[str] = []
        for game in sorted(self._data.games, key=lambda g: g.game_date, reverse=True):
            if game.game_date >= before:
                continue
            answer = self.get_celebrity(game.answer_id)
            if answer is None or answer.name in names:
                continue
            names.append(answer.name)
            if len(names) >= limit:
                break
        return names

    # ── Settings ─────────────────────────────────────────────────

    def get_setting(self, key: str, default: Any = None) -> Any:
        for setting in self._data.settings:
            if setting.key == key:
                return setting.value
        return default

    def set_setting(self, key: str, value: Any) -> None:
        self._refresh()
        self._data.settings = [s for s in self._data.settings if s.key != key]
        self._data.settings.append(Setting(key=key, value=value))
        self._save()

    def settings(self) -> dict[str, Any]:
        return {s.key: s.value for s in self._data.settings}
