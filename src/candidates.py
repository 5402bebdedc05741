"""Candidate records decoded from model output.

Model JSON is untrusted: every record is validated field by field here
and turned into a small tagged type, or dropped.  Nothing downstream
looks at the raw dicts.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from typing import Any, Literal

from pydantic import BaseModel, Field

from rogerthat.store.models import Gender

logger = logging.getLogger(__name__)

REQUIRED_FIELDS: tuple[str, ...] = ("name", "birth_year", "gender", "tagline")
PARTNER_REQUIRED_FIELDS: tuple[str, ...] = ("name", "birth_year")

_WHITESPACE_RE = re.compile(r"\s+")


class CelebrityCandidate(BaseModel):
    """A person the model proposed, not yet persisted."""

    kind: Literal["celebrity"] = "celebrity"
    name: str
    birth_year: int
    gender: Gender
    tagline: str | None = None
    citation: str | None = None


class RelationshipGroup(BaseModel):
    """One celebrity and the raw partner records the model listed for them."""

    kind: Literal["relationship_group"] = "relationship_group"
    celebrity_name: str
    relationships: list[dict[str, Any]] = Field(default_factory=list)


class PuzzleCandidate(BaseModel):
    """Validated answer plus its four partners for one daily game."""

    kind: Literal["puzzle"] = "puzzle"
    answer: CelebrityCandidate
    relationships: list[CelebrityCandidate]


Candidate = CelebrityCandidate | RelationshipGroup | PuzzleCandidate


def is_blank(value: Any) -> bool:
    """True for values a model uses to mean "missing"."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, bool):
        return not value
    if isinstance(value, int | float):
        return value == 0
    if isinstance(value, list | dict):
        return not value
    return False


def missing_fields(item: Mapping[str, Any], required: tuple[str, ...] = REQUIRED_FIELDS) -> list[str]:
    return [key for key in required if is_blank(item.get(key))]


def normalize_tagline(value: Any) -> str | None:
    """Collapse whitespace; empty becomes ``None``."""
    if value is None:
        return None
    text = _WHITESPACE_RE.sub(" ", str(value)).strip()
    return text or None


def coerce_birth_year(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def coerce_gender(value: Any) -> Gender | None:
    if not isinstance(value, str):
        return None
    try:
        return Gender(value.strip().lower())
    except ValueError:
        return None


def parse_celebrity_candidate(
    item: Any,
    *,
    required: tuple[str, ...] = REQUIRED_FIELDS,
    default_gender: Gender | None = None,
) -> CelebrityCandidate | None:
    """Validate one decoded record; return ``None`` if it must be skipped."""
    if not isinstance(item, Mapping):
        return None

    missing = missing_fields(item, required)
    if missing:
        logger.debug("Skipping candidate %r: missing %s", item.get("name"), ", ".join(missing))
        return None

    birth_year = coerce_birth_year(item.get("birth_year"))
    if birth_year is None:
        logger.debug("Skipping candidate %r: bad birth_year %r", item.get("name"), item.get("birth_year"))
        return None

    gender = coerce_gender(item.get("gender")) or default_gender
    if gender is None:
        logger.debug("Skipping candidate %r: bad gender %r", item.get("name"), item.get("gender"))
        return None

    citation = item.get("citation")
    return CelebrityCandidate(
        name=str(item["name"]).strip(),
        birth_year=birth_year,
        gender=gender,
        tagline=normalize_tagline(item.get("tagline")),
        citation=citation.strip() if isinstance(citation, str) and citation.strip() else None,
    )


def parse_partner_candidate(item: Any) -> CelebrityCandidate | None:
    """Lenient parse for partner records from the relationships request.

    Accepts ``partner_name`` for the name, defaults gender to female and
    allows a missing tagline.
    """
    if not isinstance(item, Mapping):
        return None
    record = dict(item)
    if is_blank(record.get("name")) and not is_blank(record.get("partner_name")):
        record["name"] = record["partner_name"]
    return parse_celebrity_candidate(
        record,
        required=PARTNER_REQUIRED_FIELDS,
        default_gender=Gender.FEMALE,
    )


def parse_relationship_group(item: Any) -> RelationshipGroup | None:
    """Accepts ``celebrity_name`` or ``name``, and ``relationships`` or ``partners``."""
    if not isinstance(item, Mapping):
        return None
    name = str(item.get("celebrity_name") or item.get("name") or "").strip()
    relationships = item.get("relationships")
    if relationships is None:
        relationships = item.get("partners", [])
    if not name or not isinstance(relationships, list):
        return None
    return RelationshipGroup(
        celebrity_name=name,
        relationships=[dict(r) for r in relationships if isinstance(r, Mapping)],
    )
