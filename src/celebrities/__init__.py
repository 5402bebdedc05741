"""Celebrity upserts, relationship links and bank generation."""

from rogerthat.celebrities.bank import CelebrityBankGenerator
from rogerthat.celebrities.relationships import RelationshipLinker
from rogerthat.celebrities.upsert import CelebrityUpserter, UpsertStats

__all__ = [
    "CelebrityBankGenerator",
    "CelebrityUpserter",
    "RelationshipLinker",
    "UpsertStats",
]
