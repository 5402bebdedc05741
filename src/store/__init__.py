"""Persistence: celebrity, relationship, daily game and settings records."""

from rogerthat.store.models import (
    Celebrity,
    CelebrityRelationship,
    DailyGame,
    GameType,
    Gender,
    Setting,
)
from rogerthat.store.store import STORE_FILENAME, CelebrityStore

__all__ = [
    "STORE_FILENAME",
    "Celebrity",
    "CelebrityRelationship",
    "CelebrityStore",
    "DailyGame",
    "GameType",
    "Gender",
    "Setting",
]
