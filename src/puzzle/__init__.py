"""Daily puzzle assembly and the strategies that propose puzzles."""

from rogerthat.puzzle.assembler import PuzzleAssembler
from rogerthat.puzzle.strategies import CombinedPuzzleStrategy, LegacyBankStrategy, PuzzleStrategy

__all__ = ["CombinedPuzzleStrategy", "LegacyBankStrategy", "PuzzleAssembler", "PuzzleStrategy"]
