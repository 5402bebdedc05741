"""Roger That: AI content pipeline for a daily celebrity trivia game."""

__version__ = "0.1.0"
