"""Unified configuration loaded from .rogerthat.toml, env vars, and CLI flags.

Loading order: defaults → TOML file → env vars → CLI flags.

Prompt text is not part of this file: it lives in the store's settings
table and is assembled into :class:`PromptSettings` once per run.
"""

from __future__ import annotations

import logging
import os
import sys
import tomllib
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, model_validator

from rogerthat.shared.errors import ConfigError

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".rogerthat.toml"
CONFIG_SEARCH_PATHS = [
    Path("."),
]
GLOBAL_CONFIG = Path.home() / ".config" / "rogerthat" / "config.toml"


class LLMSectionConfig(BaseModel):
    """[llm] section."""

    provider: str = "auto"  # auto | anthropic | openai | cli
    model: str = "claude-haiku-4-5-20251001"
    timeout: int = 120
    max_tokens: int = 10000


class StorageSectionConfig(BaseModel):
    """[storage] section."""

    directory: str = "./data"


class ImagesSectionConfig(BaseModel):
    """[images] section."""

    output_dir: str = "./data/public/celebrities"
    public_prefix: str = "celebrities"
    command: list[str] = Field(
        default_factory=lambda: [sys.executable, "-m", "rogerthat.images.caricatures"]
    )
    timeout: int = 300
    max_attempts: int = 4
    variant_switch_attempt: int = 3
    pause_seconds: float = 15.0
    image_model: str = "gemini-3-pro-image-preview"

    @model_validator(mode="after")
    def _check_attempts(self) -> ImagesSectionConfig:
        if self.max_attempts < 1:
            raise ValueError("images.max_attempts must be at least 1")
        return self


class PuzzleSectionConfig(BaseModel):
    """[puzzle] section."""

    strategy: str = "combined"  # combined | legacy
    answer_gender: str = "male"
    min_birth_year: int = 1900
    max_birth_year: int = 2010
    excluded_recent_answers: int = 30
    timezone: str = "UTC"

    @model_validator(mode="after")
    def _check_years(self) -> PuzzleSectionConfig:
        if self.min_birth_year > self.max_birth_year:
            raise ValueError("puzzle.min_birth_year must not exceed puzzle.max_birth_year")
        return self


class WikipediaSectionConfig(BaseModel):
    """[wikipedia] section."""

    user_agent: str = "RogerThat/1.0 (https://roger-that.test)"
    timeout: float = 5.0
    download_timeout: float = 15.0


class RogerThatConfig(BaseModel):
    """Top-level configuration model for the content pipeline."""

    llm: LLMSectionConfig = Field(default_factory=LLMSectionConfig)
    storage: StorageSectionConfig = Field(default_factory=StorageSectionConfig)
    images: ImagesSectionConfig = Field(default_factory=ImagesSectionConfig)
    puzzle: PuzzleSectionConfig = Field(default_factory=PuzzleSectionConfig)
    wikipedia: WikipediaSectionConfig = Field(default_factory=WikipediaSectionConfig)

    @property
    def storage_dir(self) -> Path:
        return Path(self.storage.directory)

    @property
    def images_dir(self) -> Path:
        return Path(self.images.output_dir)


# ---------------------------------------------------------------------------
# Prompt settings (key -> JSON value rows)
# ---------------------------------------------------------------------------

CELEBRITIES_SYSTEM_PROMPT = "CELEBRITIES_SYSTEM_PROMPT"
CELEBRITIES_USER_PROMPT = "CELEBRITIES_USER_PROMPT"
RELATIONSHIPS_SYSTEM_PROMPT = "CELEBRITIES_RELATIONSHIPS_SYSTEM_PROMPT"
RELATIONSHIPS_USER_PROMPT = "CELEBRITIES_RELATIONSHIPS_USER_PROMPT"
PUZZLE_SYSTEM_PROMPT = "DAILY_GAME_SYSTEM_PROMPT"
PUZZLE_USER_PROMPT = "DAILY_GAME_USER_PROMPT"

BANK_PROMPT_KEYS: tuple[str, ...] = (
    CELEBRITIES_SYSTEM_PROMPT,
    CELEBRITIES_USER_PROMPT,
    RELATIONSHIPS_SYSTEM_PROMPT,
    RELATIONSHIPS_USER_PROMPT,
)
PUZZLE_PROMPT_KEYS: tuple[str, ...] = (PUZZLE_SYSTEM_PROMPT, PUZZLE_USER_PROMPT)


class PromptSettings(BaseModel):
    """Prompt text for one run, read from the settings table."""

    values: dict[str, str] = Field(default_factory=dict)

    @classmethod
    def from_settings(
        cls,
        settings: dict[str, Any],
        required: tuple[str, ...],
    ) -> PromptSettings:
        """Assemble prompts, failing fast on missing or empty keys.

        Raises:
            ConfigError: If any *required* key is missing or empty.
        """
        values: dict[str, str] = {}
        missing: list[str] = []
        for key in required:
            value = settings.get(key)
            if not isinstance(value, str) or not value.strip():
                missing.append(key)
                continue
            values[key] = value
        if missing:
            raise ConfigError(
                f"Missing or empty prompt settings: {', '.join(missing)}. "
                "Run `rogerthat settings seed`."
            )
        return cls(values=values)

    def get(self, key: str) -> str:
        return self.values[key]

    def render(self, key: str, replacements: dict[str, str]) -> str:
        """Return the prompt for *key* with ``[PLACEHOLDER]`` tokens replaced."""
        text = self.values[key]
        for token, value in replacements.items():
            text = text.replace(token, value)
        return text


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


def load_config(path: str | Path | None = None) -> RogerThatConfig:
    """Load configuration from a TOML file.

    Search order:
    1. Explicit path (if provided)
    2. .rogerthat.toml in CWD
    3. ~/.config/rogerthat/config.toml

    Then overlay environment variables.

    Args:
        path: Explicit path to a TOML file.

    Returns:
        Merged RogerThatConfig.

    Raises:
        ConfigError: If the merged values fail validation.
    """
    data: dict[str, object] = {}

    if path is not None:
        toml_path = Path(path)
        if toml_path.exists():
            data = _load_toml(toml_path)
        else:
            logger.warning("Config file not found: %s", toml_path)
    else:
        for search_dir in CONFIG_SEARCH_PATHS:
            candidate = search_dir / CONFIG_FILENAME
            if candidate.exists():
                data = _load_toml(candidate)
                logger.info("Loaded config from %s", candidate)
                break
        if not data and GLOBAL_CONFIG.exists():
            data = _load_toml(GLOBAL_CONFIG)
            logger.info("Loaded config from %s", GLOBAL_CONFIG)

    try:
        config = RogerThatConfig.model_validate(data) if data else RogerThatConfig()
        return _apply_env_vars(config)
    except ValueError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc


def merge_cli_overrides(config: RogerThatConfig, **cli_kwargs: object) -> RogerThatConfig:
    """Overlay explicitly-set CLI flags onto the config.

    Only overrides values where the CLI flag was explicitly provided
    (i.e., not None).
    """
    data = config.model_dump()

    mapping: dict[str, tuple[str, str]] = {
        "model": ("llm", "model"),
        "provider": ("llm", "provider"),
        "storage_dir": ("storage", "directory"),
        "images_dir": ("images", "output_dir"),
        "strategy": ("puzzle", "strategy"),
    }

    for key, value in cli_kwargs.items():
        if value is None:
            continue
        if key in mapping:
            section, field = mapping[key]
            data[section][field] = value

    return RogerThatConfig.model_validate(data)


def _load_toml(path: Path) -> dict[str, object]:
    """Load a TOML file and return the data dict."""
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except (tomllib.TOMLDecodeError, OSError) as exc:
        logger.warning("Failed to parse %s: %s", path, exc)
        return {}


def _apply_env_vars(config: RogerThatConfig) -> RogerThatConfig:
    """Apply environment variable overrides to config."""
    data = config.model_dump()

    env_mapping: dict[str, tuple[str, str]] = {
        "ANTHROPIC_MODEL": ("llm", "model"),
        "ROGERTHAT_LLM_PROVIDER": ("llm", "provider"),
        "ROGERTHAT_STORAGE_DIR": ("storage", "directory"),
        "ROGERTHAT_IMAGES_DIR": ("images", "output_dir"),
        "ROGERTHAT_PUZZLE_STRATEGY": ("puzzle", "strategy"),
        "ROGERTHAT_TIMEZONE": ("puzzle", "timezone"),
        "ROGERTHAT_USER_AGENT": ("wikipedia", "user_agent"),
        "IMAGE_MODEL": ("images", "image_model"),
    }

    for env_var, (section, field) in env_mapping.items():
        value = os.environ.get(env_var)
        if value is not None:
            data[section][field] = value

    # Non-string types
    timeout_raw = os.environ.get("ROGERTHAT_LLM_TIMEOUT")
    if timeout_raw is not None:
        data["llm"]["timeout"] = int(timeout_raw)
    command_raw = os.environ.get("ROGERTHAT_IMAGE_COMMAND")
    if command_raw is not None:
        data["images"]["command"] = command_raw.split()
    max_year_raw = os.environ.get("ROGERTHAT_MAX_BIRTH_YEAR")
    if max_year_raw is not None:
        data["puzzle"]["max_birth_year"] = int(max_year_raw)

    return RogerThatConfig.model_validate(data)
