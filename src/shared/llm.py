"""Text generation client.

Centralizes all language-model calls behind one ``generate`` contract
with three backends:
1. Anthropic API (preferred, uses ANTHROPIC_API_KEY)
2. OpenAI API (explicit ``openai`` provider, uses OPENAI_API_KEY)
3. Subprocess ``claude -p`` (fallback when no API key is configured)
"""

from __future__ import annotations

import logging
import os
import subprocess
from typing import Protocol

import anthropic
import openai

from rogerthat.shared.errors import RogerThatError

logger = logging.getLogger(__name__)


class LLMError(RogerThatError):
    """Base error for text generation calls."""


class EmptyResponseError(LLMError):
    """The upstream answered but returned no usable text."""


class TextGenerator(Protocol):
    """Anything that turns a system + user prompt into raw model text."""

    def generate(self, system_prompt: str, user_prompt: str, model: str) -> str: ...


# ---------------------------------------------------------------------------
# Model name mapping
# ---------------------------------------------------------------------------

_MODEL_MAP: dict[str, str] = {
    "sonnet": "claude-sonnet-4-6",
    "haiku": "claude-haiku-4-5-20251001",
    "opus": "claude-opus-4-6",
}

DEFAULT_MODEL = "claude-haiku-4-5-20251001"


def resolve_model(model: str | None) -> str:
    """Resolve a short model name to an API model ID."""
    if not model:
        return DEFAULT_MODEL
    return _MODEL_MAP.get(model, model)


# ---------------------------------------------------------------------------
# Anthropic API
# ---------------------------------------------------------------------------


class AnthropicTextGenerator:
    """Call Claude via the Anthropic Messages API."""

    def __init__(
        self,
        *,
        api_key: str | None = None,
        timeout: int = 120,
        max_tokens: int = 10000,
        client: object | None = None,
    ) -> None:
        self.timeout = timeout
        self.max_tokens = max_tokens
        self._api_key = api_key
        self._client = client

    def _get_client(self) -> object:
        """Lazy-create and cache the Anthropic client."""
        if self._client is None:
            api_key = (self._api_key or os.environ.get("ANTHROPIC_API_KEY", "")).strip()
            if not api_key:
                raise LLMError("ANTHROPIC_API_KEY not set")
            self._client = anthropic.Anthropic(api_key=api_key, timeout=self.timeout)
        return self._client

    def generate(self, system_prompt: str, user_prompt: str, model: str) -> str:
        resolved_model = resolve_model(model)
        logger.debug("Calling Anthropic API model=%s", resolved_model)

        kwargs: dict[str, object] = {
            "model": resolved_model,
            "max_tokens": self.max_tokens,
            "messages": [{"role": "user", "content": user_prompt}],
        }
        if system_prompt.strip():
            kwargs["system"] = system_prompt

        try:
            response = self._get_client().messages.create(**kwargs)  # type: ignore[attr-defined]
        except LLMError:
            raise
        except anthropic.APITimeoutError as exc:
            raise LLMError(f"Anthropic API timed out after {self.timeout}s") from exc
        except Exception as exc:
            raise LLMError(f"Anthropic API failed: {exc}") from exc

        text_parts: list[str] = []
        for block in response.content:
            if getattr(block, "type", "") == "text":
                text_parts.append(block.text)

        result = "".join(text_parts).strip()
        if not result:
            logger.warning(
                "Anthropic response had no text blocks (content_block_count=%d)",
                len(response.content),
            )
            raise EmptyResponseError("Anthropic response had no text blocks")
        return result


# ---------------------------------------------------------------------------
# OpenAI API
# ---------------------------------------------------------------------------

DEFAULT_OPENAI_MODEL = "gpt-4.1-mini"


class OpenAITextGenerator:
    """Call an OpenAI chat model via the Chat Completions API.

    Claude model names (short or full) are replaced by the OpenAI default
    so one ``[llm] model`` setting can serve both providers.
    """

    def __init__(
        self,
        *,
        api_key: str | None = None,
        default_model: str | None = None,
        timeout: int = 120,
        max_tokens: int = 10000,
        client: object | None = None,
    ) -> None:
        self.timeout = timeout
        self.max_tokens = max_tokens
        self.default_model = default_model or os.environ.get("OPENAI_MODEL") or DEFAULT_OPENAI_MODEL
        self._api_key = api_key
        self._client = client

    def _get_client(self) -> object:
        if self._client is None:
            api_key = (self._api_key or os.environ.get("OPENAI_API_KEY", "")).strip()
            if not api_key:
                raise LLMError("OPENAI_API_KEY not set")
            self._client = openai.OpenAI(api_key=api_key, timeout=self.timeout)
        return self._client

    def resolve(self, model: str | None) -> str:
        if not model or model in _MODEL_MAP or model.startswith("claude"):
            return self.default_model
        return model

    def generate(self, system_prompt: str, user_prompt: str, model: str) -> str:
        resolved_model = self.resolve(model)
        logger.debug("Calling OpenAI API model=%s", resolved_model)

        messages: list[dict[str, str]] = []
        if system_prompt.strip():
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": user_prompt})

        try:
            response = self._get_client().chat.completions.create(  # type: ignore[attr-defined]
                model=resolved_model,
                messages=messages,
                max_completion_tokens=self.max_tokens,
            )
        except LLMError:
            raise
        except openai.APITimeoutError as exc:
            raise LLMError(f"OpenAI API timed out after {self.timeout}s") from exc
        except Exception as exc:
            raise LLMError(f"OpenAI API failed: {exc}") from exc

        choices = getattr(response, "choices", None) or []
        text = (choices[0].message.content or "").strip() if choices else ""
        if not text:
            raise EmptyResponseError("OpenAI response had no message content")
        return text


# ---------------------------------------------------------------------------
# Subprocess fallback
# ---------------------------------------------------------------------------


class ClaudeCliTextGenerator:
    """Call Claude via subprocess (``claude -p``)."""

    def __init__(self, *, timeout: int = 120, executable: str = "claude") -> None:
        self.timeout = timeout
        self.executable = executable

    def generate(self, system_prompt: str, user_prompt: str, model: str) -> str:
        cmd = [self.executable, "-p"]
        if model:
            cmd.extend(["--model", model])

        full_prompt = f"{system_prompt}\n\n{user_prompt}"

        # Filter CLAUDECODE env var to prevent recursive Claude invocations
        env = {k: v for k, v in os.environ.items() if k != "CLAUDECODE"}

        logger.debug("Calling Claude CLI subprocess")

        try:
            result = subprocess.run(
                cmd,
                input=full_prompt,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                env=env,
            )
        except FileNotFoundError as exc:
            raise LLMError(f"Claude CLI not found, is '{self.executable}' on the PATH?") from exc
        except subprocess.TimeoutExpired as exc:
            raise LLMError(f"Claude CLI timed out after {self.timeout}s") from exc

        if result.returncode != 0:
            raise LLMError(f"Claude CLI failed (exit {result.returncode}): {result.stderr[:500]}")

        text = result.stdout.strip()
        if not text:
            raise EmptyResponseError("Claude CLI returned empty output")
        return text


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def build_text_generator(
    provider: str = "auto",
    *,
    timeout: int = 120,
    max_tokens: int = 10000,
) -> TextGenerator:
    """Build the configured text generator.

    ``auto`` prefers the Anthropic API when ANTHROPIC_API_KEY is set and
    falls back to the Claude CLI otherwise.
    """
    if provider == "auto":
        has_key = bool(os.environ.get("ANTHROPIC_API_KEY", "").strip())
        provider = "anthropic" if has_key else "cli"

    if provider == "anthropic":
        return AnthropicTextGenerator(timeout=timeout, max_tokens=max_tokens)
    if provider == "openai":
        return OpenAITextGenerator(timeout=timeout, max_tokens=max_tokens)
    if provider == "cli":
        return ClaudeCliTextGenerator(timeout=timeout)
    raise LLMError(f"Unknown text generation provider: {provider!r}")
