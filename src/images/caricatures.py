"""Caricature generator process.

Run as ``python -m rogerthat.images.caricatures``.  Reads one request
from stdin::

    {"celebrities": [{"name": ..., "birth_year": ..., "tagline": ...}],
     "output_dir": "...", "prompt_variant": 1, "public_prefix": "celebrities"}

and prints exactly one JSON line to stdout::

    {"generated": [{"name", "birth_year", "path"}],
     "failed": [{"name", "birth_year", "error"}]}

Progress goes to stderr.  Entities are processed one at a time so a
single failure keeps earlier successes.  The exit code is non-zero only
for a fatal error such as a missing API key.

Images come from Google Gemini via the google-genai SDK.
"""

from __future__ import annotations

import json
import logging
import os
import sys
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any, TextIO

from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from rogerthat.prompts import caricature_prompt
from rogerthat.wikipedia import slugify

logger = logging.getLogger("rogerthat.images.caricatures")

DEFAULT_MODEL = "gemini-3-pro-image-preview"
API_KEY_ENV = "GOOGLE_AI_API_KEY"
MAX_TRIES = 3
RETRY_DELAY_SECONDS = 2.0

_SAFETY_MARKERS = ("safety", "rejected", "blocked", "prohibited")


class SafetyRejectionError(Exception):
    """The image model refused the prompt on content grounds."""


def is_safety_rejection(exc: BaseException) -> bool:
    """True for moderation refusals, which are often flaky and worth retrying."""
    if isinstance(exc, SafetyRejectionError):
        return True
    message = str(exc).lower()
    if isinstance(exc, genai_errors.APIError):
        return exc.code == 400 and any(marker in message for marker in _SAFETY_MARKERS)
    return "400" in message and any(marker in message for marker in _SAFETY_MARKERS)


def clamp_variant(value: Any) -> int:
    try:
        variant = int(value)
    except (TypeError, ValueError):
        return 1
    return max(1, min(2, variant))


def read_request(stream: TextIO) -> dict[str, Any]:
    """Read the stdin request; anything unreadable counts as an empty one."""
    if stream.isatty():
        return {}
    raw = stream.read().strip()
    if not raw:
        return {}
    try:
        decoded = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Ignoring unparseable request on stdin")
        return {}
    return decoded if isinstance(decoded, dict) else {}


def _blocked_reason(response: Any) -> str | None:
    feedback = getattr(response, "prompt_feedback", None)
    block_reason = getattr(feedback, "block_reason", None)
    if block_reason:
        return str(block_reason)
    for candidate in getattr(response, "candidates", None) or []:
        finish_reason = str(getattr(candidate, "finish_reason", "") or "")
        if any(marker in finish_reason.lower() for marker in _SAFETY_MARKERS):
            return finish_reason
    return None


class CaricatureGenerator:
    """Generate and save one caricature per celebrity."""

    def __init__(
        self,
        client: Any,
        *,
        model: str = DEFAULT_MODEL,
        max_tries: int = MAX_TRIES,
        retry_delay: float = RETRY_DELAY_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.client = client
        self.model = model
        self.max_tries = max_tries
        self.retry_delay = retry_delay
        self.sleep = sleep

    def generate_one(
        self,
        celebrity: dict[str, Any],
        output_dir: Path,
        variant: int,
        public_prefix: str,
    ) -> dict[str, Any]:
        """Save ``<slug>.png`` for *celebrity* and return its ``generated`` entry.

        An existing file is reported as generated without a model call.
        """
        name = str(celebrity["name"])
        filename = f"{slugify(name)}.png"
        target = output_dir / filename
        relative = f"{public_prefix}/{filename}" if public_prefix else filename
        entry = {"name": name, "birth_year": celebrity.get("birth_year"), "path": relative}

        if target.exists():
            logger.info("skip (exists) %s -> %s", name, filename)
            return entry

        logger.info("generating %s (variant %d)", name, variant)
        response = self.client.models.generate_content(
            model=self.model,
            contents=caricature_prompt(name, variant),
            config=types.GenerateContentConfig(
                response_modalities=["TEXT", "IMAGE"],
                image_config=types.ImageConfig(aspect_ratio="1:1"),
            ),
        )

        for part in response.parts or []:
            if part.inline_data is not None:
                output_dir.mkdir(parents=True, exist_ok=True)
                part.as_image().save(str(target))
                logger.info("saved %s -> %s", name, filename)
                return entry

        reason = _blocked_reason(response)
        if reason:
            raise SafetyRejectionError(f"400 image rejected by safety system ({reason})")
        raise RuntimeError(f"No image data for {name}")

    def process(self, request: dict[str, Any]) -> dict[str, list[dict[str, Any]]]:
        celebrities = [c for c in request.get("celebrities") or [] if isinstance(c, dict) and c.get("name")]
        output_dir = Path(request.get("output_dir") or "public/celebrities")
        variant = clamp_variant(request.get("prompt_variant"))
        public_prefix = str(request.get("public_prefix", "celebrities"))

        generated: list[dict[str, Any]] = []
        failed: list[dict[str, Any]] = []
        for celebrity in celebrities:
            tries = 0
            while True:
                tries += 1
                try:
                    generated.append(self.generate_one(celebrity, output_dir, variant, public_prefix))
                    break
                except Exception as exc:
                    if tries < self.max_tries and is_safety_rejection(exc):
                        logger.info(
                            "retry after safety rejection %s (%d/%d)",
                            celebrity["name"],
                            tries,
                            self.max_tries,
                        )
                        self.sleep(self.retry_delay)
                        continue
                    logger.warning("failed %s: %s", celebrity["name"], exc)
                    failed.append(
                        {
                            "name": celebrity["name"],
                            "birth_year": celebrity.get("birth_year"),
                            "error": str(exc),
                        }
                    )
                    break

        logger.info("done: %d generated, %d failed", len(generated), len(failed))
        return {"generated": generated, "failed": failed}


def main(
    stdin: TextIO | None = None,
    stdout: TextIO | None = None,
    client: Any = None,
) -> int:
    stdin = stdin or sys.stdin
    stdout = stdout or sys.stdout

    request = read_request(stdin)
    if not request.get("celebrities"):
        logger.info("no celebrities to process")
        print(json.dumps({"generated": [], "failed": []}), file=stdout)
        return 0

    if client is None:
        api_key = os.environ.get(API_KEY_ENV, "").strip()
        if not api_key:
            logger.error("fatal: %s is required", API_KEY_ENV)
            return 1
        client = genai.Client(api_key=api_key)

    generator = CaricatureGenerator(client, model=os.environ.get("IMAGE_MODEL", DEFAULT_MODEL))
    result = generator.process(request)
    print(json.dumps(result), file=stdout)
    return 0


if __name__ == "__main__":
    logging.basicConfig(stream=sys.stderr, level=logging.INFO, format="[caricatures] %(message)s")
    sys.exit(main())
