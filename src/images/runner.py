"""Run the caricature generator process for one batch.

The process reads one JSON request on stdin and prints progress on
stderr.  Its stdout may contain noise; the last line that decodes to an
object with a ``generated`` list is the result.
"""

from __future__ import annotations

import json
import logging
import os
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from rogerthat.shared.json_repair import parse_last_json_line

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 300


@dataclass
class ImageBatchResult:
    """Parsed outcome of one process invocation."""

    generated: list[dict[str, Any]] = field(default_factory=list)
    failed: list[dict[str, Any]] = field(default_factory=list)
    success: bool = True


def _decode(output: str | bytes | None) -> str:
    if output is None:
        return ""
    if isinstance(output, bytes):
        return output.decode("utf-8", errors="replace")
    return output


def parse_batch_output(stdout: str, success: bool) -> ImageBatchResult:
    """Build a result from raw stdout; partial results survive a failed exit."""
    decoded = parse_last_json_line(stdout, "generated")
    if decoded is None:
        return ImageBatchResult(success=success)
    failed = decoded.get("failed")
    return ImageBatchResult(
        generated=[g for g in decoded["generated"] if isinstance(g, dict)],
        failed=[f for f in failed if isinstance(f, dict)] if isinstance(failed, list) else [],
        success=success,
    )


class CaricatureScriptRunner:
    """Synchronous call to the caricature process with a bounded timeout."""

    def __init__(
        self,
        command: list[str],
        *,
        timeout: int = DEFAULT_TIMEOUT,
        env: dict[str, str] | None = None,
    ) -> None:
        if not command:
            raise ValueError("Caricature command must not be empty")
        self.command = list(command)
        self.timeout = timeout
        self.env = env

    def run(
        self,
        celebrities: list[dict[str, Any]],
        output_dir: Path,
        prompt_variant: int = 1,
        public_prefix: str = "celebrities",
    ) -> ImageBatchResult:
        payload = json.dumps(
            {
                "celebrities": celebrities,
                "output_dir": str(output_dir),
                "prompt_variant": prompt_variant,
                "public_prefix": public_prefix,
            }
        )
        env = {**os.environ, **self.env} if self.env else None

        try:
            result = subprocess.run(
                self.command,
                input=payload,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                env=env,
            )
        except FileNotFoundError:
            logger.error("Caricature command not found: %s", self.command[0])
            return ImageBatchResult(success=False)
        except OSError as exc:
            logger.error("Could not start caricature command %s: %s", self.command[0], exc)
            return ImageBatchResult(success=False)
        except subprocess.TimeoutExpired as exc:
            logger.warning("Caricature process timed out after %ss", self.timeout)
            return parse_batch_output(_decode(exc.stdout), success=False)

        if result.stderr:
            for line in result.stderr.strip().splitlines():
                logger.debug("caricatures: %s", line)
        if result.returncode != 0:
            logger.warning("Caricature process exited with %d", result.returncode)

        return parse_batch_output(result.stdout or "", success=result.returncode == 0)
