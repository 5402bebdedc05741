"""Tolerant JSON extraction for model output.

Language models wrap JSON in markdown fences, leave trailing commas,
nest the payload in a wrapper object, or stop mid-document when they hit
the token limit.  The helpers here recover as much structure as they can
and return ``None`` instead of raising when nothing usable is left.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

logger = logging.getLogger(__name__)

WRAPPER_KEYS: tuple[str, ...] = ("data", "results", "relationships", "items")

_FENCED_BLOCK_RE = re.compile(r"```[\w-]*\s*\n?(.*?)\n?```", re.DOTALL)
_LEADING_FENCE_RE = re.compile(r"^```[\w-]*\s*")
_TRAILING_FENCE_RE = re.compile(r"\s*```\s*$")

_CLOSERS = {"[": "]", "{": "}"}


def strip_json_fences(text: str) -> str:
    """Strip markdown code fences from model JSON output.

    A complete fenced block anywhere in the text wins.  Otherwise a
    leading fence (a truncated response never gets its closing fence)
    and a trailing fence are removed independently.
    """
    text = text.strip()
    match = _FENCED_BLOCK_RE.search(text)
    if match:
        return match.group(1).strip()
    text = _LEADING_FENCE_RE.sub("", text)
    text = _TRAILING_FENCE_RE.sub("", text)
    return text.strip()


def remove_trailing_commas(text: str) -> str:
    """Drop commas directly before a closing bracket or brace.

    Text inside JSON strings is copied untouched.
    """
    out: list[str] = []
    in_string = False
    escape = False
    i = 0
    n = len(text)
    while i < n:
        c = text[i]
        if in_string:
            if escape:
                escape = False
            elif c == "\\":
                escape = True
            elif c == '"':
                in_string = False
        elif c == '"':
            in_string = True
        elif c == ",":
            j = i + 1
            while j < n and text[j].isspace():
                j += 1
            if j < n and text[j] in "]}":
                i = j
                continue
        out.append(c)
        i += 1
    return "".join(out)


def clean_json_text(text: str) -> str:
    """Fence stripping plus trailing-comma removal."""
    return remove_trailing_commas(strip_json_fences(text))


def _scan(text: str) -> tuple[list[str], bool, list[tuple[int, tuple[str, ...]]]]:
    """Walk *text* tracking string state and open delimiters.

    Returns the stack still open at the end, whether the text ends inside
    a string, and the cut points after every completed container (offset
    just past the closer, stack remaining at that offset).
    """
    stack: list[str] = []
    in_string = False
    escape = False
    cuts: list[tuple[int, tuple[str, ...]]] = []

    for i, c in enumerate(text):
        if escape:
            escape = False
            continue
        if in_string:
            if c == "\\":
                escape = True
            elif c == '"':
                in_string = False
            continue
        if c == '"':
            in_string = True
        elif c in _CLOSERS:
            stack.append(c)
        elif c == "]" and stack and stack[-1] == "[":
            stack.pop()
            cuts.append((i + 1, tuple(stack)))
        elif c == "}" and stack and stack[-1] == "{":
            stack.pop()
            cuts.append((i + 1, tuple(stack)))

    return stack, in_string, cuts


def _close(text: str, stack: list[str] | tuple[str, ...], in_string: bool = False) -> str:
    suffix = '"' if in_string else ""
    body = text + suffix
    if not in_string:
        body = body.rstrip().rstrip(",")
    return body + "".join(_CLOSERS[c] for c in reversed(stack))


def repair_truncated_json(text: str) -> str | None:
    """Complete a truncated JSON document with the minimal closing suffix.

    Returns ``None`` when the document is already balanced (there is
    nothing to repair).  The open string, if any, is closed first, then
    the open brackets and braces in LIFO order.
    """
    stack, in_string, _cuts = _scan(text)
    if not stack and not in_string:
        return None
    return remove_trailing_commas(_close(text, stack, in_string))


def _repair_candidates(text: str) -> list[str]:
    """Repaired variants of *text*, best first.

    The minimal closure comes first.  When the truncation landed inside a
    key or value the closure alone is not valid JSON, so the text is also
    cut back to each earlier completed element and closed again.
    """
    stack, in_string, cuts = _scan(text)
    if not stack and not in_string:
        return []
    candidates = [remove_trailing_commas(_close(text, stack, in_string))]
    for offset, remaining in reversed(cuts):
        if not remaining:
            continue
        candidates.append(remove_trailing_commas(_close(text[:offset], remaining)))
    return candidates


def _loads(text: str) -> Any:
    try:
        return json.loads(text)
    except (json.JSONDecodeError, ValueError):
        return None


def _as_list(value: Any) -> list[Any] | None:
    """Return *value* if it is a list, or the first wrapped list inside it."""
    if isinstance(value, list):
        return value
    if isinstance(value, dict):
        for key in WRAPPER_KEYS:
            inner = value.get(key)
            if isinstance(inner, list):
                return inner
    return None


def extract_json_list(text: str | None) -> list[Any] | None:
    """Recover a JSON array from model output.

    Tries, in order: direct parse (with wrapper-key search), bracket
    balance repair, then the substring between the first ``[`` and the
    last ``]``.  Returns ``None`` if every attempt fails.
    """
    if not text or not text.strip():
        return None

    cleaned = clean_json_text(text)

    result = _as_list(_loads(cleaned))
    if result is not None:
        return result

    for candidate in _repair_candidates(cleaned):
        result = _as_list(_loads(candidate))
        if result is not None:
            logger.debug("Recovered JSON list via bracket repair")
            return result

    first = cleaned.find("[")
    last = cleaned.rfind("]")
    if first != -1 and last > first:
        decoded = _loads(cleaned[first : last + 1])
        if isinstance(decoded, list):
            logger.debug("Recovered JSON list via substring extraction")
            return decoded

    logger.debug("No JSON list recoverable from: %s", cleaned[:200])
    return None


def extract_json_object(text: str | None) -> dict[str, Any] | None:
    """Recover a JSON object from model output.

    Same cleaning and repair as :func:`extract_json_list`, but the result
    must be an object; the substring fallback spans the first ``{`` to
    the last ``}``.
    """
    if not text or not text.strip():
        return None

    cleaned = clean_json_text(text)

    decoded = _loads(cleaned)
    if isinstance(decoded, dict):
        return decoded

    for candidate in _repair_candidates(cleaned):
        decoded = _loads(candidate)
        if isinstance(decoded, dict):
            logger.debug("Recovered JSON object via bracket repair")
            return decoded

    first = cleaned.find("{")
    last = cleaned.rfind("}")
    if first != -1 and last > first:
        decoded = _loads(cleaned[first : last + 1])
        if isinstance(decoded, dict):
            return decoded

    logger.debug("No JSON object recoverable from: %s", cleaned[:200])
    return None


def parse_last_json_line(output: str, required_key: str) -> dict[str, Any] | None:
    """Return the last line of *output* that decodes to an object with a list at *required_key*.

    Earlier lines are treated as log noise.
    """
    for line in reversed(output.strip().splitlines()):
        line = line.strip()
        if not line:
            continue
        decoded = _loads(line)
        if isinstance(decoded, dict) and isinstance(decoded.get(required_key), list):
            return decoded
    return None
