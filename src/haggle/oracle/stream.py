"""Reassembly and parsing of the oracle's Server-Sent-Events reply.

The oracle answers with lines of the form ``data: <json-fragment>`` ending
with the sentinel ``data: [DONE]``.  Each fragment carries a token delta at
``choices[0].delta.content``; concatenating the deltas in arrival order yields
the model's full answer, which should be a single JSON value.
"""

from __future__ import annotations

import json
from collections.abc import AsyncIterable, Iterable
from typing import Any

import structlog

logger = structlog.get_logger()

DATA_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"


def extract_delta(line: str) -> str | None:
    """Return the token delta carried by one SSE line.

    Args:
        line: A raw line from the event stream (without trailing newline).

    Returns:
        The delta text, ``""`` for data lines with no content, ``None`` for
        lines that are not data lines or are not JSON.  The sentinel is
        handled by the callers.
    """
    if not line.startswith(DATA_PREFIX):
        return None
    data = line[len(DATA_PREFIX):].strip()
    try:
        obj = json.loads(data)
    except json.JSONDecodeError:
        return None
    if not isinstance(obj, dict):
        return None
    choices = obj.get("choices")
    if not isinstance(choices, list) or not choices:
        return ""
    first = choices[0]
    if not isinstance(first, dict):
        return ""
    delta = first.get("delta")
    if not isinstance(delta, dict):
        return ""
    content = delta.get("content")
    return content if isinstance(content, str) else ""


def _is_sentinel(line: str) -> bool:
    return line.startswith(DATA_PREFIX) and line[len(DATA_PREFIX):].strip() == DONE_SENTINEL


def assemble_lines(lines: Iterable[str]) -> str:
    """Concatenate the token deltas of a complete event stream.

    Reading stops at the ``[DONE]`` sentinel; anything after it is ignored.
    """
    parts: list[str] = []
    for line in lines:
        if _is_sentinel(line):
            break
        delta = extract_delta(line)
        if delta:
            parts.append(delta)
    return "".join(parts)


async def assemble_stream(lines: AsyncIterable[str]) -> str:
    """Async counterpart of :func:`assemble_lines` for ``httpx`` line iterators."""
    parts: list[str] = []
    async for line in lines:
        if _is_sentinel(line):
            break
        delta = extract_delta(line)
        if delta:
            parts.append(delta)
    return "".join(parts)


def find_balanced(text: str) -> str | None:
    """Return the first balanced ``{...}`` or ``[...]`` substring of *text*.

    Brackets inside JSON string literals (including escaped quotes) are not
    counted.  Returns ``None`` when no opening bracket is ever closed.
    """
    pairs = {"{": "}", "[": "]"}
    start = 0
    while True:
        candidates = [i for i in (text.find("{", start), text.find("[", start)) if i != -1]
        if not candidates:
            return None
        begin = min(candidates)
        stack: list[str] = []
        in_string = False
        escaped = False
        for pos in range(begin, len(text)):
            ch = text[pos]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
                continue
            if ch == '"':
                in_string = True
            elif ch in pairs:
                stack.append(pairs[ch])
            elif ch in ("}", "]"):
                if not stack or stack[-1] != ch:
                    break
                stack.pop()
                if not stack:
                    return text[begin:pos + 1]
        # Unbalanced from this opener; try the next one.
        start = begin + 1


def parse_payload(text: str) -> Any:
    """Parse the assembled answer as JSON, tolerating wrapping prose.

    Tries a direct parse first, then falls back to the first balanced
    object/array substring.

    Raises:
        ValueError: If neither attempt yields a JSON value.
    """
    stripped = text.strip()
    if not stripped:
        raise ValueError("empty oracle payload")
    try:
        return json.loads(stripped)
    except json.JSONDecodeError:
        pass

    fragment = find_balanced(stripped)
    if fragment is None:
        raise ValueError("no JSON value found in oracle payload")
    try:
        value = json.loads(fragment)
    except json.JSONDecodeError as exc:
        raise ValueError(f"embedded JSON is invalid: {exc}") from exc
    logger.debug("oracle_payload_recovered", payload_chars=len(stripped), json_chars=len(fragment))
    return value
