"""
Structural Repair

Best-effort normalization of near-valid JSON produced by the text generator.

Uses json_repair for the malformations LLMs commonly emit:
- Trailing commas
- Unquoted keys and single-quoted strings
- Missing / unbalanced brackets
- Markdown fences or commentary around the JSON

Repair is a pure text → text function. Its own failure is reported as a
parse failure so it shares the generation retry budget.

Usage:
    from lingo_engine.services.learning.repair import parse_structured_text

    data = parse_structured_text(raw_text)
"""

import json
import logging
import re
from typing import Any

from json_repair import repair_json

from lingo_engine.enums.learning import GenerationFailureReason
from lingo_engine.middleware.error_handling import GenerationError

logger = logging.getLogger(__name__)

_FENCE_PATTERN = re.compile(r"```(?:json|JSON)?\s*([\s\S]*?)```")
_UNREPAIRABLE = {"", '""', "null"}
_DECODER = json.JSONDecoder()
_MISSING = object()


def _top_level_spans(text: str) -> list[tuple[int, int]]:
    """
    (start, end) of each bracket group opened at nesting depth zero.

    An unclosed group runs to the end of the text. Brackets are counted
    without regard to string literals.
    """
    spans = []
    depth = 0
    start = 0
    for i, ch in enumerate(text):
        if ch in "{[":
            if depth == 0:
                start = i
            depth += 1
        elif ch in "}]" and depth > 0:
            depth -= 1
            if depth == 0:
                spans.append((start, i + 1))
    if depth > 0:
        spans.append((start, len(text)))
    return spans


def _decode_strict(text: str) -> Any:
    """
    Strictly decode generator text, tolerating only surrounding prose.

    Tries the whole text first, then each top-level bracket group in
    order; the first that decodes wins.

    Returns:
        The decoded value, or _MISSING if no strict decode succeeds
    """
    stripped = (text or "").strip()
    if not stripped:
        return _MISSING
    try:
        return json.loads(stripped)
    except json.JSONDecodeError:
        pass

    for start, _ in _top_level_spans(stripped):
        try:
            value, _end = _DECODER.raw_decode(stripped, start)
        except json.JSONDecodeError:
            continue
        return value
    return _MISSING


def extract_payload(text: str) -> str:
    """
    Isolate the most likely JSON payload from malformed generator text.

    Prefers the first fenced code block; otherwise takes the longest
    top-level bracket group, so a short bracketed aside in the prose does
    not win over the payload.
    """
    match = _FENCE_PATTERN.search(text)
    if match:
        return match.group(1).strip()

    stripped = text.strip()
    spans = _top_level_spans(stripped)
    if not spans:
        return stripped
    start, end = max(spans, key=lambda span: span[1] - span[0])
    return stripped[start:end]


def repair_structured_text(text: str) -> str:
    """
    Normalize near-valid structured text into a well-formed serialization.

    Text that already decodes strictly is re-serialized unchanged in value,
    so repair is idempotent on well-formed input.

    Args:
        text: Raw generator output

    Returns:
        Well-formed JSON text

    Raises:
        GenerationError: (reason=parse) if nothing usable can be recovered
    """
    value = _decode_strict(text)
    if value is not _MISSING:
        return json.dumps(value, ensure_ascii=False)

    payload = extract_payload(text or "")
    if not payload:
        raise GenerationError(
            "No structured payload found in generator output",
            reason=GenerationFailureReason.PARSE,
        )

    try:
        repaired = repair_json(payload)
    except Exception as e:
        raise GenerationError(
            f"Repair failed: {e}", reason=GenerationFailureReason.PARSE
        ) from e

    if not isinstance(repaired, str) or repaired.strip() in _UNREPAIRABLE:
        raise GenerationError(
            f"Unrepairable generator output: {payload[:200]}",
            reason=GenerationFailureReason.PARSE,
        )
    return repaired


def parse_structured_text(text: str) -> Any:
    """
    Parse generator output, repairing it only when strict parsing fails.

    Args:
        text: Raw generator output

    Returns:
        Parsed JSON value

    Raises:
        GenerationError: (reason=parse) if the text cannot be parsed
    """
    value = _decode_strict(text)
    if value is not _MISSING:
        return value
    logger.debug("Strict JSON parse failed, attempting repair")

    repaired = repair_structured_text(text)
    try:
        data = json.loads(repaired)
    except json.JSONDecodeError as e:
        raise GenerationError(
            f"JSON parse failed even after repair: {e}",
            reason=GenerationFailureReason.PARSE,
        ) from e

    logger.info("json_repair salvaged generator output")
    return data
