"""Recognition stage - parse handwriting-recognizer output into lines.

The recognizer itself is an external service behind the
:class:`Recognizer` protocol. Its response carries the full label with
``\\n`` line breaks and a flat word list with bounding boxes; this module
turns that into :class:`RecognizedLine` objects with vertical intervals,
indentation levels and parent/child structure.

A failed or malformed recognition is not fatal:
:func:`recognize_page` logs it and returns None so the caller can treat
the batch as having no lines to reconcile.
"""

import logging
import math
import re
from typing import Any, Optional, Protocol, Sequence

from penbridge.errors import RecognizerError
from penbridge.models import (
    RecognitionCommand,
    RecognitionResult,
    RecognizedLine,
    Stroke,
    YInterval,
)

logger = logging.getLogger(__name__)

# Fallback word height when the response carries no boxes
DEFAULT_WORD_HEIGHT = 20.0
# One indent step is this many median word heights
INDENT_UNIT_FACTOR = 1.5

COMMAND_PATTERN = re.compile(r"\[(\w+)(?::\s*([^\]]+))?\]")


class Recognizer(Protocol):
    """Handwriting-recognition service."""

    async def recognize(self, strokes: Sequence[Stroke]) -> dict[str, Any]:
        """Return the raw recognizer response for ``strokes``.

        Raises:
            RecognizerError: The service call failed.
        """
        ...


def _word_box(word: dict[str, Any]) -> Optional[dict[str, float]]:
    box = word.get("bounding-box")
    if not isinstance(box, dict):
        return None
    try:
        return {
            "x": float(box["x"]),
            "y": float(box["y"]),
            "width": float(box.get("width", 0.0)),
            "height": float(box.get("height", 0.0)),
        }
    except (KeyError, TypeError, ValueError):
        return None


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def parse_recognition(response: Any) -> RecognitionResult:
    """Parse a raw recognizer response.

    Args:
        response: Mapping with ``label`` (text with newline line breaks)
            and ``words`` (each with ``label`` and ``bounding-box``).

    Returns:
        RecognitionResult with lines in reading order.

    Raises:
        RecognizerError: The response is not shaped as expected.
    """
    if not isinstance(response, dict):
        raise RecognizerError(f"Expected a mapping, got {type(response).__name__}")

    text = response.get("label") or ""
    words = response.get("words") or []
    if not isinstance(text, str) or not isinstance(words, list):
        raise RecognizerError("Malformed recognizer response: bad 'label' or 'words'")

    # Whitespace and newline entries in the word list carry no geometry
    real_words = [
        w for w in words
        if isinstance(w, dict) and isinstance(w.get("label"), str) and w["label"].strip()
    ]

    raw_lines = []
    word_index = 0
    for line_text in text.split("\n"):
        if not line_text.strip():
            continue
        boxes = []
        for _ in line_text.split():
            if word_index >= len(real_words):
                break
            box = _word_box(real_words[word_index])
            word_index += 1
            if box is not None:
                boxes.append(box)
        if not boxes:
            logger.debug("Dropping line without word geometry: %r", line_text)
            continue
        raw_lines.append(
            {
                "text": line_text,
                "x": min(b["x"] for b in boxes),
                "min_y": min(b["y"] for b in boxes),
                "max_y": max(b["y"] + b["height"] for b in boxes),
            }
        )

    if not raw_lines:
        return RecognitionResult(text=text)

    heights = sorted(
        box["height"] for box in (_word_box(w) for w in real_words) if box is not None
    )
    median_height = heights[len(heights) // 2] if heights else DEFAULT_WORD_HEIGHT
    indent_unit = (median_height or DEFAULT_WORD_HEIGHT) * INDENT_UNIT_FACTOR
    base_x = min(l["x"] for l in raw_lines)

    lines = [
        RecognizedLine(
            text=raw["text"],
            interval=YInterval(min_y=raw["min_y"], max_y=raw["max_y"]),
            indent_level=max(0, _round_half_up((raw["x"] - base_x) / indent_unit)),
            x=raw["x"],
        )
        for raw in raw_lines
    ]
    _build_hierarchy(lines)

    return RecognitionResult(text=text, lines=lines, commands=find_commands(lines))


def _build_hierarchy(lines: list[RecognizedLine]) -> None:
    """Assign parent/children from indentation with an indent stack."""
    stack: list[tuple[int, int]] = [(-1, -1)]  # (indent, line index)
    for index, line in enumerate(lines):
        line.parent = None
        line.children = []
        while len(stack) > 1 and stack[-1][0] >= line.indent_level:
            stack.pop()
        parent_index = stack[-1][1]
        if parent_index >= 0:
            line.parent = parent_index
            lines[parent_index].children.append(index)
        stack.append((line.indent_level, index))


def _descendants(lines: list[RecognizedLine], index: int) -> list[int]:
    found = []
    for child in lines[index].children:
        found.append(child)
        found.extend(_descendants(lines, child))
    return found


def find_commands(lines: list[RecognizedLine]) -> list[RecognitionCommand]:
    """Find ``[command: value]`` markers and the lines each one governs."""
    commands = []
    for index, line in enumerate(lines):
        for match in COMMAND_PATTERN.finditer(line.text):
            affected = [index] + _descendants(lines, index)
            value = match.group(2).strip() if match.group(2) else None
            commands.append(
                RecognitionCommand(
                    command=match.group(1).lower(),
                    value=value,
                    line_index=index,
                    affected_lines=affected,
                )
            )
    return commands


async def recognize_page(
    recognizer: Recognizer,
    strokes: Sequence[Stroke],
) -> Optional[RecognitionResult]:
    """Run recognition for one page's live strokes.

    Returns:
        Parsed result, or None when the service failed or answered with
        something unparseable.
    """
    if not strokes:
        return RecognitionResult()
    try:
        response = await recognizer.recognize(strokes)
        return parse_recognition(response)
    except RecognizerError as e:
        logger.warning("Recognition failed for %d strokes: %s", len(strokes), e)
        return None
