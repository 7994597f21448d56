# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Balanced-substring scanner and JSON repair passes.

Models embed JSON in prose and get it slightly wrong: arrays split in two,
a closing bracket repeated, quotes inside a ``content`` value left
unescaped, or the block cut off before its last brackets. Everything here
is built on one explicit state machine (``ScanState``) that knows whether
it is inside a string literal, so braces and brackets inside strings are
never counted.

Repair passes are pure ``str -> str`` functions applied in a fixed order by
``parse_with_repairs``, which retries ``json.loads`` after each one.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterator, List, Optional, Tuple

from agentloop.core.errors import ExtractionFailure

logger = logging.getLogger(__name__)

_CLOSER_FOR = {"{": "}", "[": "]"}
_OPENER_FOR = {"}": "{", "]": "["}


class TokenKind(Enum):
    """What a single character means to the scanner."""

    STRING = "string"  # part of a string literal, quotes included
    OPEN = "open"
    CLOSE = "close"
    MISMATCH = "mismatch"  # closer that does not match the innermost opener
    OTHER = "other"


@dataclass
class ScanState:
    """String/escape state plus the stack of open brackets."""

    in_string: bool = False
    escaped: bool = False
    stack: List[str] = field(default_factory=list)

    def feed(self, char: str) -> TokenKind:
        if self.in_string:
            if self.escaped:
                self.escaped = False
            elif char == "\\":
                self.escaped = True
            elif char == '"':
                self.in_string = False
            return TokenKind.STRING

        if char == '"':
            self.in_string = True
            return TokenKind.STRING
        if char in _CLOSER_FOR:
            self.stack.append(char)
            return TokenKind.OPEN
        if char in _OPENER_FOR:
            if self.stack and self.stack[-1] == _OPENER_FOR[char]:
                self.stack.pop()
                return TokenKind.CLOSE
            return TokenKind.MISMATCH
        return TokenKind.OTHER

    @property
    def depth(self) -> int:
        return len(self.stack)


def find_balanced_end(text: str, start: int) -> Optional[int]:
    """Index of the bracket closing the one at ``start``, or None if unclosed.

    Mismatched closers along the way are skipped, so a duplicated ``]``
    does not end the scan early.
    """
    if start >= len(text) or text[start] not in _CLOSER_FOR:
        return None

    state = ScanState()
    for index in range(start, len(text)):
        kind = state.feed(text[index])
        if kind is TokenKind.CLOSE and state.depth == 0:
            return index
    return None


def enclosing_objects(text: str, index: int) -> Iterator[Tuple[int, Optional[int]]]:
    """Every ``{...}`` still open at ``index``, nearest opening brace first.

    A brace inside a string literal can look like the nearest candidate, so
    callers that need a parseable object should keep trying farther ones.
    Yields ``(start, end)`` with ``end`` None when the object is never closed
    (truncated output).
    """
    start = text.rfind("{", 0, index + 1)
    while start != -1:
        end = find_balanced_end(text, start)
        if end is None or end >= index:
            yield start, end
        start = text.rfind("{", 0, start)


def extract_balanced(text: str, start: int) -> str:
    """Substring from ``start`` through its closing bracket (or to the end)."""
    end = find_balanced_end(text, start)
    return text[start:] if end is None else text[start : end + 1]


def split_segments(text: str) -> List[Tuple[bool, str]]:
    """Split text into ``(is_string, chunk)`` runs."""
    segments: List[Tuple[bool, str]] = []
    state = ScanState()
    current: List[str] = []
    current_is_string = False

    for char in text:
        is_string = state.feed(char) is TokenKind.STRING
        if current and is_string != current_is_string:
            segments.append((current_is_string, "".join(current)))
            current = []
        current_is_string = is_string
        current.append(char)

    if current:
        segments.append((current_is_string, "".join(current)))
    return segments


def _sub_outside_strings(pattern: re.Pattern, replacement: str, text: str) -> str:
    return "".join(
        chunk if is_string else pattern.sub(replacement, chunk)
        for is_string, chunk in split_segments(text)
    )


# =============================================================================
# Repair passes
# =============================================================================

_ADJACENT_ARRAYS = re.compile(r"\]\s*,\s*\[")


def merge_adjacent_arrays(text: str) -> str:
    """``[a],[b]`` becomes ``[a,b]``."""
    return _sub_outside_strings(_ADJACENT_ARRAYS, ",", text)


def collapse_duplicate_closers(text: str) -> str:
    """Drop closing brackets that have no matching opener."""
    state = ScanState()
    kept: List[str] = []
    for char in text:
        if state.feed(char) is not TokenKind.MISMATCH:
            kept.append(char)
    return "".join(kept)


_CONTENT_VALUE = re.compile(r'"content"\s*:\s*"')
# What may legitimately follow the closing quote of a string value
_VALUE_TERMINATOR = re.compile(r'\s*(?:,\s*"[^"\\]+"\s*:|[}\]]\s*(?:[,}\]]|$))')


def _find_value_end(text: str, value_start: int) -> Optional[int]:
    escaped = False
    for index in range(value_start, len(text)):
        char = text[index]
        if escaped:
            escaped = False
        elif char == "\\":
            escaped = True
        elif char == '"' and _VALUE_TERMINATOR.match(text, index + 1):
            return index
    return None


def escape_content_quotes(text: str) -> str:
    """Escape bare double quotes inside ``"content"`` string values.

    The value is taken to end at the first quote followed by something that
    can close a value (``,"key":``, or a closer then another closer or the
    end). Values with no such terminator are left for ``balance_closers``.
    """
    result = text
    search_from = 0
    while True:
        match = _CONTENT_VALUE.search(result, search_from)
        if not match:
            return result

        prefix_state = ScanState()
        for char in result[: match.start()]:
            prefix_state.feed(char)
        if prefix_state.in_string:
            search_from = match.end()
            continue

        value_start = match.end()
        value_end = _find_value_end(result, value_start)
        if value_end is None:
            return result

        value = result[value_start:value_end]
        fixed = re.sub(r'(?<!\\)"', r'\\"', value)
        result = result[:value_start] + fixed + result[value_end:]
        search_from = value_start + len(fixed) + 1


def balance_closers(text: str) -> str:
    """Close a dangling string and any brackets left open at the end."""
    state = ScanState()
    for char in text:
        state.feed(char)

    repaired = text
    if state.in_string:
        if state.escaped:
            repaired = repaired[:-1]
        repaired += '"'
    else:
        repaired = repaired.rstrip().rstrip(",")

    return repaired + "".join(_CLOSER_FOR[opener] for opener in reversed(state.stack))


RepairPass = Callable[[str], str]

REPAIR_PASSES: Tuple[Tuple[str, RepairPass], ...] = (
    ("merge_adjacent_arrays", merge_adjacent_arrays),
    ("collapse_duplicate_closers", collapse_duplicate_closers),
    ("escape_content_quotes", escape_content_quotes),
    ("balance_closers", balance_closers),
)


def loads(text: str) -> Any:
    """``json.loads`` that tolerates raw control characters in strings."""
    return json.loads(text, strict=False)


def parse_with_repairs(candidate: str) -> Tuple[Any, List[str]]:
    """Parse ``candidate``, applying repair passes cumulatively on failure.

    Returns:
        The decoded value and the names of the passes that changed the text

    Raises:
        ExtractionFailure: If the text is still invalid after every pass
    """
    try:
        return loads(candidate), []
    except json.JSONDecodeError as e:
        last_error: Exception = e

    applied: List[str] = []
    text = candidate
    for name, repair in REPAIR_PASSES:
        repaired = repair(text)
        if repaired == text:
            continue
        text = repaired
        applied.append(name)
        logger.debug(f"Applied repair pass {name}")
        try:
            return loads(text), applied
        except json.JSONDecodeError as e:
            last_error = e

    raise ExtractionFailure(
        f"JSON still invalid after repairs ({', '.join(applied) or 'none applied'}): {last_error}",
        snippet=candidate,
        cause=last_error,
    )
