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

"""Tool call extraction from model output.

Providers with native function calling hand back structured calls. Many
models, though, write the calls into their text, often as slightly broken
JSON surrounded by prose. The extractor tries, in order:

1. Native calls (OpenAI, flat, or Claude ``tool_use`` shapes)
2. A ``{"tool_calls": [...]}`` block found in the text
3. The same block after repair passes (see ``json_scanner``)
4. A single ``"name"`` / ``"arguments"`` pair
5. A short natural-language folder-creation request (optional)

Names are mapped to canonical catalog names and exact duplicates are
dropped. Extraction never raises; an empty list means no action.

Example:
    extractor = ToolCallExtractor()
    result = extractor.extract('Sure! {"tool_calls": [{"name": "list_files", "arguments": {}}]}')
    # result.tool_calls == [ToolCall(name="list_files", arguments={})]
"""

import json
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from agentloop.agent import json_scanner
from agentloop.core.errors import ExtractionFailure
from agentloop.providers.base import ToolCall
from agentloop.tools.catalog import KNOWN_ARGUMENT_KEYS, ToolCatalog, ToolName

logger = logging.getLogger(__name__)


class ExtractionStrategy(str, Enum):
    """Which step produced the calls."""

    NATIVE = "native"
    JSON_BLOCK = "json_block"
    REPAIRED_JSON = "repaired_json"
    ARGUMENTS_ONLY = "arguments_only"
    NATURAL_LANGUAGE = "natural_language"
    NONE = "none"


@dataclass
class ExtractionResult:
    """Calls recovered from one model turn."""

    tool_calls: List[ToolCall] = field(default_factory=list)
    strategy: ExtractionStrategy = ExtractionStrategy.NONE
    repairs: List[str] = field(default_factory=list)
    duplicates_removed: int = 0

    @property
    def has_calls(self) -> bool:
        return bool(self.tool_calls)


# Keys of a call object that are never arguments
_CALL_ENVELOPE_KEYS = frozenset(
    {"id", "type", "index", "name", "function", "arguments", "parameters", "input", "args", "tool"}
)

_TOOL_CALLS_KEY = re.compile(r'"tool_?calls"\s*:', re.IGNORECASE)
_NAME_FIELD = re.compile(r'"name"\s*:\s*"((?:[^"\\]|\\.)*)"')
_ARGUMENTS_FIELD = re.compile(r'"(?:arguments|parameters|input)"\s*:\s*(?=\{)')
_JSON_LIKE = re.compile(r'\{\s*"')

_INFERENCE_EXCLUSIONS = ("here are", "follow these", "steps", "additional")
_NAMED_FOLDER = re.compile(r"\b(?:called|named)\s+[\"'`]?([^\s\"'`]+)", re.IGNORECASE)
_FOLDER_WORD = re.compile(r"\b(?:folder|directory)\s+[\"'`]?([^\s\"'`]+)", re.IGNORECASE)
_FOLDER_LOCATION = re.compile(
    r"\b(?:in|on|at)\s+(?:my\s+|the\s+)?(desktop|documents|home|~)(?![\w])", re.IGNORECASE
)
_NOT_A_NAME = frozenset({"on", "in", "at", "to", "for", "the", "a", "an", "called", "named", "with"})


def _dedup_key(call: ToolCall) -> Tuple[str, str]:
    return call.name, json.dumps(call.arguments, sort_keys=True, default=str)


def _tool_calls_value(payload: Any) -> Any:
    """Value of the top-level ``tool_calls`` (or ``toolCalls``) key, else None."""
    if not isinstance(payload, dict):
        return None
    for key, value in payload.items():
        if key.replace("_", "").lower() == "toolcalls":
            return value
    return None


class ToolCallExtractor:
    """Turns model output into an ordered, de-duplicated list of ToolCalls."""

    def __init__(
        self,
        catalog: Optional[ToolCatalog] = None,
        enable_inference: bool = True,
        inference_max_length: int = 200,
    ):
        """Initialize the extractor.

        Args:
            catalog: Tool catalog used for name canonicalization and for
                recognizing argument keys placed outside ``arguments``
            enable_inference: Allow the natural-language fallback
            inference_max_length: Texts this long or longer are never inferred
        """
        self.catalog = catalog or ToolCatalog.default()
        self.enable_inference = enable_inference
        self.inference_max_length = inference_max_length

    def extract(
        self,
        content: Optional[str],
        native_tool_calls: Optional[Sequence[Mapping[str, Any]]] = None,
    ) -> ExtractionResult:
        """Extract tool calls from a model turn.

        Args:
            content: Assistant text (may be empty)
            native_tool_calls: Provider-native tool calls, if any

        Returns:
            ExtractionResult; ``tool_calls`` is empty when nothing was requested
        """
        text = content or ""
        result = ExtractionResult()

        if native_tool_calls:
            calls = [c for c in (self.parse_call(raw) for raw in native_tool_calls) if c]
            if calls:
                result = ExtractionResult(calls, ExtractionStrategy.NATIVE)
            else:
                logger.debug("Native tool calls present but none were usable, trying text")

        if not result.has_calls and text:
            result = self._extract_from_text(text)

        return self._deduplicate(result)

    def extract_calls(
        self,
        content: Optional[str],
        native_tool_calls: Optional[Sequence[Mapping[str, Any]]] = None,
    ) -> List[ToolCall]:
        return self.extract(content, native_tool_calls).tool_calls

    # ------------------------------------------------------------------
    # Text strategies
    # ------------------------------------------------------------------

    def _extract_from_text(self, text: str) -> ExtractionResult:
        key = _TOOL_CALLS_KEY.search(text)
        if key:
            spans = list(json_scanner.enclosing_objects(text, key.start()))
            parsed = self._first_valid_block(text, spans)
            if parsed is not None:
                return parsed
            if spans:
                start, end = spans[0]
                candidate = text[start:] if end is None else text[start : end + 1]
                try:
                    payload, repairs = json_scanner.parse_with_repairs(candidate)
                except ExtractionFailure as e:
                    logger.debug(f"tool_calls block unrecoverable: {e.message}")
                    return self._single_call(candidate, require_known=False)

                calls = self._calls_from_payload(payload)
                strategy = (
                    ExtractionStrategy.REPAIRED_JSON if repairs else ExtractionStrategy.JSON_BLOCK
                )
                if repairs:
                    logger.debug(f"Recovered tool_calls block with repairs: {repairs}")
                return ExtractionResult(calls, strategy if calls else ExtractionStrategy.NONE, repairs)

        if _ARGUMENTS_FIELD.search(text):
            return self._single_call(text, require_known=True)

        if self.enable_inference and not _JSON_LIKE.search(text):
            calls = self._infer_from_text(text)
            if calls:
                logger.info(f"Inferred {calls[0].name} from natural language")
                return ExtractionResult(calls, ExtractionStrategy.NATURAL_LANGUAGE)

        return ExtractionResult()

    def _first_valid_block(
        self, text: str, spans: List[Tuple[int, Optional[int]]]
    ) -> Optional[ExtractionResult]:
        """First closed candidate that parses as-is with ``tool_calls`` at its top level."""
        for start, end in spans:
            if end is None:
                continue
            try:
                payload = json_scanner.loads(text[start : end + 1])
            except json.JSONDecodeError:
                continue
            if _tool_calls_value(payload) is None:
                continue
            calls = self._calls_from_payload(payload)
            return ExtractionResult(
                calls, ExtractionStrategy.JSON_BLOCK if calls else ExtractionStrategy.NONE
            )
        return None

    def _calls_from_payload(self, payload: Any) -> List[ToolCall]:
        raw_calls = _tool_calls_value(payload)
        if isinstance(raw_calls, dict):
            raw_calls = [raw_calls]
        if not isinstance(raw_calls, list):
            return []
        return [c for c in (self.parse_call(raw) for raw in raw_calls) if c]

    def _single_call(self, text: str, require_known: bool) -> ExtractionResult:
        """Recover one call from a ``"name"`` plus a balanced ``"arguments"`` object."""
        name_match = _NAME_FIELD.search(text)
        if not name_match:
            return ExtractionResult()
        name = name_match.group(1)
        if require_known and self.catalog.canonical_name(name) is None:
            return ExtractionResult()

        arguments: Dict[str, Any] = {}
        args_match = _ARGUMENTS_FIELD.search(text)
        if args_match:
            block = json_scanner.extract_balanced(text, args_match.end())
            try:
                decoded, _ = json_scanner.parse_with_repairs(block)
            except ExtractionFailure as e:
                logger.debug(f"arguments object unrecoverable: {e.message}")
                return ExtractionResult()
            if isinstance(decoded, dict):
                arguments = decoded

        call = ToolCall(name=self.catalog.normalize_name(name), arguments=arguments)
        return ExtractionResult([call], ExtractionStrategy.ARGUMENTS_ONLY)

    def _infer_from_text(self, text: str) -> List[ToolCall]:
        """Best-effort "create a folder called X" detection."""
        stripped = text.strip()
        lowered = stripped.lower()
        if len(stripped) >= self.inference_max_length:
            return []
        if "create" not in lowered or ("folder" not in lowered and "directory" not in lowered):
            return []
        if any(marker in lowered for marker in _INFERENCE_EXCLUSIONS):
            return []
        if ToolName.CREATE_FOLDER.value not in self.catalog:
            return []

        folder = None
        for pattern in (_NAMED_FOLDER, _FOLDER_WORD):
            match = pattern.search(stripped)
            if match:
                candidate = match.group(1).strip(".,!?;:()")
                if candidate and candidate.lower() not in _NOT_A_NAME:
                    folder = candidate
                    break
        if not folder:
            return []

        path = folder
        location = _FOLDER_LOCATION.search(stripped)
        if location:
            where = location.group(1).lower()
            path = f"~/{folder}" if where in ("home", "~") else f"~/{where.capitalize()}/{folder}"

        return [ToolCall(name=ToolName.CREATE_FOLDER.value, arguments={"path": path})]

    # ------------------------------------------------------------------
    # Call parsing
    # ------------------------------------------------------------------

    def parse_call(self, raw: Any) -> Optional[ToolCall]:
        """Build a ToolCall from a native or JSON-block call object."""
        if isinstance(raw, ToolCall):
            return raw
        if not isinstance(raw, Mapping):
            return None

        function = raw.get("function") if isinstance(raw.get("function"), Mapping) else {}
        name = function.get("name") or raw.get("name") or raw.get("tool")
        if not name or not isinstance(name, str):
            return None
        name = self.catalog.normalize_name(name)

        arguments = self._decode_arguments(
            function.get("arguments")
            if "arguments" in function
            else next(
                (raw[key] for key in ("arguments", "parameters", "input", "args") if key in raw),
                None,
            ),
            name,
        )
        if arguments is None:
            return None

        self._backfill(arguments, raw, name)
        call_id = raw.get("id")
        return ToolCall(name=name, arguments=arguments, id=str(call_id) if call_id else None)

    def _decode_arguments(self, value: Any, name: str) -> Optional[Dict[str, Any]]:
        if value is None or value == "":
            return {}
        if isinstance(value, Mapping):
            return dict(value)
        if isinstance(value, str):
            try:
                decoded, repairs = json_scanner.parse_with_repairs(value)
            except ExtractionFailure as e:
                logger.warning(f"Dropping {name} call with unparseable arguments: {e.message}")
                return None
            if repairs:
                logger.debug(f"Repaired arguments for {name}: {repairs}")
            return dict(decoded) if isinstance(decoded, dict) else None
        return None

    def _backfill(self, arguments: Dict[str, Any], raw: Mapping[str, Any], name: str) -> None:
        """Move argument-shaped keys from the call's top level into ``arguments``."""
        accepted = KNOWN_ARGUMENT_KEYS.union(self.catalog.parameter_names(name))
        for key, value in raw.items():
            if key in _CALL_ENVELOPE_KEYS or key not in accepted or key in arguments:
                continue
            arguments[key] = value
            logger.debug(f"Back-filled top-level '{key}' into {name} arguments")

    # ------------------------------------------------------------------
    # Post-processing
    # ------------------------------------------------------------------

    @staticmethod
    def _deduplicate(result: ExtractionResult) -> ExtractionResult:
        seen = set()
        unique: List[ToolCall] = []
        for call in result.tool_calls:
            key = _dedup_key(call)
            if key in seen:
                continue
            seen.add(key)
            unique.append(call)

        result.duplicates_removed = len(result.tool_calls) - len(unique)
        if result.duplicates_removed:
            logger.debug(f"Removed {result.duplicates_removed} duplicate tool call(s)")
        result.tool_calls = unique
        return result
