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

"""Message helpers used by the orchestration loop."""

import json
import logging
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Union

from agentloop.agent.tool_call_extractor import ToolCallExtractor
from agentloop.agent.tool_executor import ToolResult
from agentloop.providers.base import Message, ToolCall
from agentloop.tools.catalog import ToolCatalog, ToolName

logger = logging.getLogger(__name__)

RESULTS_HEADER = "Tool execution results:\n\n"

EDITING_CONTINUATION = (
    "\n\nFILE EDITING WORKFLOW: you have read the file. If the user asked for a "
    "change, call write_file now with the complete modified content."
)

CORRECTIVE_INSTRUCTION = (
    "You read a file but did not write it back. Continue the file editing "
    "workflow: call write_file with the complete modified content now."
)

# Fragments produced by an old path bug; assistant turns containing them poison the context
_MALFORMED_PATH_MARKERS = ("/~desktop/", '"/~')

RawMessage = Union[str, Mapping[str, Any], Message]


def _text_of(content: Any) -> str:
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, Mapping) and isinstance(block.get("text"), str):
                parts.append(block["text"])
        return "\n".join(parts)
    raise ValueError(f"Unsupported message content: {type(content).__name__}")


def _history_calls(raw_calls: Any, extractor: ToolCallExtractor) -> Optional[List[ToolCall]]:
    if not isinstance(raw_calls, list):
        raw_calls = [raw_calls]
    calls = []
    for raw in raw_calls:
        call = extractor.parse_call(raw)
        if call is None:
            logger.debug(f"Dropping unreadable tool call from history: {raw!r}")
            continue
        calls.append(call)
    return calls or None


def normalize_message(
    raw: RawMessage, extractor: Optional[ToolCallExtractor] = None
) -> Message:
    """Coerce a string, dict, or Message into a Message.

    Strings become user messages. Content may be a string or a list of
    text blocks. Tool calls in history may use any shape the extractor
    accepts (OpenAI ``function`` objects with JSON-string arguments, flat,
    or Claude ``tool_use``).
    """
    if isinstance(raw, Message):
        return raw
    if isinstance(raw, str):
        return Message(role="user", content=raw)
    if not isinstance(raw, Mapping):
        raise ValueError("each message must be a string or object")

    tool_calls = raw.get("tool_calls")
    if "content" not in raw and not tool_calls:
        raise ValueError("each message must have a 'content' property")

    calls = None
    if tool_calls:
        calls = _history_calls(tool_calls, extractor or ToolCallExtractor(enable_inference=False))

    return Message(
        role=raw.get("role") or "user",
        content=_text_of(raw.get("content")),
        tool_calls=calls,
        tool_call_id=raw.get("tool_call_id"),
        name=raw.get("name"),
    )


def normalize_messages(
    messages: Iterable[RawMessage], extractor: Optional[ToolCallExtractor] = None
) -> List[Message]:
    """Normalize messages and merge consecutive user turns."""
    extractor = extractor or ToolCallExtractor(enable_inference=False)
    normalized: List[Message] = []
    for raw in messages:
        message = normalize_message(raw, extractor)
        previous = normalized[-1] if normalized else None
        if previous is not None and previous.role == message.role == "user":
            normalized[-1] = previous.model_copy(
                update={"content": f"{previous.content}\n\n{message.content}"}
            )
            continue
        normalized.append(message)
    return normalized


def clean_history(messages: Sequence[Message]) -> List[Message]:
    """Drop earlier assistant turns that contain malformed home-marker paths."""
    cleaned = []
    for message in messages:
        if message.role == "assistant" and any(
            marker in message.content for marker in _MALFORMED_PATH_MARKERS
        ):
            logger.debug("Dropping assistant message with malformed paths from history")
            continue
        cleaned.append(message)
    return cleaned


def last_user_text(messages: Sequence[Message]) -> str:
    for message in reversed(messages):
        if message.role == "user":
            return message.content
    return ""


def format_results_message(
    results: Sequence[ToolResult], role: str = "user", editing: bool = False
) -> Message:
    """One synthetic message carrying every result of a batch."""
    lines = [
        f"Tool {result.name} result: {json.dumps(result.to_dict(), default=str)}"
        for result in results
    ]
    content = RESULTS_HEADER + "\n\n".join(lines)
    if editing:
        content += EDITING_CONTINUATION
    return Message(role=role, content=content)


def corrective_message() -> Message:
    return Message(role="user", content=CORRECTIVE_INSTRUCTION)


def build_tool_prompt(catalog: ToolCatalog) -> Optional[Message]:
    """System message listing the tools and the text calling format.

    Providers without native function calling rely on this to emit
    ``{"tool_calls": [...]}`` blocks.
    """
    if not len(catalog):
        return None

    lines = [
        "You can act on the user's files with these tools:",
        "",
    ]
    for tool in catalog.definitions:
        required = ", ".join(tool.required) or "none"
        lines.append(f"- {tool.name}: {tool.description} (required: {required})")
    example_tool = (
        ToolName.LIST_FILES.value if ToolName.LIST_FILES.value in catalog else catalog.names[0]
    )
    lines += [
        "",
        "If you cannot call tools natively, reply with JSON in this form:",
        '{"tool_calls": [{"name": "' + example_tool + '", "arguments": {}}]}',
        "Paths starting with ~ are relative to the user's home folder.",
    ]
    return Message(role="system", content="\n".join(lines))
