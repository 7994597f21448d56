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

"""Tests for the conversation helpers."""

import json

import pytest

from agentloop.agent.conversation import (
    RESULTS_HEADER,
    build_tool_prompt,
    clean_history,
    corrective_message,
    format_results_message,
    last_user_text,
    normalize_message,
    normalize_messages,
)
from agentloop.agent.tool_executor import ToolResult
from agentloop.providers.base import Message, ToolCall
from agentloop.tools.catalog import ToolCatalog


class TestNormalizeMessages:
    """Tests for message coercion."""

    def test_string_becomes_user_message(self):
        assert normalize_message("hi") == Message(role="user", content="hi")

    def test_dict_without_role(self):
        assert normalize_message({"content": "hi"}).role == "user"

    def test_content_blocks_are_joined(self):
        message = normalize_message(
            {"role": "user", "content": [{"type": "text", "text": "a"}, "b", {"type": "image"}]}
        )
        assert message.content == "a\nb"

    def test_assistant_with_tool_calls(self):
        message = normalize_message(
            {"role": "assistant", "tool_calls": [{"name": "stat", "arguments": {"path": "~"}}]}
        )
        assert message.content == ""
        assert message.tool_calls == [ToolCall(name="stat", arguments={"path": "~"})]

    def test_openai_shaped_tool_calls(self):
        message = normalize_message(
            {
                "role": "assistant",
                "content": "",
                "tool_calls": [
                    {
                        "id": "call_1",
                        "type": "function",
                        "function": {
                            "name": "list_files",
                            "arguments": json.dumps({"path": "~/Desktop"}),
                        },
                    }
                ],
            }
        )
        assert message.tool_calls == [
            ToolCall(name="list_files", arguments={"path": "~/Desktop"}, id="call_1")
        ]

    def test_claude_shaped_tool_calls(self):
        message = normalize_message(
            {
                "role": "assistant",
                "content": "",
                "tool_calls": [
                    {"type": "tool_use", "id": "tu_1", "name": "stat", "input": {"path": "a.txt"}}
                ],
            }
        )
        assert message.tool_calls == [ToolCall(name="stat", arguments={"path": "a.txt"}, id="tu_1")]

    def test_unreadable_history_calls_dropped(self):
        message = normalize_message(
            {"role": "assistant", "content": "hm", "tool_calls": [{"function": {}}, "junk"]}
        )
        assert message.content == "hm"
        assert message.tool_calls is None

    def test_message_passes_through(self):
        original = Message(role="system", content="x")
        assert normalize_message(original) is original

    @pytest.mark.parametrize("bad", [42, {"role": "user"}, {"role": "user", "content": 5}])
    def test_invalid(self, bad):
        with pytest.raises(ValueError):
            normalize_message(bad)

    def test_consecutive_user_messages_merge(self):
        messages = normalize_messages(["one", {"role": "user", "content": "two"}, "three"])
        assert messages == [Message(role="user", content="one\n\ntwo\n\nthree")]

    def test_other_roles_do_not_merge(self):
        messages = normalize_messages(
            [
                {"role": "assistant", "content": "a"},
                {"role": "assistant", "content": "b"},
                "c",
            ]
        )
        assert [m.role for m in messages] == ["assistant", "assistant", "user"]

    def test_last_user_text(self):
        messages = normalize_messages(["first", {"role": "assistant", "content": "x"}, "second"])
        assert last_user_text(messages) == "second"
        assert last_user_text([]) == ""


class TestCleanHistory:
    def test_drops_malformed_assistant_turns(self):
        messages = [
            Message(role="user", content="see /~desktop/a"),
            Message(role="assistant", content='{"path": "/~desktop/a"}'),
            Message(role="assistant", content='{"path": "/~Documents"}'),
            Message(role="assistant", content="fine"),
        ]
        cleaned = clean_history(messages)
        assert [m.content for m in cleaned] == ["see /~desktop/a", "fine"]


class TestResultsMessage:
    """Tests for the synthetic tool-result message."""

    def test_format(self):
        results = [
            ToolResult(name="create_folder", success=True, result={"path": "/t/Desktop/A"}),
            ToolResult(name="read_file", success=False, error="not found"),
        ]
        message = format_results_message(results)
        assert message.role == "user"
        assert message.content.startswith(RESULTS_HEADER)
        body = message.content[len(RESULTS_HEADER) :].split("\n\n")
        assert body[0] == "Tool create_folder result: " + json.dumps(
            {"success": True, "result": {"path": "/t/Desktop/A"}}
        )
        assert body[1] == 'Tool read_file result: {"success": false, "error": "not found"}'

    def test_tool_role_and_editing_hint(self):
        results = [ToolResult(name="read_file", success=True, result={"content": "x"})]
        message = format_results_message(results, role="tool", editing=True)
        assert message.role == "tool"
        assert "write_file" in message.content
        assert "FILE EDITING WORKFLOW" in message.content

    def test_corrective_message(self):
        message = corrective_message()
        assert message.role == "user"
        assert "write_file" in message.content


class TestToolPrompt:
    def test_lists_tools_and_format(self):
        prompt = build_tool_prompt(ToolCatalog.default())
        assert prompt.role == "system"
        assert "- create_folder:" in prompt.content
        assert '{"tool_calls": [{"name": "list_files", "arguments": {}}]}' in prompt.content

    def test_empty_catalog(self):
        assert build_tool_prompt(ToolCatalog([])) is None
