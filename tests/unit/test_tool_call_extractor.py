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

"""Tests for ToolCallExtractor."""

import json

import pytest

from agentloop.agent.tool_call_extractor import ExtractionStrategy, ToolCallExtractor
from agentloop.providers.base import ToolCall
from agentloop.tools.catalog import ToolCatalog


@pytest.fixture
def extractor():
    return ToolCallExtractor()


class TestNativeCalls:
    """Provider-native tool call shapes."""

    def test_openai_shape_with_string_arguments(self, extractor):
        native = [
            {
                "id": "call_1",
                "type": "function",
                "function": {"name": "read_file", "arguments": '{"path": "~/a.txt"}'},
            }
        ]
        result = extractor.extract("", native)
        assert result.strategy == ExtractionStrategy.NATIVE
        assert result.tool_calls == [
            ToolCall(name="read_file", arguments={"path": "~/a.txt"}, id="call_1")
        ]

    def test_claude_tool_use_shape(self, extractor):
        native = [{"type": "tool_use", "id": "tu_1", "name": "list_files", "input": {"path": "~"}}]
        calls = extractor.extract_calls(None, native)
        assert calls[0].name == "list_files"
        assert calls[0].arguments == {"path": "~"}
        assert calls[0].id == "tu_1"

    def test_flat_shape_and_name_variant(self, extractor):
        calls = extractor.extract_calls("", [{"name": "createFolder", "arguments": {"path": "X"}}])
        assert calls == [ToolCall(name="create_folder", arguments={"path": "X"})]

    def test_missing_arguments_becomes_empty(self, extractor):
        calls = extractor.extract_calls("", [{"name": "list_files"}])
        assert calls[0].arguments == {}

    def test_top_level_keys_backfilled(self, extractor):
        raw = {"name": "write_file", "arguments": {"path": "~/a"}, "content": "x", "path": "~/b"}
        calls = extractor.extract_calls("", [raw])
        assert calls[0].arguments == {"path": "~/a", "content": "x"}

    def test_malformed_argument_string_repaired(self, extractor):
        native = [{"function": {"name": "stat", "arguments": '{"path": "~/a"'}}]
        calls = extractor.extract_calls("", native)
        assert calls[0].arguments == {"path": "~/a"}

    def test_unusable_native_falls_back_to_text(self, extractor):
        text = '{"tool_calls": [{"name": "stat", "arguments": {"path": "~/a"}}]}'
        result = extractor.extract(text, [{"id": "x"}])
        assert result.strategy == ExtractionStrategy.JSON_BLOCK
        assert result.tool_calls[0].name == "stat"


class TestTextBlocks:
    """``{"tool_calls": [...]}`` blocks embedded in text."""

    def test_block_in_prose(self, extractor):
        text = 'Sure! {"tool_calls": [{"name": "list_files", "arguments": {}}]} Done.'
        result = extractor.extract(text)
        assert result.strategy == ExtractionStrategy.JSON_BLOCK
        assert result.tool_calls == [ToolCall(name="list_files", arguments={})]

    def test_camel_case_key_and_single_object(self, extractor):
        text = '{"toolCalls": {"name": "stat", "arguments": {"path": "~/a"}}}'
        calls = extractor.extract_calls(text)
        assert calls == [ToolCall(name="stat", arguments={"path": "~/a"})]

    def test_multiple_calls_keep_order(self, extractor):
        text = json.dumps(
            {
                "tool_calls": [
                    {"name": "create_folder", "arguments": {"path": "~/Desktop/A"}},
                    {"name": "write_file", "arguments": {"path": "~/Desktop/A/x", "content": ""}},
                ]
            }
        )
        assert [c.name for c in extractor.extract_calls(text)] == ["create_folder", "write_file"]

    def test_brace_inside_earlier_string_value(self, extractor):
        text = (
            'Sure: {"note": "use {x", "tool_calls": ['
            '{"name":"list_files","arguments":{}}, '
            '{"name":"read_file","arguments":{"path":"a.txt"}}]}'
        )
        result = extractor.extract(text)
        assert result.strategy == ExtractionStrategy.JSON_BLOCK
        assert [c.name for c in result.tool_calls] == ["list_files", "read_file"]
        assert result.tool_calls[1].arguments == {"path": "a.txt"}

    def test_split_arrays_repaired(self, extractor):
        text = (
            '{"tool_calls": [{"name": "stat", "arguments": {"path": "a"}}],'
            '[{"name": "stat", "arguments": {"path": "b"}}]}'
        )
        result = extractor.extract(text)
        assert result.strategy == ExtractionStrategy.REPAIRED_JSON
        assert "merge_adjacent_arrays" in result.repairs
        assert [c.arguments["path"] for c in result.tool_calls] == ["a", "b"]

    def test_truncated_write_block_never_raises(self, extractor):
        text = (
            '{"tool_calls":[{"name":"write_file","arguments":'
            '{"path":"~Desktop/a.txt","content":"hi}]}'
        )
        calls = extractor.extract_calls(text)
        assert len(calls) == 1
        assert calls[0].name == "write_file"
        assert calls[0].arguments["path"] == "~Desktop/a.txt"

    def test_unquoted_content_quotes(self, extractor):
        text = (
            '{"tool_calls": [{"name": "write_file", "arguments": '
            '{"path": "~/q.txt", "content": "she said "hi" today"}}]}'
        )
        calls = extractor.extract_calls(text)
        assert calls[0].arguments["content"] == 'she said "hi" today'

    def test_duplicates_removed(self, extractor):
        text = (
            '{"tool_calls": ['
            '{"name": "stat", "arguments": {"path": "a", "x": 1}},'
            '{"name": "stat", "arguments": {"x": 1, "path": "a"}}]}'
        )
        result = extractor.extract(text)
        assert len(result.tool_calls) == 1
        assert result.duplicates_removed == 1

    def test_empty_block_has_no_strategy(self, extractor):
        result = extractor.extract('{"tool_calls": []}')
        assert result.tool_calls == []
        assert result.strategy == ExtractionStrategy.NONE


class TestArgumentsOnly:
    """Bare ``{"name", "arguments"}`` objects."""

    def test_known_tool(self, extractor):
        text = 'I will call {"name": "read_file", "arguments": {"path": "~/a.txt"}}'
        result = extractor.extract(text)
        assert result.strategy == ExtractionStrategy.ARGUMENTS_ONLY
        assert result.tool_calls == [ToolCall(name="read_file", arguments={"path": "~/a.txt"})]

    def test_unknown_tool_ignored(self, extractor):
        text = '{"name": "weather", "arguments": {"city": "Paris"}}'
        assert extractor.extract_calls(text) == []


class TestNaturalLanguageInference:
    """The folder-creation fallback."""

    def test_create_folder_called(self, extractor):
        result = extractor.extract("create a folder called Notes")
        assert result.strategy == ExtractionStrategy.NATURAL_LANGUAGE
        assert result.tool_calls == [ToolCall(name="create_folder", arguments={"path": "Notes"})]

    def test_location_on_desktop(self, extractor):
        calls = extractor.extract_calls("Create a new folder on my desktop named Projects")
        assert calls[0].arguments == {"path": "~/Desktop/Projects"}

    def test_folder_word_in_documents(self, extractor):
        calls = extractor.extract_calls("create folder Reports in documents")
        assert calls[0].arguments == {"path": "~/Documents/Reports"}

    def test_home_location(self, extractor):
        calls = extractor.extract_calls("create a directory called tmp in home")
        assert calls[0].arguments == {"path": "~/tmp"}

    @pytest.mark.parametrize(
        "text",
        [
            "Here are the steps to create a folder called X",
            "create a folder",
            "I created nothing today",
            "create a folder called " + "x" * 200,
        ],
    )
    def test_not_inferred(self, extractor, text):
        assert extractor.extract_calls(text) == []

    def test_disabled(self):
        extractor = ToolCallExtractor(enable_inference=False)
        assert extractor.extract_calls("create a folder called Notes") == []

    def test_requires_create_folder_in_catalog(self):
        catalog = ToolCatalog.from_definitions([{"name": "stat"}])
        extractor = ToolCallExtractor(catalog=catalog)
        assert extractor.extract_calls("create a folder called Notes") == []


class TestNoCalls:
    def test_plain_text(self, extractor):
        result = extractor.extract("The weather is nice.")
        assert not result.has_calls
        assert result.strategy == ExtractionStrategy.NONE

    def test_empty(self, extractor):
        assert extractor.extract_calls(None) == []
        assert extractor.extract_calls("") == []
