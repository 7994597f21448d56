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

"""Tests for the per-tool argument models."""

import pytest

from agentloop.core.errors import ToolValidationError
from agentloop.tools.arguments import (
    ARGUMENT_MODELS,
    ListFilesArguments,
    MoveFileArguments,
    ReadFileLinesArguments,
    WriteFileArguments,
    parse_arguments,
)
from agentloop.tools.catalog import ToolName


class TestParseArguments:
    """Tests for parse_arguments()."""

    def test_every_tool_has_a_model(self):
        assert set(ARGUMENT_MODELS) == set(ToolName)

    def test_extra_keys_ignored(self):
        args = parse_arguments(ToolName.READ_FILE, {"path": "~/a.txt", "encoding": "utf-8"})
        assert args.path == "~/a.txt"
        assert not hasattr(args, "encoding")

    def test_missing_required_reports_field(self):
        with pytest.raises(ToolValidationError) as exc_info:
            parse_arguments(ToolName.WRITE_FILE, {"path": "~/a.txt"})
        error = exc_info.value
        assert error.invalid_args == ["content"]
        assert error.tool_name == "write_file"
        assert "content" in error.message

    def test_empty_path_rejected(self):
        with pytest.raises(ToolValidationError):
            parse_arguments(ToolName.STAT, {"path": ""})

    def test_list_files_path_optional(self):
        args = parse_arguments(ToolName.LIST_FILES, {})
        assert isinstance(args, ListFilesArguments)
        assert args.path is None
        assert args.detailed is False


class TestWriteFileArguments:
    def test_structured_content_becomes_json(self):
        args = WriteFileArguments(path="~/a.json", content={"a": 1})
        assert args.content == '{\n  "a": 1\n}'
        assert args.mime_type == "text/plain"


class TestTransferArguments:
    """move_file / copy_file accept several spellings of source and destination."""

    @pytest.mark.parametrize(
        "raw",
        [
            {"from_path": "a", "to_path": "b"},
            {"sourcePath": "a", "destinationPath": "b"},
            {"source_path": "a", "destination_path": "b"},
            {"from": "a", "to": "b"},
            {"source": "a", "destination": "b"},
        ],
    )
    def test_aliases(self, raw):
        args = MoveFileArguments.model_validate(raw)
        assert (args.from_path, args.to_path) == ("a", "b")

    def test_path_fields(self):
        assert MoveFileArguments.PATH_FIELDS == ("from_path", "to_path")

    def test_rename_rejects_separator(self):
        with pytest.raises(ToolValidationError) as exc_info:
            parse_arguments(ToolName.RENAME, {"path": "~/a", "new_name": "x/y"})
        assert exc_info.value.invalid_args == ["new_name"]


class TestReadFileLinesArguments:
    """Tests for line-selection validation."""

    def test_requires_a_selector(self):
        with pytest.raises(ToolValidationError):
            parse_arguments(ToolName.READ_FILE_LINES, {"path": "~/a.txt"})

    def test_range_normalized(self):
        args = ReadFileLinesArguments(path="~/a.txt", range=" 2 : 5 ")
        assert args.range == "2:5"
        assert args.line_span() == (2, 5)

    @pytest.mark.parametrize("bad", ["5", "a:b", "0:3", "5:2"])
    def test_bad_range(self, bad):
        with pytest.raises(ToolValidationError):
            parse_arguments(ToolName.READ_FILE_LINES, {"path": "~/a.txt", "range": bad})

    def test_first_must_be_positive(self):
        with pytest.raises(ToolValidationError):
            parse_arguments(ToolName.READ_FILE_LINES, {"path": "~/a.txt", "first": 0})
