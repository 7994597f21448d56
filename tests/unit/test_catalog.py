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

"""Tests for the filesystem tool catalog."""

import pytest

from agentloop.providers.base import ToolDefinition
from agentloop.tools.catalog import (
    FILESYSTEM_TOOLS,
    READ_ONLY_TOOLS,
    ToolCatalog,
    ToolName,
    compact_name,
    normalize_json_schema,
    normalize_tool_definition,
)


class TestToolName:
    """Tests for the closed tool-name enum."""

    def test_every_name_has_a_definition(self):
        names = {tool.name for tool in FILESYSTEM_TOOLS}
        assert names == {tool.value for tool in ToolName}
        assert len(FILESYSTEM_TOOLS) == 15

    def test_read_only_tools_do_not_mutate(self):
        values = {tool.value for tool in READ_ONLY_TOOLS}
        assert "read_file" in values
        assert "write_file" not in values
        assert "delete_file" not in values
        assert "touch_file" not in values


class TestToolCatalog:
    """Tests for ToolCatalog lookups."""

    @pytest.fixture
    def catalog(self):
        return ToolCatalog.default()

    def test_len_and_names(self, catalog):
        assert len(catalog) == 15
        assert catalog.names[0] == "create_folder"

    @pytest.mark.parametrize(
        "variant", ["create_folder", "createFolder", "create-folder", "CREATE_FOLDER", " create folder "]
    )
    def test_canonical_name_variants(self, catalog, variant):
        assert catalog.canonical_name(variant) == "create_folder"
        assert variant in catalog

    def test_unknown_name(self, catalog):
        assert catalog.canonical_name("frobnicate") is None
        assert catalog.canonical_name("") is None
        assert "frobnicate" not in catalog
        assert catalog.normalize_name("  frobnicate ") == "frobnicate"

    def test_get_and_parameter_names(self, catalog):
        definition = catalog.get("writeFile")
        assert definition is not None
        assert definition.required == ["path", "content"]
        assert catalog.parameter_names("write_file") == ["path", "content", "mime_type"]
        assert catalog.parameter_names("nope") == []

    def test_to_openai(self, catalog):
        exported = catalog.to_openai()
        assert exported[0]["type"] == "function"
        assert exported[0]["function"]["name"] == "create_folder"
        assert exported[0]["function"]["parameters"]["type"] == "object"

    def test_to_claude(self, catalog):
        exported = catalog.to_claude()
        assert exported[1]["name"] == "list_files"
        assert "input_schema" in exported[1]

    def test_round_trip_through_external_formats(self, catalog):
        from_openai = ToolCatalog.from_definitions(catalog.to_openai())
        from_claude = ToolCatalog.from_definitions(catalog.to_claude())
        assert from_openai.names == catalog.names
        assert from_claude.get("rename").required == ["path", "new_name"]


class TestNormalization:
    """Tests for schema and definition normalization."""

    def test_compact_name(self):
        assert compact_name("Read-File Lines") == "readfilelines"

    def test_array_items_default(self):
        schema = {
            "type": "object",
            "properties": {"tags": {"type": "array"}, "name": {"type": "string"}},
        }
        normalized = normalize_json_schema(schema)
        assert normalized["properties"]["tags"]["items"] == {"type": "string"}
        assert "items" not in schema["properties"]["tags"]

    def test_flat_definition(self):
        definition = normalize_tool_definition({"name": "ping", "description": "Ping"})
        assert isinstance(definition, ToolDefinition)
        assert definition.parameters == {"type": "object", "properties": {}}

    def test_definition_without_name(self):
        with pytest.raises(ValueError):
            normalize_tool_definition({"description": "nameless"})
