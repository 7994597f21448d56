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

"""Tool catalog: the closed set of filesystem tools and their schemas.

Definitions are shaped like common function-calling schemas, so the same
catalog can be handed to OpenAI-style providers (``to_openai``) and to
Claude-style providers (``to_claude``) unmodified. Externally supplied tool
lists in either convention are accepted by ``ToolCatalog.from_definitions``.
"""

import copy
import logging
import re
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional

from agentloop.providers.base import ToolDefinition

logger = logging.getLogger(__name__)


class ToolName(str, Enum):
    """Canonical names of the filesystem tools."""

    CREATE_FOLDER = "create_folder"
    LIST_FILES = "list_files"
    READ_FILE = "read_file"
    WRITE_FILE = "write_file"
    DELETE_FILE = "delete_file"
    MOVE_FILE = "move_file"
    COPY_FILE = "copy_file"
    STAT = "stat"
    RENAME = "rename"
    GREP_FILE = "grep_file"
    READ_FILE_LINES = "read_file_lines"
    COUNT_FILE = "count_file"
    GET_FILENAME = "get_filename"
    GET_DIRECTORY = "get_directory"
    TOUCH_FILE = "touch_file"


# Tools that never change storage state
READ_ONLY_TOOLS = frozenset(
    {
        ToolName.LIST_FILES,
        ToolName.READ_FILE,
        ToolName.STAT,
        ToolName.GREP_FILE,
        ToolName.READ_FILE_LINES,
        ToolName.COUNT_FILE,
        ToolName.GET_FILENAME,
        ToolName.GET_DIRECTORY,
    }
)

# Keys that providers sometimes put next to "arguments" instead of inside it
KNOWN_ARGUMENT_KEYS = frozenset(
    {
        "path",
        "content",
        "mime_type",
        "file_type",
        "detailed",
        "show_hidden",
        "human_readable",
        "create_parents",
        "recursive",
        "case_sensitive",
        "first",
        "last",
        "range",
        "pattern",
        "from_path",
        "to_path",
        "new_name",
    }
)


def _string(description: str) -> Dict[str, Any]:
    return {"type": "string", "description": description}


def _boolean(description: str) -> Dict[str, Any]:
    return {"type": "boolean", "description": description}


def _schema(properties: Dict[str, Any], required: Iterable[str] = ()) -> Dict[str, Any]:
    return {"type": "object", "properties": properties, "required": list(required)}


_PATH = _string(
    "Path to the item. Use ~ for the home directory, e.g. ~/Desktop/notes.txt. "
    "A bare name is placed on the Desktop."
)

FILESYSTEM_TOOLS: List[ToolDefinition] = [
    ToolDefinition(
        name=ToolName.CREATE_FOLDER.value,
        description="Create a folder. Use when the user asks to create a folder or directory.",
        parameters=_schema(
            {
                "path": _PATH,
                "create_parents": _boolean("Also create missing parent folders"),
            },
            ["path"],
        ),
    ),
    ToolDefinition(
        name=ToolName.LIST_FILES.value,
        description="List the files and folders in a directory. Defaults to the home directory.",
        parameters=_schema(
            {
                "path": _PATH,
                "show_hidden": _boolean("Include entries whose name starts with a dot"),
                "detailed": _boolean("Include size, type and timestamps"),
                "human_readable": _boolean("Format sizes as KB/MB/GB"),
                "file_type": _string(
                    "Only return files of this type: an extension such as 'pdf' "
                    "or a MIME type such as 'image/png'"
                ),
            },
        ),
    ),
    ToolDefinition(
        name=ToolName.READ_FILE.value,
        description="Read the text content of a file.",
        parameters=_schema({"path": _PATH}, ["path"]),
    ),
    ToolDefinition(
        name=ToolName.WRITE_FILE.value,
        description="Create or overwrite a file with the given content.",
        parameters=_schema(
            {
                "path": _PATH,
                "content": _string("Full content to write"),
                "mime_type": _string("MIME type of the content (default text/plain)"),
            },
            ["path", "content"],
        ),
    ),
    ToolDefinition(
        name=ToolName.DELETE_FILE.value,
        description="Permanently delete a file or folder.",
        parameters=_schema(
            {
                "path": _PATH,
                "recursive": _boolean("Required to delete a non-empty folder"),
            },
            ["path"],
        ),
    ),
    ToolDefinition(
        name=ToolName.MOVE_FILE.value,
        description="Move a file or folder to a new location.",
        parameters=_schema(
            {
                "from_path": _string("Current path of the item"),
                "to_path": _string("Destination path (a folder or a full new path)"),
            },
            ["from_path", "to_path"],
        ),
    ),
    ToolDefinition(
        name=ToolName.COPY_FILE.value,
        description="Copy a file or folder to a new location.",
        parameters=_schema(
            {
                "from_path": _string("Path of the item to copy"),
                "to_path": _string("Destination path (a folder or a full new path)"),
            },
            ["from_path", "to_path"],
        ),
    ),
    ToolDefinition(
        name=ToolName.STAT.value,
        description="Get metadata (size, type, timestamps) for a file or folder.",
        parameters=_schema({"path": _PATH}, ["path"]),
    ),
    ToolDefinition(
        name=ToolName.RENAME.value,
        description="Rename a file or folder in place.",
        parameters=_schema(
            {"path": _PATH, "new_name": _string("New name, without any directory part")},
            ["path", "new_name"],
        ),
    ),
    ToolDefinition(
        name=ToolName.GREP_FILE.value,
        description="Find the lines of a file that contain a piece of text.",
        parameters=_schema(
            {
                "path": _PATH,
                "pattern": _string("Text to search for"),
                "case_sensitive": _boolean("Match case exactly (default false)"),
            },
            ["path", "pattern"],
        ),
    ),
    ToolDefinition(
        name=ToolName.READ_FILE_LINES.value,
        description="Read part of a file: the first N lines, the last N lines, or a line range.",
        parameters=_schema(
            {
                "path": _PATH,
                "first": {"type": "number", "description": "Number of lines from the start"},
                "last": {"type": "number", "description": "Number of lines from the end"},
                "range": _string("1-based inclusive range 'start:end', e.g. '10:20'"),
            },
            ["path"],
        ),
    ),
    ToolDefinition(
        name=ToolName.COUNT_FILE.value,
        description="Count the lines, words and characters in a file.",
        parameters=_schema({"path": _PATH}, ["path"]),
    ),
    ToolDefinition(
        name=ToolName.GET_FILENAME.value,
        description="Return the file name part of a path. Does not touch storage.",
        parameters=_schema({"path": _string("Any path")}, ["path"]),
    ),
    ToolDefinition(
        name=ToolName.GET_DIRECTORY.value,
        description="Return the directory part of a path. Does not touch storage.",
        parameters=_schema({"path": _string("Any path")}, ["path"]),
    ),
    ToolDefinition(
        name=ToolName.TOUCH_FILE.value,
        description="Create an empty file, or update the timestamp of an existing one.",
        parameters=_schema({"path": _PATH}, ["path"]),
    ),
]


def compact_name(name: str) -> str:
    """Fold a tool name to lowercase with separators removed."""
    return re.sub(r"[\s_\-]+", "", name).lower()


def normalize_json_schema(schema: Any) -> Any:
    """Fill in defaults some providers require, recursively.

    Arrays without ``items`` get ``{"type": "string"}``.
    """
    if not isinstance(schema, dict):
        return schema
    schema = dict(schema)
    if schema.get("type") == "object" and isinstance(schema.get("properties"), dict):
        schema["properties"] = {
            key: normalize_json_schema(value) for key, value in schema["properties"].items()
        }
    if schema.get("type") == "array":
        items = schema.get("items")
        schema["items"] = normalize_json_schema(items) if items else {"type": "string"}
    return schema


def normalize_tool_definition(raw: Mapping[str, Any]) -> ToolDefinition:
    """Accept a tool in OpenAI, Claude, or flat form.

    - OpenAI: ``{"type": "function", "function": {name, description, parameters}}``
    - Claude: ``{name, description, input_schema}``
    - Flat: ``{name, description, parameters}``
    """
    if isinstance(raw, ToolDefinition):
        return raw
    if raw.get("input_schema") is not None:
        fn = raw
    elif raw.get("type") == "function" and isinstance(raw.get("function"), Mapping):
        fn = raw["function"]
    else:
        fn = raw

    if not fn.get("name"):
        raise ValueError(f"Tool definition has no name: {dict(raw)}")

    parameters = fn.get("parameters") or fn.get("input_schema") or {
        "type": "object",
        "properties": {},
    }
    return ToolDefinition(
        name=fn["name"],
        description=fn.get("description") or "",
        parameters=normalize_json_schema(copy.deepcopy(dict(parameters))),
    )


class ToolCatalog:
    """Immutable lookup over a set of tool definitions.

    Resolves the name variants models produce (``createFolder``,
    ``create-folder``, ``CREATE_FOLDER``) to the canonical catalog name.
    """

    def __init__(self, definitions: Iterable[ToolDefinition]):
        self._definitions: Dict[str, ToolDefinition] = {}
        self._aliases: Dict[str, str] = {}
        for definition in definitions:
            self._definitions[definition.name] = definition
            self._aliases[compact_name(definition.name)] = definition.name

    @classmethod
    def default(cls) -> "ToolCatalog":
        """Catalog of all filesystem tools."""
        return cls(FILESYSTEM_TOOLS)

    @classmethod
    def from_definitions(cls, raw_tools: Iterable[Mapping[str, Any]]) -> "ToolCatalog":
        """Build a catalog from externally supplied tool definitions."""
        return cls(normalize_tool_definition(raw) for raw in raw_tools)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.canonical_name(name) is not None

    def __len__(self) -> int:
        return len(self._definitions)

    @property
    def names(self) -> List[str]:
        return list(self._definitions)

    @property
    def definitions(self) -> List[ToolDefinition]:
        return list(self._definitions.values())

    def canonical_name(self, name: str) -> Optional[str]:
        """Map a name variant to its catalog name, or None if unknown."""
        if not name:
            return None
        if name in self._definitions:
            return name
        return self._aliases.get(compact_name(name))

    def normalize_name(self, name: str) -> str:
        """Canonical name when known, otherwise the name stripped of whitespace."""
        return self.canonical_name(name) or name.strip()

    def get(self, name: str) -> Optional[ToolDefinition]:
        canonical = self.canonical_name(name)
        return self._definitions.get(canonical) if canonical else None

    def parameter_names(self, name: str) -> List[str]:
        definition = self.get(name)
        return list(definition.properties) if definition else []

    def to_openai(self) -> List[Dict[str, Any]]:
        """Tools in OpenAI function-calling format."""
        return [
            {
                "type": "function",
                "function": {
                    "name": tool.name,
                    "description": tool.description,
                    "parameters": tool.parameters,
                },
            }
            for tool in self._definitions.values()
        ]

    def to_claude(self) -> List[Dict[str, Any]]:
        """Tools in Claude tool-use format."""
        return [
            {
                "name": tool.name,
                "description": tool.description,
                "input_schema": tool.parameters,
            }
            for tool in self._definitions.values()
        ]
