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

"""Typed argument models, one per tool.

Arguments are validated here before any path is resolved or any storage
call is made. ``PATH_FIELDS`` names the fields that must go through the
path sandbox.
"""

import json
import re
from typing import Any, ClassVar, Dict, Mapping, Optional, Tuple, Type

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from agentloop.core.errors import ToolValidationError
from agentloop.tools.catalog import ToolName

_RANGE_PATTERN = re.compile(r"^\s*(\d+)\s*:\s*(\d+)\s*$")


class ToolArguments(BaseModel):
    """Base for tool argument models."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True, str_strip_whitespace=False)

    PATH_FIELDS: ClassVar[Tuple[str, ...]] = ("path",)


class PathArguments(ToolArguments):
    path: str = Field(min_length=1)


class CreateFolderArguments(PathArguments):
    create_parents: bool = False


class ListFilesArguments(ToolArguments):
    path: Optional[str] = None
    show_hidden: bool = False
    detailed: bool = False
    human_readable: bool = False
    file_type: Optional[str] = None


class ReadFileArguments(PathArguments):
    pass


class WriteFileArguments(PathArguments):
    content: str
    mime_type: str = "text/plain"

    @field_validator("content", mode="before")
    @classmethod
    def coerce_content(cls, v: Any) -> Any:
        # Models occasionally send structured content; store it as JSON text
        if isinstance(v, (dict, list)):
            return json.dumps(v, indent=2)
        return v


class DeleteFileArguments(PathArguments):
    recursive: bool = False


class TransferArguments(ToolArguments):
    """Source/destination pair used by move and copy."""

    PATH_FIELDS: ClassVar[Tuple[str, ...]] = ("from_path", "to_path")

    from_path: str = Field(
        min_length=1,
        validation_alias=AliasChoices("from_path", "sourcePath", "source_path", "from", "source"),
    )
    to_path: str = Field(
        min_length=1,
        validation_alias=AliasChoices(
            "to_path", "destinationPath", "destination_path", "to", "destination"
        ),
    )


class MoveFileArguments(TransferArguments):
    pass


class CopyFileArguments(TransferArguments):
    pass


class StatArguments(PathArguments):
    pass


class RenameArguments(PathArguments):
    new_name: str = Field(min_length=1)

    @field_validator("new_name")
    @classmethod
    def validate_new_name(cls, v: str) -> str:
        if "/" in v or "\\" in v:
            raise ValueError("new_name must not contain a directory separator")
        return v


class GrepFileArguments(PathArguments):
    pattern: str = Field(min_length=1)
    case_sensitive: bool = False


class ReadFileLinesArguments(PathArguments):
    first: Optional[int] = Field(default=None, ge=1)
    last: Optional[int] = Field(default=None, ge=1)
    range: Optional[str] = None

    @field_validator("range")
    @classmethod
    def validate_range(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        match = _RANGE_PATTERN.match(v)
        if not match:
            raise ValueError("range must look like 'start:end'")
        start, end = int(match.group(1)), int(match.group(2))
        if start < 1 or end < start:
            raise ValueError("range must satisfy 1 <= start <= end")
        return f"{start}:{end}"

    @model_validator(mode="after")
    def require_selector(self) -> "ReadFileLinesArguments":
        if self.first is None and self.last is None and self.range is None:
            raise ValueError("specify one of first, last, or range")
        return self

    def line_span(self) -> Tuple[int, int]:
        """1-based inclusive (start, end) for ``range``."""
        start, end = (self.range or "1:1").split(":")
        return int(start), int(end)


class CountFileArguments(PathArguments):
    pass


class GetFilenameArguments(PathArguments):
    PATH_FIELDS: ClassVar[Tuple[str, ...]] = ()


class GetDirectoryArguments(PathArguments):
    PATH_FIELDS: ClassVar[Tuple[str, ...]] = ()


class TouchFileArguments(PathArguments):
    pass


ARGUMENT_MODELS: Dict[ToolName, Type[ToolArguments]] = {
    ToolName.CREATE_FOLDER: CreateFolderArguments,
    ToolName.LIST_FILES: ListFilesArguments,
    ToolName.READ_FILE: ReadFileArguments,
    ToolName.WRITE_FILE: WriteFileArguments,
    ToolName.DELETE_FILE: DeleteFileArguments,
    ToolName.MOVE_FILE: MoveFileArguments,
    ToolName.COPY_FILE: CopyFileArguments,
    ToolName.STAT: StatArguments,
    ToolName.RENAME: RenameArguments,
    ToolName.GREP_FILE: GrepFileArguments,
    ToolName.READ_FILE_LINES: ReadFileLinesArguments,
    ToolName.COUNT_FILE: CountFileArguments,
    ToolName.GET_FILENAME: GetFilenameArguments,
    ToolName.GET_DIRECTORY: GetDirectoryArguments,
    ToolName.TOUCH_FILE: TouchFileArguments,
}


def parse_arguments(tool: ToolName, arguments: Mapping[str, Any]) -> ToolArguments:
    """Validate raw arguments against the tool's model.

    Raises:
        ToolValidationError: With the offending field names
    """
    model = ARGUMENT_MODELS[tool]
    try:
        return model.model_validate(dict(arguments))
    except ValidationError as e:
        invalid = sorted({str(err["loc"][0]) for err in e.errors() if err.get("loc")})
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'arguments'}: {err['msg']}"
            for err in e.errors()
        )
        raise ToolValidationError(
            f"Invalid arguments for {tool.value}: {problems}",
            tool_name=tool.value,
            invalid_args=invalid,
            cause=e,
        ) from e
