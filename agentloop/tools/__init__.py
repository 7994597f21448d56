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

"""Filesystem tool catalog and argument models."""

from agentloop.tools.arguments import ARGUMENT_MODELS, ToolArguments, parse_arguments
from agentloop.tools.catalog import (
    FILESYSTEM_TOOLS,
    KNOWN_ARGUMENT_KEYS,
    READ_ONLY_TOOLS,
    ToolCatalog,
    ToolName,
    normalize_tool_definition,
)

__all__ = [
    "ARGUMENT_MODELS",
    "FILESYSTEM_TOOLS",
    "KNOWN_ARGUMENT_KEYS",
    "READ_ONLY_TOOLS",
    "ToolArguments",
    "ToolCatalog",
    "ToolName",
    "normalize_tool_definition",
    "parse_arguments",
]
