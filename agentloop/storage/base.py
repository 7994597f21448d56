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

"""Storage capability the tool executor dispatches to.

Paths handed to a backend are always canonical and already validated by
the sandbox. Backends signal failures with the builtin OSError family
(FileNotFoundError, FileExistsError, IsADirectoryError, NotADirectoryError).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol, Union, runtime_checkable


@dataclass
class EntryMetadata:
    """Metadata for one file or folder."""

    path: str
    is_dir: bool
    size: int = 0
    mime_type: Optional[str] = None
    created_at: Optional[datetime] = None
    modified_at: Optional[datetime] = None

    @property
    def name(self) -> str:
        return self.path.rstrip("/").rsplit("/", 1)[-1]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "path": self.path,
            "type": "directory" if self.is_dir else "file",
            "is_dir": self.is_dir,
            "size": self.size,
            "mime_type": self.mime_type,
            "created": self.created_at.isoformat() if self.created_at else None,
            "modified": self.modified_at.isoformat() if self.modified_at else None,
        }


@runtime_checkable
class StorageBackend(Protocol):
    """Async filesystem operations on canonical paths."""

    async def create_directory(self, path: str) -> EntryMetadata:
        """Create a folder, creating missing parents."""
        ...

    async def list_directory(self, path: str) -> List[EntryMetadata]:
        ...

    async def read_file(self, path: str) -> bytes:
        ...

    async def write_file(
        self, path: str, content: Union[str, bytes], mime_type: str = "text/plain"
    ) -> EntryMetadata:
        ...

    async def delete(self, path: str, recursive: bool = False) -> None:
        ...

    async def move(self, source: str, destination: str) -> EntryMetadata:
        ...

    async def copy(self, source: str, destination: str) -> EntryMetadata:
        ...

    async def stat(self, path: str) -> Optional[EntryMetadata]:
        """Metadata for ``path``, or None if nothing exists there."""
        ...
