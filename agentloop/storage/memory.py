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

"""In-memory storage backend.

Reference implementation of StorageBackend, used by the CLI ``replay``
command and the tests. Entries are keyed by canonical path.
"""

import errno
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Union

from agentloop.config.settings import STANDARD_DIRECTORIES
from agentloop.storage.base import EntryMetadata

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _parent(path: str) -> str:
    parent = path.rstrip("/").rsplit("/", 1)[0]
    return parent or "/"


@dataclass
class _Entry:
    is_dir: bool
    content: bytes = b""
    mime_type: Optional[str] = None
    created_at: datetime = field(default_factory=_now)
    modified_at: datetime = field(default_factory=_now)


class InMemoryStorage:
    """Dictionary-backed filesystem."""

    def __init__(self) -> None:
        self._entries: Dict[str, _Entry] = {"/": _Entry(is_dir=True)}

    @classmethod
    def with_home(
        cls, tenant_root: str, directories: Iterable[str] = STANDARD_DIRECTORIES
    ) -> "InMemoryStorage":
        """Storage holding ``/<tenant>`` and its standard directories."""
        storage = cls()
        root = "/" + tenant_root.strip("/")
        storage._make_dirs(root)
        for name in directories:
            storage._make_dirs(f"{root}/{name}")
        return storage

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------

    def _metadata(self, path: str, entry: _Entry) -> EntryMetadata:
        return EntryMetadata(
            path=path,
            is_dir=entry.is_dir,
            size=len(entry.content),
            mime_type=entry.mime_type,
            created_at=entry.created_at,
            modified_at=entry.modified_at,
        )

    def _make_dirs(self, path: str) -> None:
        missing: List[str] = []
        current = path
        while current not in self._entries:
            missing.append(current)
            current = _parent(current)
        if not self._entries[current].is_dir:
            raise NotADirectoryError(errno.ENOTDIR, "Not a directory", current)
        for directory in reversed(missing):
            self._entries[directory] = _Entry(is_dir=True)

    def _get(self, path: str) -> _Entry:
        entry = self._entries.get(path)
        if entry is None:
            raise FileNotFoundError(errno.ENOENT, "No such file or directory", path)
        return entry

    def _subtree(self, path: str) -> List[str]:
        prefix = path.rstrip("/") + "/"
        return [p for p in self._entries if p == path or p.startswith(prefix)]

    def _transfer(self, source: str, destination: str, keep_source: bool) -> EntryMetadata:
        self._get(source)
        if destination in self._entries:
            raise FileExistsError(errno.EEXIST, "Destination exists", destination)
        if destination.startswith(source.rstrip("/") + "/"):
            raise OSError(errno.EINVAL, "Cannot place a folder inside itself", destination)
        self._make_dirs(_parent(destination))

        for old in sorted(self._subtree(source)):
            new = destination + old[len(source) :]
            entry = self._entries[old]
            self._entries[new] = replace(entry, modified_at=_now()) if keep_source else entry
            if not keep_source:
                del self._entries[old]
        return self._metadata(destination, self._entries[destination])

    # ------------------------------------------------------------------
    # StorageBackend
    # ------------------------------------------------------------------

    async def create_directory(self, path: str) -> EntryMetadata:
        if path in self._entries:
            raise FileExistsError(errno.EEXIST, "File exists", path)
        self._make_dirs(path)
        return self._metadata(path, self._entries[path])

    async def list_directory(self, path: str) -> List[EntryMetadata]:
        entry = self._get(path)
        if not entry.is_dir:
            raise NotADirectoryError(errno.ENOTDIR, "Not a directory", path)
        return [
            self._metadata(child, self._entries[child])
            for child in sorted(self._entries)
            if child != path and _parent(child) == path
        ]

    async def read_file(self, path: str) -> bytes:
        entry = self._get(path)
        if entry.is_dir:
            raise IsADirectoryError(errno.EISDIR, "Is a directory", path)
        return entry.content

    async def write_file(
        self, path: str, content: Union[str, bytes], mime_type: str = "text/plain"
    ) -> EntryMetadata:
        data = content.encode("utf-8") if isinstance(content, str) else content
        existing = self._entries.get(path)
        if existing is not None and existing.is_dir:
            raise IsADirectoryError(errno.EISDIR, "Is a directory", path)

        self._make_dirs(_parent(path))
        if existing is None:
            entry = _Entry(is_dir=False, content=data, mime_type=mime_type)
        else:
            entry = replace(existing, content=data, mime_type=mime_type, modified_at=_now())
        self._entries[path] = entry
        return self._metadata(path, entry)

    async def delete(self, path: str, recursive: bool = False) -> None:
        entry = self._get(path)
        subtree = self._subtree(path)
        if entry.is_dir and len(subtree) > 1 and not recursive:
            raise OSError(errno.ENOTEMPTY, "Directory not empty", path)
        for item in subtree:
            del self._entries[item]

    async def move(self, source: str, destination: str) -> EntryMetadata:
        return self._transfer(source, destination, keep_source=False)

    async def copy(self, source: str, destination: str) -> EntryMetadata:
        return self._transfer(source, destination, keep_source=True)

    async def stat(self, path: str) -> Optional[EntryMetadata]:
        entry = self._entries.get(path)
        return self._metadata(path, entry) if entry else None
