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

"""Tool execution against a storage backend.

This module provides sandboxed tool execution with:
- Canonical tool-name lookup against the catalog
- Typed argument validation before dispatch
- Path resolution and validation for every path-bearing argument
- A uniform ``{success, result | error}`` envelope per call
- Change notifications for every mutation
- Per-call isolation: a failing call never stops its siblings
"""

import asyncio
import errno
import logging
import mimetypes
import posixpath
import re
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, cast

from agentloop.agent.notifications import ChangeEvent, ChangeNotifier, ChangeType, NullNotifier
from agentloop.agent.path_sandbox import PathContext, PathSandbox
from agentloop.core.errors import (
    AgentLoopError,
    SandboxViolation,
    ToolError,
    ToolExecutionError,
    ToolNotFoundError,
)
from agentloop.providers.base import ToolCall
from agentloop.storage.base import EntryMetadata, StorageBackend
from agentloop.tools import arguments as args_mod
from agentloop.tools.arguments import ToolArguments, parse_arguments
from agentloop.tools.catalog import READ_ONLY_TOOLS, ToolCatalog, ToolName

logger = logging.getLogger(__name__)

DEFAULT_MAX_READ_CHARS = 50000

_READ_ONLY_NAMES = frozenset(tool.value for tool in READ_ONLY_TOOLS)


@dataclass
class ToolResult:
    """Outcome of one tool call.

    ``to_dict`` gives the envelope fed back to the model:
    ``{"success": True, "result": ...}`` or ``{"success": False, "error": ...}``.
    """

    name: str
    success: bool
    result: Any = None
    error: Optional[str] = None
    call_id: Optional[str] = None
    execution_time: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        if self.success:
            return {"success": True, "result": self.result}
        return {"success": False, "error": self.error}


def format_size(size: int) -> str:
    """Human readable byte count."""
    if size < 1024:
        return f"{size} B"
    value = float(size)
    for unit in ("KB", "MB"):
        value /= 1024
        if value < 1024:
            return f"{value:.1f} {unit}"
    return f"{value / 1024:.1f} GB"


def _describe_os_error(error: OSError, fallback_path: str) -> str:
    path = error.filename or fallback_path
    if isinstance(error, FileNotFoundError):
        return f"File or folder not found: {path}"
    if isinstance(error, FileExistsError):
        return f"Already exists: {path}"
    if isinstance(error, IsADirectoryError):
        return f"Is a folder, not a file: {path}"
    if isinstance(error, NotADirectoryError):
        return f"Not a folder: {path}"
    return f"{error.strerror or error}: {path}"


Handler = Callable[[ToolArguments, Dict[str, str], PathContext], Awaitable[Dict[str, Any]]]


class ToolExecutor:
    """Dispatches validated tool calls to a storage backend.

    One executor serves one tenant. It holds no per-run conversation state,
    only cumulative call statistics.
    """

    def __init__(
        self,
        storage: StorageBackend,
        sandbox: PathSandbox,
        catalog: Optional[ToolCatalog] = None,
        notifier: Optional[ChangeNotifier] = None,
        max_read_chars: int = DEFAULT_MAX_READ_CHARS,
    ):
        self.storage = storage
        self.sandbox = sandbox
        self.catalog = catalog or ToolCatalog.default()
        self.notifier: ChangeNotifier = notifier or NullNotifier()
        self.max_read_chars = max_read_chars
        self._stats: Dict[str, Dict[str, Any]] = {}
        self._handlers: Dict[ToolName, Handler] = {
            ToolName.CREATE_FOLDER: self._create_folder,
            ToolName.LIST_FILES: self._list_files,
            ToolName.READ_FILE: self._read_file,
            ToolName.WRITE_FILE: self._write_file,
            ToolName.DELETE_FILE: self._delete_file,
            ToolName.MOVE_FILE: self._move_file,
            ToolName.COPY_FILE: self._copy_file,
            ToolName.STAT: self._stat,
            ToolName.RENAME: self._rename,
            ToolName.GREP_FILE: self._grep_file,
            ToolName.READ_FILE_LINES: self._read_file_lines,
            ToolName.COUNT_FILE: self._count_file,
            ToolName.GET_FILENAME: self._get_filename,
            ToolName.GET_DIRECTORY: self._get_directory,
            ToolName.TOUCH_FILE: self._touch_file,
        }

    @property
    def tenant_id(self) -> str:
        return self.sandbox.tenant_root

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def execute(self, call: ToolCall, context: Optional[PathContext] = None) -> ToolResult:
        """Run one call. Never raises for tool-level failures."""
        context = context or PathContext()
        start_time = time.time()
        name = self.catalog.normalize_name(call.name)
        stats = self._stats.setdefault(
            name, {"calls": 0, "successes": 0, "failures": 0, "total_time": 0.0}
        )
        stats["calls"] += 1

        try:
            tool = self._lookup(name)
            arguments = parse_arguments(tool, call.arguments)
            paths = {
                field: self.sandbox.resolve_and_validate(getattr(arguments, field), context)
                for field in arguments.PATH_FIELDS
            }
            payload = await self._handlers[tool](arguments, paths, context)
            result = ToolResult(name=name, success=True, result=payload, call_id=call.id)
        except (ToolError, SandboxViolation) as e:
            result = self._failure(name, call, e)
        except OSError as e:
            fallback = str(call.arguments.get("path", ""))
            error = ToolExecutionError(_describe_os_error(e, fallback), tool_name=name, cause=e)
            result = self._failure(name, call, error)
        except Exception as e:
            logger.exception(f"Unexpected failure in tool {name}")
            error = ToolExecutionError(f"{type(e).__name__}: {e}", tool_name=name, cause=e)
            result = self._failure(name, call, error)

        result.execution_time = time.time() - start_time
        stats["total_time"] += result.execution_time
        stats["successes" if result.success else "failures"] += 1
        return result

    async def execute_batch(
        self,
        calls: Sequence[ToolCall],
        context: Optional[PathContext] = None,
        parallel: bool = False,
    ) -> List[ToolResult]:
        """Run calls and return results in input order.

        Concurrent execution is used only when ``parallel`` is set and every
        call is a read-only tool, so no call can observe another's effects.
        """
        if parallel and len(calls) > 1 and all(self._is_read_only(c.name) for c in calls):
            logger.debug(f"Running {len(calls)} read-only calls concurrently")
            return list(await asyncio.gather(*(self.execute(c, context) for c in calls)))

        results = []
        for call in calls:
            results.append(await self.execute(call, context))
        return results

    def get_stats(self) -> Dict[str, Dict[str, Any]]:
        """Per-tool call counts and timings."""
        return {name: dict(values) for name, values in self._stats.items()}

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _lookup(self, name: str) -> ToolName:
        if name not in self.catalog:
            raise ToolNotFoundError(name)
        try:
            return ToolName(name)
        except ValueError:
            # In the catalog but not a filesystem tool
            raise ToolNotFoundError(name) from None

    def _is_read_only(self, name: str) -> bool:
        canonical = self.catalog.canonical_name(name)
        return canonical in _READ_ONLY_NAMES

    def _failure(self, name: str, call: ToolCall, error: AgentLoopError) -> ToolResult:
        logger.warning(f"Tool {name} failed: {error.message}")
        logger.debug(f"Tool failure details: {error.to_dict()}")
        return ToolResult(name=name, success=False, error=error.message, call_id=call.id)

    def _notify(
        self,
        change: ChangeType,
        path: str,
        meta: Optional[EntryMetadata] = None,
        old_path: Optional[str] = None,
    ) -> None:
        event = ChangeEvent(
            type=change,
            path=path,
            tenant_id=self.tenant_id,
            old_path=old_path,
            is_dir=meta.is_dir if meta else False,
            size=meta.size if meta else 0,
            mime_type=meta.mime_type if meta else None,
        )
        try:
            self.notifier.publish(event)
        except Exception as e:
            logger.warning(f"Change notification {change.value} for {path} failed: {e}")

    async def _read_text(self, path: str) -> str:
        data = await self.storage.read_file(path)
        return data.decode("utf-8", errors="replace")

    async def _destination(self, source: str, destination: str) -> str:
        """Move/copy into an existing folder keeps the source name."""
        existing = await self.storage.stat(destination)
        if existing is not None and existing.is_dir:
            return f"{destination}/{posixpath.basename(source)}"
        return destination

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    async def _create_folder(
        self, arguments: ToolArguments, paths: Dict[str, str], context: PathContext
    ) -> Dict[str, Any]:
        path = paths["path"]
        existing = await self.storage.stat(path)
        if existing is not None:
            if not existing.is_dir:
                raise FileExistsError(errno.EEXIST, "A file with this name exists", path)
            return {"path": path, "name": existing.name, "created": False, "existed": True}

        # Parent folders are always created; create_parents is accepted for compatibility
        meta = await self.storage.create_directory(path)
        self._notify(ChangeType.ITEM_ADDED, path, meta)
        return {"path": path, "name": meta.name, "created": True}

    async def _list_files(
        self, arguments: ToolArguments, paths: Dict[str, str], context: PathContext
    ) -> Dict[str, Any]:
        arguments = cast(args_mod.ListFilesArguments, arguments)
        path = paths["path"]
        entries = await self.storage.list_directory(path)

        if not arguments.show_hidden:
            entries = [e for e in entries if not e.name.startswith(".")]
        if arguments.file_type:
            entries = [e for e in entries if self._matches_type(e, arguments.file_type)]

        items = []
        for entry in entries:
            item: Dict[str, Any] = {
                "name": entry.name,
                "path": entry.path,
                "type": "directory" if entry.is_dir else "file",
            }
            if arguments.detailed:
                item["size"] = format_size(entry.size) if arguments.human_readable else entry.size
                item["mime_type"] = entry.mime_type
                item["modified"] = entry.modified_at.isoformat() if entry.modified_at else None
            items.append(item)

        return {"path": path, "entries": items, "count": len(items)}

    @staticmethod
    def _matches_type(entry: EntryMetadata, file_type: str) -> bool:
        if entry.is_dir:
            return False
        wanted = file_type.strip().lower()
        if "/" in wanted:
            mime = entry.mime_type or mimetypes.guess_type(entry.name)[0] or ""
            return mime.lower() == wanted or (wanted.endswith("/*") and mime.startswith(wanted[:-1]))
        return entry.name.lower().endswith("." + wanted.lstrip("."))

    async def _read_file(
        self, arguments: ToolArguments, paths: Dict[str, str], context: PathContext
    ) -> Dict[str, Any]:
        path = paths["path"]
        content = await self._read_text(path)
        result: Dict[str, Any] = {"path": path, "content": content, "size": len(content)}

        if len(content) > self.max_read_chars:
            result.update(
                content=content[: self.max_read_chars],
                truncated=True,
                original_length=len(content),
                message=(
                    f"File truncated to {self.max_read_chars} characters "
                    f"(original length {len(content)})"
                ),
            )
            logger.info(f"Truncated read of {path}: {len(content)} -> {self.max_read_chars} chars")
        return result

    async def _write_file(
        self, arguments: ToolArguments, paths: Dict[str, str], context: PathContext
    ) -> Dict[str, Any]:
        arguments = cast(args_mod.WriteFileArguments, arguments)
        path = paths["path"]
        existed = await self.storage.stat(path) is not None
        meta = await self.storage.write_file(path, arguments.content, arguments.mime_type)
        self._notify(ChangeType.ITEM_UPDATED if existed else ChangeType.ITEM_ADDED, path, meta)
        return {
            "path": path,
            "size": meta.size,
            "mime_type": meta.mime_type,
            "created": not existed,
        }

    async def _delete_file(
        self, arguments: ToolArguments, paths: Dict[str, str], context: PathContext
    ) -> Dict[str, Any]:
        arguments = cast(args_mod.DeleteFileArguments, arguments)
        path = paths["path"]
        if path == self.sandbox.root_path:
            raise ToolExecutionError("Refusing to delete the home folder", tool_name="delete_file")
        meta = await self.storage.stat(path)
        if meta is None:
            raise FileNotFoundError(errno.ENOENT, "No such file or directory", path)
        await self.storage.delete(path, recursive=arguments.recursive)
        self._notify(ChangeType.ITEM_REMOVED, path, meta)
        return {"path": path, "deleted": True, "is_dir": meta.is_dir}

    async def _move_file(
        self, arguments: ToolArguments, paths: Dict[str, str], context: PathContext
    ) -> Dict[str, Any]:
        source = paths["from_path"]
        destination = await self._destination(source, paths["to_path"])
        meta = await self.storage.move(source, destination)
        self._notify(ChangeType.ITEM_MOVED, destination, meta, old_path=source)
        return {"from_path": source, "to_path": destination}

    async def _copy_file(
        self, arguments: ToolArguments, paths: Dict[str, str], context: PathContext
    ) -> Dict[str, Any]:
        source = paths["from_path"]
        destination = await self._destination(source, paths["to_path"])
        meta = await self.storage.copy(source, destination)
        self._notify(ChangeType.ITEM_ADDED, destination, meta)
        return {"from_path": source, "to_path": destination}

    async def _stat(
        self, arguments: ToolArguments, paths: Dict[str, str], context: PathContext
    ) -> Dict[str, Any]:
        path = paths["path"]
        meta = await self.storage.stat(path)
        if meta is None:
            raise FileNotFoundError(errno.ENOENT, "No such file or directory", path)
        return meta.to_dict()

    async def _rename(
        self, arguments: ToolArguments, paths: Dict[str, str], context: PathContext
    ) -> Dict[str, Any]:
        arguments = cast(args_mod.RenameArguments, arguments)
        source = paths["path"]
        target = self.sandbox.resolve_and_validate(
            f"{posixpath.dirname(source)}/{arguments.new_name}", context
        )
        meta = await self.storage.move(source, target)
        self._notify(ChangeType.ITEM_MOVED, target, meta, old_path=source)
        return {"old_path": source, "new_path": target, "name": arguments.new_name}

    async def _grep_file(
        self, arguments: ToolArguments, paths: Dict[str, str], context: PathContext
    ) -> Dict[str, Any]:
        arguments = cast(args_mod.GrepFileArguments, arguments)
        path = paths["path"]
        content = await self._read_text(path)
        needle = arguments.pattern if arguments.case_sensitive else arguments.pattern.lower()

        matches = []
        for number, line in enumerate(content.splitlines(), start=1):
            haystack = line if arguments.case_sensitive else line.lower()
            if needle in haystack:
                matches.append({"line_number": number, "line": line})

        return {"path": path, "pattern": arguments.pattern, "matches": matches, "count": len(matches)}

    async def _read_file_lines(
        self, arguments: ToolArguments, paths: Dict[str, str], context: PathContext
    ) -> Dict[str, Any]:
        arguments = cast(args_mod.ReadFileLinesArguments, arguments)
        path = paths["path"]
        lines = (await self._read_text(path)).splitlines()
        total = len(lines)

        if arguments.first is not None:
            start, end = 1, min(arguments.first, total)
        elif arguments.last is not None:
            start, end = max(total - arguments.last + 1, 1), total
        else:
            start, end = arguments.line_span()
            end = min(end, total)

        selected = lines[start - 1 : end] if start <= end else []
        return {
            "path": path,
            "content": "\n".join(selected),
            "start_line": start,
            "end_line": start + len(selected) - 1 if selected else start - 1,
            "total_lines": total,
        }

    async def _count_file(
        self, arguments: ToolArguments, paths: Dict[str, str], context: PathContext
    ) -> Dict[str, Any]:
        path = paths["path"]
        content = await self._read_text(path)
        return {
            "path": path,
            "lines": len(content.splitlines()),
            "words": len(content.split()),
            "characters": len(content),
            "characters_no_spaces": len(re.sub(r"\s", "", content)),
        }

    async def _get_filename(
        self, arguments: ToolArguments, paths: Dict[str, str], context: PathContext
    ) -> Dict[str, Any]:
        arguments = cast(args_mod.GetFilenameArguments, arguments)
        raw = arguments.path.rstrip("/") or arguments.path
        return {"path": arguments.path, "filename": posixpath.basename(raw)}

    async def _get_directory(
        self, arguments: ToolArguments, paths: Dict[str, str], context: PathContext
    ) -> Dict[str, Any]:
        arguments = cast(args_mod.GetDirectoryArguments, arguments)
        raw = arguments.path.rstrip("/") or arguments.path
        return {"path": arguments.path, "directory": posixpath.dirname(raw) or "."}

    async def _touch_file(
        self, arguments: ToolArguments, paths: Dict[str, str], context: PathContext
    ) -> Dict[str, Any]:
        path = paths["path"]
        existing = await self.storage.stat(path)

        if existing is not None and existing.is_dir:
            return {"path": path, "existed": True, "is_directory": True}

        if existing is not None:
            data = await self.storage.read_file(path)
            meta = await self.storage.write_file(path, data, existing.mime_type or "text/plain")
            self._notify(ChangeType.ITEM_UPDATED, path, meta)
            return {"path": path, "existed": True, "is_directory": False}

        meta = await self.storage.write_file(path, "", "text/plain")
        self._notify(ChangeType.ITEM_ADDED, path, meta)
        return {"path": path, "existed": False, "is_directory": False}
