"""Built-in read-only file-system tools.

FileSystemToolService exposes a small set of file-system tools that the
model can call in agent mode. Every path is resolved and checked against the
configured allowed directories before it is touched, and blocking I/O runs
in a worker thread.
"""

import asyncio
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from helium_server.inference.types import ToolCall
from helium_server.tools.execution import (
    ToolDefinition,
    ToolExecutionService,
    ToolResult,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_FILE_SIZE = 10 * 1024 * 1024
SEARCH_MAX_DEPTH = 3
SEARCH_MAX_RESULTS = 200
TREE_DEFAULT_DEPTH = 5
TREE_MAX_DEPTH = 10
READ_MULTIPLE_MAX_FILES = 20


class ToolAccessError(Exception):
    """Raised when a tool touches a path outside the allowed directories."""


class PathInput(BaseModel):
    path: str = Field(..., description="Absolute path to the file or directory")


class SearchInput(BaseModel):
    directory: str = Field(..., description="Absolute path to search in")
    pattern: str = Field(
        ..., min_length=1, description="Case-insensitive substring to match"
    )


class TreeInput(BaseModel):
    path: str = Field(..., description="Absolute path to the directory")
    max_depth: int = Field(
        default=TREE_DEFAULT_DEPTH,
        ge=0,
        le=TREE_MAX_DEPTH,
        description=f"Maximum depth to traverse (default: {TREE_DEFAULT_DEPTH})",
    )


class PathsInput(BaseModel):
    paths: list[str] = Field(
        ...,
        min_length=1,
        max_length=READ_MULTIPLE_MAX_FILES,
        description="Absolute paths of the files to read",
    )


class NoInput(BaseModel):
    pass


def _modified_at(stat_result: Any) -> str:
    return (
        datetime.fromtimestamp(stat_result.st_mtime, tz=timezone.utc)
        .isoformat()
        .replace("+00:00", "Z")
    )


def format_bytes(size: int) -> str:
    """Render a byte count as a short human-readable string."""
    units = ["B", "KB", "MB", "GB", "TB"]
    if size < 1024:
        return f"{size} B"
    value = float(size)
    unit = 0
    while value >= 1024 and unit < len(units) - 1:
        value /= 1024
        unit += 1
    return f"{value:.2f} {units[unit]}"


class FileSystemToolService(ToolExecutionService):
    """Read-only file-system tools restricted to allowed directories.

    Attributes:
        allowed_directories: Resolved directories the tools may access
        max_file_size: Largest file read_file will return, in bytes
    """

    def __init__(
        self,
        allowed_directories: list[str],
        max_file_size: int = DEFAULT_MAX_FILE_SIZE,
    ) -> None:
        self.allowed_directories = [
            Path(directory).expanduser().resolve() for directory in allowed_directories
        ]
        self.max_file_size = max_file_size
        self._tools: dict[str, ToolDefinition] = {}
        self._register_default_tools()
        logger.info(
            f"FileSystemToolService initialized with {len(self.allowed_directories)} "
            f"allowed directories"
        )

    def _register_default_tools(self) -> None:
        tools = [
            ToolDefinition(
                name="read_file",
                description="Read the complete contents of a text file.",
                input_model=PathInput,
                handler=self._read_file,
            ),
            ToolDefinition(
                name="list_directory",
                description=(
                    "List all files and directories in a path with their size, "
                    "type and modification time. Directory sizes do not include "
                    "their contents; use get_directory_size for a recursive total."
                ),
                input_model=PathInput,
                handler=self._list_directory,
            ),
            ToolDefinition(
                name="search_files",
                description=(
                    "Recursively search for files and directories whose name "
                    f"contains a pattern (up to {SEARCH_MAX_DEPTH} levels deep)."
                ),
                input_model=SearchInput,
                handler=self._search_files,
            ),
            ToolDefinition(
                name="get_file_info",
                description="Get size, type and modification time of a file or directory.",
                input_model=PathInput,
                handler=self._get_file_info,
            ),
            ToolDefinition(
                name="get_directory_size",
                description=(
                    "Calculate the total size of a directory recursively, with "
                    "file and directory counts. Use this to find which folder "
                    "uses the most space."
                ),
                input_model=PathInput,
                handler=self._get_directory_size,
            ),
            ToolDefinition(
                name="directory_tree",
                description=(
                    "Get a recursive JSON tree of a directory with names, paths, "
                    "sizes and nested children."
                ),
                input_model=TreeInput,
                handler=self._directory_tree,
            ),
            ToolDefinition(
                name="read_multiple_files",
                description=(
                    "Read several text files at once. Each file gets its own "
                    "content or error, so one failure does not fail the rest."
                ),
                input_model=PathsInput,
                handler=self._read_multiple_files,
            ),
            ToolDefinition(
                name="list_allowed_directories",
                description="List the directories these tools are allowed to access.",
                input_model=NoInput,
                handler=self._list_allowed_directories,
            ),
        ]
        for tool in tools:
            self.register_tool(tool)

    def register_tool(self, tool: ToolDefinition) -> None:
        self._tools[tool.name] = tool

    def list_tools(self) -> list[ToolDefinition]:
        return list(self._tools.values())

    async def execute(self, call: ToolCall) -> ToolResult:
        """Execute a tool call.

        Unknown tools, invalid arguments, access violations and OS errors are
        reported as error results rather than raised.
        """
        tool = self._tools.get(call.name)
        if tool is None:
            return ToolResult(
                content=f"Unknown tool '{call.name}'. Available tools: "
                f"{', '.join(sorted(self._tools))}",
                is_error=True,
            )

        try:
            params = tool.parse_input(call.arguments)
        except ValidationError as e:
            return ToolResult(
                content=f"Invalid arguments for {call.name}: {e.errors()}",
                is_error=True,
            )

        try:
            content = await tool.handler(params)
        except ToolAccessError as e:
            logger.warning(f"Tool {call.name} denied: {e}")
            return ToolResult(content=str(e), is_error=True)
        except OSError as e:
            logger.warning(f"Tool {call.name} failed: {e}")
            return ToolResult(content=f"{type(e).__name__}: {e}", is_error=True)

        return ToolResult(content=content)

    def _is_allowed(self, path: Path) -> bool:
        return any(
            path == allowed or allowed in path.parents
            for allowed in self.allowed_directories
        )

    def _resolve_allowed(self, raw_path: str) -> Path:
        path = Path(raw_path).expanduser().resolve()
        if self._is_allowed(path):
            return path
        raise ToolAccessError(
            f"Access denied: {raw_path} is not in allowed directories"
        )

    def _contains(self, path: Path) -> bool:
        """Return True if the path, with symlinks followed, stays inside."""
        try:
            return self._is_allowed(path.resolve())
        except (OSError, RuntimeError):
            # Symlink loops
            return False

    def _read_text(self, path: Path) -> str:
        size = path.stat().st_size
        if size > self.max_file_size:
            raise ToolAccessError(
                f"File too large: {size} bytes (max: {self.max_file_size} bytes)"
            )
        return path.read_text(encoding="utf-8", errors="replace")

    async def _read_file(self, params: PathInput) -> str:
        path = self._resolve_allowed(params.path)
        return await asyncio.to_thread(self._read_text, path)

    async def _read_multiple_files(self, params: PathsInput) -> str:
        def read_all() -> list[dict[str, Any]]:
            results = []
            for raw_path in params.paths:
                try:
                    content = self._read_text(self._resolve_allowed(raw_path))
                except ToolAccessError as e:
                    results.append({"path": raw_path, "content": None, "error": str(e)})
                except OSError as e:
                    results.append(
                        {
                            "path": raw_path,
                            "content": None,
                            "error": f"{type(e).__name__}: {e}",
                        }
                    )
                else:
                    results.append({"path": raw_path, "content": content, "error": None})
            return results

        results = await asyncio.to_thread(read_all)
        failed = sum(1 for r in results if r["error"] is not None)
        if failed:
            logger.debug(f"read_multiple_files: {failed}/{len(results)} files failed")
        return json.dumps(results, indent=2)

    async def _list_directory(self, params: PathInput) -> str:
        path = self._resolve_allowed(params.path)

        def list_entries() -> list[dict[str, Any]]:
            entries = []
            for entry in path.iterdir():
                try:
                    stat_result = entry.stat()
                except OSError:
                    # Dangling symlink; describe the link itself
                    stat_result = entry.lstat()
                entries.append(
                    {
                        "name": entry.name,
                        "path": str(entry),
                        "is_dir": entry.is_dir(),
                        "size": stat_result.st_size,
                        "modified": _modified_at(stat_result),
                    }
                )
            # Directories first, then alphabetically
            entries.sort(key=lambda e: (not e["is_dir"], e["name"]))
            return entries

        entries = await asyncio.to_thread(list_entries)
        return json.dumps(entries, indent=2)

    async def _search_files(self, params: SearchInput) -> str:
        root = self._resolve_allowed(params.directory)
        needle = params.pattern.lower()

        def search() -> list[str]:
            results: list[str] = []
            pending = [(root, 0)]
            while pending and len(results) < SEARCH_MAX_RESULTS:
                directory, depth = pending.pop(0)
                try:
                    children = sorted(directory.iterdir())
                except PermissionError:
                    continue
                for child in children:
                    if not self._contains(child):
                        continue
                    if needle in child.name.lower():
                        results.append(str(child))
                        if len(results) >= SEARCH_MAX_RESULTS:
                            break
                    if child.is_dir() and depth + 1 < SEARCH_MAX_DEPTH:
                        pending.append((child, depth + 1))
            return results

        matches = await asyncio.to_thread(search)
        return json.dumps({"matches": matches, "count": len(matches)}, indent=2)

    async def _get_file_info(self, params: PathInput) -> str:
        path = self._resolve_allowed(params.path)

        def info() -> dict[str, Any]:
            stat_result = path.stat()
            return {
                "name": path.name,
                "path": str(path),
                "is_dir": path.is_dir(),
                "size": stat_result.st_size,
                "modified": _modified_at(stat_result),
                "extension": path.suffix.lstrip(".") or None,
            }

        return json.dumps(await asyncio.to_thread(info), indent=2)

    async def _get_directory_size(self, params: PathInput) -> str:
        """Sum file sizes below a directory.

        Symlinks are not followed, so the walk cannot leave the allowed
        directories or loop.
        """
        root = self._resolve_allowed(params.path)

        def measure() -> dict[str, Any]:
            if root.is_file():
                total_bytes, file_count, dir_count = root.stat().st_size, 1, 0
            else:
                total_bytes = file_count = dir_count = 0
                pending = [root]
                while pending:
                    directory = pending.pop()
                    try:
                        children = list(directory.iterdir())
                    except PermissionError:
                        continue
                    for child in children:
                        if child.is_symlink():
                            continue
                        if child.is_dir():
                            dir_count += 1
                            pending.append(child)
                        else:
                            total_bytes += child.stat().st_size
                            file_count += 1
            return {
                "path": str(root),
                "total_bytes": total_bytes,
                "human_readable": format_bytes(total_bytes),
                "file_count": file_count,
                "dir_count": dir_count,
            }

        return json.dumps(await asyncio.to_thread(measure), indent=2)

    async def _directory_tree(self, params: TreeInput) -> str:
        root = self._resolve_allowed(params.path)

        def build(path: Path, depth: int) -> dict[str, Any]:
            is_dir = path.is_dir()
            node: dict[str, Any] = {
                "name": path.name or str(path),
                "path": str(path),
                "is_dir": is_dir,
                "size": None if is_dir else path.stat().st_size,
                "children": None,
            }
            if is_dir and depth < params.max_depth:
                children = []
                for child in path.iterdir():
                    if not self._contains(child):
                        continue
                    try:
                        children.append(build(child, depth + 1))
                    except OSError:
                        # Unreadable entries are left out of the tree
                        continue
                children.sort(key=lambda n: (not n["is_dir"], n["name"]))
                node["children"] = children
            return node

        tree = await asyncio.to_thread(build, root, 0)
        return json.dumps(tree, indent=2)

    async def _list_allowed_directories(self, params: NoInput) -> str:
        return json.dumps([str(d) for d in self.allowed_directories], indent=2)
