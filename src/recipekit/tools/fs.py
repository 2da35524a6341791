from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Set, Union

from ..core.Exceptions import ToolInvocationError
from .toolify import tool

logger = logging.getLogger(__name__)

__all__ = ["LocalFsTools", "CATEGORY_EXTENSIONS", "human_readable"]

CATEGORY_EXTENSIONS: Dict[str, Set[str]] = {
    "video": {"mp4", "mkv", "mov", "avi", "wmv", "flv", "webm", "m4v"},
    "image": {"jpg", "jpeg", "png", "gif", "bmp", "tif", "tiff", "webp", "svg", "heic", "heif"},
    "audio": {"mp3", "wav", "flac", "aac", "m4a", "ogg", "wma", "aiff"},
    "doc": {"pdf", "doc", "docx", "ppt", "pptx", "xls", "xlsx", "txt", "md", "rtf"},
    "archive": {"zip", "tar", "gz", "tgz", "bz2", "7z", "rar"},
}

DEFAULT_LIMIT = 200
MAX_LIMIT = 5000
_BINARY_SAMPLE = 4096


def human_readable(size: int) -> str:
    """``1536`` -> ``"1.50 KB"``; plain bytes have no decimals."""
    units = ["B", "KB", "MB", "GB", "TB", "PB", "EB"]
    value = float(size)
    i = 0
    while value >= 1024 and i < len(units) - 1:
        value /= 1024.0
        i += 1
    return f"{value:.0f} {units[i]}" if i == 0 else f"{value:.2f} {units[i]}"


def _looks_binary(data: bytes) -> bool:
    sample = data[:_BINARY_SAMPLE]
    control = 0
    for b in sample:
        if b == 0x00:
            return True
        if b < 0x09 or 0x0E <= b <= 0x1F:
            control += 1
    return control > len(sample) // 10


def _error(code: str, message: str) -> Dict[str, Any]:
    return {"ok": False, "error": code, "message": message}


def _extension(path: Path) -> str:
    return path.suffix[1:].lower() if path.suffix else ""


class LocalFsTools:
    """Read/write and inspect files below an allowed root directory.

    Paths expand ``~``, resolve relative to ``cwd`` and must stay under
    ``allowed_root`` (the user's home directory by default).
    """

    def __init__(
        self,
        allowed_root: Union[str, Path, None] = None,
        cwd: Union[str, Path, None] = None,
        max_kb: int = 100,
    ) -> None:
        self.allowed_root = Path(allowed_root or Path.home()).expanduser().resolve()
        self.cwd = Path(cwd or Path.cwd()).expanduser().resolve()
        self.max_kb = max(1, int(max_kb))

    # ------------------------------------------------------------------ #
    # Path guards
    # ------------------------------------------------------------------ #
    def _resolve(self, raw: str) -> Path:
        if not raw or not str(raw).strip():
            raise ToolInvocationError("path must not be empty")
        path = Path(os.path.expanduser(str(raw).strip()))
        if not path.is_absolute():
            path = self.cwd / path
        # Symlinks are followed on both sides; a missing tail (a new file) is kept as written.
        path = Path(os.path.realpath(path))
        if not path.is_relative_to(self.allowed_root):
            raise ToolInvocationError(f"Path escapes allowed root: {path}")
        return path

    def _existing(self, raw: str) -> Path:
        path = self._resolve(raw)
        if not path.exists():
            raise ToolInvocationError(f"Path not found: {path}")
        if not os.access(path, os.R_OK):
            raise ToolInvocationError(f"Path not readable: {path}")
        return path

    def _dir(self, raw: str) -> Path:
        path = self._existing(raw)
        if not path.is_dir():
            raise ToolInvocationError(f"Not a directory: {raw}")
        return path

    def _file(self, raw: str) -> Path:
        path = self._existing(raw)
        if not path.is_file():
            raise ToolInvocationError(f"Not a regular file: {raw}")
        return path

    # ------------------------------------------------------------------ #
    # Tools
    # ------------------------------------------------------------------ #
    @tool("readFile", "Read a UTF-8 text file and return its content")
    def read_file(self, path: str) -> str:
        file = self._file(path)
        return file.read_text(encoding="utf-8", errors="replace")

    @tool("writeFile", "Write text to a file, creating parent directories")
    def write_file(self, path: str, content: str) -> str:
        target = self._resolve(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content or "", encoding="utf-8")
        logger.info("Wrote %d characters to %s", len(content or ""), target)
        return f"wrote:\n{target}"

    @tool(
        "readText",
        "Read a small UTF-8 text file for summarization. Rejects binary files and files over the size "
        "limit. Returns {ok: true, text, path, bytes} or {ok: false, error, message}.",
    )
    def read_text(self, path: str) -> Dict[str, Any]:
        max_bytes = self.max_kb * 1024
        try:
            file = self._file(path)
            size = file.stat().st_size
            if size > max_bytes:
                return _error("too_large", f"file > {self.max_kb} KB")
            data = file.read_bytes()
        except (ToolInvocationError, OSError) as exc:
            return _error("read_failed", f"{type(exc).__name__}: {exc}")
        if _looks_binary(data):
            return _error("binary", "appears binary")
        return {"ok": True, "text": data.decode("utf-8", errors="replace"), "path": str(file), "bytes": size}

    @tool("countEntries", "Count files and directories in a folder. Returns {ok, path, files, dirs, bytes, human}")
    def count_entries(self, path: str, recursive: bool = False, includeHidden: bool = False) -> Dict[str, Any]:
        root = self._dir(path)
        files = dirs = total = 0
        for entry in self._walk(root, recursive, include_hidden=includeHidden, files_only=False):
            if entry.is_dir():
                dirs += 1
            elif entry.is_file():
                files += 1
                total += _size(entry)
        return {
            "ok": True,
            "path": str(root),
            "files": files,
            "dirs": dirs,
            "bytes": total,
            "human": human_readable(total),
        }

    @tool(
        "filesByType",
        "List files in a directory by type. Use either 'category' (video|image|audio|doc|archive) or "
        "'extensions' (e.g. ['pdf','png']). Returns {count, files, nextCursor, directory}",
    )
    def files_by_type(
        self,
        path: str,
        category: Optional[str] = None,
        extensions: Optional[List[str]] = None,
        recursive: bool = False,
        limit: int = DEFAULT_LIMIT,
        cursor: Optional[str] = None,
    ) -> Dict[str, Any]:
        root = self._dir(path)
        if category and category.strip():
            wanted = self._category(category)
        elif extensions:
            wanted = _normalize_extensions(extensions)
        else:
            raise ToolInvocationError("Provide either 'category' or 'extensions'")

        # A zero limit is what an omitted argument coerces to.
        page_size = DEFAULT_LIMIT if not limit or limit <= 0 else min(limit, MAX_LIMIT)
        start = _parse_cursor(cursor)

        matches = sorted(
            str(p.relative_to(root))
            for p in self._walk(root, recursive, include_hidden=True, files_only=True)
            if _extension(p) in wanted
        )
        end = min(start + page_size, len(matches))
        page = matches[start:end] if start < len(matches) else []
        return {
            "directory": str(root),
            "count": len(matches),
            "files": page,
            "nextCursor": str(end) if end < len(matches) else None,
        }

    @tool(
        "totalSizeByType",
        "Compute total byte size of files filtered by type. Use either 'extensions' or 'category'; "
        "if both are given, extensions take precedence. Returns {count, bytes, human, matchedExtensions, directory}",
    )
    def total_size_by_type(
        self,
        path: str,
        extensions: Optional[List[str]] = None,
        category: Optional[str] = None,
        recursive: bool = False,
    ) -> Dict[str, Any]:
        root = self._dir(path)
        wanted = _normalize_extensions(extensions) if extensions else set()
        if not wanted:
            if category and category.strip():
                wanted = self._category(category)
            else:
                raise ToolInvocationError("Provide either 'extensions' or 'category'")

        count = total = 0
        for p in self._walk(root, recursive, include_hidden=True, files_only=True):
            if _extension(p) in wanted:
                count += 1
                total += _size(p)
        return {
            "directory": str(root),
            "count": count,
            "bytes": total,
            "human": human_readable(total),
            "matchedExtensions": sorted(wanted),
        }

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #
    @staticmethod
    def _category(category: str) -> Set[str]:
        try:
            return CATEGORY_EXTENSIONS[category.strip().lower()]
        except KeyError:
            raise ToolInvocationError(f"Unknown category: {category}") from None

    @staticmethod
    def _walk(root: Path, recursive: bool, include_hidden: bool, files_only: bool) -> Iterator[Path]:
        entries = root.rglob("*") if recursive else root.iterdir()
        for entry in entries:
            if not include_hidden and any(part.startswith(".") for part in entry.relative_to(root).parts):
                continue
            if files_only and not entry.is_file():
                continue
            yield entry


def _normalize_extensions(extensions: Any) -> Set[str]:
    if isinstance(extensions, str):
        extensions = [extensions]
    return {str(e).strip().lower().lstrip(".") for e in extensions if str(e).strip()}


def _parse_cursor(cursor: Optional[str]) -> int:
    try:
        return max(0, int(str(cursor).strip())) if cursor is not None else 0
    except ValueError:
        return 0


def _size(path: Path) -> int:
    try:
        return path.stat().st_size
    except OSError:
        return 0
