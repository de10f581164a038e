"""Annotation scanner.

Walks a source tree and extracts ``TODO`` annotations line by line. The match
is on the ``TODO`` token itself, so every comment syntax (``//``, ``#``,
``/* */``, ``<!-- -->``) is handled by the same pattern.

Traversal is deterministic: directory entries are sorted by name at every
level and files are visited before subdirectories. Unreadable files or
directories are logged and skipped; they never abort a scan.
"""

from __future__ import annotations

import os
import re
from collections.abc import Iterable, Iterator
from pathlib import Path

from .logging import get_logger
from .models import Annotation

IGNORE_DIRS = frozenset(
    {
        "node_modules",
        ".git",
        "dist",
        "build",
        "vendor",
        ".next",
        ".nuxt",
        "__pycache__",
        ".venv",
        "venv",
        "coverage",
        ".nyc_output",
        ".cache",
    }
)

BINARY_EXTENSIONS = frozenset(
    {
        ".png", ".jpg", ".jpeg", ".gif", ".ico", ".svg", ".webp",
        ".woff", ".woff2", ".ttf", ".eot", ".otf",
        ".mp3", ".mp4", ".avi", ".mov", ".webm",
        ".zip", ".tar", ".gz", ".bz2", ".7z", ".rar",
        ".pdf", ".doc", ".docx", ".xls", ".xlsx",
        ".exe", ".dll", ".so", ".dylib", ".o", ".a",
        ".pyc", ".pyo", ".class", ".jar",
        ".lock", ".min.js", ".min.css",
    }
)  # fmt: skip

HIDDEN_PREFIX = "."

TODO_REGEX = re.compile(r"\bTODO\s*[:(\s]\s*(.+)", re.IGNORECASE)

_TRAILING_CLOSERS = (
    re.compile(r"\s*\*/\s*$"),
    re.compile(r"\s*-->\s*$"),
    re.compile(r"\s*\*\)\s*$"),
)
_TRAILING_PAREN = re.compile(r"\)\s*$")


def clean_description(raw: str) -> str:
    """Trim comment closers and stray parens from a captured description."""
    desc = raw.strip()
    for pattern in _TRAILING_CLOSERS:
        desc = pattern.sub("", desc, count=1)
    # dangling paren left by the parenthesised author form
    desc = _TRAILING_PAREN.sub("", desc, count=1)
    return desc.strip()


def extract_description(line: str) -> str | None:
    match = TODO_REGEX.search(line)
    if not match:
        return None
    description = clean_description(match.group(1))
    return description or None


def should_ignore_dir(name: str, ignore_dirs: Iterable[str] = IGNORE_DIRS) -> bool:
    return name in ignore_dirs or name.startswith(HIDDEN_PREFIX)


def should_ignore_file(name: str) -> bool:
    lowered = name.lower()
    suffix = os.path.splitext(lowered)[1]
    if suffix in BINARY_EXTENSIONS:
        return True
    # Compound suffixes (.min.js) are not reported by splitext
    return lowered.endswith((".min.js", ".min.css"))


def _relative(path: Path, root: Path) -> str:
    return path.relative_to(root).as_posix()


def scan_file(path: Path, root: Path) -> list[Annotation]:
    """Return the annotations of a single file; read errors yield ``[]``."""
    try:
        content = path.read_text(encoding="utf-8", errors="replace")
    except OSError as exc:
        get_logger().warning(f"Failed to read file {path}: {exc}", file=str(path))
        return []
    relative = _relative(path, root)
    found: list[Annotation] = []
    for index, line in enumerate(content.split("\n")):
        description = extract_description(line)
        if description is None:
            continue
        found.append(
            Annotation(file=relative, line=index + 1, description=description, raw_line=line)
        )
    return found


def iter_files(root: Path, ignore_dirs: Iterable[str] = IGNORE_DIRS) -> Iterator[Path]:
    """Yield scannable files below ``root`` in deterministic order."""
    ignored = frozenset(ignore_dirs)
    try:
        with os.scandir(root) as it:
            entries = sorted(it, key=lambda e: e.name)
    except OSError as exc:
        get_logger().warning(f"Failed to read directory {root}: {exc}", directory=str(root))
        return
    subdirs: list[Path] = []
    for entry in entries:
        try:
            if entry.is_dir(follow_symlinks=False):
                if not should_ignore_dir(entry.name, ignored):
                    subdirs.append(Path(entry.path))
            elif entry.is_file() and not should_ignore_file(entry.name):
                yield Path(entry.path)
        except OSError as exc:
            get_logger().warning(f"Failed to stat {entry.path}: {exc}")
    for subdir in subdirs:
        yield from iter_files(subdir, ignored)


def scan(root: str | Path, ignore_dirs: Iterable[str] | None = None) -> list[Annotation]:
    """Scan the tree rooted at ``root`` for TODO annotations."""
    root_path = Path(root)
    ignored = IGNORE_DIRS | frozenset(ignore_dirs or ())
    logger = get_logger()
    logger.info(f"Scanning repository at: {root_path}")
    files = list(iter_files(root_path, ignored))
    logger.info(f"Found {len(files)} files to scan")
    annotations: list[Annotation] = []
    for path in files:
        annotations.extend(scan_file(path, root_path))
    logger.log_operation("scan", files=len(files), annotations=len(annotations))
    return annotations


__all__ = [
    "IGNORE_DIRS",
    "BINARY_EXTENSIONS",
    "TODO_REGEX",
    "clean_description",
    "extract_description",
    "should_ignore_dir",
    "should_ignore_file",
    "scan_file",
    "iter_files",
    "scan",
]
