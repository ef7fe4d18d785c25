import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

from config import SafetyLimits
from services.inventory import (
    DIRECTORY,
    FILE,
    FileRecord,
    Inventory,
    ScanIssue,
    StructureEntry,
)
from utils.content_safety import (
    SNIFF_ERRORS,
    file_extension,
    is_allowed_extension,
    is_binary_file,
    is_ignored_directory,
    is_ignored_file,
)
from utils.errors import ErrorKind, ScanRootError

logger = logging.getLogger(__name__)


@dataclass
class _Frame:
    directory: Path
    relative: str
    depth: int
    entries: Iterator[os.DirEntry]


class BoundedScanner:
    """
    Walks a directory tree under a SafetyLimits budget.

    The walk uses an explicit stack of frames instead of recursion, visiting
    entries in name order, depth-first and pre-order. Per-item I/O failures are
    recorded on the inventory and skipped. Once max_file_count files have been
    accepted the walk stops and the inventory is marked truncated.
    """

    def __init__(self, limits: SafetyLimits):
        self.limits = limits

    def scan(self, root: Path, *, include_content: bool = False, sniff: bool = True) -> Inventory:
        """`sniff=False` skips content sniffing; the extension rules alone decide."""
        root = Path(root)
        if not root.is_dir():
            raise ScanRootError(f"Scan root is not a directory: {root}")

        inventory = Inventory()
        stats = inventory.stats

        entries = self._list_directory(root, "", inventory)
        if entries is None:
            return inventory

        stack = [_Frame(root, "", 0, entries)]

        while stack:
            frame = stack[-1]
            entry = next(frame.entries, None)

            if entry is None:
                stack.pop()
                continue

            if stats.total_files >= self.limits.max_file_count:
                inventory.truncated = True
                logger.debug("File limit %d reached in %s, stopping walk",
                             self.limits.max_file_count, root)
                break

            rel_path = f"{frame.relative}/{entry.name}" if frame.relative else entry.name

            try:
                if entry.is_symlink():
                    stats.skipped_files += 1
                    continue
                is_dir = entry.is_dir(follow_symlinks=False)
                is_file = entry.is_file(follow_symlinks=False)
            except OSError as exc:
                self._record_issue(inventory, rel_path, exc)
                stats.skipped_files += 1
                continue

            if is_dir:
                child = self._enter_directory(entry, rel_path, frame.depth + 1, inventory)
                if child is not None:
                    stack.append(child)
            elif is_file:
                self._visit_file(entry, rel_path, inventory, include_content, sniff)

        return inventory

    def _enter_directory(self, entry, rel_path, depth, inventory):
        stats = inventory.stats

        if is_ignored_directory(entry.name):
            stats.skipped_directories += 1
            return None

        if depth > self.limits.max_depth:
            stats.skipped_directories += 1
            logger.debug("Depth %d exceeds limit, skipping %s", depth, rel_path)
            return None

        directory = Path(entry.path)
        entries = self._list_directory(directory, rel_path, inventory)
        if entries is None:
            return None

        inventory.structure.append(StructureEntry(DIRECTORY, rel_path))
        stats.total_directories += 1
        return _Frame(directory, rel_path, depth, entries)

    def _visit_file(self, entry, rel_path, inventory, include_content, sniff):
        stats = inventory.stats
        name = entry.name

        if is_ignored_file(name) or not is_allowed_extension(name):
            stats.skipped_files += 1
            return

        path = Path(entry.path)

        try:
            size = entry.stat(follow_symlinks=False).st_size
        except OSError as exc:
            self._record_issue(inventory, rel_path, exc)
            stats.skipped_files += 1
            return

        if size > self.limits.max_file_size_bytes:
            stats.skipped_files += 1
            return

        try:
            binary = sniff and is_binary_file(path)
        except SNIFF_ERRORS as exc:
            self._record_issue(inventory, rel_path, exc)
            stats.skipped_files += 1
            return

        if binary:
            stats.skipped_files += 1
            logger.debug("Binary content in %s, skipping", rel_path)
            return

        record = FileRecord(
            absolute_path=path,
            relative_path=rel_path,
            name=name,
            size_bytes=size,
            extension=file_extension(name),
        )

        if include_content:
            try:
                record.content = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                record.read_error = str(exc)

        inventory.structure.append(StructureEntry(FILE, rel_path))
        inventory.files.append(record)
        stats.total_files += 1
        stats.total_size_bytes += size

    def _list_directory(self, directory, rel_path, inventory):
        try:
            with os.scandir(directory) as it:
                entries = sorted(it, key=lambda e: e.name)
        except OSError as exc:
            self._record_issue(inventory, rel_path or ".", exc)
            inventory.stats.skipped_directories += 1
            return None

        return iter(entries)

    @staticmethod
    def _record_issue(inventory, rel_path, exc):
        logger.warning("Could not read %s: %s", rel_path, exc)
        inventory.issues.append(
            ScanIssue(path=rel_path, kind=ErrorKind.PER_ITEM_IO_ERROR.value, message=str(exc))
        )


def scan_directory(root: Path, limits: SafetyLimits, *, include_content: bool = False) -> Inventory:
    return BoundedScanner(limits).scan(root, include_content=include_content)
