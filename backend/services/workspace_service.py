import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Awaitable, Callable, Iterable, Optional, TypeVar

from config import SafetyLimits
from utils.errors import ErrorKind
from utils.repo_safety import force_remove

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class Workspace:
    workspace_id: str
    root: Path
    source_dir: Path


@dataclass
class CleanupReport:
    removed: list = field(default_factory=list)
    failed: list = field(default_factory=list)


@dataclass
class SweepReport:
    cleaned: list = field(default_factory=list)
    kept: list = field(default_factory=list)
    errors: list = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "cleaned": [str(p) for p in self.cleaned],
            "kept": [str(p) for p in self.kept],
            "errors": [{"path": str(p), "error": msg} for p, msg in self.errors],
        }


def _generate_workspace_id(prefix: str) -> str:
    # Timestamp for humans, random suffix so concurrent requests never collide.
    stamp = time.strftime("%Y%m%dT%H%M%SZ", time.gmtime())
    return f"{prefix}-{stamp}-{uuid.uuid4().hex[:12]}"


def create_workspace(base_dir: Path, prefix: str = "job") -> Workspace:
    base_dir = Path(base_dir)
    base_dir.mkdir(parents=True, exist_ok=True)

    workspace_id = _generate_workspace_id(prefix)
    root = base_dir / workspace_id
    source_dir = root / "source"

    root.mkdir()
    source_dir.mkdir()

    return Workspace(workspace_id=workspace_id, root=root, source_dir=source_dir)


class CleanupCoordinator:
    """
    Best-effort removal of transient paths.

    Deletion failures are logged and reported, never raised, so cleanup can
    neither fail a successful request nor hide the error of a failed one.
    """

    def __init__(self, limits: SafetyLimits):
        self.limits = limits

    def cleanup_path(self, path) -> bool:
        if not path:
            return False
        return self._remove(Path(path)) is None

    def cleanup_paths(self, paths: Iterable) -> CleanupReport:
        report = CleanupReport()

        for path in paths:
            if not path:
                continue
            path = Path(path)
            error = self._remove(path)
            if error is None:
                report.removed.append(path)
            else:
                report.failed.append((path, error))

        return report

    def with_cleanup(self, operation: Callable[[], T], paths: Iterable) -> T:
        paths = list(paths)
        try:
            return operation()
        finally:
            self.cleanup_paths(paths)

    async def with_cleanup_async(self, operation: Callable[[], Awaitable[T]], paths: Iterable) -> T:
        paths = list(paths)
        try:
            return await operation()
        finally:
            await asyncio.to_thread(self.cleanup_paths, paths)

    def sweep_stale(self, directory: Path, max_age: Optional[float] = None) -> SweepReport:
        """
        Delete direct children of `directory` whose modification time is older
        than `max_age` seconds. Age is the only criterion.
        """
        max_age = self.limits.temp_retention_seconds if max_age is None else max_age
        report = SweepReport()
        directory = Path(directory)

        if not directory.is_dir():
            return report

        try:
            items = sorted(directory.iterdir())
        except OSError as exc:
            logger.error("Error cleaning temp directory %s: %s", directory, exc)
            report.errors.append((directory, str(exc)))
            return report

        now = time.time()

        for item in items:
            try:
                age = now - item.lstat().st_mtime
                if age > max_age:
                    force_remove(item)
                    report.cleaned.append(item)
                    logger.info("Cleaned old temp entry: %s (age: %d minutes)", item, age // 60)
                else:
                    report.kept.append(item)
            except OSError as exc:
                report.errors.append((item, str(exc)))
                logger.warning("Error processing %s: %s", item, exc)

        return report

    @staticmethod
    def _remove(path: Path) -> Optional[str]:
        if not path.exists() and not path.is_symlink():
            return None

        try:
            force_remove(path)
        except OSError as exc:
            logger.warning("Cleanup failed for %s [%s]: %s", path, ErrorKind.CLEANUP_FAILURE.value, exc)
            return str(exc)

        logger.info("Cleaned up: %s", path)
        return None
