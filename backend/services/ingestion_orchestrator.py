import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from config import SafetyLimits
from services.file_scanner import BoundedScanner
from services.inventory import CloneResult, Inventory
from services.repo_input_service import (
    RepositoryCloner,
    ensure_valid_github_url,
    repository_name,
)
from services.workspace_service import CleanupCoordinator, create_workspace
from services.zip_input_service import ArchiveExtractor

logger = logging.getLogger(__name__)


@dataclass
class IngestionResult:
    inventory: Inventory
    clone: Optional[CloneResult] = None


class IngestionOrchestrator:
    """
    Central authority for ingestion requests.

    Each request gets its own workspace. Blocking filesystem and git work is
    pushed to worker threads so requests interleave on the event loop, and
    every transient path is removed whatever the outcome.
    """

    def __init__(
        self,
        limits: SafetyLimits,
        workspaces_dir: Path,
        *,
        scanner: Optional[BoundedScanner] = None,
        extractor: Optional[ArchiveExtractor] = None,
        cloner: Optional[RepositoryCloner] = None,
        cleanup: Optional[CleanupCoordinator] = None,
    ):
        self.limits = limits
        self.workspaces_dir = Path(workspaces_dir)
        self.scanner = scanner or BoundedScanner(limits)
        self.extractor = extractor or ArchiveExtractor(limits, self.scanner)
        self.cloner = cloner or RepositoryCloner(limits)
        self.cleanup = cleanup or CleanupCoordinator(limits)

    async def ingest_archive(self, archive_path: Path, *, include_content: bool = False) -> IngestionResult:
        archive_path = Path(archive_path)

        async def run():
            workspace = await asyncio.to_thread(create_workspace, self.workspaces_dir, "zip")

            async def process():
                extracted = await asyncio.to_thread(
                    self.extractor.extract, archive_path, workspace.source_dir
                )
                inventory = await asyncio.to_thread(self._full_scan, extracted, include_content)
                return IngestionResult(inventory=inventory)

            return await self.cleanup.with_cleanup_async(process, [workspace.root])

        return await self.cleanup.with_cleanup_async(run, [archive_path])

    async def ingest_repository(self, url: str, *, include_content: bool = False) -> IngestionResult:
        # Reject before anything touches the disk or the network.
        ensure_valid_github_url(url)

        workspace = await asyncio.to_thread(
            create_workspace, self.workspaces_dir, f"github-{repository_name(url)}"
        )

        async def process():
            clone = await asyncio.to_thread(self.cloner.clone, url, workspace.source_dir)
            inventory = await asyncio.to_thread(self._full_scan, clone.local_path, include_content)
            return IngestionResult(inventory=inventory, clone=clone)

        return await self.cleanup.with_cleanup_async(process, [workspace.root])

    def _full_scan(self, root: Path, include_content: bool) -> Inventory:
        inventory = self.scanner.scan(root, include_content=include_content)
        logger.info(
            "Scanned project: %d files, skipped %d files",
            inventory.stats.total_files,
            inventory.stats.skipped_files,
        )
        return inventory
