from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Optional

FILE = "file"
DIRECTORY = "directory"


@dataclass
class StructureEntry:
    kind: str
    path: str


@dataclass
class FileRecord:
    absolute_path: Path
    relative_path: str
    name: str
    size_bytes: int
    extension: str
    content: Optional[str] = None
    read_error: Optional[str] = None


@dataclass
class ScanStats:
    total_files: int = 0
    total_directories: int = 0
    skipped_files: int = 0
    skipped_directories: int = 0
    total_size_bytes: int = 0


@dataclass
class ScanIssue:
    path: str
    kind: str
    message: str


@dataclass
class Inventory:
    """
    Result of one bounded scan. Held in memory only; the tree it
    describes is removed by the cleanup coordinator.
    """

    files: list = field(default_factory=list)
    structure: list = field(default_factory=list)
    stats: ScanStats = field(default_factory=ScanStats)
    issues: list = field(default_factory=list)
    truncated: bool = False

    def to_dict(self, *, include_content: bool = False) -> dict:
        files = []
        for record in self.files:
            item = {
                "path": str(record.absolute_path),
                "relativePath": record.relative_path,
                "name": record.name,
                "size": record.size_bytes,
                "extension": record.extension,
            }
            if include_content:
                item["content"] = record.content
                if record.read_error:
                    item["readError"] = record.read_error
            files.append(item)

        return {
            "files": files,
            "structure": [{"type": e.kind, "path": e.path} for e in self.structure],
            "stats": {
                "totalFiles": self.stats.total_files,
                "totalDirectories": self.stats.total_directories,
                "skippedFiles": self.stats.skipped_files,
                "skippedDirectories": self.stats.skipped_directories,
                "totalSize": self.stats.total_size_bytes,
            },
            "issues": [asdict(issue) for issue in self.issues],
            "truncated": self.truncated,
        }


@dataclass
class CloneResult:
    local_path: Path
    size_bytes: int
    source_url: str
    repository_name: str
