import logging
import zipfile
import zlib
from pathlib import Path

from config import SafetyLimits
from services.file_scanner import BoundedScanner
from services.inventory import Inventory
from utils.errors import ExtractionFailure, SafetyViolation
from utils.repo_safety import discard_partial
from utils.zip_safety import (
    is_valid_zip_signature,
    read_signature,
    reject_symlink,
    safe_extract_path,
)

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024

_UNPACK_ERRORS = (
    zipfile.BadZipFile,
    zipfile.LargeZipFile,
    zlib.error,
    NotImplementedError,   # unsupported compression method
    RuntimeError,          # encrypted member
    OSError,
)


def declared_size(entries) -> int:
    return sum(e.file_size for e in entries if not e.is_dir())


class ArchiveExtractor:
    """
    Streams a ZIP archive to disk, then runs a cheap content-free scan of the
    result so archive bombs are rejected before any expensive work happens.
    """

    def __init__(self, limits: SafetyLimits, scanner: BoundedScanner | None = None):
        self.limits = limits
        self.scanner = scanner or BoundedScanner(limits)

    def extract(self, archive_path: Path, dest_dir: Path) -> Path:
        archive_path = Path(archive_path)
        extract_path = Path(dest_dir) / archive_path.stem

        try:
            logger.info("Extracting ZIP: %s to %s", archive_path, extract_path)
            self._unpack(archive_path, extract_path)
            self.validate_extraction(extract_path)
            logger.info("Extraction complete: %s", extract_path)
            return extract_path

        except Exception:
            discard_partial(extract_path)
            raise

    def validate_extraction(self, extract_path: Path) -> Inventory:
        inventory = self.scanner.scan(extract_path, include_content=False, sniff=False)
        stats = inventory.stats

        if stats.total_files >= self.limits.max_file_count:
            raise SafetyViolation(
                "Zip bomb detected or file limit exceeded: "
                f"Extraction contains too many files ({stats.total_files}). "
                f"Maximum allowed: {self.limits.max_file_count}"
            )

        logger.info(
            "Extraction validated: %d files, %d directories",
            stats.total_files,
            stats.total_directories,
        )
        return inventory

    def _unpack(self, archive_path: Path, extract_path: Path):
        try:
            signature = read_signature(archive_path)
        except OSError as exc:
            raise ExtractionFailure(f"Failed to extract ZIP: {exc}") from exc

        if not is_valid_zip_signature(signature):
            raise ExtractionFailure("Failed to extract ZIP: file is not a valid ZIP archive")

        max_bytes = self.limits.max_extracted_bytes

        try:
            extract_path.mkdir(parents=True, exist_ok=True)

            with zipfile.ZipFile(archive_path) as zf:
                entries = zf.infolist()

                if len(entries) > self.limits.max_archive_members:
                    raise SafetyViolation(
                        "Zip bomb detected or file limit exceeded: "
                        f"archive holds {len(entries)} entries. "
                        f"Maximum allowed: {self.limits.max_archive_members}"
                    )

                declared = declared_size(entries)
                if declared > max_bytes:
                    raise SafetyViolation(
                        "Zip bomb detected: archive declares "
                        f"{declared} uncompressed bytes. Maximum allowed: {max_bytes}"
                    )

                written = 0
                for entry in entries:
                    target_path = safe_extract_path(extract_path, entry.filename)

                    if entry.is_dir():
                        target_path.mkdir(parents=True, exist_ok=True)
                        continue

                    reject_symlink(entry)
                    target_path.parent.mkdir(parents=True, exist_ok=True)

                    # Declared sizes can lie; count what is actually inflated.
                    with zf.open(entry) as src, open(target_path, "wb") as dst:
                        while chunk := src.read(CHUNK_SIZE):
                            written += len(chunk)
                            if written > max_bytes:
                                raise SafetyViolation(
                                    "Zip bomb detected: extracted data exceeds "
                                    f"{max_bytes} bytes"
                                )
                            dst.write(chunk)

        except _UNPACK_ERRORS as exc:
            raise ExtractionFailure(f"Failed to extract ZIP: {exc}") from exc
