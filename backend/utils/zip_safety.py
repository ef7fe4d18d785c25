import os
import stat
import zipfile
from pathlib import Path

from utils.errors import ExtractionFailure

ZIP_SIGNATURES = (b"PK\x03\x04", b"PK\x05\x06", b"PK\x07\x08")


def is_valid_zip_signature(data: bytes) -> bool:
    return data.startswith(ZIP_SIGNATURES)


def read_signature(archive_path: Path) -> bytes:
    with open(archive_path, "rb") as fh:
        return fh.read(8)


def safe_extract_path(base: Path, member_name: str) -> Path:
    target = (base / member_name).resolve()
    base = base.resolve()

    if not str(target).startswith(str(base) + os.sep) and target != base:
        raise ExtractionFailure(f"Path traversal detected: {member_name}")

    return target


def reject_symlink(zip_info: zipfile.ZipInfo):
    # Unix mode lives in the high 16 bits
    if stat.S_ISLNK(zip_info.external_attr >> 16):
        raise ExtractionFailure(f"Symlink detected in zip: {zip_info.filename}")
