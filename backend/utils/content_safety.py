import os
import re
from pathlib import Path

import magic

IGNORED_DIRECTORIES = frozenset({
    "node_modules",
    ".git",
    "dist",
    "build",
    "coverage",
    "logs",
    ".next",
    ".cache",
    "tmp",
    "temp",
    "__pycache__",
    "venv",
    ".venv",
    "uploads",
})

IGNORED_FILE_PATTERNS = (
    re.compile(r"^\.env"),          # secrets
    re.compile(r"^\.DS_Store$"),
    re.compile(r"^Thumbs\.db$"),
    re.compile(r"\.log$"),
    re.compile(r"\.lock$"),
)

ALLOWED_EXTENSIONS = frozenset({".js", ".ts", ".jsx", ".tsx", ".json"})

# Only one JSON file is worth reading.
ALLOWED_JSON_NAME = "package.json"

SNIFF_BYTES = 2048
SNIFF_ERRORS = (OSError, magic.MagicException)

# Media families whose members are binary unless they are XML-based (svg+xml).
BINARY_MIME_FAMILIES = ("image/", "audio/", "video/", "font/")

BINARY_MIME_TYPES = frozenset({
    "application/zip",
    "application/gzip",
    "application/x-gzip",
    "application/x-bzip2",
    "application/x-xz",
    "application/x-tar",
    "application/x-7z-compressed",
    "application/x-rar",
    "application/vnd.rar",
    "application/zstd",
    "application/java-archive",
    "application/pdf",
    "application/wasm",
    "application/x-executable",
    "application/x-pie-executable",
    "application/x-sharedlib",
    "application/x-object",
    "application/x-mach-binary",
    "application/x-dosexec",
    "application/x-sqlite3",
    "application/vnd.ms-fontobject",
    "application/x-font-ttf",
    "application/font-woff",
})


def is_ignored_directory(name: str) -> bool:
    return name in IGNORED_DIRECTORIES


def is_ignored_file(name: str) -> bool:
    return any(pattern.search(name) for pattern in IGNORED_FILE_PATTERNS)


def file_extension(name: str) -> str:
    return os.path.splitext(name)[1]


def is_allowed_extension(name: str) -> bool:
    ext = file_extension(name).lower()

    if ext == ".json":
        return name == ALLOWED_JSON_NAME

    return ext in ALLOWED_EXTENSIONS


def is_binary_mime(mime: str) -> bool:
    mime = mime.split(";", 1)[0].strip().lower()

    if mime.endswith("+xml"):
        return False

    return mime in BINARY_MIME_TYPES or mime.startswith(BINARY_MIME_FAMILIES)


def is_binary_file(path: Path) -> bool:
    """
    Sniff the head of the file with libmagic.

    Only a recognised binary format counts; unrecognised data
    (application/octet-stream) and text-like types pass. The extension is
    never trusted. Raises one of SNIFF_ERRORS on failure.
    """
    with open(path, "rb") as fh:
        head = fh.read(SNIFF_BYTES)

    return is_binary_mime(magic.from_buffer(head, mime=True))
