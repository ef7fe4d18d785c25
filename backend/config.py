import os
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

BASE_DIR = Path(__file__).resolve().parent.parent
WORKSPACES_DIR = Path(os.getenv("WORKSPACES_DIR", str(BASE_DIR / "workspaces")))

MB = 1024 * 1024

MAX_UPLOAD_BYTES = 50 * MB                 # enforced at the HTTP boundary
MAX_FILE_COUNT = 1500
MAX_FILE_SIZE_BYTES = 1 * MB
MAX_DEPTH = 10
MAX_REPO_SIZE_BYTES = 100 * MB
MAX_EXTRACTED_BYTES = 200 * MB
MAX_ARCHIVE_MEMBERS = 10_000           # entries of any kind in one ZIP

GIT_CLONE_TIMEOUT = 60.0        # seconds
GIT_MAX_DEPTH = 1               # shallow clone
TEMP_RETENTION = 3600.0         # seconds

SWEEP_INTERVAL = float(os.getenv("SWEEP_INTERVAL_SECONDS", "900"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


class SafetyLimits(BaseModel):
    """Resource ceilings applied to every ingestion request."""

    model_config = ConfigDict(frozen=True)

    max_file_count: int = Field(MAX_FILE_COUNT, gt=0)
    max_file_size_bytes: int = Field(MAX_FILE_SIZE_BYTES, gt=0)
    max_depth: int = Field(MAX_DEPTH, gt=0)
    max_repo_size_bytes: int = Field(MAX_REPO_SIZE_BYTES, gt=0)
    clone_timeout_seconds: float = Field(GIT_CLONE_TIMEOUT, gt=0)
    temp_retention_seconds: float = Field(TEMP_RETENTION, gt=0)
    max_extracted_bytes: int = Field(MAX_EXTRACTED_BYTES, gt=0)
    max_archive_members: int = Field(MAX_ARCHIVE_MEMBERS, gt=0)


def _env_int(environ, name: str, default: int) -> int:
    value = environ.get(name)
    if value is None:
        return default
    try:
        return int(value.strip())
    except ValueError:
        return default


def load_safety_limits(environ=None) -> SafetyLimits:
    """Build the limits once from the environment.

    Sizes are given in MB and durations in milliseconds, matching the
    deployment variables. Missing or unparsable values keep the default.
    """
    env = os.environ if environ is None else environ

    return SafetyLimits(
        max_file_count=_env_int(env, "MAX_FILE_COUNT", MAX_FILE_COUNT),
        max_file_size_bytes=_env_int(env, "MAX_FILE_SIZE_MB", MAX_FILE_SIZE_BYTES // MB) * MB,
        max_depth=_env_int(env, "MAX_EXTRACTION_DEPTH", MAX_DEPTH),
        max_repo_size_bytes=_env_int(env, "MAX_REPO_SIZE_MB", MAX_REPO_SIZE_BYTES // MB) * MB,
        clone_timeout_seconds=_env_int(env, "GITHUB_CLONE_TIMEOUT_MS", int(GIT_CLONE_TIMEOUT * 1000)) / 1000,
        temp_retention_seconds=_env_int(env, "TEMP_FILE_MAX_AGE_MS", int(TEMP_RETENTION * 1000)) / 1000,
        max_extracted_bytes=_env_int(env, "MAX_EXTRACTED_SIZE_MB", MAX_EXTRACTED_BYTES // MB) * MB,
        max_archive_members=_env_int(env, "MAX_ARCHIVE_MEMBERS", MAX_ARCHIVE_MEMBERS),
    )
