import logging
import os
import re
import subprocess
from pathlib import Path

from config import GIT_MAX_DEPTH, MB, SafetyLimits
from services.inventory import CloneResult
from utils.errors import (
    CloneFailure,
    CloneTimeout,
    InvalidUrl,
    RepoNotFoundOrPrivate,
    RepoTooLarge,
)
from utils.repo_safety import directory_size, discard_partial, force_remove

logger = logging.getLogger(__name__)

GITHUB_URL_PATTERNS = (
    re.compile(r"https://github\.com/[\w-]+/[\w.-]+(?:\.git)?", re.ASCII),
    re.compile(r"git@github\.com:[\w-]+/[\w.-]+(?:\.git)?", re.ASCII),
)

_UNSAFE_URL_CHARS = re.compile(r"[^a-zA-Z0-9.\-_/:@]")
_REPO_NAME = re.compile(r"/([^/]+?)(?:\.git)?$")

# git stderr fragments meaning the remote exists but is unreachable to us
_INACCESSIBLE_MARKERS = (
    "repository not found",
    "not found",
    "could not read username",
    "authentication failed",
    "terminal prompts disabled",
    "permission denied",
)


def validate_github_url(url) -> bool:
    if not url or not isinstance(url, str):
        return False

    candidate = url.strip()
    return any(pattern.fullmatch(candidate) for pattern in GITHUB_URL_PATTERNS)


def ensure_valid_github_url(url):
    if not validate_github_url(url):
        raise InvalidUrl("Invalid GitHub URL. Only github.com repositories are supported.")


def sanitize_url(url: str) -> str:
    return _UNSAFE_URL_CHARS.sub("", url.strip())


def repository_name(url: str) -> str:
    match = _REPO_NAME.search(url.strip())
    return match.group(1) if match else "unknown-repo"


class RepositoryCloner:
    """
    Shallow-clones public GitHub repositories into a caller-owned directory.
    The destination is removed on every failure after URL admission.
    """

    def __init__(self, limits: SafetyLimits, git_executable: str = "git"):
        self.limits = limits
        self.git_executable = git_executable

    def clone(self, url: str, dest_dir: Path) -> CloneResult:
        ensure_valid_github_url(url)

        sanitized_url = sanitize_url(url)
        dest_dir = Path(dest_dir)

        try:
            self._prepare(dest_dir)

            logger.info("Cloning repository: %s", sanitized_url)
            self._run_git_clone(sanitized_url, dest_dir)

            size_bytes = self._measure(dest_dir)
            logger.info("Repository size: %.2f MB", size_bytes / MB)

            if size_bytes > self.limits.max_repo_size_bytes:
                raise RepoTooLarge(
                    f"Repository size ({size_bytes / MB:.2f} MB) exceeds maximum "
                    f"allowed size ({self.limits.max_repo_size_bytes / MB:g} MB)"
                )

            self._strip_git_metadata(dest_dir)

            return CloneResult(
                local_path=dest_dir,
                size_bytes=size_bytes,
                source_url=sanitized_url,
                repository_name=repository_name(sanitized_url),
            )

        except Exception:
            discard_partial(dest_dir)
            raise

    def _run_git_clone(self, url: str, dest_dir: Path):
        cmd = [
            self.git_executable,
            "clone",
            "--depth", str(GIT_MAX_DEPTH),
            "--no-tags",
            "--single-branch",
            "--",
            url,
            str(dest_dir),
        ]
        timeout = self.limits.clone_timeout_seconds

        try:
            subprocess.run(
                cmd,
                timeout=timeout,
                check=True,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
                text=True,
                env={**os.environ, "GIT_TERMINAL_PROMPT": "0"},
            )
        except subprocess.TimeoutExpired as exc:
            raise CloneTimeout(
                f"Repository clone timed out (timeout after {timeout:g}s). "
                "The repository may be too large or network is slow."
            ) from exc
        except subprocess.CalledProcessError as exc:
            stderr = (exc.stderr or "").strip()
            if any(marker in stderr.lower() for marker in _INACCESSIBLE_MARKERS):
                raise RepoNotFoundOrPrivate(
                    "Repository not found or is private. Please ensure the "
                    "repository is public and the URL is correct."
                ) from exc
            raise CloneFailure(f"Failed to clone repository: {stderr or exc}") from exc
        except OSError as exc:
            raise CloneFailure(f"Failed to clone repository: {exc}") from exc

    @staticmethod
    def _prepare(dest_dir: Path):
        try:
            dest_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise CloneFailure(f"Failed to prepare clone directory: {exc}") from exc

    @staticmethod
    def _measure(dest_dir: Path) -> int:
        try:
            return directory_size(dest_dir)
        except OSError as exc:
            raise CloneFailure(f"Failed to measure repository size: {exc}") from exc

    @staticmethod
    def _strip_git_metadata(dest_dir: Path):
        git_dir = dest_dir / ".git"
        if not git_dir.exists():
            return
        try:
            force_remove(git_dir)
        except OSError as exc:
            raise CloneFailure(f"Failed to remove git metadata: {exc}") from exc
