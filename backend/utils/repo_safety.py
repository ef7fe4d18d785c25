import logging
import os
import shutil
import stat
import sys
from pathlib import Path

from utils.errors import ErrorKind

logger = logging.getLogger(__name__)


def directory_size(root: Path) -> int:
    """
    Total on-disk size of every regular file below `root`.
    Symlinks are not followed.
    """
    total_size = 0
    pending = [Path(root)]

    while pending:
        directory = pending.pop()

        with os.scandir(directory) as entries:
            for entry in entries:
                if entry.is_dir(follow_symlinks=False):
                    pending.append(Path(entry.path))
                elif entry.is_file(follow_symlinks=False):
                    total_size += entry.stat(follow_symlinks=False).st_size

    return total_size


def force_remove(path: Path):
    """
    Recursive delete that clears read-only flags (git object files) and retries.
    Removes plain files too.
    """
    path = Path(path)

    if path.is_symlink() or path.is_file():
        path.unlink()
        return

    def _retry(func, p, _exc):
        # Unlinking needs a writable parent; git objects are read-only too.
        for target in (os.path.dirname(p), p):
            if os.path.exists(target) and not os.path.islink(target):
                os.chmod(target, stat.S_IRWXU)
        func(p)

    if sys.version_info >= (3, 12):
        shutil.rmtree(path, onexc=_retry)
    else:
        shutil.rmtree(path, onerror=_retry)


def discard_partial(path: Path) -> bool:
    """
    Remove whatever a failed extraction or clone left at `path`.
    Never raises; anything left behind is logged and left to the stale sweep.
    """
    path = Path(path)
    if not path.exists() and not path.is_symlink():
        return True

    try:
        force_remove(path)
    except OSError as exc:
        logger.warning("Partial output left at %s [%s]: %s", path, ErrorKind.CLEANUP_FAILURE.value, exc)
        return False

    return True
