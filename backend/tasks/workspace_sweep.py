import logging
from pathlib import Path

from celery_app import celery_app
from config import WORKSPACES_DIR, load_safety_limits
from services.workspace_service import CleanupCoordinator

logger = logging.getLogger(__name__)


@celery_app.task(name="sweep_stale_workspaces")
def sweep_stale_workspaces(workspaces_dir: str | None = None, max_age_seconds: float | None = None) -> dict:
    """
    Remove workspaces and uploads left behind by requests that never reached
    their own cleanup (worker crash, killed process).
    """
    target = Path(workspaces_dir) if workspaces_dir else WORKSPACES_DIR
    coordinator = CleanupCoordinator(load_safety_limits())

    report = coordinator.sweep_stale(target, max_age=max_age_seconds)

    logger.info(
        "Swept %s: %d removed, %d kept, %d errors",
        target,
        len(report.cleaned),
        len(report.kept),
        len(report.errors),
    )
    return report.to_dict()
