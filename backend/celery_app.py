import os
import platform
from celery import Celery

from config import SWEEP_INTERVAL


def get_worker_pool():
    return os.getenv(
        "CELERY_WORKER_POOL",
        "solo" if platform.system() == "Windows" else "prefork",
    )


def get_concurrency():
    if platform.system() == "Windows":
        return 1
    return int(os.getenv("CELERY_WORKER_CONCURRENCY", "2"))


celery_app = Celery(
    "ingest",
    broker=os.getenv("CELERY_BROKER_URL", "redis://redis:6379/0"),
    backend=os.getenv("CELERY_RESULT_BACKEND", "redis://redis:6379/1"),
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    worker_pool=get_worker_pool(),
    worker_concurrency=get_concurrency(),
    beat_schedule={
        "sweep-stale-workspaces": {
            "task": "sweep_stale_workspaces",
            "schedule": SWEEP_INTERVAL,
        },
    },
)

# auto-discover tasks
import tasks.workspace_sweep
