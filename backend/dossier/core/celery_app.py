from celery import Celery
from celery.schedules import crontab

from .config import get_settings
from .logging import configure_logging

settings = get_settings()
configure_logging()

celery_app = Celery(
    "dossier",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
)

celery_app.conf.update(
    task_routes={"dossier.services.orchestrator.run_research_job": {"queue": "research"}},
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    # Report runs are long; one job per worker process, acked when finished
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    imports=("dossier.services.orchestrator", "dossier.services.retention"),
    beat_schedule={
        "cleanup-expired-research-jobs": {
            "task": "dossier.services.retention.cleanup_expired",
            "schedule": crontab(hour=3, minute=0),
        },
    },
)
