from celery import Celery
from kombu import Queue

from app.platform.config import settings


def create_celery_app() -> Celery:
    """
    Create and configure the Celery application.

    Queue Structure:
    - scan.orchestration: one task per admitted scan (browser + inference)
    - maintenance: periodic housekeeping (stale scan reconciliation)

    Scan tasks are not retried: a rerun could not keep progress monotonic,
    and a scan whose worker died is failed by the reconciliation sweep.
    """
    celery_app = Celery(
        "accessscan_ai",
        broker=settings.CELERY_BROKER_URL,
        backend=settings.CELERY_RESULT_BACKEND,
    )

    celery_app.conf.update(
        task_serializer=settings.CELERY_TASK_SERIALIZER,
        result_serializer=settings.CELERY_RESULT_SERIALIZER,
        accept_content=[settings.CELERY_ACCEPT_CONTENT],
        timezone="UTC",
        enable_utc=True,
        task_track_started=settings.CELERY_TASK_TRACK_STARTED,
        task_time_limit=settings.CELERY_TASK_TIME_LIMIT,
        task_always_eager=settings.CELERY_TASK_ALWAYS_EAGER,

        result_expires=3600,

        task_routes={
            "app.features.scan.workers.tasks.run_scan": {"queue": "scan.orchestration"},
            "app.features.scan.workers.periodic_tasks.reconcile_stale_scans": {"queue": "maintenance"},
        },

        task_queues=(
            Queue("default"),
            Queue("scan.orchestration"),
            Queue("maintenance"),
        ),

        task_default_queue="default",

        # One browser per worker process at a time
        worker_prefetch_multiplier=1,

        beat_schedule={
            "reconcile-stale-scans": {
                "task": "app.features.scan.workers.periodic_tasks.reconcile_stale_scans",
                "schedule": settings.STALE_SCAN_SWEEP_SECONDS,
            },
        },
    )

    celery_app.autodiscover_tasks(["app.features.scan.workers"])

    return celery_app


celery_app = create_celery_app()
