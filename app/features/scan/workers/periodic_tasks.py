"""
Celery periodic tasks.

Runs on a schedule via Celery Beat.
"""
import asyncio
from datetime import timedelta
from typing import Dict, Any, Optional

from app.features.scan.services.store.scan_store import ScanStore
from app.platform.celery_app import celery_app
from app.platform.config import settings
from app.platform.db.session import worker_session_factory
from app.platform.logger import get_logger

logger = get_logger(__name__)


async def reconcile_stale_scans_async(store: ScanStore, minutes: int) -> list:
    return await store.fail_stale(timedelta(minutes=minutes))


async def _reconcile_in_worker(minutes: int) -> list:
    async with worker_session_factory() as session_factory:
        return await reconcile_stale_scans_async(ScanStore(session_factory), minutes)


@celery_app.task(bind=True, name="app.features.scan.workers.periodic_tasks.reconcile_stale_scans")
def reconcile_stale_scans(self, minutes: Optional[int] = None) -> Dict[str, Any]:
    """
    Fail scans left PENDING or RUNNING by a worker that died mid-run.

    A scan counts as stale when it has had no write for STALE_SCAN_MINUTES.
    """
    minutes = minutes or settings.STALE_SCAN_MINUTES
    logger.info(f"Reconciling scans idle for more than {minutes} minutes...")

    failed = asyncio.run(_reconcile_in_worker(minutes))

    return {"failed": failed, "count": len(failed)}
