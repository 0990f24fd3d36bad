"""
Celery task that runs one scan.

The orchestrator is async; the task body drives it to completion with
asyncio.run() so each scan gets its own event loop and its own browser.
"""
import asyncio
from typing import Any, Dict

from app.features.scan.models.scan import ComplianceLevel
from app.features.scan.schemas.scan import ScanTask
from app.features.scan.services.orchestration.factory import build_orchestrator
from app.platform.celery_app import celery_app
from app.platform.db.session import worker_session_factory
from app.platform.logger import get_logger

logger = get_logger(__name__)


async def _run_scan_async(task: ScanTask) -> None:
    async with worker_session_factory() as session_factory:
        orchestrator = build_orchestrator(session_factory=session_factory)
        await orchestrator.run(task)


@celery_app.task(
    bind=True,
    name="app.features.scan.workers.tasks.run_scan",
    max_retries=0,
    acks_late=False,
)
def run_scan(self, scan_id: str, url: str, level: str) -> Dict[str, Any]:
    """
    Run the full pipeline for an admitted scan.

    Args:
        scan_id: The PENDING scan created at admission
        url: Target URL
        level: Compliance level value (minimal, standard, strict)
    """
    task = ScanTask(scan_id=scan_id, url=url, level=ComplianceLevel(level))
    logger.info(f"[{scan_id}] Worker picked up scan (celery task {self.request.id})")

    asyncio.run(_run_scan_async(task))

    return {"scan_id": scan_id}
