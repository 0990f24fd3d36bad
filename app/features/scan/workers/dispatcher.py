"""
Hands admitted scans to the worker queue.

Routes depend on get_scan_dispatcher so tests can swap in a recorder.
"""
from typing import Protocol

from app.features.scan.schemas.scan import ScanTask
from app.features.scan.workers.tasks import run_scan
from app.platform.logger import get_logger

logger = get_logger(__name__)


class ScanDispatcher(Protocol):
    def dispatch(self, task: ScanTask) -> None:
        ...


class CeleryScanDispatcher:
    def dispatch(self, task: ScanTask) -> None:
        result = run_scan.apply_async(
            kwargs={"scan_id": task.scan_id, "url": task.url, "level": task.level.value}
        )
        logger.info(f"[{task.scan_id}] Queued scan task {result.id}")


def get_scan_dispatcher() -> ScanDispatcher:
    return CeleryScanDispatcher()
