"""
Scan Orchestrator

Drives one scan from PENDING to COMPLETED or FAILED:

    10  initializing browser   (PENDING -> RUNNING)
    25  loading webpage
    50  analyzing accessibility (DOM snapshot)
    75  running AI analysis
    90  generating report       (issues persisted)
    100 completed

The browser is held for the whole run and released on every exit path.
Extraction and other pipeline errors fail the scan; database errors are
fatal to the run and propagate (the stale-scan sweep cleans up after them).
"""
from sqlalchemy.exc import SQLAlchemyError

from app.features.scan.exceptions import ExtractionError, ScanTransitionError
from app.features.scan.schemas.insight import InsightResult
from app.features.scan.schemas.scan import ScanTask
from app.features.scan.services.analysis.insight_generator import InsightGenerator
from app.features.scan.services.extraction.page_extractor import PageExtractor
from app.features.scan.services.store.scan_store import ScanStore
from app.platform.logger import get_logger

logger = get_logger(__name__)

PROGRESS_LOADING = (25, "Loading webpage...")
PROGRESS_ANALYZING = (50, "Analyzing accessibility...")
PROGRESS_AI = (75, "Running AI analysis...")
PROGRESS_REPORT = (90, "Generating report...")


class ScanOrchestrator:
    def __init__(self, store: ScanStore, extractor: PageExtractor, generator: InsightGenerator):
        self.store = store
        self.extractor = extractor
        self.generator = generator

    async def run(self, task: ScanTask) -> None:
        scan_id = task.scan_id

        if not await self.store.start(scan_id):
            logger.warning(f"[{scan_id}] Scan is no longer pending; skipping run")
            return

        logger.info(f"[{scan_id}] Starting WCAG {task.level.wcag_level} scan of {task.url}")

        try:
            result = await self._execute(task)
        except SQLAlchemyError:
            logger.exception(f"[{scan_id}] Persistence failed; scan left for reconciliation")
            raise
        except ScanTransitionError as e:
            logger.warning(f"[{scan_id}] Scan was finalized elsewhere: {e}")
            return
        except ExtractionError as e:
            logger.error(f"[{scan_id}] Extraction failed: {e}")
            await self.store.fail(scan_id, f"Scan failed: {e}")
            return
        except Exception as e:
            logger.exception(f"[{scan_id}] Scan pipeline error: {e}")
            await self.store.fail(scan_id, f"Scan failed: {str(e) or type(e).__name__}")
            return

        logger.info(
            f"[{scan_id}] Scan completed: score {result.score}, {len(result.issues)} issues"
            + (" (fallback)" if result.is_fallback else "")
        )

    async def _execute(self, task: ScanTask) -> InsightResult:
        scan_id = task.scan_id

        async with self.extractor.open_session() as browser:
            await self.store.update_progress(scan_id, *PROGRESS_LOADING)
            await browser.navigate(task.url, self.extractor.navigation_timeout)

            await self.store.update_progress(scan_id, *PROGRESS_ANALYZING)
            snapshot = await browser.snapshot()
            logger.info(f"[{scan_id}] Snapshot taken: {snapshot.element_count} elements from {snapshot.url}")

            await self.store.update_progress(scan_id, *PROGRESS_AI)
            result = await self.generator.generate(snapshot, task.level, scan_id=scan_id)

            await self.store.update_progress(scan_id, *PROGRESS_REPORT)
            await self.store.append_issues(scan_id, result.issues)

            await self.store.complete(scan_id, result.score, result.insights)

        return result
