"""
Scan Store

The narrow persistence interface the orchestrator and the API use for scans
and their issues. Every write commits on its own session so pollers see each
checkpoint as soon as it is made.

State machine rules live here, not in callers:
- progress only moves forward while a scan is RUNNING
- COMPLETED and FAILED are never left
- reads are scoped to the scan's owner
"""
import math
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from app.features.scan.exceptions import ScanNotFoundError, ScanTransitionError
from app.features.scan.models.scan import Scan, ScanStatus, ComplianceLevel
from app.features.scan.models.scan_issue import ScanIssue, IssueSeverity
from app.features.scan.schemas.insight import IssueDraft
from app.platform.db.session import SessionLocal
from app.platform.logger import get_logger

logger = get_logger(__name__)

MAX_MESSAGE_LENGTH = 500

_ACTIVE = (ScanStatus.pending, ScanStatus.running)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def sort_issues(issues: Iterable) -> List:
    """Critical first, then warning, then info; stable within a severity."""
    return sorted(issues, key=lambda issue: -issue.severity.rank)


class ScanStore:
    def __init__(self, session_factory: async_sessionmaker = SessionLocal):
        self.session_factory = session_factory

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create(
        self,
        url: str,
        level: ComplianceLevel,
        user_id: str,
        *,
        db: Optional[AsyncSession] = None,
    ) -> str:
        """
        Create a PENDING scan and return its id.

        When `db` is given the row joins that session's transaction and the
        caller commits; otherwise the scan is committed immediately.
        """
        scan = Scan(
            user_id=user_id,
            url=url,
            level=level,
            status=ScanStatus.pending,
            progress=0,
            status_message="Queued",
        )

        if db is not None:
            db.add(scan)
            await db.flush()
            return scan.id

        async with self.session_factory() as session:
            session.add(scan)
            await session.commit()
            return scan.id

    async def start(self, scan_id: str) -> bool:
        """
        Move a PENDING scan to RUNNING at the first checkpoint.

        Returns False when the scan has already left PENDING (a redelivered task).
        """
        async with self.session_factory() as db:
            result = await db.execute(
                update(Scan)
                .where(Scan.id == scan_id, Scan.status == ScanStatus.pending)
                .values(
                    status=ScanStatus.running,
                    progress=10,
                    status_message="Initializing browser...",
                    started_at=_utcnow(),
                )
                .execution_options(synchronize_session=False)
            )
            await db.commit()

            if result.rowcount == 1:
                return True

            await self._raise_if_missing(db, scan_id)
            return False

    async def update_progress(self, scan_id: str, progress: int, message: str) -> None:
        """Persist a progress checkpoint. Progress may not go backwards."""
        if not 0 <= progress <= 100:
            raise ValueError(f"progress must be within 0..100, got {progress}")

        async with self.session_factory() as db:
            result = await db.execute(
                update(Scan)
                .where(
                    Scan.id == scan_id,
                    Scan.status == ScanStatus.running,
                    Scan.progress <= progress,
                )
                .values(progress=progress, status_message=message[:255])
                .execution_options(synchronize_session=False)
            )
            await db.commit()

            if result.rowcount != 1:
                await self._raise_transition(
                    db, scan_id, f"cannot set progress {progress}"
                )

        logger.info(f"[{scan_id}] {progress}% {message}")

    async def append_issues(self, scan_id: str, issues: Sequence[IssueDraft]) -> int:
        """Insert all issues for a running scan in one transaction."""
        async with self.session_factory() as db:
            status = await db.scalar(select(Scan.status).where(Scan.id == scan_id))
            if status is None:
                raise ScanNotFoundError(scan_id)
            if status != ScanStatus.running:
                raise ScanTransitionError(
                    f"Scan {scan_id} is {status.value}; issues can only be added while RUNNING"
                )

            db.add_all(
                [
                    ScanIssue(
                        scan_id=scan_id,
                        type=issue.type,
                        severity=issue.severity,
                        description=issue.description,
                        element=issue.element,
                        recommendation=issue.recommendation,
                        compliance_reference=issue.compliance_reference,
                    )
                    for issue in issues
                ]
            )
            await db.commit()

        logger.info(f"[{scan_id}] Stored {len(issues)} issues")
        return len(issues)

    async def complete(self, scan_id: str, score: int, insights: str) -> None:
        async with self.session_factory() as db:
            result = await db.execute(
                update(Scan)
                .where(Scan.id == scan_id, Scan.status == ScanStatus.running)
                .values(
                    status=ScanStatus.completed,
                    progress=100,
                    status_message="Scan completed",
                    score=score,
                    insights=insights,
                    completed_at=_utcnow(),
                )
                .execution_options(synchronize_session=False)
            )
            await db.commit()

            if result.rowcount != 1:
                await self._raise_transition(db, scan_id, "cannot complete")

        logger.info(f"[{scan_id}] Completed with score {score}")

    async def fail(self, scan_id: str, message: str) -> None:
        """Mark a scan FAILED, reset its progress and keep the message in place of insights."""
        async with self.session_factory() as db:
            result = await db.execute(
                update(Scan)
                .where(Scan.id == scan_id, Scan.status.in_(_ACTIVE))
                .values(
                    status=ScanStatus.failed,
                    progress=0,
                    status_message="Scan failed",
                    insights=message[:MAX_MESSAGE_LENGTH],
                )
                .execution_options(synchronize_session=False)
            )
            await db.commit()

            if result.rowcount != 1:
                await self._raise_transition(db, scan_id, "cannot fail")

        logger.warning(f"[{scan_id}] Marked failed: {message}")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_with_issues(self, scan_id: str, requesting_user_id: str) -> Scan:
        """
        Load a scan and its issues for its owner.

        Raises:
            ScanNotFoundError: no such scan, or it belongs to another user
        """
        async with self.session_factory() as db:
            result = await db.execute(
                select(Scan)
                .where(Scan.id == scan_id, Scan.user_id == requesting_user_id)
                .options(selectinload(Scan.issues))
            )
            scan = result.scalar_one_or_none()

        if scan is None:
            raise ScanNotFoundError(scan_id)
        return scan

    async def list_for_user(
        self,
        user_id: str,
        page: int = 1,
        limit: int = 10,
        status: Optional[ScanStatus] = None,
    ) -> Tuple[List[Scan], int]:
        """Newest-first page of a user's scans, with the total matching count."""
        page = max(page, 1)
        limit = max(limit, 1)

        filters = [Scan.user_id == user_id]
        if status is not None:
            filters.append(Scan.status == status)

        async with self.session_factory() as db:
            total = await db.scalar(select(func.count(Scan.id)).where(*filters))
            result = await db.execute(
                select(Scan)
                .where(*filters)
                .options(selectinload(Scan.issues))
                .order_by(Scan.created_at.desc(), Scan.id.desc())
                .offset((page - 1) * limit)
                .limit(limit)
            )
            scans = list(result.scalars().all())

        return scans, total or 0

    async def stats_for_user(self, user_id: str) -> dict:
        async with self.session_factory() as db:
            total_scans = await db.scalar(
                select(func.count(Scan.id)).where(Scan.user_id == user_id)
            )
            avg_score = await db.scalar(
                select(func.avg(Scan.score)).where(
                    Scan.user_id == user_id,
                    Scan.status == ScanStatus.completed,
                    Scan.score.is_not(None),
                )
            )
            critical_issues = await db.scalar(
                select(func.count(ScanIssue.id))
                .join(Scan, Scan.id == ScanIssue.scan_id)
                .where(Scan.user_id == user_id, ScanIssue.severity == IssueSeverity.critical)
            )

        return {
            "total_scans": total_scans or 0,
            "avg_score": int(round(float(avg_score))) if avg_score is not None else 0,
            "critical_issues": critical_issues or 0,
        }

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    async def fail_stale(self, older_than: timedelta) -> List[str]:
        """
        Fail scans that have sat in PENDING or RUNNING without a write for longer
        than `older_than` (e.g. their worker died). Returns the failed ids.
        """
        cutoff = _utcnow() - older_than

        async with self.session_factory() as db:
            result = await db.execute(
                select(Scan.id).where(Scan.status.in_(_ACTIVE), Scan.updated_at < cutoff)
            )
            candidates = list(result.scalars().all())

        failed = []
        for scan_id in candidates:
            try:
                await self.fail(scan_id, "Scan failed: timed out without completing")
            except ScanTransitionError:
                # Finished between the select and the update
                continue
            failed.append(scan_id)

        if failed:
            logger.warning(f"Reconciled {len(failed)} stale scans: {failed}")
        return failed

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _raise_if_missing(self, db: AsyncSession, scan_id: str) -> None:
        exists = await db.scalar(select(Scan.id).where(Scan.id == scan_id))
        if exists is None:
            raise ScanNotFoundError(scan_id)

    async def _raise_transition(self, db: AsyncSession, scan_id: str, action: str) -> None:
        row = (
            await db.execute(select(Scan.status, Scan.progress).where(Scan.id == scan_id))
        ).first()
        if row is None:
            raise ScanNotFoundError(scan_id)
        raise ScanTransitionError(
            f"Scan {scan_id} is {row.status.value} at {row.progress}%: {action}"
        )


def page_count(total: int, limit: int) -> int:
    return math.ceil(total / limit) if limit else 0
