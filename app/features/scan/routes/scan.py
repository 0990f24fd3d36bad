from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.auth.dependencies import get_current_user_id
from app.features.credits.exceptions import InsufficientCreditsError
from app.features.scan.exceptions import ScanNotFoundError
from app.features.scan.models.scan import ScanStatus
from app.features.scan.schemas.scan import (
    Pagination,
    ScanCreateRequest,
    ScanHistoryItem,
    ScanListResponse,
    ScanResponse,
    ScanStartResponse,
)
from app.features.scan.services.admission import admit_scan
from app.features.scan.services.store import get_scan_store
from app.features.scan.services.store.scan_store import ScanStore, page_count, sort_issues
from app.features.scan.workers.dispatcher import ScanDispatcher, get_scan_dispatcher
from app.platform.db.session import get_db
from app.platform.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["scan"])


@router.post("/scan", response_model=ScanStartResponse)
async def start_scan(
    data: ScanCreateRequest,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    store: ScanStore = Depends(get_scan_store),
    dispatcher: ScanDispatcher = Depends(get_scan_dispatcher),
):
    """
    Admit a scan: reserve one credit, create the PENDING record and hand the
    run to a worker. Returns immediately; poll GET /scan for progress.
    """
    try:
        task = await admit_scan(db, store, user_id, data)
    except InsufficientCreditsError:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Insufficient scan credits",
        )

    try:
        dispatcher.dispatch(task)
    except Exception as e:
        logger.error(f"[{task.scan_id}] Could not queue scan: {e}", exc_info=True)
        await store.fail(task.scan_id, "Scan failed: could not be queued")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Scan queue unavailable, please try again later",
        )

    return ScanStartResponse(scan_id=task.scan_id)


@router.get("/scan", response_model=ScanResponse)
async def get_scan(
    scan_id: Optional[str] = Query(default=None, alias="scanId"),
    user_id: str = Depends(get_current_user_id),
    store: ScanStore = Depends(get_scan_store),
):
    """Scan record with its issues, critical first. Poll this while a scan runs."""
    if not scan_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Scan ID required")

    try:
        scan = await store.get_with_issues(scan_id, user_id)
    except ScanNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Scan not found")

    response = ScanResponse.model_validate(scan)
    response.issues = sort_issues(response.issues)
    return response


@router.get("/scans", response_model=ScanListResponse)
async def list_scans(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    status_filter: Optional[str] = Query(default=None, alias="status"),
    user_id: str = Depends(get_current_user_id),
    store: ScanStore = Depends(get_scan_store),
):
    """Paginated scan history for the caller, newest first."""
    scan_status = None
    if status_filter:
        try:
            scan_status = ScanStatus(status_filter.upper())
        except ValueError:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Unknown scan status: {status_filter}",
            )

    scans, total = await store.list_for_user(user_id, page=page, limit=limit, status=scan_status)

    items = []
    for scan in scans:
        item = ScanHistoryItem.model_validate(scan)
        item.issues = sort_issues(item.issues)
        items.append(item)

    return ScanListResponse(
        scans=items,
        pagination=Pagination(page=page, limit=limit, total=total, pages=page_count(total, limit)),
    )
