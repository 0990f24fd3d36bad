"""
Scan admission.

Reserving a credit and creating the PENDING scan are one decision: both
happen in the request's session and are committed together.
"""
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.credits.services.ledger import CreditLedger
from app.features.scan.schemas.scan import ScanCreateRequest, ScanTask
from app.features.scan.services.store.scan_store import ScanStore
from app.platform.logger import get_logger

logger = get_logger(__name__)


async def admit_scan(
    db: AsyncSession,
    store: ScanStore,
    user_id: str,
    request: ScanCreateRequest,
) -> ScanTask:
    """
    Reserve one credit and create the scan record.

    Raises:
        InsufficientCreditsError: the user has no credits left; nothing is written
    """
    ledger = CreditLedger(db)
    await ledger.ensure_account(user_id)

    url = str(request.url)
    try:
        await ledger.try_reserve(user_id)
        scan_id = await store.create(url, request.level, user_id, db=db)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(f"[{scan_id}] Admitted {request.level.value} scan of {url} for user {user_id}")
    return ScanTask(scan_id=scan_id, url=url, level=request.level)
