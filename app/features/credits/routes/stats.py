from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.auth.dependencies import get_current_user_id
from app.features.credits.schemas.stats import UserStatsResponse
from app.features.credits.services.ledger import CreditLedger
from app.features.scan.services.store import get_scan_store
from app.features.scan.services.store.scan_store import ScanStore
from app.platform.db.session import get_db

router = APIRouter(prefix="/user", tags=["user"])


@router.get("/stats", response_model=UserStatsResponse)
async def get_user_stats(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    store: ScanStore = Depends(get_scan_store),
):
    """Dashboard totals: scans run, average completed score, critical issues, credits left."""
    account = await CreditLedger(db).ensure_account(user_id)
    stats = await store.stats_for_user(user_id)

    return UserStatsResponse(
        total_scans=stats["total_scans"],
        avg_score=stats["avg_score"],
        critical_issues=stats["critical_issues"],
        scan_credits=account.balance,
        plan=account.plan.value,
    )
