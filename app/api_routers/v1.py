from fastapi import APIRouter

from app.features.credits.routes.stats import router as stats_router
from app.features.scan.routes.scan import router as scan_router

api_router = APIRouter()

# Register all feature routes
api_router.include_router(scan_router)
api_router.include_router(stats_router)
