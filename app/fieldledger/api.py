from fastapi import APIRouter

from app.fieldledger.core.config import settings
from app.fieldledger.routers.bank_cards import router as bank_cards_router
from app.fieldledger.routers.date_locks import router as date_locks_router
from app.fieldledger.routers.health import router as health_router
from app.fieldledger.routers.metrics import router as metrics_router
from app.fieldledger.routers.reports import router as reports_router

api_router = APIRouter()
api_router.include_router(health_router)
api_router.include_router(reports_router, tags=["daily-reports"])
api_router.include_router(bank_cards_router, tags=["bank-cards"])
api_router.include_router(date_locks_router, tags=["date-locks"])
if settings.METRICS_ENABLED:
    api_router.include_router(metrics_router, tags=["ops"])
