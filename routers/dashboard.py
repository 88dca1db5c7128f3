from fastapi import APIRouter, Request
from starlette import status
from utils.deps import db_dependency, user_dependency
from services.dashboard_service import DashboardService
from services.ledger_service import LedgerService


router = APIRouter(
    prefix="/api",
    tags=["dashboard"]
)


@router.get("/dashboard/stats", status_code=status.HTTP_200_OK)
async def dashboard_stats(request: Request, user: user_dependency, db: db_dependency):
    return DashboardService.get_stats(db, user)


@router.get("/ledger", status_code=status.HTTP_200_OK)
async def ledger_history(request: Request, user: user_dependency, db: db_dependency, limit: int = 100):
    entries = LedgerService.history(db, user.id, limit=min(max(limit, 1), 500))
    return {
        "success": True,
        "balance": float(user.balance),
        "entries": [entry.to_dict() for entry in entries]
    }
