"""routers/admin.py - Health checks and the manual price watch trigger."""

from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Header, HTTPException

from config import is_admin_token, price_watch_enabled
from services.price_watch_service import run_price_watch_cycle

router = APIRouter()


# =====================================================================
# SECTION: HEALTH ROUTES
# =====================================================================

@router.get("/")
def home():
    return {"message": "Fare cart backend is running"}


@router.get("/health")
def health():
    return {"status": "ok"}


# =====================================================================
# SECTION: PRICE WATCH TRIGGER
# =====================================================================

@router.post("/trigger-price-check")
def trigger_price_check(
    background_tasks: BackgroundTasks,
    x_admin_token: Optional[str] = Header(None, alias="X-Admin-Token"),
):
    if not is_admin_token(x_admin_token):
        raise HTTPException(status_code=401, detail={"error": "Admin token required", "code": "UNAUTHORIZED"})

    if not price_watch_enabled():
        return {"detail": "Price watch is currently disabled via environment"}

    background_tasks.add_task(run_price_watch_cycle)
    return {"detail": "Price check cycle queued"}
