# =====================================================================
# SECTION START: IMPORTS
# =====================================================================

import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from config import LOG_LEVEL, PORT, PRICE_WATCH_CRON, PRICE_WATCH_TIMEZONE, price_watch_enabled
from db import engine, Base
import models  # noqa: F401
from routers.admin import router as admin_router
from routers.cart import router as cart_router
from routers.flights import router as flights_router
from routers.users import router as users_router
from services.price_watch_service import run_price_watch_cycle
from services.scheduler import CronError, CronSchedule, PriceWatchScheduler

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)

# =====================================================================
# SECTION END: IMPORTS
# =====================================================================


# =====================================================================
# SECTION START: FastAPI APP AND CORS
# =====================================================================

app = FastAPI()

_scheduler: Optional[PriceWatchScheduler] = None


def check_database_connection() -> None:
    """Fail fast: nothing useful can run without storage."""
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"[startup] Failed to connect to database: {e}")
        raise SystemExit(1)
    logger.info("[startup] Successfully connected to database")


@app.on_event("startup")
def on_startup():
    global _scheduler

    check_database_connection()
    Base.metadata.create_all(bind=engine)

    if not price_watch_enabled():
        logger.info("[startup] PRICE_WATCH_ENABLED is false, price watch scheduler not started")
        return

    try:
        scheduler = PriceWatchScheduler(
            job=run_price_watch_cycle,
            schedule=CronSchedule(PRICE_WATCH_CRON, PRICE_WATCH_TIMEZONE),
        )
        scheduler.start()
    except CronError as e:
        logger.error(f"[startup] PRICE_WATCH_CRON={PRICE_WATCH_CRON!r} is unusable: {e}")
        raise
    _scheduler = scheduler


@app.on_event("shutdown")
def on_shutdown():
    global _scheduler
    if _scheduler is not None:
        _scheduler.stop(timeout=30)
        _scheduler = None


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(admin_router)
app.include_router(users_router)
app.include_router(cart_router)
app.include_router(flights_router)

# =====================================================================
# SECTION END: FastAPI APP AND CORS
# =====================================================================


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=PORT)
