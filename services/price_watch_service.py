"""
services/price_watch_service.py

Price watch engine:
- PriceWatchReconciler.run_cycle: one pass over every cart flight departing today or later
- PriceWatchReconciler.process_watch: re-price one watch, write + notify on a strict drop
- run_price_watch_cycle: the scheduler / admin trigger entry point

Delivery is best effort. Write happens before notify, so a failed send after
a successful write means one missed email; nothing is retried within a cycle.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Callable, List, Optional, Tuple
from zoneinfo import ZoneInfo

from pydantic import BaseModel

from cart_email import TEMPLATE_PRICE_DROP, Notification
from config import PRICE_WATCH_TIMEZONE, PRICE_WATCH_WORKERS, price_watch_enabled, smtp_configured
from providers.amadeus import QuoteProviderError
from providers.factory import build_quote_query
from schemas.cart import WatchSnapshot

logger = logging.getLogger(__name__)

OUTCOME_DROPPED = "dropped"
OUTCOME_UNCHANGED = "unchanged"
OUTCOME_NO_OFFER = "no_offer"
OUTCOME_GONE = "gone"
OUTCOME_FAILED = "failed"

_CENT = Decimal("0.01")


# =====================================================================
# SECTION: RESULTS
# =====================================================================

class ItemResult(BaseModel):
    watch_id: int
    outcome: str
    notified: bool = False
    old_price: Optional[Decimal] = None
    new_price: Optional[Decimal] = None
    reduction_percentage: Optional[Decimal] = None
    error: Optional[str] = None


class CycleReport(BaseModel):
    started_at: datetime
    finished_at: Optional[datetime] = None
    skipped: bool = False
    aborted: bool = False
    checked: int = 0
    dropped: int = 0
    notified: int = 0
    unchanged: int = 0
    no_offer: int = 0
    gone: int = 0
    failed: int = 0

    def add(self, item: ItemResult) -> None:
        self.checked += 1
        if item.outcome == OUTCOME_DROPPED:
            self.dropped += 1
        elif item.outcome == OUTCOME_UNCHANGED:
            self.unchanged += 1
        elif item.outcome == OUTCOME_NO_OFFER:
            self.no_offer += 1
        elif item.outcome == OUTCOME_GONE:
            self.gone += 1
        else:
            self.failed += 1
        if item.notified:
            self.notified += 1


# =====================================================================
# SECTION: HELPERS
# =====================================================================

def compute_reduction_percentage(old_price: Decimal, new_price: Decimal) -> Decimal:
    """(old - new) / old * 100, rounded half-up to 2 places."""
    old_price = Decimal(old_price)
    new_price = Decimal(new_price)
    if old_price <= 0:
        return Decimal("0.00")
    pct = (old_price - new_price) / old_price * Decimal(100)
    return pct.quantize(_CENT, rounding=ROUND_HALF_UP)


def build_price_drop_notification(
    watch: WatchSnapshot,
    owner_email: str,
    new_price: Decimal,
    reduction_percentage: Decimal,
) -> Notification:
    return Notification(
        template=TEMPLATE_PRICE_DROP,
        to_address=owner_email,
        fields={
            "origin": watch.origin,
            "destination": watch.destination,
            "departure_date": watch.departure_date.isoformat(),
            "reduction_percentage": reduction_percentage,
            "new_price": new_price,
            "old_price": watch.price,
            "currency_code": watch.currency_code,
        },
    )


# =====================================================================
# SECTION: RECONCILER
# =====================================================================

class PriceWatchReconciler:
    def __init__(
        self,
        store,
        quote_client,
        notifier,
        workers: int = PRICE_WATCH_WORKERS,
        tz_name: str = PRICE_WATCH_TIMEZONE,
        today_fn: Optional[Callable[[], date]] = None,
    ):
        self.store = store
        self.quote_client = quote_client
        self.notifier = notifier
        self.workers = max(1, int(workers or 1))
        self.tz = ZoneInfo(tz_name)
        self._today_fn = today_fn

        # Held for the whole cycle, a second caller skips instead of waiting
        self._cycle_lock = threading.Lock()

    def today(self) -> date:
        if self._today_fn is not None:
            return self._today_fn()
        return datetime.now(self.tz).date()

    @property
    def is_running(self) -> bool:
        return self._cycle_lock.locked()

    # ---- Single watch ----

    def process_watch(self, watch: WatchSnapshot, owner_email: str) -> ItemResult:
        """Raises on quote / write failures; run_cycle isolates them per item."""
        query = build_quote_query(
            origin=watch.origin,
            destination=watch.destination,
            departure_date=watch.departure_date,
            return_date=watch.return_date,
            adults=watch.adults,
            currency_code=watch.currency_code,
            max_results=1,
        )

        offers = self.quote_client.search_offers(query)
        if not offers:
            logger.info(f"[price_watch] no offer watch_id={watch.id} route={watch.origin}-{watch.destination}")
            return ItemResult(watch_id=watch.id, outcome=OUTCOME_NO_OFFER, old_price=watch.price)

        new_price = Decimal(offers[0].price.total).quantize(_CENT, rounding=ROUND_HALF_UP)
        old_price = watch.price

        if new_price >= old_price:
            return ItemResult(
                watch_id=watch.id,
                outcome=OUTCOME_UNCHANGED,
                old_price=old_price,
                new_price=new_price,
            )

        reduction = compute_reduction_percentage(old_price, new_price)

        if not self.store.update_watch_price(watch.id, new_price):
            logger.info(f"[price_watch] watch deleted before write watch_id={watch.id}")
            return ItemResult(watch_id=watch.id, outcome=OUTCOME_GONE, old_price=old_price, new_price=new_price)

        logger.info(
            f"[price_watch] price drop watch_id={watch.id} route={watch.origin}-{watch.destination} "
            f"old={old_price} new={new_price} {watch.currency_code} reduction={reduction}%"
        )

        result = ItemResult(
            watch_id=watch.id,
            outcome=OUTCOME_DROPPED,
            old_price=old_price,
            new_price=new_price,
            reduction_percentage=reduction,
        )

        notification = build_price_drop_notification(watch, owner_email, new_price, reduction)
        try:
            self.notifier.notify(notification)
            result.notified = True
        except Exception as e:
            logger.error(f"[price_watch] email failed watch_id={watch.id} to={owner_email}: {e}")
            result.error = f"notify: {e}"

        return result

    def _process_isolated(self, watch: WatchSnapshot, owner_email: str) -> ItemResult:
        try:
            return self.process_watch(watch, owner_email)
        except QuoteProviderError as e:
            logger.warning(
                f"[price_watch] quote failed watch_id={watch.id} route={watch.origin}-{watch.destination} "
                f"code={e.code} description={e.description}"
            )
            return ItemResult(watch_id=watch.id, outcome=OUTCOME_FAILED, old_price=watch.price, error=f"{e.code}: {e.description}")
        except Exception as e:
            logger.exception(f"[price_watch] error processing watch_id={watch.id}")
            return ItemResult(watch_id=watch.id, outcome=OUTCOME_FAILED, old_price=watch.price, error=str(e))

    # ---- Cycle ----

    def _load_candidates(self, today: date) -> List[Tuple[WatchSnapshot, str]]:
        candidates = self.store.list_eligible_watches(today)
        # The store filters by date already, keep past departures out regardless
        return [(w, email) for w, email in candidates if w.departure_date >= today]

    def run_cycle(self) -> CycleReport:
        """One reconciliation pass. Never raises."""
        report = CycleReport(started_at=datetime.utcnow())

        if not self._cycle_lock.acquire(blocking=False):
            logger.warning("[price_watch] previous cycle still running, skipping this tick")
            report.skipped = True
            report.finished_at = datetime.utcnow()
            return report

        try:
            today = self.today()
            try:
                candidates = self._load_candidates(today)
            except Exception:
                logger.exception("[price_watch] could not load watches, ending cycle early")
                report.aborted = True
                return report

            logger.info(f"[price_watch] cycle start today={today} candidates={len(candidates)} workers={self.workers}")

            if self.workers == 1 or len(candidates) <= 1:
                for watch, email in candidates:
                    report.add(self._process_isolated(watch, email))
            else:
                with ThreadPoolExecutor(max_workers=min(self.workers, len(candidates))) as executor:
                    futures = [executor.submit(self._process_isolated, w, e) for w, e in candidates]
                    for future in as_completed(futures):
                        report.add(future.result())

            return report
        finally:
            report.finished_at = datetime.utcnow()
            self._cycle_lock.release()
            if not report.skipped:
                logger.info(
                    f"[price_watch] cycle done checked={report.checked} dropped={report.dropped} "
                    f"notified={report.notified} unchanged={report.unchanged} no_offer={report.no_offer} "
                    f"gone={report.gone} failed={report.failed} aborted={report.aborted}"
                )


# =====================================================================
# SECTION: DEFAULT WIRING (CRON ENTRY POINT)
# =====================================================================

_DEFAULT_RECONCILER: Optional[PriceWatchReconciler] = None
_DEFAULT_LOCK = threading.Lock()


def get_default_reconciler() -> PriceWatchReconciler:
    """Process-scoped reconciler over the real database, Amadeus and SMTP."""
    global _DEFAULT_RECONCILER
    with _DEFAULT_LOCK:
        if _DEFAULT_RECONCILER is None:
            from cart_email import EmailNotifier
            from db import SessionLocal
            from providers.factory import get_quote_client
            from services.watch_store import WatchStore

            _DEFAULT_RECONCILER = PriceWatchReconciler(
                store=WatchStore(SessionLocal),
                quote_client=get_quote_client(),
                notifier=EmailNotifier(),
            )
        return _DEFAULT_RECONCILER


def run_price_watch_cycle() -> Optional[CycleReport]:
    if not price_watch_enabled():
        logger.info("[price_watch] PRICE_WATCH_ENABLED is false, skipping cycle")
        return None

    if not smtp_configured():
        logger.warning("[price_watch] SMTP not fully configured, skipping cycle")
        return None

    try:
        return get_default_reconciler().run_cycle()
    except Exception:
        logger.exception("[price_watch] cycle setup failed")
        return None
