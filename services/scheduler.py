"""
services/scheduler.py

Cron-style ticking source for the price watch.

- CronSchedule: five-field cron expression evaluated in a fixed time zone
- PriceWatchScheduler: daemon thread that waits for the next fire time and
  runs the job synchronously, so two ticks never overlap

The job itself is any zero-argument callable (run_price_watch_cycle in
production). Tests call the reconciler directly and never wait on real time.
"""

import logging
import threading
from datetime import datetime, timedelta
from typing import Callable, Iterator, Optional, Set
from zoneinfo import ZoneInfo

logger = logging.getLogger(__name__)


class CronError(ValueError):
    pass


# =====================================================================
# SECTION: CRON PARSING
# =====================================================================

# (name, min, max)
_FIELDS = (
    ("minute", 0, 59),
    ("hour", 0, 23),
    ("day_of_month", 1, 31),
    ("month", 1, 12),
    ("day_of_week", 0, 7),
)

# Upper bound on the search for the next fire time
_MAX_LOOKAHEAD_DAYS = 366 * 5


def _parse_field(raw: str, lo: int, hi: int, name: str) -> Set[int]:
    values: Set[int] = set()
    for part in raw.split(","):
        part = part.strip()
        if not part:
            raise CronError(f"empty element in {name} field {raw!r}")

        step = 1
        if "/" in part:
            part, step_raw = part.split("/", 1)
            if not step_raw.isdigit() or int(step_raw) <= 0:
                raise CronError(f"bad step {step_raw!r} in {name} field")
            step = int(step_raw)

        if part == "*":
            start, end = lo, hi
        elif "-" in part:
            a, b = part.split("-", 1)
            if not (a.isdigit() and b.isdigit()):
                raise CronError(f"bad range {part!r} in {name} field")
            start, end = int(a), int(b)
        elif part.isdigit():
            start = int(part)
            # "5/15" means 5, 20, 35, 50
            end = hi if step > 1 else start
        else:
            raise CronError(f"bad value {part!r} in {name} field")

        if start < lo or end > hi or start > end:
            raise CronError(f"{name} value {part!r} out of range {lo}-{hi}")

        values.update(range(start, end + 1, step))
    return values


class CronSchedule:
    def __init__(self, expression: str, tz_name: str = "UTC"):
        parts = expression.split()
        if len(parts) != 5:
            raise CronError(f"expected 5 fields in cron expression, got {len(parts)}: {expression!r}")

        self.expression = expression
        self.tz = ZoneInfo(tz_name)

        parsed = [_parse_field(raw, lo, hi, name) for raw, (name, lo, hi) in zip(parts, _FIELDS)]
        self.minutes, self.hours, self.days_of_month, self.months, dow = parsed

        # 7 is an alias for Sunday; cron counts Sunday as 0, Python as 6
        dow = {0 if d == 7 else d for d in dow}
        self.days_of_week = {(d - 1) % 7 for d in dow}

        self._dom_restricted = parts[2] != "*"
        self._dow_restricted = parts[4] != "*"

    def __repr__(self) -> str:
        return f"CronSchedule({self.expression!r}, tz={self.tz.key!r})"

    def _day_matches(self, dt: datetime) -> bool:
        if dt.month not in self.months:
            return False
        dom_ok = dt.day in self.days_of_month
        dow_ok = dt.weekday() in self.days_of_week
        # Classic cron: when both day fields are restricted, either may match
        if self._dom_restricted and self._dow_restricted:
            return dom_ok or dow_ok
        return dom_ok and dow_ok

    def next_after(self, moment: datetime) -> datetime:
        """First fire time strictly after moment, as an aware datetime in the schedule zone."""
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=self.tz)
        local = moment.astimezone(self.tz).replace(tzinfo=None)

        candidate = local.replace(second=0, microsecond=0) + timedelta(minutes=1)
        limit = candidate + timedelta(days=_MAX_LOOKAHEAD_DAYS)

        while candidate < limit:
            if not self._day_matches(candidate):
                candidate = (candidate + timedelta(days=1)).replace(hour=0, minute=0)
                continue
            if candidate.hour not in self.hours:
                candidate = (candidate + timedelta(hours=1)).replace(minute=0)
                continue
            if candidate.minute not in self.minutes:
                candidate += timedelta(minutes=1)
                continue
            return candidate.replace(tzinfo=self.tz)

        raise CronError(f"cron expression {self.expression!r} never fires")

    def iter_fire_times(self, start: datetime) -> Iterator[datetime]:
        current = start
        while True:
            current = self.next_after(current)
            yield current


# =====================================================================
# SECTION: SCHEDULER THREAD
# =====================================================================

class PriceWatchScheduler:
    def __init__(
        self,
        job: Callable[[], object],
        schedule: CronSchedule,
        now_fn: Optional[Callable[[], datetime]] = None,
    ):
        self.job = job
        self.schedule = schedule
        self._now_fn = now_fn or (lambda: datetime.now(schedule.tz))
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._last_fire_at: Optional[datetime] = None
        self.ticks = 0

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        # Raises CronError here rather than inside the thread
        self.schedule.next_after(self._now_fn())
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="price-watch-scheduler", daemon=True)
        self._thread.start()
        logger.info(f"[scheduler] started {self.schedule!r}")

    def stop(self, timeout: Optional[float] = None) -> None:
        """Signal the loop to exit; an in-flight cycle is allowed to finish."""
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            if self._thread.is_alive():
                logger.warning("[scheduler] cycle still running at shutdown, leaving it to finish")
            else:
                logger.info("[scheduler] stopped")
        self._thread = None

    def tick(self) -> None:
        """Run the job once. Never raises."""
        self.ticks += 1
        logger.info(f"[scheduler] tick #{self.ticks}")
        try:
            self.job()
        except Exception:
            logger.exception("[scheduler] job raised, will retry at next tick")

    def _run(self) -> None:
        while not self._stop.is_set():
            now = self._now_fn()
            fire_at = self._next_fire(now)
            wait_seconds = max(0.0, (fire_at - now).total_seconds())
            if self._stop.wait(timeout=wait_seconds):
                break
            self._last_fire_at = fire_at
            self.tick()

    def _next_fire(self, now: datetime) -> datetime:
        """Next slot after now, never the slot that already fired."""
        if self._last_fire_at is not None and now < self._last_fire_at:
            now = self._last_fire_at
        return self.schedule.next_after(now)
