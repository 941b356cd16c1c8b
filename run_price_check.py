"""
run_price_check.py

Run exactly one price watch cycle and exit. For hosts that prefer an external
cron (e.g. `*/5 * * * * python run_price_check.py`) over the in-process
scheduler; set PRICE_WATCH_ENABLED=false on the web process in that case.
"""

import logging
import sys

from config import LOG_LEVEL
from services.price_watch_service import run_price_watch_cycle

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)


def main() -> int:
    report = run_price_watch_cycle()
    if report is None or report.skipped:
        return 0
    return 1 if report.aborted else 0


if __name__ == "__main__":
    sys.exit(main())
