# shop/sync.py
import datetime
import enum
import os
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional

import pytz

from .logger import get_logger
from .products import ProductCatalog

logger = get_logger(__name__)

SYNC_DELAY_SECONDS = float(os.getenv("SYNC_DELAY_SECONDS", "1"))
SYNC_HOUR = int(os.getenv("SYNC_HOUR", "1"))
SYNC_MINUTE = int(os.getenv("SYNC_MINUTE", "0"))
SYNC_TIMEZONE = os.getenv("SYNC_TIMEZONE", "Asia/Seoul")


class SyncState(str, enum.Enum):
    IDLE = "idle"
    RUNNING = "running"


class FixedDelayLimiter:
    """Sleep a fixed delay before every provider call."""

    def __init__(self, delay: float = SYNC_DELAY_SECONDS, sleep: Callable[[float], None] = time.sleep):
        self.delay = delay
        self.sleep = sleep

    def wait(self) -> None:
        if self.delay > 0:
            self.sleep(self.delay)


class DailyTrigger:
    """
    Fires once a day at hour:minute in ``timezone``. ``clock`` returns an aware
    datetime and ``sleep`` blocks for a number of seconds; both are injectable.
    """

    def __init__(
        self,
        hour: int = SYNC_HOUR,
        minute: int = SYNC_MINUTE,
        timezone: str = SYNC_TIMEZONE,
        clock: Optional[Callable[[], datetime.datetime]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if not (0 <= hour < 24 and 0 <= minute < 60):
            raise ValueError(f"Invalid daily trigger time {hour:02d}:{minute:02d}")
        self.hour = hour
        self.minute = minute
        self.tz = pytz.timezone(timezone)
        self.clock = clock or (lambda: datetime.datetime.now(tz=pytz.UTC))
        self.sleep = sleep

    def next_fire(self, now: Optional[datetime.datetime] = None) -> datetime.datetime:
        local_now = (now or self.clock()).astimezone(self.tz)
        at = datetime.time(self.hour, self.minute)
        candidate = self.tz.localize(datetime.datetime.combine(local_now.date(), at))
        if candidate <= local_now:
            tomorrow = local_now.date() + datetime.timedelta(days=1)
            candidate = self.tz.localize(datetime.datetime.combine(tomorrow, at))
        return candidate

    def wait(self) -> datetime.datetime:
        now = self.clock()
        fire_at = self.next_fire(now)
        delay = max(0.0, (fire_at - now).total_seconds())
        logger.info("Next price sync at %s (in %.0f seconds).", fire_at.isoformat(), delay)
        self.sleep(delay)
        return fire_at


@dataclass
class SyncReport:
    total: int = 0
    updated: int = 0
    empty: int = 0
    failed: List[int] = field(default_factory=list)


class PriceSyncScheduler:
    """
    Refresh every tracked product's lowest price from the search provider.

    Products are processed one at a time with the limiter's delay before each
    search. A failure for one product is logged and the run moves on.
    """

    def __init__(self, catalog: ProductCatalog, search_client, limiter=None):
        self.catalog = catalog
        self.search_client = search_client
        self.limiter = limiter or FixedDelayLimiter()
        self.last_report: Optional[SyncReport] = None
        self._lock = threading.Lock()

    @property
    def state(self) -> SyncState:
        return SyncState.RUNNING if self._lock.locked() else SyncState.IDLE

    def trigger(self) -> bool:
        """Start a run unless one is in progress. Overlapping triggers are dropped."""
        if not self._lock.acquire(blocking=False):
            logger.warning("Price sync already running; dropping this trigger.")
            return False
        try:
            self.last_report = self._run()
        finally:
            self._lock.release()
        return True

    def _run(self) -> SyncReport:
        logger.info("Price sync started.")
        products = self.catalog.list_all()
        report = SyncReport(total=len(products))

        for product in products:
            try:
                self.limiter.wait()
                first = next(iter(self.search_client.search(product.title)), None)
                if first is None:
                    report.empty += 1
                    logger.info("No search results for product %s '%s'.", product.id, product.title)
                    continue

                result = self.catalog.update_lowest_price_from_search(product.id, first)
                if not result.ok:
                    report.failed.append(product.id)
                    logger.error("Price sync failed for product %s: %s", product.id, result.error)
                    continue
                report.updated += 1
            except Exception as e:
                report.failed.append(product.id)
                logger.error("Price sync failed for product %s: %s", product.id, e)

        logger.info(
            "Price sync finished: %d product(s), %d updated, %d without results, %d failed.",
            report.total, report.updated, report.empty, len(report.failed),
        )
        return report
