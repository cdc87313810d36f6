import os
import sys

from shop import storage
from shop.logger import get_logger
from shop.products import ProductCatalog
from shop.sync import DailyTrigger, FixedDelayLimiter, PriceSyncScheduler
from searchers import get_default_client, search_items

logger = get_logger(__name__)

MODE = os.getenv("MODE", "daemon").lower()  # "daemon", "once" or "search"


def build_scheduler(db_path: str = storage.DB_PATH, search_client=None) -> PriceSyncScheduler:
    storage.ensure_db(db_path)
    catalog = ProductCatalog(storage.ProductRepository(db_path))
    return PriceSyncScheduler(
        catalog,
        search_client or get_default_client(),
        limiter=FixedDelayLimiter(),
    )


def run_once() -> int:
    scheduler = build_scheduler()
    scheduler.trigger()
    report = scheduler.last_report
    return 1 if report is not None and report.failed else 0


def run_daemon(trigger: DailyTrigger | None = None) -> None:
    trigger = trigger or DailyTrigger()
    scheduler = build_scheduler()
    logger.info(
        "Starting price sync daemon; runs daily at %02d:%02d %s.",
        trigger.hour, trigger.minute, trigger.tz.zone,
    )

    while True:
        trigger.wait()
        try:
            scheduler.trigger()
        except Exception as e:
            # per-product errors are handled inside the run
            logger.exception("Unhandled error in price sync run: %s", e)


def run_search(query: str) -> int:
    for item in search_items(query):
        print(f"{item.lowest_price:>10}  {item.title}  {item.link}")
    return 0


if __name__ == "__main__":
    try:
        if MODE == "once":
            raise SystemExit(run_once())
        elif MODE == "search":
            if len(sys.argv) < 2:
                logger.error("MODE=search needs a query argument.")
                raise SystemExit(1)
            raise SystemExit(run_search(" ".join(sys.argv[1:])))
        else:
            run_daemon()
    except SystemExit:
        raise
    except Exception as e:
        logger.exception("Fatal price sync error: %s", e)
        raise SystemExit(2)
