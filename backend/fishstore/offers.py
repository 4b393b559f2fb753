"""
Weekend offers.

Products an operator marks with ``is_weekend_offer`` go on offer every
Friday at 17:00 and come off it on Monday at 09:00 (server local time).
Each run is a single bulk UPDATE; a failed run is logged and simply waits
for the next scheduled tick.
"""

from typing import Callable

import structlog
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from sqlalchemy import update
from sqlalchemy.orm import Session

from fishstore import models
from fishstore.metrics import weekend_offer_runs_total

logger = structlog.get_logger(__name__)

ENABLE_SCHEDULE = {"day_of_week": "fri", "hour": 17, "minute": 0}
DISABLE_SCHEDULE = {"day_of_week": "mon", "hour": 9, "minute": 0}


def set_weekend_offers(db: Session, active: bool) -> int:
    """
    Turn the weekend offer on for every designated product, or off for
    every product; returns rows changed.

    Switching off ignores the designation so a product un-designated over
    the weekend cannot keep a live offer into the next week.
    """
    statement = update(models.Product)
    if active:
        statement = statement.where(models.Product.is_weekend_offer.is_(True))
    else:
        statement = statement.where(models.Product.weekend_offer_active.is_(True))
    result = db.execute(
        statement.values(weekend_offer_active=active).execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount


def enable_weekend_offers(db: Session) -> int:
    return set_weekend_offers(db, True)


def disable_weekend_offers(db: Session) -> int:
    return set_weekend_offers(db, False)


def run_offer_job(session_factory: Callable[[], Session], active: bool) -> None:
    """Scheduler entry point: own session, log the outcome, never raise."""
    action = "enable" if active else "disable"
    db = session_factory()
    try:
        updated = set_weekend_offers(db, active)
    except Exception:
        db.rollback()
        weekend_offer_runs_total.labels(action=action, status="failed").inc()
        logger.exception("Weekend offer toggle failed", action=action)
    else:
        weekend_offer_runs_total.labels(action=action, status="success").inc()
        logger.info("Weekend offers toggled", action=action, products=updated)
    finally:
        db.close()


class OfferScheduler:
    """Runs the two weekly offer jobs in a background thread."""

    def __init__(self, session_factory: Callable[[], Session], scheduler: BackgroundScheduler = None):
        self.session_factory = session_factory
        self.scheduler = scheduler or BackgroundScheduler()
        self.scheduler.add_job(
            run_offer_job,
            CronTrigger(**ENABLE_SCHEDULE),
            args=[session_factory, True],
            id="weekend-offers-enable",
            replace_existing=True,
            coalesce=True,
        )
        self.scheduler.add_job(
            run_offer_job,
            CronTrigger(**DISABLE_SCHEDULE),
            args=[session_factory, False],
            id="weekend-offers-disable",
            replace_existing=True,
            coalesce=True,
        )

    def start(self) -> None:
        self.scheduler.start()
        logger.info("Offer scheduler started")

    def shutdown(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Offer scheduler stopped")
