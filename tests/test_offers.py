import pytest
from apscheduler.schedulers.background import BackgroundScheduler
from sqlalchemy.exc import OperationalError

from conftest import create_category, create_product
from fishstore import crud, models, offers, schemas
from fishstore.database import build_session_factory


@pytest.fixture()
def products(db):
    category = create_category(db, "Shellfish")
    return {
        "crab": create_product(db, category, "King Crab Legs", is_weekend_offer=True),
        "lobster": create_product(db, category, "Maine Lobster", is_weekend_offer=True),
        "shrimp": create_product(db, category, "Tiger Shrimp"),
    }


def live_offers(db):
    db.expire_all()
    return sorted(p.name for p in db.query(models.Product).filter(models.Product.weekend_offer_active.is_(True)))


class TestToggle:
    def test_enable_then_disable(self, db, products):
        assert offers.enable_weekend_offers(db) == 2
        assert live_offers(db) == ["King Crab Legs", "Maine Lobster"]

        assert offers.disable_weekend_offers(db) == 2
        assert live_offers(db) == []

    def test_undesignated_products_are_untouched(self, db, products):
        offers.enable_weekend_offers(db)

        db.expire_all()
        assert db.get(models.Product, products["shrimp"].id).weekend_offer_active is False

    def test_enabled_offers_show_in_catalog_filter(self, db, products):
        assert crud.search_products(db, crud.ProductFilters(weekend_offer=True)).total == 0
        offers.enable_weekend_offers(db)
        assert crud.search_products(db, crud.ProductFilters(weekend_offer=True)).total == 2


class TestDesignationChangesOverTheWeekend:
    def test_redesignated_product_waits_for_next_friday(self, db, products):
        crab_id = products["crab"].id
        offers.enable_weekend_offers(db)

        crud.update_product(db, crab_id, schemas.ProductUpdate(is_weekend_offer=False))
        offers.disable_weekend_offers(db)
        crud.update_product(db, crab_id, schemas.ProductUpdate(is_weekend_offer=True))

        assert live_offers(db) == []
        assert crud.search_products(db, crud.ProductFilters(weekend_offer=True)).total == 0

        offers.enable_weekend_offers(db)
        assert live_offers(db) == ["King Crab Legs", "Maine Lobster"]

    def test_undesignating_ends_a_running_offer(self, db, products):
        offers.enable_weekend_offers(db)

        crud.update_product(db, products["crab"].id, schemas.ProductUpdate(is_weekend_offer=False))

        assert live_offers(db) == ["Maine Lobster"]

    def test_disable_clears_stale_flags_on_any_product(self, db, products):
        shrimp = db.get(models.Product, products["shrimp"].id)
        shrimp.weekend_offer_active = True
        db.commit()

        assert offers.disable_weekend_offers(db) == 1
        assert live_offers(db) == []


class BrokenSession:
    closed = False
    rolled_back = False

    def execute(self, *args, **kwargs):
        raise OperationalError("UPDATE products", {}, Exception("database is locked"))

    def rollback(self):
        self.rolled_back = True

    def close(self):
        self.closed = True


class TestRunOfferJob:
    def test_job_uses_its_own_session(self, engine, products, db):
        offers.run_offer_job(build_session_factory(engine), active=True)

        assert live_offers(db) == ["King Crab Legs", "Maine Lobster"]

    def test_failure_is_logged_not_raised(self):
        session = BrokenSession()

        offers.run_offer_job(lambda: session, active=False)

        assert session.rolled_back
        assert session.closed


class TestOfferScheduler:
    def test_registers_weekly_jobs(self, engine):
        scheduler = offers.OfferScheduler(build_session_factory(engine), scheduler=BackgroundScheduler())

        jobs = {job.id: job for job in scheduler.scheduler.get_jobs()}

        assert set(jobs) == {"weekend-offers-enable", "weekend-offers-disable"}
        assert "day_of_week='fri', hour='17', minute='0'" in str(jobs["weekend-offers-enable"].trigger)
        assert "day_of_week='mon', hour='9', minute='0'" in str(jobs["weekend-offers-disable"].trigger)
        assert jobs["weekend-offers-enable"].args[1] is True
        assert jobs["weekend-offers-disable"].args[1] is False

    def test_start_and_shutdown(self, engine):
        scheduler = offers.OfferScheduler(build_session_factory(engine))

        scheduler.start()
        assert scheduler.scheduler.running
        scheduler.shutdown()
        assert not scheduler.scheduler.running
