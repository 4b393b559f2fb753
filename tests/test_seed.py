from fishstore import models, security
from fishstore.seed import CATEGORIES, PRODUCTS, seed


def test_seed_creates_admin_categories_and_products(db, settings):
    seed(db, settings, admin_email="admin@fishstore.com", admin_password="admin123")

    admin = db.query(models.User).filter_by(email="admin@fishstore.com").one()
    assert admin.role == models.UserRole.ADMIN
    assert security.verify_password("admin123", admin.password_hash)
    assert db.query(models.Category).count() == len(CATEGORIES)
    assert db.query(models.Product).count() == len(PRODUCTS)

    crab = db.query(models.Product).filter_by(name="King Crab Legs").one()
    assert crab.category.name == "Shellfish"
    assert crab.is_weekend_offer is True


def test_seed_is_idempotent(db, settings):
    seed(db, settings, admin_email="admin@fishstore.com", admin_password="admin123")
    seed(db, settings, admin_email="admin@fishstore.com", admin_password="changed")

    assert db.query(models.User).count() == 1
    assert db.query(models.Category).count() == len(CATEGORIES)
    assert db.query(models.Product).count() == len(PRODUCTS)
