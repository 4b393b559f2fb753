"""
Seed the database with an admin user, categories and sample products.

Usage:
    python -m fishstore.seed

Safe to run repeatedly: existing rows (matched by email / name) are left alone.
"""

import os
from decimal import Decimal

import structlog
from sqlalchemy.orm import Session

from fishstore import models, security
from fishstore.config import Settings
from fishstore.database import build_engine, build_session_factory, create_tables
from fishstore.logging import configure_logging

logger = structlog.get_logger(__name__)

CATEGORIES = [
    {
        "name": "Fresh Fish",
        "description": "Daily fresh catch from local waters",
        "image": "https://images.unsplash.com/photo-1544943910-4c1dc44aab44?w=400",
    },
    {
        "name": "Salmon",
        "description": "Premium Atlantic and Pacific salmon",
        "image": "https://images.unsplash.com/photo-1599084993091-1cb5c0721cc6?w=400",
    },
    {
        "name": "Shellfish",
        "description": "Fresh crabs, lobsters, and shrimp",
        "image": "https://images.unsplash.com/photo-1565680018434-b513d5e5fd47?w=400",
    },
    {
        "name": "Tuna",
        "description": "High-quality tuna varieties",
        "image": "https://images.unsplash.com/photo-1544943910-4c1dc44aab44?w=400",
    },
]

PRODUCTS = [
    {
        "name": "Atlantic Salmon Fillet",
        "description": "Fresh Atlantic salmon fillet, perfect for grilling or baking. Rich in omega-3 fatty acids.",
        "price": Decimal("24.99"),
        "stock": 50,
        "weight": 1.0,
        "origin": "Atlantic Ocean",
        "featured": True,
        "images": ["https://images.unsplash.com/photo-1599084993091-1cb5c0721cc6?w=800"],
        "category": "Salmon",
    },
    {
        "name": "Fresh Red Snapper",
        "description": "Whole fresh red snapper, caught daily. Perfect for whole fish preparations.",
        "price": Decimal("18.50"),
        "stock": 30,
        "weight": 2.5,
        "origin": "Gulf of Mexico",
        "featured": True,
        "images": ["https://images.unsplash.com/photo-1544943910-4c1dc44aab44?w=800"],
        "category": "Fresh Fish",
    },
    {
        "name": "King Crab Legs",
        "description": "Alaskan king crab legs, pre-cooked and flash frozen at sea.",
        "price": Decimal("49.99"),
        "stock": 20,
        "weight": 1.0,
        "origin": "Alaska",
        "is_weekend_offer": True,
        "images": ["https://images.unsplash.com/photo-1565680018434-b513d5e5fd47?w=800"],
        "category": "Shellfish",
    },
    {
        "name": "Yellowfin Tuna Steak",
        "description": "Sashimi-grade yellowfin tuna steaks, line caught.",
        "price": Decimal("32.00"),
        "stock": 25,
        "weight": 0.5,
        "origin": "Pacific Ocean",
        "is_sustainable": True,
        "images": ["https://images.unsplash.com/photo-1544943910-4c1dc44aab44?w=800"],
        "category": "Tuna",
    },
]


def seed(db: Session, settings: Settings, admin_email: str, admin_password: str) -> None:
    admin = db.query(models.User).filter(models.User.email == admin_email).first()
    if admin is None:
        db.add(
            models.User(
                email=admin_email,
                password_hash=security.hash_password(admin_password, settings.bcrypt_rounds),
                first_name="Admin",
                last_name="User",
                role=models.UserRole.ADMIN,
            )
        )
        logger.info("Admin user created", email=admin_email)

    categories = {}
    for data in CATEGORIES:
        category = db.query(models.Category).filter(models.Category.name == data["name"]).first()
        if category is None:
            category = models.Category(**data)
            db.add(category)
            logger.info("Category created", name=data["name"])
        categories[data["name"]] = category
    db.flush()

    for data in PRODUCTS:
        data = dict(data)
        category = categories[data.pop("category")]
        if db.query(models.Product).filter(models.Product.name == data["name"]).first() is None:
            db.add(models.Product(category_id=category.id, **data))
            logger.info("Product created", name=data["name"])

    db.commit()


def main() -> None:
    settings = Settings.from_env()
    configure_logging(settings.environment, settings.log_level)

    engine = build_engine(settings.database_url)
    create_tables(engine)
    db = build_session_factory(engine)()
    try:
        seed(
            db,
            settings,
            admin_email=os.getenv("ADMIN_EMAIL", "admin@fishstore.com"),
            admin_password=os.getenv("ADMIN_PASSWORD", "admin123"),
        )
    finally:
        db.close()
        engine.dispose()

    logger.info("Database seeded")


if __name__ == "__main__":
    main()
