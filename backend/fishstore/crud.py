"""
CRUD Operations
===============

Database operations for the catalog, categories, users and the admin
back-office. Order placement lives in ``fishstore.checkout``.

Pattern:
def operation_name(db: Session, parameters) -> ReturnType:
    # Database operations
    return result

Functions that change data commit their own transaction. Lookups of a single
row raise NotFound instead of returning None, so routes stay thin.

Customer-facing product queries go through ``storefront_products()``, which
always filters out soft-deleted (inactive) products.
"""

import math
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Generic, List, Optional, Tuple, TypeVar

from sqlalchemy import func, or_
from sqlalchemy.orm import Query, Session, joinedload, selectinload

from fishstore import models, schemas
from fishstore.errors import CategoryInUse, NotFound, ValidationFailed

T = TypeVar("T")

DEFAULT_PAGE_SIZE = 12
MAX_PAGE_SIZE = 100

# sortBy value -> column
PRODUCT_SORT_FIELDS = {
    "createdAt": models.Product.created_at,
    "price": models.Product.price,
    "name": models.Product.name,
    "stock": models.Product.stock,
}


# ============================================================================
# PAGINATION
# ============================================================================

@dataclass
class Page(Generic[T]):
    items: List[T]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0

    def pagination(self) -> Dict[str, Any]:
        return {
            "current_page": self.page,
            "total_pages": self.total_pages,
            "total_items": self.total,
            "items_per_page": self.limit,
            "has_next_page": self.page < self.total_pages,
            "has_prev_page": self.page > 1,
        }


def paginate(query: Query, page: int, limit: int) -> Page:
    """
    Run ``query`` for one page.

    Pagination example:
        Page 1: limit=10   -> rows 1-10   (OFFSET 0)
        Page 2: limit=10   -> rows 11-20  (OFFSET 10)
    """
    if page < 1:
        raise ValidationFailed(errors=[{"field": "page", "message": "Page must be at least 1"}])
    if limit < 1 or limit > MAX_PAGE_SIZE:
        raise ValidationFailed(
            errors=[{"field": "limit", "message": f"Limit must be between 1 and {MAX_PAGE_SIZE}"}]
        )

    total = query.order_by(None).count()
    items = query.offset((page - 1) * limit).limit(limit).all()
    return Page(items=items, total=total, page=page, limit=limit)


def _money(value: float) -> Decimal:
    return Decimal(str(value)).quantize(Decimal("0.01"))


def _contains(column, text: str):
    # Case-insensitive substring match, portable across PostgreSQL and SQLite
    return func.lower(column).contains(text.lower(), autoescape=True)


# ============================================================================
# PRODUCT QUERIES (storefront)
# ============================================================================

def storefront_products(db: Session) -> Query:
    """Base query for anything a customer can see: active products only."""
    return (
        db.query(models.Product)
        .options(joinedload(models.Product.category))
        .filter(models.Product.active.is_(True))
    )


@dataclass
class ProductFilters:
    category: Optional[int] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    search: Optional[str] = None
    featured: Optional[bool] = None
    weekend_offer: Optional[bool] = None
    sustainable: Optional[bool] = None
    sort_by: str = "createdAt"
    sort_order: str = "desc"


def search_products(db: Session, filters: ProductFilters, page: int = 1, limit: int = DEFAULT_PAGE_SIZE) -> Page:
    """
    Filtered, sorted, paginated list of active products.

    Boolean flags only narrow the result when true (``featured=false`` does
    not mean "only non-featured"). An empty page is a valid result.

    SQL generated (roughly):
        SELECT * FROM products
        WHERE active AND category_id = ? AND price BETWEEN ? AND ?
          AND (lower(name) LIKE ? OR lower(description) LIKE ?)
        ORDER BY created_at DESC
        OFFSET ? LIMIT ?
    """
    sort_column = PRODUCT_SORT_FIELDS.get(filters.sort_by)
    if sort_column is None:
        raise ValidationFailed(
            errors=[{"field": "sortBy", "message": f"Sort field must be one of {', '.join(PRODUCT_SORT_FIELDS)}"}]
        )
    if filters.sort_order not in ("asc", "desc"):
        raise ValidationFailed(errors=[{"field": "sortOrder", "message": "Sort order must be asc or desc"}])

    query = storefront_products(db)

    if filters.category is not None:
        query = query.filter(models.Product.category_id == filters.category)
    if filters.min_price is not None:
        query = query.filter(models.Product.price >= filters.min_price)
    if filters.max_price is not None:
        query = query.filter(models.Product.price <= filters.max_price)
    if filters.search:
        query = query.filter(
            or_(
                _contains(models.Product.name, filters.search),
                _contains(models.Product.description, filters.search),
            )
        )
    if filters.featured:
        query = query.filter(models.Product.featured.is_(True))
    if filters.weekend_offer:
        query = query.filter(
            models.Product.is_weekend_offer.is_(True),
            models.Product.weekend_offer_active.is_(True),
        )
    if filters.sustainable:
        query = query.filter(models.Product.is_sustainable.is_(True))

    ordering = sort_column.asc() if filters.sort_order == "asc" else sort_column.desc()
    # Tie-break on id so pages are stable
    query = query.order_by(ordering, models.Product.id.desc())

    return paginate(query, page, limit)


def get_active_product(db: Session, product_id: int) -> models.Product:
    product = storefront_products(db).filter(models.Product.id == product_id).first()
    if product is None:
        raise NotFound("Product")
    return product


def get_featured_products(db: Session, limit: int = 8) -> List[models.Product]:
    return (
        storefront_products(db)
        .filter(models.Product.featured.is_(True))
        .order_by(models.Product.created_at.desc(), models.Product.id.desc())
        .limit(limit)
        .all()
    )


# ============================================================================
# PRODUCT ADMIN
# ============================================================================

def _require_category(db: Session, category_id: int) -> models.Category:
    category = db.get(models.Category, category_id)
    if category is None:
        raise ValidationFailed("Invalid category", errors=[{"field": "categoryId", "message": "Invalid category"}])
    return category


def get_product(db: Session, product_id: int) -> models.Product:
    """Any product, active or not (operators see everything)."""
    product = (
        db.query(models.Product)
        .options(joinedload(models.Product.category))
        .filter(models.Product.id == product_id)
        .first()
    )
    if product is None:
        raise NotFound("Product")
    return product


def list_products_admin(
    db: Session,
    page: int = 1,
    limit: int = 10,
    search: Optional[str] = None,
    category: Optional[int] = None,
    active: Optional[bool] = None,
) -> Page:
    query = db.query(models.Product).options(joinedload(models.Product.category))
    if active is not None:
        query = query.filter(models.Product.active.is_(active))
    if search:
        query = query.filter(
            or_(_contains(models.Product.name, search), _contains(models.Product.description, search))
        )
    if category is not None:
        query = query.filter(models.Product.category_id == category)
    query = query.order_by(models.Product.created_at.desc(), models.Product.id.desc())
    return paginate(query, page, limit)


def create_product(db: Session, product: schemas.ProductCreate) -> models.Product:
    """
    Create a new product.

    Process:
        1. Check the category exists
        2. Convert Pydantic schema -> SQLAlchemy model
        3. Commit and refresh to get DB-generated fields (id, timestamps)
    """
    _require_category(db, product.category_id)

    data = product.model_dump()
    data["price"] = _money(data["price"])
    db_product = models.Product(**data)
    db.add(db_product)
    db.commit()
    db.refresh(db_product)

    return db_product


def update_product(db: Session, product_id: int, product_update: schemas.ProductUpdate) -> models.Product:
    """
    Update an existing product (partial update).

    The row is locked (SELECT ... FOR UPDATE) before it is changed, so an
    operator's stock edit cannot interleave with a checkout's conditional
    decrement of the same row.

    Example:
        product_update = {"price": 19.99}  # Only price is updated
    """
    db_product = (
        db.query(models.Product)
        .filter(models.Product.id == product_id)
        .with_for_update()
        .first()
    )
    if db_product is None:
        raise NotFound("Product")

    # exclude_unset=True: only fields the client actually sent
    update_data = product_update.model_dump(exclude_unset=True)
    if update_data.get("category_id") is not None:
        _require_category(db, update_data["category_id"])

    if update_data.get("price") is not None:
        update_data["price"] = _money(update_data["price"])

    for field, value in update_data.items():
        if value is None and field in ("name", "price", "stock", "images", "featured", "active",
                                       "is_weekend_offer", "is_sustainable"):
            # Non-nullable columns: an explicit null means "leave as is"
            continue
        setattr(db_product, field, value)

    if update_data.get("is_weekend_offer") is False:
        # Un-designated products leave a running offer at once
        db_product.weekend_offer_active = False

    db.commit()
    db.refresh(db_product)

    return db_product


def deactivate_product(db: Session, product_id: int) -> models.Product:
    """
    Soft delete: the product disappears from the storefront but its row
    stays, so orders that reference it still render.
    """
    db_product = db.get(models.Product, product_id)
    if db_product is None:
        raise NotFound("Product")

    db_product.active = False
    db.commit()

    return db_product


# ============================================================================
# CATEGORY CRUD
# ============================================================================

def list_categories(db: Session) -> List[Tuple[models.Category, int]]:
    """All categories ordered by name, each with its number of active products."""
    active_count = (
        db.query(models.Product.category_id, func.count(models.Product.id).label("product_count"))
        .filter(models.Product.active.is_(True))
        .group_by(models.Product.category_id)
        .subquery()
    )
    rows = (
        db.query(models.Category, func.coalesce(active_count.c.product_count, 0))
        .outerjoin(active_count, active_count.c.category_id == models.Category.id)
        .order_by(models.Category.name.asc())
        .all()
    )
    return [(category, int(count)) for category, count in rows]


def get_category(db: Session, category_id: int) -> models.Category:
    category = db.get(models.Category, category_id)
    if category is None:
        raise NotFound("Category")
    return category


def get_category_products(db: Session, category_id: int, limit: int = 12) -> List[models.Product]:
    return (
        storefront_products(db)
        .filter(models.Product.category_id == category_id)
        .order_by(models.Product.created_at.desc(), models.Product.id.desc())
        .limit(limit)
        .all()
    )


def _ensure_category_name_free(db: Session, name: str, exclude_id: Optional[int] = None) -> None:
    query = db.query(models.Category).filter(func.lower(models.Category.name) == name.lower())
    if exclude_id is not None:
        query = query.filter(models.Category.id != exclude_id)
    if db.query(query.exists()).scalar():
        raise ValidationFailed(
            "Category name already exists",
            errors=[{"field": "name", "message": "Category name already exists"}],
        )


def create_category(db: Session, category: schemas.CategoryCreate) -> models.Category:
    name = category.name.strip()
    _ensure_category_name_free(db, name)

    db_category = models.Category(name=name, description=category.description, image=category.image)
    db.add(db_category)
    db.commit()
    db.refresh(db_category)

    return db_category


def update_category(db: Session, category_id: int, category_update: schemas.CategoryUpdate) -> models.Category:
    db_category = get_category(db, category_id)

    update_data = category_update.model_dump(exclude_unset=True)
    if update_data.get("name"):
        update_data["name"] = update_data["name"].strip()
        _ensure_category_name_free(db, update_data["name"], exclude_id=category_id)
    elif "name" in update_data:
        del update_data["name"]

    for field, value in update_data.items():
        setattr(db_category, field, value)

    db.commit()
    db.refresh(db_category)

    return db_category


def delete_category(db: Session, category_id: int) -> None:
    """
    Delete a category.

    Refused while any active product is in it. Inactive products are
    detached (category_id = NULL) so their rows, and the orders that
    reference them, survive the deletion.
    """
    db_category = get_category(db, category_id)

    active_products = (
        db.query(func.count(models.Product.id))
        .filter(models.Product.category_id == category_id, models.Product.active.is_(True))
        .scalar()
    )
    if active_products:
        raise CategoryInUse()

    db.query(models.Product).filter(models.Product.category_id == category_id).update(
        {models.Product.category_id: None}, synchronize_session=False
    )
    db.delete(db_category)
    db.commit()


# ============================================================================
# USERS
# ============================================================================

def get_user(db: Session, user_id: int) -> Optional[models.User]:
    return db.get(models.User, user_id)


def get_user_by_email(db: Session, email: str) -> Optional[models.User]:
    return db.query(models.User).filter(models.User.email == email.strip().lower()).first()


def list_users(db: Session, page: int = 1, limit: int = 10, search: Optional[str] = None) -> Page:
    """Users newest first; each item is a (User, order_count) pair."""
    order_count = (
        db.query(models.Order.user_id, func.count(models.Order.id).label("order_count"))
        .group_by(models.Order.user_id)
        .subquery()
    )
    query = db.query(models.User, func.coalesce(order_count.c.order_count, 0)).outerjoin(
        order_count, order_count.c.user_id == models.User.id
    )
    if search:
        query = query.filter(
            or_(
                _contains(models.User.first_name, search),
                _contains(models.User.last_name, search),
                _contains(models.User.email, search),
            )
        )
    query = query.order_by(models.User.created_at.desc(), models.User.id.desc())
    return paginate(query, page, limit)


# ============================================================================
# ORDER QUERIES
# ============================================================================

def _orders_with_items(db: Session) -> Query:
    return db.query(models.Order).options(
        selectinload(models.Order.items).joinedload(models.OrderItem.product),
    )


def get_order_by_number(db: Session, order_number: str) -> models.Order:
    order = _orders_with_items(db).filter(models.Order.order_number == order_number).first()
    if order is None:
        raise NotFound("Order")
    return order


def list_orders_for_user(db: Session, user_id: int, page: int = 1, limit: int = 10) -> Page:
    query = (
        _orders_with_items(db)
        .filter(models.Order.user_id == user_id)
        .order_by(models.Order.created_at.desc(), models.Order.id.desc())
    )
    return paginate(query, page, limit)


def list_orders_admin(
    db: Session,
    page: int = 1,
    limit: int = 10,
    status: Optional[models.OrderStatus] = None,
    search: Optional[str] = None,
) -> Page:
    query = _orders_with_items(db).options(joinedload(models.Order.user))
    if status is not None:
        query = query.filter(models.Order.status == status)
    if search:
        query = query.filter(
            or_(
                _contains(models.Order.order_number, search),
                _contains(models.Order.customer_name, search),
                _contains(models.Order.customer_email, search),
            )
        )
    query = query.order_by(models.Order.created_at.desc(), models.Order.id.desc())
    return paginate(query, page, limit)


def update_order_status(db: Session, order_id: int, status: models.OrderStatus) -> models.Order:
    """
    Update order status (operators only).

    Use cases:
        - Packed and handed to the courier -> SHIPPED
        - Customer called to cancel -> CANCELLED
    """
    order = _orders_with_items(db).options(joinedload(models.Order.user)).filter(models.Order.id == order_id).first()
    if order is None:
        raise NotFound("Order")

    order.status = status
    db.commit()
    db.refresh(order)

    return order


# ============================================================================
# DASHBOARD
# ============================================================================

def dashboard_stats(db: Session) -> Dict[str, Any]:
    total_revenue = (
        db.query(func.coalesce(func.sum(models.Order.total), 0))
        .filter(models.Order.status != models.OrderStatus.CANCELLED)
        .scalar()
    )
    recent_orders = (
        _orders_with_items(db)
        .options(joinedload(models.Order.user))
        .order_by(models.Order.created_at.desc(), models.Order.id.desc())
        .limit(5)
        .all()
    )
    return {
        "total_users": db.query(func.count(models.User.id)).scalar(),
        "total_products": db.query(func.count(models.Product.id)).filter(models.Product.active.is_(True)).scalar(),
        "total_orders": db.query(func.count(models.Order.id)).scalar(),
        "total_revenue": float(Decimal(total_revenue or 0)),
        "recent_orders": recent_orders,
    }
