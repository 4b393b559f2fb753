"""
Order Placement
===============

Turns a cart (product id + quantity pairs) and the customer's contact
details into a persisted order, reducing stock by exactly the ordered
quantities.

Steps:
    1. Load every product; missing or inactive -> ProductUnavailable
    2. Check quantity <= stock; otherwise -> InsufficientStock
    3. total = sum(price now x quantity); items snapshot the price
    4. Draw a unique 8-digit order number (bounded number of attempts)
    5. Insert the order and its items; redraw if the unique index rejects it
    6. Decrement stock with a conditional UPDATE per product
    7. Commit

Steps 3-7 are one transaction. The decrement in step 6 is

    UPDATE products SET stock = stock - :qty
    WHERE id = :id AND active AND stock >= :qty

so two checkouts racing for the last units cannot both win: the loser's
UPDATE matches no row, raises InsufficientStock and the whole order is
rolled back. Nothing is written when any step fails.
"""

import random
from collections import OrderedDict
from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, Dict, Iterable, List, Optional

import structlog
from opentelemetry import trace
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from fishstore import models, schemas
from fishstore.errors import InsufficientStock, OrderNumberExhausted, ProductUnavailable
from fishstore.metrics import orders_total, revenue_total

logger = structlog.get_logger(__name__)
tracer = trace.get_tracer(__name__)

ORDER_NUMBER_ATTEMPTS = 10
ORDER_NUMBER_MIN = 10_000_000
ORDER_NUMBER_MAX = 99_999_999

_random = random.SystemRandom()


def random_order_number() -> str:
    return str(_random.randint(ORDER_NUMBER_MIN, ORDER_NUMBER_MAX))


def order_number_taken(db: Session, order_number: str) -> bool:
    return db.query(
        db.query(models.Order).filter(models.Order.order_number == order_number).exists()
    ).scalar()


def generate_order_number(
    db: Session,
    draw: Callable[[], str] = random_order_number,
    attempts: int = ORDER_NUMBER_ATTEMPTS,
) -> str:
    """
    Draw order numbers until one is not used by any existing order.

    Gives up with OrderNumberExhausted after ``attempts`` collisions. The
    unique index on orders.order_number still rejects a number taken by a
    concurrent checkout between this check and the insert; ``insert_order``
    handles that case.
    """
    for _ in range(attempts):
        candidate = draw()
        if not order_number_taken(db, candidate):
            return candidate
        logger.debug("Order number collision", order_number=candidate)

    logger.error("Order number space exhausted", attempts=attempts)
    raise OrderNumberExhausted()


def insert_order(
    db: Session,
    build_order: Callable[[str], models.Order],
    attempts: int = ORDER_NUMBER_ATTEMPTS,
) -> models.Order:
    """
    Add and flush a new order under a fresh order number.

    Nothing may be pending in the session before this runs: when a
    concurrent checkout claims the same number first, the flush fails on
    the unique index, the transaction is rolled back and the insert is
    retried with a new number, at most ``attempts`` times.
    """
    for _ in range(attempts):
        order_number = generate_order_number(db)
        db_order = build_order(order_number)
        db.add(db_order)
        try:
            db.flush()
        except IntegrityError:
            db.rollback()
            if not order_number_taken(db, order_number):
                raise
            logger.warning("Order number claimed concurrently", order_number=order_number)
            continue
        return db_order

    logger.error("Order number space exhausted", attempts=attempts)
    raise OrderNumberExhausted()


@dataclass(frozen=True)
class LineItem:
    product_id: int
    quantity: int
    unit_price: Decimal

    @property
    def subtotal(self) -> Decimal:
        return self.unit_price * self.quantity


def merge_quantities(items: Iterable[schemas.OrderItemCreate]) -> "OrderedDict[int, int]":
    """Collapse repeated product ids into one line, keeping first-seen order."""
    merged: "OrderedDict[int, int]" = OrderedDict()
    for item in items:
        merged[item.product_id] = merged.get(item.product_id, 0) + item.quantity
    return merged


def price_line_items(db: Session, quantities: Dict[int, int]) -> List[LineItem]:
    """
    Validate the cart against current stock and capture prices.

    Raises ProductUnavailable / InsufficientStock for the first offending
    product, before anything is written.
    """
    products = {
        product.id: product
        for product in db.query(models.Product).filter(models.Product.id.in_(list(quantities))).all()
    }

    line_items = []
    for product_id, quantity in quantities.items():
        product = products.get(product_id)
        if product is None or not product.active:
            raise ProductUnavailable(product_id)
        if quantity > product.stock:
            raise InsufficientStock(product.id, product.name, requested=quantity, available=product.stock)
        line_items.append(LineItem(product_id=product.id, quantity=quantity, unit_price=Decimal(product.price)))

    return line_items


def reserve_stock(db: Session, line_items: Iterable[LineItem]) -> None:
    """Atomically take each line's quantity out of stock, or fail."""
    for item in line_items:
        result = db.execute(
            update(models.Product)
            .where(
                models.Product.id == item.product_id,
                models.Product.active.is_(True),
                models.Product.stock >= item.quantity,
            )
            .values(stock=models.Product.stock - item.quantity)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            # Another checkout (or an operator) got there first
            product = db.get(models.Product, item.product_id, populate_existing=True)
            if product is None or not product.active:
                raise ProductUnavailable(item.product_id)
            raise InsufficientStock(product.id, product.name, requested=item.quantity, available=product.stock)


def place_order(db: Session, order: schemas.OrderCreate, user_id: Optional[int] = None) -> models.Order:
    """
    Create an order and decrement stock, atomically.

    Args:
        db: Database session (no other pending changes expected)
        order: Validated checkout request
        user_id: Owning user, None for guest checkout

    Returns:
        The persisted Order with items and their products loaded

    Raises:
        ProductUnavailable: a product is missing or soft-deleted
        InsufficientStock: a quantity exceeds the product's stock
        OrderNumberExhausted: no free order number after repeated draws
    """
    quantities = merge_quantities(order.items)

    with tracer.start_as_current_span("create_order") as span:
        span.set_attribute("order.item_count", len(quantities))
        if user_id is not None:
            span.set_attribute("order.user_id", user_id)

        try:
            with tracer.start_as_current_span("validate_products"):
                line_items = price_line_items(db, quantities)
                total = sum((item.subtotal for item in line_items), Decimal("0.00"))
                span.set_attribute("order.total_amount", float(total))

            with tracer.start_as_current_span("save_order"):
                db_order = insert_order(
                    db,
                    lambda order_number: models.Order(
                        order_number=order_number,
                        user_id=user_id,
                        total=total,
                        customer_name=order.customer_name,
                        customer_email=str(order.customer_email).lower(),
                        customer_phone=order.customer_phone,
                        shipping_address=order.shipping_address,
                        notes=order.notes,
                        status=models.OrderStatus.PENDING,
                        items=[
                            models.OrderItem(
                                product_id=item.product_id,
                                quantity=item.quantity,
                                price=item.unit_price,
                            )
                            for item in line_items
                        ],
                    ),
                )
                span.set_attribute("order.id", db_order.id)

            with tracer.start_as_current_span("update_inventory"):
                reserve_stock(db, line_items)

            db.commit()
            # The decrements bypassed the identity map; drop the stale copies
            db.expire_all()
        except (ProductUnavailable, InsufficientStock) as exc:
            db.rollback()
            span.add_event("order_rejected", {"reason": type(exc).__name__})
            orders_total.labels(status="rejected").inc()
            logger.info("Order rejected", reason=exc.message, **exc.details)
            raise
        except Exception as exc:
            db.rollback()
            span.record_exception(exc)
            span.set_attribute("error", True)
            orders_total.labels(status="error").inc()
            raise

    orders_total.labels(status="success").inc()
    revenue_total.inc(float(total))
    logger.info(
        "Order placed",
        order_number=db_order.order_number,
        total=str(total),
        items=len(line_items),
        user_id=user_id,
    )

    return (
        db.query(models.Order)
        .options(selectinload(models.Order.items).joinedload(models.OrderItem.product))
        .filter(models.Order.id == db_order.id)
        .populate_existing()
        .one()
    )
