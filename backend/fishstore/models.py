"""
Database Models
===============

Defines the database schema using SQLAlchemy ORM.

Tables:
- categories: Groups of products (Fresh Fish, Salmon, Shellfish, ...)
- products: Items for sale
- users: Customers and operators
- orders: Customer orders (guest orders have no user)
- order_items: Products in each order, with the price paid

Products are never physically deleted: `active=False` hides them from the
storefront while historical order items keep pointing at them.
"""

import enum

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from fishstore.database import Base


class OrderStatus(str, enum.Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


class UserRole(str, enum.Enum):
    CUSTOMER = "CUSTOMER"
    ADMIN = "ADMIN"


# ============================================================================
# CATEGORY MODEL
# ============================================================================

class Category(Base):
    """
    Product category.

    A category cannot be deleted while active products reference it.
    """
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False, unique=True)
    description = Column(Text, nullable=True)
    image = Column(String(500), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    products = relationship("Product", back_populates="category")


# ============================================================================
# PRODUCT MODEL
# ============================================================================

class Product(Base):
    """
    Products available for purchase.

    Attributes:
        price: Current unit price (orders snapshot it, see OrderItem.price)
        stock: Available quantity, never negative
        active: False once an operator "deletes" the product
        is_weekend_offer: Operator marks the product as part of the weekend offer
        weekend_offer_active: Flipped on Friday evening and off Monday morning
            by the offer scheduler for every product with is_weekend_offer
    """
    __tablename__ = "products"
    __table_args__ = (
        CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)

    name = Column(String(200), nullable=False, index=True)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    stock = Column(Integer, default=0, nullable=False)
    images = Column(JSON, nullable=False, default=list)
    weight = Column(Float, nullable=True)
    origin = Column(String(200), nullable=True)

    category_id = Column(Integer, ForeignKey("categories.id"), nullable=True, index=True)

    active = Column(Boolean, default=True, nullable=False, index=True)
    featured = Column(Boolean, default=False, nullable=False)
    is_weekend_offer = Column(Boolean, default=False, nullable=False)
    weekend_offer_active = Column(Boolean, default=False, nullable=False)
    is_sustainable = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    category = relationship("Category", back_populates="products")
    order_items = relationship("OrderItem", back_populates="product")


# ============================================================================
# USER MODEL
# ============================================================================

class User(Base):
    """
    Registered customer or operator.

    Only a SHA-256 digest of the password reset token is stored; the token
    itself is mailed to the user and is valid until reset_token_expires.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(254), nullable=False, unique=True, index=True)
    password_hash = Column(String(200), nullable=False)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    phone = Column(String(30), nullable=True)
    role = Column(Enum(UserRole, name="user_role"), default=UserRole.CUSTOMER, nullable=False)

    reset_token_hash = Column(String(64), nullable=True, index=True)
    reset_token_expires = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    orders = relationship("Order", back_populates="user")


# ============================================================================
# ORDER MODEL
# ============================================================================

class Order(Base):
    """
    Customer orders.

    Attributes:
        order_number: Public 8-digit identifier, unique across all orders
        user_id: Owning user, NULL for guest checkout
        total: Sum of item price x quantity at creation time
        status: Only changed by an operator after creation
    """
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    order_number = Column(String(8), nullable=False, unique=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    total = Column(Numeric(10, 2), nullable=False)

    customer_name = Column(String(200), nullable=False)
    customer_email = Column(String(254), nullable=False)
    customer_phone = Column(String(30), nullable=False)
    shipping_address = Column(Text, nullable=False)
    notes = Column(Text, nullable=True)

    status = Column(Enum(OrderStatus, name="order_status"), default=OrderStatus.PENDING, nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    user = relationship("User", back_populates="orders")
    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")


# ============================================================================
# ORDER ITEM MODEL
# ============================================================================

class OrderItem(Base):
    """
    One line of an order. Immutable after creation.

    price is the unit price captured when the order was placed, so later
    product price changes never alter an order's history.
    """
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)

    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)

    quantity = Column(Integer, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)

    order = relationship("Order", back_populates="items")
    product = relationship("Product", back_populates="order_items")
