"""
Request / Response Schemas
==========================

Pydantic models for the JSON API. Field names are snake_case in Python and
camelCase on the wire (customerName, sortBy, ...); input accepts both.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

from fishstore.models import OrderStatus, UserRole


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class MessageResponse(CamelModel):
    message: str


class Pagination(CamelModel):
    current_page: int
    total_pages: int
    total_items: int
    items_per_page: int
    has_next_page: bool
    has_prev_page: bool


# ============================================================================
# CATEGORIES
# ============================================================================

class CategoryRef(CamelModel):
    id: int
    name: str


class CategoryCreate(CamelModel):
    name: str = Field(..., min_length=2, max_length=100)
    description: Optional[str] = None
    image: Optional[str] = Field(None, max_length=500)


class CategoryUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    description: Optional[str] = None
    image: Optional[str] = Field(None, max_length=500)


class Category(CamelModel):
    id: int
    name: str
    description: Optional[str] = None
    image: Optional[str] = None
    created_at: Optional[datetime] = None


class CategoryWithCount(Category):
    product_count: int = 0


# ============================================================================
# PRODUCTS
# ============================================================================

class ProductBase(CamelModel):
    name: str = Field(..., min_length=2, max_length=200)
    description: str = Field(..., min_length=10)
    price: float = Field(..., ge=0)
    stock: int = Field(..., ge=0)
    category_id: int
    images: List[str] = Field(default_factory=list)
    weight: Optional[float] = Field(None, gt=0)
    origin: Optional[str] = Field(None, max_length=200)
    featured: bool = False
    active: bool = True
    is_weekend_offer: bool = False
    is_sustainable: bool = False


class ProductCreate(ProductBase):
    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "name": "Atlantic Salmon Fillet",
                    "description": "Fresh Atlantic salmon fillet, perfect for grilling or baking.",
                    "price": 24.99,
                    "stock": 50,
                    "categoryId": 2,
                    "images": ["https://images.unsplash.com/photo-1599084993091-1cb5c0721cc6?w=800"],
                    "weight": 1.0,
                    "origin": "Atlantic Ocean",
                    "featured": True,
                }
            ]
        }
    )


class ProductUpdate(CamelModel):
    """Partial update: only fields the client sends are changed."""

    name: Optional[str] = Field(None, min_length=2, max_length=200)
    description: Optional[str] = Field(None, min_length=10)
    price: Optional[float] = Field(None, ge=0)
    stock: Optional[int] = Field(None, ge=0)
    category_id: Optional[int] = None
    images: Optional[List[str]] = None
    weight: Optional[float] = Field(None, gt=0)
    origin: Optional[str] = Field(None, max_length=200)
    featured: Optional[bool] = None
    active: Optional[bool] = None
    is_weekend_offer: Optional[bool] = None
    is_sustainable: Optional[bool] = None


class Product(CamelModel):
    id: int
    name: str
    description: Optional[str] = None
    price: float
    stock: int
    category_id: Optional[int] = None
    category: Optional[CategoryRef] = None
    images: List[str] = Field(default_factory=list)
    weight: Optional[float] = None
    origin: Optional[str] = None
    featured: bool
    active: bool
    is_weekend_offer: bool
    weekend_offer_active: bool
    is_sustainable: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ProductList(CamelModel):
    products: List[Product]
    pagination: Pagination


class CategoryDetail(Category):
    products: List[Product] = Field(default_factory=list)


# ============================================================================
# USERS / AUTH
# ============================================================================

def _stripped_name(value: str) -> str:
    value = value.strip()
    if len(value) < 2:
        raise ValueError("must be at least 2 characters long")
    return value


class RegisterRequest(CamelModel):
    email: EmailStr
    # bcrypt only looks at the first 72 bytes
    password: str = Field(..., min_length=6, max_length=72)
    first_name: str = Field(..., min_length=2, max_length=100)
    last_name: str = Field(..., min_length=2, max_length=100)
    phone: Optional[str] = Field(None, max_length=30)

    @field_validator("first_name", "last_name")
    @classmethod
    def strip_names(cls, value: str) -> str:
        return _stripped_name(value)


class LoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=72)


class ProfileUpdate(CamelModel):
    first_name: Optional[str] = Field(None, min_length=2, max_length=100)
    last_name: Optional[str] = Field(None, min_length=2, max_length=100)
    phone: Optional[str] = Field(None, max_length=30)

    @field_validator("first_name", "last_name")
    @classmethod
    def strip_names(cls, value: Optional[str]) -> Optional[str]:
        # None means "leave unchanged"
        return value if value is None else _stripped_name(value)


class ForgotPasswordRequest(CamelModel):
    email: EmailStr


class ResetPasswordRequest(CamelModel):
    token: str = Field(..., min_length=1)
    password: str = Field(..., min_length=6, max_length=72)


class User(CamelModel):
    id: int
    email: str
    first_name: str
    last_name: str
    phone: Optional[str] = None
    role: UserRole
    created_at: Optional[datetime] = None


class UserEnvelope(CamelModel):
    user: User


class AuthResponse(CamelModel):
    message: str
    token: str
    user: User


class ProfileResponse(CamelModel):
    message: str
    user: User


class AdminUser(User):
    order_count: int = 0


class UserList(CamelModel):
    users: List[AdminUser]
    pagination: Pagination


# ============================================================================
# ORDERS
# ============================================================================

class OrderItemCreate(CamelModel):
    product_id: int
    quantity: int = Field(..., ge=1)


class OrderCreate(CamelModel):
    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "items": [{"productId": 1, "quantity": 2}],
                    "customerName": "Jane Doe",
                    "customerEmail": "jane@example.com",
                    "customerPhone": "+15550123456",
                    "shippingAddress": "12 Harbour Road, Portsmouth",
                }
            ]
        }
    )

    items: List[OrderItemCreate] = Field(..., min_length=1)
    customer_name: str = Field(..., min_length=2, max_length=200)
    customer_email: EmailStr
    customer_phone: str = Field(..., min_length=10, max_length=30)
    shipping_address: str = Field(..., min_length=10)
    notes: Optional[str] = None

    @field_validator("customer_name", "customer_phone", "shipping_address")
    @classmethod
    def strip_text(cls, value: str) -> str:
        return value.strip()


class ProductSummary(CamelModel):
    id: int
    name: str
    images: List[str] = Field(default_factory=list)
    price: Optional[float] = None


class OrderItem(CamelModel):
    id: int
    product_id: int
    quantity: int
    price: float
    product: Optional[ProductSummary] = None


class OrderCustomer(CamelModel):
    id: int
    first_name: str
    last_name: str
    email: str


class Order(CamelModel):
    id: int
    order_number: str
    user_id: Optional[int] = None
    total: float
    customer_name: str
    customer_email: str
    customer_phone: str
    shipping_address: str
    notes: Optional[str] = None
    status: OrderStatus
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    items: List[OrderItem] = Field(default_factory=list)


class AdminOrder(Order):
    user: Optional[OrderCustomer] = None


class OrderCreated(CamelModel):
    message: str
    order: Order


class OrderList(CamelModel):
    orders: List[Order]
    pagination: Pagination


class AdminOrderList(CamelModel):
    orders: List[AdminOrder]
    pagination: Pagination


class OrderStatusUpdate(CamelModel):
    status: OrderStatus


class OrderStatusUpdated(CamelModel):
    message: str
    order: AdminOrder


# ============================================================================
# ADMIN / MISC
# ============================================================================

class DashboardStats(CamelModel):
    total_users: int
    total_products: int
    total_orders: int
    total_revenue: float
    recent_orders: List[AdminOrder]


class ProductSaved(CamelModel):
    message: str
    product: Product


class CategorySaved(CamelModel):
    message: str
    category: Category


class ContactRequest(CamelModel):
    name: str = Field(..., min_length=2, max_length=200)
    email: EmailStr
    message: str = Field(..., min_length=5, max_length=5000)
    phone: Optional[str] = Field(None, max_length=30)


class ContactResponse(CamelModel):
    message: str
    success: bool = True


class ImageInfo(CamelModel):
    url: str
    public_id: str


class ImageUploaded(CamelModel):
    message: str
    image: ImageInfo


class ImageDeleted(CamelModel):
    message: str
    result: str
