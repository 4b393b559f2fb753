"""Back-office endpoints. Every route requires an ADMIN token."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from fishstore import crud, models, schemas
from fishstore.deps import get_db, require_admin

router = APIRouter(prefix="/api/admin", tags=["admin"], dependencies=[Depends(require_admin)])


@router.get("/stats", response_model=schemas.DashboardStats)
def get_stats(db: Session = Depends(get_db)):
    return crud.dashboard_stats(db)


# --- Products ---


@router.get("/products", response_model=schemas.ProductList)
def list_products(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=crud.MAX_PAGE_SIZE),
    search: Optional[str] = Query(None, max_length=200),
    category: Optional[int] = None,
    active: Optional[bool] = None,
    db: Session = Depends(get_db),
):
    result = crud.list_products_admin(db, page=page, limit=limit, search=search, category=category, active=active)
    return {"products": result.items, "pagination": result.pagination()}


@router.post("/products", response_model=schemas.ProductSaved, status_code=201)
def create_product(body: schemas.ProductCreate, db: Session = Depends(get_db)):
    product = crud.create_product(db, body)
    return {"message": "Product created successfully", "product": crud.get_product(db, product.id)}


@router.put("/products/{product_id}", response_model=schemas.ProductSaved)
def update_product(product_id: int, body: schemas.ProductUpdate, db: Session = Depends(get_db)):
    crud.update_product(db, product_id, body)
    return {"message": "Product updated successfully", "product": crud.get_product(db, product_id)}


@router.delete("/products/{product_id}", response_model=schemas.MessageResponse)
def delete_product(product_id: int, db: Session = Depends(get_db)):
    crud.deactivate_product(db, product_id)
    return {"message": "Product deleted successfully"}


# --- Categories ---


@router.post("/categories", response_model=schemas.CategorySaved, status_code=201)
def create_category(body: schemas.CategoryCreate, db: Session = Depends(get_db)):
    category = crud.create_category(db, body)
    return {"message": "Category created successfully", "category": category}


@router.put("/categories/{category_id}", response_model=schemas.CategorySaved)
def update_category(category_id: int, body: schemas.CategoryUpdate, db: Session = Depends(get_db)):
    category = crud.update_category(db, category_id, body)
    return {"message": "Category updated successfully", "category": category}


@router.delete("/categories/{category_id}", response_model=schemas.MessageResponse)
def delete_category(category_id: int, db: Session = Depends(get_db)):
    crud.delete_category(db, category_id)
    return {"message": "Category deleted successfully"}


# --- Orders ---


@router.get("/orders", response_model=schemas.AdminOrderList)
def list_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=crud.MAX_PAGE_SIZE),
    status: Optional[models.OrderStatus] = None,
    search: Optional[str] = Query(None, max_length=200),
    db: Session = Depends(get_db),
):
    result = crud.list_orders_admin(db, page=page, limit=limit, status=status, search=search)
    return {"orders": result.items, "pagination": result.pagination()}


@router.put("/orders/{order_id}/status", response_model=schemas.OrderStatusUpdated)
def update_order_status(order_id: int, body: schemas.OrderStatusUpdate, db: Session = Depends(get_db)):
    order = crud.update_order_status(db, order_id, body.status)
    return {"message": "Order status updated successfully", "order": order}


# --- Users ---


@router.get("/users", response_model=schemas.UserList)
def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=crud.MAX_PAGE_SIZE),
    search: Optional[str] = Query(None, max_length=200),
    db: Session = Depends(get_db),
):
    result = crud.list_users(db, page=page, limit=limit, search=search)
    users = [
        schemas.AdminUser(**schemas.User.model_validate(user).model_dump(), order_count=int(count))
        for user, count in result.items
    ]
    return {"users": users, "pagination": result.pagination()}
