"""Checkout and order lookup endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from fishstore import checkout, crud, models, schemas
from fishstore.deps import get_current_user, get_db, get_optional_user

router = APIRouter(prefix="/api/orders", tags=["orders"])


@router.post("", response_model=schemas.OrderCreated, status_code=201)
def create_order(
    order: schemas.OrderCreate,
    db: Session = Depends(get_db),
    user: Optional[models.User] = Depends(get_optional_user),
):
    db_order = checkout.place_order(db, order, user_id=user.id if user else None)
    return {"message": "Order created successfully", "order": db_order}


@router.get("/my-orders", response_model=schemas.OrderList)
def list_my_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=crud.MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    result = crud.list_orders_for_user(db, user.id, page=page, limit=limit)
    return {"orders": result.items, "pagination": result.pagination()}


@router.get("/{order_number}", response_model=schemas.Order)
def get_order(order_number: str, db: Session = Depends(get_db)):
    return crud.get_order_by_number(db, order_number)
