"""Storefront product endpoints (active products only)."""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from fishstore import crud, schemas
from fishstore.deps import get_db

router = APIRouter(prefix="/api/products", tags=["products"])


@router.get("", response_model=schemas.ProductList)
def list_products(
    page: int = Query(1, ge=1),
    limit: int = Query(crud.DEFAULT_PAGE_SIZE, ge=1, le=crud.MAX_PAGE_SIZE),
    category: Optional[int] = None,
    min_price: Optional[float] = Query(None, alias="minPrice", ge=0),
    max_price: Optional[float] = Query(None, alias="maxPrice", ge=0),
    search: Optional[str] = Query(None, max_length=200),
    featured: Optional[bool] = None,
    weekend_offer: Optional[bool] = Query(None, alias="weekendOffer"),
    sustainable: Optional[bool] = None,
    sort_by: str = Query("createdAt", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder"),
    db: Session = Depends(get_db),
):
    filters = crud.ProductFilters(
        category=category,
        min_price=min_price,
        max_price=max_price,
        search=search.strip() if search else None,
        featured=featured,
        weekend_offer=weekend_offer,
        sustainable=sustainable,
        sort_by=sort_by,
        sort_order=sort_order.lower(),
    )
    result = crud.search_products(db, filters, page=page, limit=limit)
    return {"products": result.items, "pagination": result.pagination()}


@router.get("/featured/list", response_model=List[schemas.Product])
def list_featured_products(db: Session = Depends(get_db)):
    return crud.get_featured_products(db)


@router.get("/{product_id}", response_model=schemas.Product)
def get_product(product_id: int, db: Session = Depends(get_db)):
    return crud.get_active_product(db, product_id)
