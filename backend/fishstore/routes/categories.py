"""Public category endpoints."""

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from fishstore import crud, schemas
from fishstore.deps import get_db

router = APIRouter(prefix="/api/categories", tags=["categories"])


@router.get("", response_model=List[schemas.CategoryWithCount])
def list_categories(db: Session = Depends(get_db)):
    return [
        schemas.CategoryWithCount(
            **schemas.Category.model_validate(category).model_dump(),
            product_count=count,
        )
        for category, count in crud.list_categories(db)
    ]


@router.get("/{category_id}", response_model=schemas.CategoryDetail)
def get_category(category_id: int, db: Session = Depends(get_db)):
    category = crud.get_category(db, category_id)
    return schemas.CategoryDetail(
        **schemas.Category.model_validate(category).model_dump(),
        products=[schemas.Product.model_validate(product) for product in crud.get_category_products(db, category_id)],
    )
