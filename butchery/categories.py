# categories.py
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from butchery.db import get_db
from butchery.models import ProductCategory, new_id
from butchery.schemas import ApiResponse, CategoryIn, CategoryOut, CategoryUpdate, ok

# --- Configuration & Setup ---
logger = logging.getLogger(__name__)
router = APIRouter(prefix="/categories", tags=["Categories"])


async def _get_category_or_404(db: AsyncSession, category_id: str) -> ProductCategory:
    category = await db.get(ProductCategory, category_id)
    if not category:
        raise HTTPException(status_code=404, detail="Category not found")
    return category


# --- API Endpoints ---

@router.get("", response_model=ApiResponse[List[CategoryOut]], summary="List all categories")
async def list_categories(db: AsyncSession = Depends(get_db)):
    """Returns every category ordered by sort order, then English name."""
    result = await db.execute(select(ProductCategory))
    categories = sorted(result.scalars().all(), key=lambda c: (c.sort_order, c.name_en.casefold()))
    return ok([CategoryOut.model_validate(c) for c in categories])


@router.post("", response_model=ApiResponse[CategoryOut], status_code=status.HTTP_201_CREATED)
async def create_category(payload: CategoryIn, db: AsyncSession = Depends(get_db)):
    category_id = payload.id or new_id("cat")
    if await db.get(ProductCategory, category_id):
        raise HTTPException(status_code=409, detail=f"Category {category_id} already exists")

    category = ProductCategory(
        id=category_id,
        name_en=payload.name_en,
        name_ar=payload.name_ar,
        icon=payload.icon or "🥩",
        color=payload.color or "bg-red-100 text-red-600",
        sort_order=payload.sort_order or 0,
        is_active=True if payload.is_active is None else payload.is_active,
    )
    db.add(category)
    await db.commit()
    logger.info(f"Created category {category.id} ({category.name_en}).")
    return ok(CategoryOut.model_validate(category), message="Category created successfully")


@router.put("/{category_id}", response_model=ApiResponse[CategoryOut])
async def update_category(category_id: str, payload: CategoryUpdate, db: AsyncSession = Depends(get_db)):
    category = await _get_category_or_404(db, category_id)
    for field, value in payload.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(category, field, value)
    await db.commit()
    await db.refresh(category)
    logger.info(f"Updated category {category_id}.")
    return ok(CategoryOut.model_validate(category), message="Category updated successfully")


@router.delete("/{category_id}", response_model=ApiResponse)
async def delete_category(category_id: str, db: AsyncSession = Depends(get_db)):
    category = await _get_category_or_404(db, category_id)
    await db.delete(category)
    await db.commit()
    logger.info(f"Deleted category {category_id}.")
    return ok(message="Category deleted successfully")
