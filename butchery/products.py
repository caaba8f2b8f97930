# products.py
import logging
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from butchery.catalog import CatalogQuery, Language, SortOption, apply_catalog_query
from butchery.db import get_db
from butchery.models import Product, Review
from butchery.reviews import load_ratings
from butchery.schemas import ApiResponse, ProductOut, ok

# --- Configuration & Setup ---
logger = logging.getLogger(__name__)
router = APIRouter(prefix="/products", tags=["Products"])

Unit = Literal["kg", "piece", "gram"]


# --- Pydantic Schemas for Data Validation ---

class ProductIn(BaseModel):
    """Admin payload for creating a product."""
    name: str = Field(min_length=1)
    name_ar: Optional[str] = None
    sku: str = Field(min_length=1)
    price: float = Field(gt=0)
    discount: float = Field(default=0, ge=0, le=100)
    category: str = Field(min_length=1)
    description: str = Field(min_length=1)
    description_ar: Optional[str] = None
    image: Optional[str] = None
    unit: Unit = "kg"
    min_order_quantity: float = Field(default=0.25, gt=0)
    max_order_quantity: float = Field(default=10, gt=0)
    available: bool = True
    is_premium: bool = False
    is_featured: bool = False
    tags: List[str] = Field(default_factory=list)


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    name_ar: Optional[str] = None
    sku: Optional[str] = Field(default=None, min_length=1)
    price: Optional[float] = Field(default=None, gt=0)
    discount: Optional[float] = Field(default=None, ge=0, le=100)
    category: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    description_ar: Optional[str] = None
    image: Optional[str] = None
    unit: Optional[Unit] = None
    min_order_quantity: Optional[float] = Field(default=None, gt=0)
    max_order_quantity: Optional[float] = Field(default=None, gt=0)
    available: Optional[bool] = None
    is_premium: Optional[bool] = None
    is_featured: Optional[bool] = None
    tags: Optional[List[str]] = None


def _columns(payload: dict) -> dict:
    """Maps the public ``available`` flag onto the ``is_active`` column."""
    if "available" in payload:
        payload["is_active"] = payload.pop("available")
    return payload


async def _get_product_or_404(db: AsyncSession, product_id: str) -> Product:
    product = await db.get(Product, product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


async def _ensure_unique_sku(db: AsyncSession, sku: str, product_id: Optional[str] = None) -> None:
    result = await db.execute(select(Product.id).where(Product.sku == sku))
    owner = result.scalar_one_or_none()
    if owner and owner != product_id:
        raise HTTPException(status_code=409, detail=f"SKU {sku} is already in use")


# --- API Endpoints ---

@router.get("", response_model=ApiResponse[List[ProductOut]], summary="List products")
async def list_products(
    category: str = "All",
    search: str = "",
    min_price: Optional[float] = Query(default=None, ge=0),
    max_price: Optional[float] = Query(default=None, ge=0),
    sort: SortOption = "default",
    lang: Language = "en",
    featured: Optional[bool] = None,
    active: Optional[bool] = None,
    db: AsyncSession = Depends(get_db),
):
    """
    Runs the storefront catalog pipeline over the product table:
    category, then text search, then price range, then the requested sort.
    Ratings for the "rating" sort come from the reviews table.
    """
    result = await db.execute(select(Product).order_by(Product.created_at))
    rows = result.scalars().all()
    if featured is not None:
        rows = [p for p in rows if p.is_featured == featured]
    if active is not None:
        rows = [p for p in rows if p.is_active == active]

    ratings = await load_ratings(db)
    products = [
        ProductOut.from_model(p, rating=ratings[p.id].average_rating if p.id in ratings else 0.0)
        for p in rows
    ]
    query = CatalogQuery(
        category=category,
        search=search,
        min_price=min_price,
        max_price=max_price,
        sort=sort,
        language=lang,
    )
    rating_of = {p.id: p.rating for p in products}
    return ok(apply_catalog_query(products, query, ratings=rating_of))


@router.get("/{product_id}", response_model=ApiResponse[ProductOut])
async def get_product(product_id: str, db: AsyncSession = Depends(get_db)):
    product = await _get_product_or_404(db, product_id)
    ratings = await load_ratings(db)
    rating = ratings[product_id].average_rating if product_id in ratings else 0.0
    return ok(ProductOut.from_model(product, rating=rating))


@router.post("", response_model=ApiResponse[ProductOut], status_code=status.HTTP_201_CREATED)
async def create_product(payload: ProductIn, db: AsyncSession = Depends(get_db)):
    await _ensure_unique_sku(db, payload.sku)
    product = Product(**_columns(payload.model_dump()))
    db.add(product)
    await db.commit()
    logger.info(f"Created product {product.id} ({product.name}).")
    return ok(ProductOut.from_model(product), message="Product created successfully")


@router.put("/{product_id}", response_model=ApiResponse[ProductOut])
async def update_product(product_id: str, payload: ProductUpdate, db: AsyncSession = Depends(get_db)):
    product = await _get_product_or_404(db, product_id)
    changes = _columns(payload.model_dump(exclude_unset=True, exclude_none=True))
    if "sku" in changes:
        await _ensure_unique_sku(db, changes["sku"], product_id)
    for field, value in changes.items():
        setattr(product, field, value)
    await db.commit()
    await db.refresh(product)
    logger.info(f"Updated product {product_id}: {sorted(changes)}")
    return ok(ProductOut.from_model(product), message="Product updated successfully")


@router.delete("/{product_id}", response_model=ApiResponse)
async def delete_product(product_id: str, db: AsyncSession = Depends(get_db)):
    product = await _get_product_or_404(db, product_id)
    # SQLite does not enforce ON DELETE CASCADE without a pragma.
    await db.execute(delete(Review).where(Review.product_id == product_id))
    await db.delete(product)
    await db.commit()
    logger.info(f"Deleted product {product_id}.")
    return ok(message="Product deleted successfully")
