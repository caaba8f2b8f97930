# reviews.py
import logging
from collections import defaultdict
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from butchery.db import get_db
from butchery.models import Product, Review
from butchery.schemas import ApiResponse, ProductRating, ok

# --- Configuration & Setup ---
logger = logging.getLogger(__name__)
router = APIRouter(prefix="/reviews", tags=["Reviews"])


# --- Pydantic Schemas for Data Validation ---

class ReviewIn(BaseModel):
    product_id: str
    user_id: str
    user_name: str = Field(min_length=1)
    rating: int = Field(ge=1, le=5)
    title: Optional[str] = None
    comment: Optional[str] = None


class ReviewOut(BaseModel):
    id: str
    product_id: str
    user_id: str
    user_name: str
    rating: int
    title: Optional[str] = None
    comment: Optional[str] = None
    helpful_count: int
    created_at: datetime

    class Config:
        from_attributes = True


# --- Rating Aggregation ---

def summarize_ratings(product_id: str, ratings: Iterable[int]) -> ProductRating:
    """Average to one decimal plus the 5..1 star distribution."""
    ratings = list(ratings)
    distribution = {star: ratings.count(star) for star in (5, 4, 3, 2, 1)}
    if not ratings:
        return ProductRating(product_id=product_id, rating_distribution=distribution)
    return ProductRating(
        product_id=product_id,
        average_rating=round(sum(ratings) / len(ratings), 1),
        total_reviews=len(ratings),
        rating_distribution=distribution,
    )


async def load_ratings(db: AsyncSession) -> Dict[str, ProductRating]:
    """Rating summary for every reviewed product, keyed by product id."""
    result = await db.execute(select(Review.product_id, Review.rating))
    by_product: Dict[str, List[int]] = defaultdict(list)
    for product_id, rating in result.all():
        by_product[product_id].append(rating)
    return {pid: summarize_ratings(pid, values) for pid, values in by_product.items()}


# --- API Endpoints ---

@router.get("/ratings", response_model=ApiResponse[List[ProductRating]])
async def list_ratings(db: AsyncSession = Depends(get_db)):
    ratings = await load_ratings(db)
    return ok(list(ratings.values()))


@router.get("/product/{product_id}", response_model=ApiResponse[List[ReviewOut]])
async def list_product_reviews(product_id: str, db: AsyncSession = Depends(get_db)):
    result = await db.execute(
        select(Review).where(Review.product_id == product_id).order_by(Review.created_at.desc())
    )
    return ok([ReviewOut.model_validate(r) for r in result.scalars().all()])


@router.post("", response_model=ApiResponse[ReviewOut], status_code=status.HTTP_201_CREATED)
async def create_review(payload: ReviewIn, db: AsyncSession = Depends(get_db)):
    if not await db.get(Product, payload.product_id):
        raise HTTPException(status_code=404, detail=f"Product {payload.product_id} not found")

    existing = await db.execute(
        select(Review).where(Review.product_id == payload.product_id, Review.user_id == payload.user_id)
    )
    if existing.scalar_one_or_none():
        raise HTTPException(status_code=409, detail="You have already reviewed this product")

    review = Review(**payload.model_dump())
    db.add(review)
    await db.commit()
    logger.info(f"Review {review.id} ({review.rating}★) added to product {review.product_id}.")
    return ok(ReviewOut.model_validate(review), message="Review added successfully")


@router.post("/{review_id}/helpful", response_model=ApiResponse[ReviewOut])
async def mark_helpful(review_id: str, db: AsyncSession = Depends(get_db)):
    result = await db.execute(
        update(Review)
        .where(Review.id == review_id)
        .values(helpful_count=Review.helpful_count + 1)
        .execution_options(synchronize_session=False)
    )
    if not result.rowcount:
        raise HTTPException(status_code=404, detail="Review not found")
    await db.commit()
    review = await db.get(Review, review_id, populate_existing=True)
    return ok(ReviewOut.model_validate(review))


@router.delete("/{review_id}", response_model=ApiResponse)
async def delete_review(review_id: str, db: AsyncSession = Depends(get_db)):
    review = await db.get(Review, review_id)
    if not review:
        raise HTTPException(status_code=404, detail="Review not found")
    await db.delete(review)
    await db.commit()
    return ok(message="Review deleted successfully")
