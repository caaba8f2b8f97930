# promotions.py
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from butchery.db import get_db
from butchery.models import DiscountCode, utcnow
from butchery.pricing import round_money, to_decimal
from butchery.schemas import ApiResponse, ok

# --- Configuration & Setup ---
logger = logging.getLogger(__name__)
router = APIRouter(prefix="/promo-codes", tags=["Promotions"])

DiscountType = Literal["percentage", "fixed"]


class PromoCodeError(ValueError):
    """A code that exists but cannot be applied to this order."""


# --- Pydantic Schemas for Data Validation ---

def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class PromoCodeIn(BaseModel):
    code: str = Field(min_length=1, max_length=50)
    type: DiscountType
    value: float = Field(gt=0)
    minimum_order: float = Field(default=0, ge=0)
    maximum_discount: Optional[float] = Field(default=None, gt=0)
    usage_limit: int = Field(default=0, ge=0)
    valid_from: Optional[datetime] = None
    valid_to: Optional[datetime] = None
    is_active: bool = True

    @field_validator("code")
    @classmethod
    def upper_code(cls, value: str) -> str:
        return value.strip().upper()

    @field_validator("valid_from", "valid_to")
    @classmethod
    def to_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _naive_utc(value)


class PromoCodeUpdate(BaseModel):
    value: Optional[float] = Field(default=None, gt=0)
    minimum_order: Optional[float] = Field(default=None, ge=0)
    maximum_discount: Optional[float] = Field(default=None, gt=0)
    usage_limit: Optional[int] = Field(default=None, ge=0)
    valid_from: Optional[datetime] = None
    valid_to: Optional[datetime] = None
    is_active: Optional[bool] = None

    @field_validator("valid_from", "valid_to")
    @classmethod
    def to_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _naive_utc(value)


class PromoCodeOut(BaseModel):
    id: str
    code: str
    type: str
    value: float
    minimum_order: float
    maximum_discount: Optional[float] = None
    usage_limit: int
    usage_count: int
    valid_from: datetime
    valid_to: Optional[datetime] = None
    is_active: bool

    class Config:
        from_attributes = True


class ValidateIn(BaseModel):
    code: str = Field(min_length=1)
    order_total: float = Field(ge=0)


class ValidateOut(BaseModel):
    valid: bool
    code: str
    type: str
    value: float
    discount: float


# --- Discount Rules ---

def promo_discount(promo: DiscountCode, subtotal, now: Optional[datetime] = None) -> Decimal:
    """
    Returns the discount a code grants on ``subtotal``.
    Raises PromoCodeError when the code is inactive, outside its validity window,
    used up, or the subtotal is below its minimum order.
    A fixed discount never exceeds the subtotal.
    """
    now = now or utcnow()
    subtotal = to_decimal(subtotal)
    if not promo.is_active:
        raise PromoCodeError("This promo code is no longer active")
    if now < promo.valid_from or (promo.valid_to is not None and now > promo.valid_to):
        raise PromoCodeError("This promo code has expired")
    if promo.usage_limit and promo.usage_count >= promo.usage_limit:
        raise PromoCodeError("This promo code has reached its usage limit")
    minimum = to_decimal(promo.minimum_order)
    if subtotal < minimum:
        raise PromoCodeError(f"Minimum order of {minimum:.2f} AED required")

    if promo.type == "percentage":
        discount = subtotal * to_decimal(promo.value) / Decimal("100")
        if promo.maximum_discount is not None:
            discount = min(discount, to_decimal(promo.maximum_discount))
    else:
        discount = to_decimal(promo.value)
    return round_money(min(discount, subtotal))


async def find_code(db: AsyncSession, code: str) -> Optional[DiscountCode]:
    result = await db.execute(select(DiscountCode).where(func.upper(DiscountCode.code) == code.strip().upper()))
    return result.scalar_one_or_none()


async def _get_code_or_404(db: AsyncSession, code_id: str) -> DiscountCode:
    promo = await db.get(DiscountCode, code_id)
    if not promo:
        raise HTTPException(status_code=404, detail="Promo code not found")
    return promo


# --- API Endpoints ---

@router.get("", response_model=ApiResponse[List[PromoCodeOut]])
async def list_codes(db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(DiscountCode).order_by(DiscountCode.created_at.desc()))
    return ok([PromoCodeOut.model_validate(p) for p in result.scalars().all()])


@router.post("", response_model=ApiResponse[PromoCodeOut], status_code=status.HTTP_201_CREATED)
async def create_code(payload: PromoCodeIn, db: AsyncSession = Depends(get_db)):
    if await find_code(db, payload.code):
        raise HTTPException(status_code=409, detail=f"Promo code {payload.code} already exists")
    promo = DiscountCode(**payload.model_dump(exclude_none=True))
    db.add(promo)
    await db.commit()
    await db.refresh(promo)
    logger.info(f"Created promo code {promo.code} ({promo.type} {promo.value}).")
    return ok(PromoCodeOut.model_validate(promo), message="Promo code created successfully")


@router.put("/{code_id}", response_model=ApiResponse[PromoCodeOut])
async def update_code(code_id: str, payload: PromoCodeUpdate, db: AsyncSession = Depends(get_db)):
    promo = await _get_code_or_404(db, code_id)
    for field, value in payload.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(promo, field, value)
    await db.commit()
    await db.refresh(promo)
    return ok(PromoCodeOut.model_validate(promo), message="Promo code updated successfully")


@router.delete("/{code_id}", response_model=ApiResponse)
async def delete_code(code_id: str, db: AsyncSession = Depends(get_db)):
    promo = await _get_code_or_404(db, code_id)
    await db.delete(promo)
    await db.commit()
    logger.info(f"Deleted promo code {code_id}.")
    return ok(message="Promo code deleted successfully")


@router.post("/validate", response_model=ApiResponse[ValidateOut])
async def validate_code(payload: ValidateIn, db: AsyncSession = Depends(get_db)):
    promo = await find_code(db, payload.code)
    if not promo:
        raise HTTPException(status_code=400, detail="Invalid promo code")
    try:
        discount = promo_discount(promo, payload.order_total)
    except PromoCodeError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return ok(ValidateOut(valid=True, code=promo.code, type=promo.type, value=float(promo.value), discount=float(discount)))
