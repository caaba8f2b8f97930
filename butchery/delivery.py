# delivery.py
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from butchery.db import get_db
from butchery.models import DeliveryZone
from butchery.pricing import format_price, to_decimal
from butchery.schemas import ApiResponse, ok

# --- Configuration & Setup ---
logger = logging.getLogger(__name__)
router = APIRouter(prefix="/delivery", tags=["Delivery"])


# --- Pydantic Schemas for Data Validation ---

class ZoneIn(BaseModel):
    name: str = Field(min_length=1)
    name_ar: Optional[str] = None
    emirate: str = Field(min_length=1)
    areas: List[str] = Field(default_factory=list)
    delivery_fee: float = Field(ge=0)
    minimum_order: float = Field(default=0, ge=0)
    estimated_minutes: int = Field(default=60, gt=0)
    express_enabled: bool = False
    express_fee: float = Field(default=25, ge=0)
    is_active: bool = True


class ZoneUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    name_ar: Optional[str] = None
    emirate: Optional[str] = Field(default=None, min_length=1)
    areas: Optional[List[str]] = None
    delivery_fee: Optional[float] = Field(default=None, ge=0)
    minimum_order: Optional[float] = Field(default=None, ge=0)
    estimated_minutes: Optional[int] = Field(default=None, gt=0)
    express_enabled: Optional[bool] = None
    express_fee: Optional[float] = Field(default=None, ge=0)
    is_active: Optional[bool] = None


class ZoneOut(BaseModel):
    id: str
    name: str
    name_ar: Optional[str] = None
    emirate: str
    areas: List[str]
    delivery_fee: float
    minimum_order: float
    estimated_minutes: int
    express_enabled: bool
    express_fee: float
    is_active: bool

    class Config:
        from_attributes = True


class AvailabilityIn(BaseModel):
    emirate: str = Field(min_length=1)
    area: Optional[str] = None
    order_total: Optional[float] = Field(default=None, ge=0)


class AvailabilityOut(BaseModel):
    available: bool
    zone: Optional[ZoneOut] = None
    meets_minimum_order: bool = False
    minimum_order: float = 0.0
    message: str


async def _get_zone_or_404(db: AsyncSession, zone_id: str) -> DeliveryZone:
    zone = await db.get(DeliveryZone, zone_id)
    if not zone:
        raise HTTPException(status_code=404, detail="Delivery zone not found")
    return zone


def _serves_area(zone: DeliveryZone, area: Optional[str]) -> bool:
    """A zone without an area list covers the whole emirate."""
    if not area or not zone.areas:
        return True
    wanted = area.strip().casefold()
    return any(a.casefold() == wanted for a in zone.areas)


# --- API Endpoints ---

@router.get("/zones", response_model=ApiResponse[List[ZoneOut]])
async def list_zones(active: Optional[bool] = None, db: AsyncSession = Depends(get_db)):
    query = select(DeliveryZone).order_by(DeliveryZone.emirate, DeliveryZone.name)
    if active is not None:
        query = query.where(DeliveryZone.is_active.is_(active))
    result = await db.execute(query)
    return ok([ZoneOut.model_validate(z) for z in result.scalars().all()])


@router.get("/zones/{zone_id}", response_model=ApiResponse[ZoneOut])
async def get_zone(zone_id: str, db: AsyncSession = Depends(get_db)):
    return ok(ZoneOut.model_validate(await _get_zone_or_404(db, zone_id)))


@router.post("/zones", response_model=ApiResponse[ZoneOut], status_code=status.HTTP_201_CREATED)
async def create_zone(payload: ZoneIn, db: AsyncSession = Depends(get_db)):
    zone = DeliveryZone(**payload.model_dump())
    db.add(zone)
    await db.commit()
    logger.info(f"Created delivery zone {zone.id} ({zone.name}, {zone.emirate}).")
    return ok(ZoneOut.model_validate(zone), message="Delivery zone created successfully")


@router.put("/zones/{zone_id}", response_model=ApiResponse[ZoneOut])
async def update_zone(zone_id: str, payload: ZoneUpdate, db: AsyncSession = Depends(get_db)):
    zone = await _get_zone_or_404(db, zone_id)
    for field, value in payload.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(zone, field, value)
    await db.commit()
    await db.refresh(zone)
    return ok(ZoneOut.model_validate(zone), message="Delivery zone updated successfully")


@router.delete("/zones/{zone_id}", response_model=ApiResponse)
async def delete_zone(zone_id: str, db: AsyncSession = Depends(get_db)):
    zone = await _get_zone_or_404(db, zone_id)
    await db.delete(zone)
    await db.commit()
    logger.info(f"Deleted delivery zone {zone_id}.")
    return ok(message="Delivery zone deleted successfully")


@router.post("/check-availability", response_model=ApiResponse[AvailabilityOut])
async def check_availability(payload: AvailabilityIn, db: AsyncSession = Depends(get_db)):
    """Finds the active zone serving an emirate (and area, when given)."""
    result = await db.execute(
        select(DeliveryZone)
        .where(
            func.lower(DeliveryZone.emirate) == payload.emirate.strip().lower(),
            DeliveryZone.is_active.is_(True),
        )
        .order_by(DeliveryZone.delivery_fee)
    )
    zone = next((z for z in result.scalars().all() if _serves_area(z, payload.area)), None)
    if not zone:
        return ok(AvailabilityOut(available=False, message="Delivery is not available in your area"))

    minimum = to_decimal(zone.minimum_order)
    meets_minimum = payload.order_total is None or to_decimal(payload.order_total) >= minimum
    return ok(AvailabilityOut(
        available=True,
        zone=ZoneOut.model_validate(zone),
        meets_minimum_order=meets_minimum,
        minimum_order=float(minimum),
        message=(
            f"Delivery available! Fee: {format_price(zone.delivery_fee)}, "
            f"Est. time: {zone.estimated_minutes} mins"
        ),
    ))
