# orders.py
import logging
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Dict, List, Literal, Optional

from fastapi import APIRouter, Body, Depends, Header, HTTPException, Query, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from butchery.basket import Basket, BasketItem, SavedBasketStore
from butchery.db import get_db
from butchery.models import DeliveryZone, DiscountCode, Order, OrderItem, OrderNumber, Product, utcnow
from butchery.pricing import VAT_RATE, discounted_price, round_money, to_decimal, vat_for
from butchery.promotions import PromoCodeError, find_code, promo_discount
from butchery.reports import start_of_day
from butchery.schemas import ApiResponse, OrderOut, ok
from butchery.validators import is_valid_email, is_valid_uae_phone, normalize_phone

# --- Configuration & Setup ---
logger = logging.getLogger(__name__)
router = APIRouter(prefix="/orders", tags=["Orders"])

OrderStatus = Literal[
    "pending", "confirmed", "processing", "ready_for_pickup",
    "out_for_delivery", "delivered", "cancelled", "refunded",
]
PaymentMethod = Literal["card", "cod", "bank_transfer"]
PaymentStatus = Literal["pending", "authorized", "captured", "failed", "refunded", "partially_refunded"]
OrderSource = Literal["web", "mobile", "phone", "admin"]

CANCEL_BLOCKED = ("delivered", "cancelled", "refunded")


# --- Pydantic Schemas for Data Validation ---

class CheckoutItemIn(BaseModel):
    product_id: str
    quantity: float = Field(ge=0.25)
    notes: Optional[str] = None


class DeliveryAddressIn(BaseModel):
    full_name: str = Field(min_length=1)
    mobile: str
    emirate: str = Field(min_length=1)
    area: str = Field(min_length=1)
    street: str = Field(min_length=1)
    building: str = Field(min_length=1)
    flat: Optional[str] = None
    landmark: Optional[str] = None


class CheckoutIn(BaseModel):
    user_id: Optional[str] = None
    customer_name: str = Field(min_length=1)
    customer_email: str
    customer_mobile: str
    items: List[CheckoutItemIn] = Field(min_length=1)
    delivery_address: DeliveryAddressIn
    delivery_notes: Optional[str] = None
    payment_method: PaymentMethod = "cod"
    driver_tip: float = Field(default=0, ge=0)
    express_delivery: bool = False
    discount_code: Optional[str] = Field(default=None, max_length=50)
    source: OrderSource = "web"

    @field_validator("customer_email")
    @classmethod
    def check_email(cls, value: str) -> str:
        if not is_valid_email(value):
            raise ValueError("Invalid email address")
        return value.strip().lower()

    @field_validator("customer_mobile")
    @classmethod
    def check_mobile(cls, value: str) -> str:
        if not is_valid_uae_phone(value):
            raise ValueError("Invalid UAE phone number format. Use +971XXXXXXXXX")
        return normalize_phone(value)


class StatusUpdateIn(BaseModel):
    status: OrderStatus
    notes: Optional[str] = None


class CancelIn(BaseModel):
    reason: Optional[str] = None


class PaymentUpdateIn(BaseModel):
    status: PaymentStatus


class OrderStats(BaseModel):
    total: int
    by_status: Dict[str, int]
    today_orders: int
    week_orders: int
    month_orders: int
    today_sales: float
    week_sales: float
    month_sales: float
    average_order_value: float


class OrderPage(BaseModel):
    orders: List[OrderOut]
    total: int
    page: int
    limit: int


# --- Helpers ---

def _history_entry(order_status: str, changed_by: str, notes: Optional[str] = None) -> dict:
    return {
        "status": order_status,
        "changed_by": changed_by,
        "changed_at": utcnow().isoformat(),
        "notes": notes,
    }


async def _fetch_order(db: AsyncSession, *criteria) -> Order:
    result = await db.execute(
        select(Order)
        .options(selectinload(Order.items))
        .where(*criteria)
        .execution_options(populate_existing=True)
    )
    order = result.scalar_one_or_none()
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return order


async def _next_order_number(db: AsyncSession) -> str:
    """
    Allocates a number from the order_numbers autoincrement table, so concurrent
    checkouts never share one. Numbers already used by older orders are skipped.
    """
    while True:
        ticket = OrderNumber()
        db.add(ticket)
        await db.flush()
        number = f"ORD-{ticket.id:06d}"
        if not await db.scalar(select(Order.id).where(Order.order_number == number)):
            return number


async def _apply_discount(db: AsyncSession, code: Optional[str], subtotal: Decimal) -> tuple:
    """Returns ``(discount, code)`` and counts one use of the code."""
    if not code or not code.strip():
        return Decimal("0"), None
    promo = await find_code(db, code)
    if not promo:
        raise HTTPException(status_code=400, detail="Invalid promo code")
    try:
        discount = promo_discount(promo, subtotal)
    except PromoCodeError as e:
        raise HTTPException(status_code=400, detail=str(e))
    await db.execute(
        update(DiscountCode)
        .where(DiscountCode.id == promo.id)
        .values(usage_count=DiscountCode.usage_count + 1)
    )
    return discount, promo.code


async def _delivery_fee(db: AsyncSession, emirate: str, express: bool) -> tuple:
    """Returns ``(fee, zone_id)`` for the first active zone serving the emirate."""
    result = await db.execute(
        select(DeliveryZone)
        .where(func.lower(DeliveryZone.emirate) == emirate.strip().lower(), DeliveryZone.is_active.is_(True))
        .order_by(DeliveryZone.delivery_fee)
    )
    zone = result.scalars().first()
    if not zone:
        return Decimal("0"), None
    if express:
        if not zone.express_enabled:
            raise HTTPException(status_code=400, detail=f"Express delivery is not available in {zone.name}")
        return to_decimal(zone.express_fee), zone.id
    return to_decimal(zone.delivery_fee), zone.id


# --- Checkout ---

@router.post("", response_model=ApiResponse[OrderOut], status_code=status.HTTP_201_CREATED)
async def create_order(payload: CheckoutIn, db: AsyncSession = Depends(get_db)):
    """
    Places an order from a list of product lines.
    1. Resolves every product and prices it at its discounted unit price.
    2. Aggregates the lines through a Basket (duplicate products merge).
    3. Applies the promo code, if any; VAT is 5% of the subtotal less the discount.
    4. Adds the zone's delivery fee and the driver tip.
    5. Stores the order as 'pending' with its first status history entry.
    """
    basket = Basket(store=SavedBasketStore())
    products: Dict[str, Product] = {}
    notes: Dict[str, str] = {}

    for line in payload.items:
        product = products.get(line.product_id) or await db.get(Product, line.product_id)
        if not product:
            raise HTTPException(status_code=404, detail=f"Product {line.product_id} not found")
        if not product.is_active:
            raise HTTPException(status_code=400, detail=f"Product {product.name} is not available")
        products[product.id] = product
        if line.notes:
            notes[product.id] = line.notes
        basket.add_item(BasketItem(
            id=product.id,
            name=product.name,
            name_ar=product.name_ar,
            price=discounted_price(product.price, product.discount),
            quantity=to_decimal(line.quantity),
            image=product.image,
            category=product.category,
        ))

    totals = basket.totals()
    discount, discount_code = await _apply_discount(db, payload.discount_code, totals.subtotal)
    taxable = totals.subtotal - discount
    vat_amount = round_money(vat_for(taxable))
    delivery_fee, zone_id = await _delivery_fee(db, payload.delivery_address.emirate, payload.express_delivery)
    driver_tip = round_money(payload.driver_tip)

    order = Order(
        order_number=await _next_order_number(db),
        user_id=payload.user_id,
        customer_name=payload.customer_name,
        customer_email=payload.customer_email,
        customer_mobile=payload.customer_mobile,
        subtotal=totals.subtotal,
        discount=discount,
        discount_code=discount_code,
        delivery_fee=delivery_fee,
        driver_tip=driver_tip,
        vat_amount=vat_amount,
        vat_rate=VAT_RATE,
        total=taxable + vat_amount + delivery_fee + driver_tip,
        status="pending",
        payment_status="pending",
        payment_method=payload.payment_method,
        delivery_address=payload.delivery_address.model_dump(),
        delivery_notes=payload.delivery_notes,
        delivery_zone_id=zone_id,
        source=payload.source,
        status_history=[_history_entry("pending", payload.user_id or "customer", "Order created")],
        items=[
            OrderItem(
                product_id=item.id,
                product_name=item.name,
                product_name_ar=item.name_ar,
                sku=products[item.id].sku,
                quantity=item.quantity,
                unit_price=item.price,
                total_price=round_money(item.line_total),
                notes=notes.get(item.id),
            )
            for item in basket.items
        ],
    )
    db.add(order)
    await db.commit()
    logger.info(f"Order {order.order_number} placed: {len(order.items)} items, total {order.total}.")

    order = await _fetch_order(db, Order.id == order.id)
    return ok(OrderOut.model_validate(order), message="Order created successfully")


# --- Queries ---

@router.get("", response_model=ApiResponse[OrderPage])
async def list_orders(
    user_id: Optional[str] = None,
    status: Optional[OrderStatus] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    criteria = []
    if user_id:
        criteria.append(Order.user_id == user_id)
    if status:
        criteria.append(Order.status == status)
    if start_date:
        criteria.append(Order.created_at >= start_date.replace(tzinfo=None))
    if end_date:
        criteria.append(Order.created_at <= end_date.replace(tzinfo=None))

    total = await db.scalar(select(func.count(Order.id)).where(*criteria))
    result = await db.execute(
        select(Order)
        .options(selectinload(Order.items))
        .where(*criteria)
        .order_by(Order.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    orders = [OrderOut.model_validate(o) for o in result.scalars().all()]
    return ok(OrderPage(orders=orders, total=total or 0, page=page, limit=limit))


@router.get("/stats", response_model=ApiResponse[OrderStats])
async def order_stats(db: AsyncSession = Depends(get_db)):
    """Order counts per status, plus order counts and sales for today and the last 7 and 30 days."""
    result = await db.execute(select(Order.status, Order.total, Order.created_at))
    rows = result.all()

    today = start_of_day(utcnow())
    windows = {"today": today, "week": today - timedelta(days=7), "month": today - timedelta(days=30)}
    counts = {name: 0 for name in windows}
    sales = {name: Decimal("0") for name in windows}
    by_status: Dict[str, int] = {}
    grand_total = Decimal("0")

    for order_status, total, created_at in rows:
        by_status[order_status] = by_status.get(order_status, 0) + 1
        grand_total += to_decimal(total)
        for name, since in windows.items():
            if created_at >= since:
                counts[name] += 1
                if order_status != "cancelled":
                    sales[name] += to_decimal(total)

    average = grand_total / len(rows) if rows else Decimal("0")
    return ok(OrderStats(
        total=len(rows),
        by_status=by_status,
        today_orders=counts["today"],
        week_orders=counts["week"],
        month_orders=counts["month"],
        today_sales=float(round_money(sales["today"])),
        week_sales=float(round_money(sales["week"])),
        month_sales=float(round_money(sales["month"])),
        average_order_value=float(round_money(average)),
    ))


@router.get("/number/{order_number}", response_model=ApiResponse[OrderOut])
async def get_order_by_number(order_number: str, db: AsyncSession = Depends(get_db)):
    order = await _fetch_order(db, Order.order_number == order_number)
    return ok(OrderOut.model_validate(order))


@router.get("/{order_id}", response_model=ApiResponse[OrderOut])
async def get_order(order_id: str, db: AsyncSession = Depends(get_db)):
    order = await _fetch_order(db, Order.id == order_id)
    return ok(OrderOut.model_validate(order))


# --- Status Changes ---

@router.patch("/{order_id}/status", response_model=ApiResponse[OrderOut])
async def update_order_status(
    order_id: str,
    payload: StatusUpdateIn,
    x_user_id: str = Header(default="admin"),
    db: AsyncSession = Depends(get_db),
):
    """Moves an order to a new status and records who did it."""
    order = await _fetch_order(db, Order.id == order_id)

    order.status = payload.status
    # JSON columns only persist on reassignment.
    order.status_history = [*(order.status_history or []), _history_entry(payload.status, x_user_id, payload.notes)]
    if payload.status == "delivered":
        order.actual_delivery_at = utcnow()
        order.payment_status = "captured"
    await db.commit()
    logger.info(f"Order {order.order_number} -> {payload.status} by {x_user_id}.")

    order = await _fetch_order(db, Order.id == order_id)
    return ok(OrderOut.model_validate(order), message=f"Order status updated to {payload.status}")


@router.post("/{order_id}/payment", response_model=ApiResponse[OrderOut])
async def update_payment_status(
    order_id: str,
    payload: PaymentUpdateIn,
    x_user_id: str = Header(default="admin"),
    db: AsyncSession = Depends(get_db),
):
    order = await _fetch_order(db, Order.id == order_id)
    order.payment_status = payload.status
    await db.commit()
    logger.info(f"Order {order.order_number} payment -> {payload.status} by {x_user_id}.")

    order = await _fetch_order(db, Order.id == order_id)
    return ok(OrderOut.model_validate(order), message=f"Payment status updated to {payload.status}")


@router.delete("/{order_id}", response_model=ApiResponse[OrderOut])
async def cancel_order(
    order_id: str,
    payload: Optional[CancelIn] = Body(default=None),
    x_user_id: str = Header(default="admin"),
    db: AsyncSession = Depends(get_db),
):
    """Cancels an order unless it was already delivered, cancelled or refunded."""
    order = await _fetch_order(db, Order.id == order_id)
    if order.status in CANCEL_BLOCKED:
        raise HTTPException(status_code=400, detail=f"Cannot cancel order with status: {order.status}")

    reason = payload.reason if payload and payload.reason else "Order cancelled"
    order.status = "cancelled"
    order.status_history = [*(order.status_history or []), _history_entry("cancelled", x_user_id, reason)]
    await db.commit()
    logger.info(f"Order {order.order_number} cancelled by {x_user_id}.")

    order = await _fetch_order(db, Order.id == order_id)
    return ok(OrderOut.model_validate(order), message="Order cancelled successfully")
