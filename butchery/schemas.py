# schemas.py
"""
Pydantic schemas shared by the API routers and the storefront client.

Every endpoint answers with the ``ApiResponse`` envelope:
``{"success": bool, "data": ..., "error": ..., "message": ...}``.
"""

from datetime import datetime
from typing import Any, Dict, Generic, List, Optional, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    success: bool = True
    data: Optional[T] = None
    error: Optional[str] = None
    message: Optional[str] = None


def ok(data: Any = None, message: Optional[str] = None) -> ApiResponse:
    return ApiResponse(success=True, data=data, message=message)


def failure(error: str) -> ApiResponse:
    return ApiResponse(success=False, error=error)


# --- Catalog ---

class ProductOut(BaseModel):
    """Defines the structure of a product returned by our API."""
    id: str
    name: str
    name_ar: Optional[str] = None
    sku: str = ""
    price: float
    discount: float = 0.0
    category: str
    description: str = ""
    description_ar: Optional[str] = None
    image: Optional[str] = None
    unit: str = "kg"
    min_order_quantity: float = 0.25
    max_order_quantity: float = 10.0
    available: bool = True
    is_premium: bool = False
    is_featured: bool = False
    tags: List[str] = Field(default_factory=list)
    rating: float = 0.0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, product, rating: float = 0.0) -> "ProductOut":
        return cls(
            id=product.id,
            name=product.name,
            name_ar=product.name_ar,
            sku=product.sku,
            price=product.price,
            discount=product.discount or 0,
            category=product.category,
            description=product.description or "",
            description_ar=product.description_ar,
            image=product.image,
            unit=product.unit,
            min_order_quantity=product.min_order_quantity,
            max_order_quantity=product.max_order_quantity,
            available=product.is_active,
            is_premium=product.is_premium,
            is_featured=product.is_featured,
            tags=product.tags or [],
            rating=rating,
            created_at=product.created_at,
            updated_at=product.updated_at,
        )


class CategoryOut(BaseModel):
    id: str
    name_en: str
    name_ar: str
    icon: Optional[str] = None
    color: Optional[str] = None
    sort_order: int = 0
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CategoryIn(BaseModel):
    id: Optional[str] = Field(default=None, max_length=100)
    name_en: str = Field(min_length=1)
    name_ar: str = Field(min_length=1)
    icon: Optional[str] = None
    color: Optional[str] = None
    sort_order: Optional[int] = None
    is_active: Optional[bool] = None


class CategoryUpdate(BaseModel):
    name_en: Optional[str] = Field(default=None, min_length=1)
    name_ar: Optional[str] = Field(default=None, min_length=1)
    icon: Optional[str] = None
    color: Optional[str] = None
    sort_order: Optional[int] = None
    is_active: Optional[bool] = None


# Seeded when the category store is empty.
DEFAULT_CATEGORIES: List[CategoryIn] = [
    CategoryIn(id="Beef", name_en="Beef", name_ar="لحم بقري", icon="🥩", color="bg-red-100 text-red-600", sort_order=1),
    CategoryIn(id="Lamb", name_en="Lamb", name_ar="لحم ضأن", icon="🍖", color="bg-orange-100 text-orange-600", sort_order=2),
    CategoryIn(id="Goat", name_en="Goat", name_ar="لحم ماعز", icon="🐐", color="bg-amber-100 text-amber-600", sort_order=3),
    CategoryIn(id="Chicken", name_en="Chicken", name_ar="دجاج", icon="🍗", color="bg-yellow-100 text-yellow-600", sort_order=4),
    CategoryIn(id="Premium", name_en="Premium", name_ar="فاخر", icon="⭐", color="bg-purple-100 text-purple-600", sort_order=5),
]


class ProductRating(BaseModel):
    product_id: str
    average_rating: float = 0.0
    total_reviews: int = 0
    rating_distribution: Dict[int, int] = Field(
        default_factory=lambda: {5: 0, 4: 0, 3: 0, 2: 0, 1: 0}
    )


# --- Orders ---

class StatusHistoryEntry(BaseModel):
    status: str
    changed_by: str
    changed_at: datetime
    notes: Optional[str] = None


class OrderItemOut(BaseModel):
    id: str
    product_id: str
    product_name: str
    product_name_ar: Optional[str] = None
    sku: str
    quantity: float
    unit_price: float
    total_price: float
    notes: Optional[str] = None

    class Config:
        from_attributes = True


class OrderOut(BaseModel):
    id: str
    order_number: str
    user_id: Optional[str] = None
    customer_name: str
    customer_email: str
    customer_mobile: str
    subtotal: float
    discount: float = 0.0
    discount_code: Optional[str] = None
    delivery_fee: float
    driver_tip: float
    vat_amount: float
    vat_rate: float
    total: float
    status: str
    payment_status: str
    payment_method: str
    delivery_address: Dict[str, Any]
    delivery_notes: Optional[str] = None
    delivery_zone_id: Optional[str] = None
    actual_delivery_at: Optional[datetime] = None
    status_history: List[StatusHistoryEntry] = Field(default_factory=list)
    source: str = "web"
    created_at: datetime
    updated_at: datetime
    items: List[OrderItemOut] = Field(default_factory=list)

    class Config:
        from_attributes = True
