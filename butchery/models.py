# models.py
"""
Database models for the butchery storefront.

This file defines all SQLAlchemy models used by the application,
providing a single source of truth for the database schema.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Column, String, Boolean, DateTime, Text, Integer, Numeric, JSON, ForeignKey
)
from sqlalchemy.orm import relationship

from butchery.db import Base


def utcnow() -> datetime:
    """Naive UTC timestamp; SQLite drops tzinfo, so all stored times are naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:16]}"


# -----------------------
# Catalog
# -----------------------
class ProductCategory(Base):
    __tablename__ = "product_categories"
    id = Column(String(100), primary_key=True, default=lambda: new_id("cat"))
    name_en = Column(String(100), nullable=False)
    name_ar = Column(String(100), nullable=False)
    icon = Column(String(50), nullable=False, default="🥩")
    color = Column(String(100), nullable=False, default="bg-red-100 text-red-600")
    sort_order = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)


class Product(Base):
    __tablename__ = "products"
    id = Column(String(64), primary_key=True, default=lambda: new_id("prod"))
    name = Column(String(200), nullable=False)
    name_ar = Column(String(200), nullable=True)
    sku = Column(String(50), unique=True, nullable=False, index=True)
    price = Column(Numeric(10, 2), nullable=False)
    discount = Column(Numeric(5, 2), nullable=False, default=0)  # percentage, 0-100
    category = Column(String(100), nullable=False, index=True)
    description = Column(Text, nullable=False, default="")
    description_ar = Column(Text, nullable=True)
    image = Column(String(1024), nullable=True)
    unit = Column(String(16), nullable=False, default="kg")
    min_order_quantity = Column(Numeric(10, 2), nullable=False, default=0.25)
    max_order_quantity = Column(Numeric(10, 2), nullable=False, default=10)
    is_active = Column(Boolean, nullable=False, default=True)
    is_premium = Column(Boolean, nullable=False, default=False)
    is_featured = Column(Boolean, nullable=False, default=False)
    tags = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    reviews = relationship("Review", back_populates="product", cascade="all, delete-orphan", passive_deletes=True)


class Review(Base):
    __tablename__ = "reviews"
    id = Column(String(64), primary_key=True, default=lambda: new_id("rev"))
    product_id = Column(String(64), ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    user_name = Column(String(200), nullable=False)
    rating = Column(Integer, nullable=False)
    title = Column(String(200), nullable=True)
    comment = Column(Text, nullable=True)
    helpful_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    product = relationship("Product", back_populates="reviews")


# -----------------------
# Orders & Delivery
# -----------------------
class DeliveryZone(Base):
    __tablename__ = "delivery_zones"
    id = Column(String(64), primary_key=True, default=lambda: new_id("zone"))
    name = Column(String(100), nullable=False)
    name_ar = Column(String(100), nullable=True)
    emirate = Column(String(100), nullable=False, index=True)
    areas = Column(JSON, nullable=False, default=list)
    delivery_fee = Column(Numeric(10, 2), nullable=False)
    minimum_order = Column(Numeric(10, 2), nullable=False)
    estimated_minutes = Column(Integer, nullable=False)
    express_enabled = Column(Boolean, nullable=False, default=False)
    express_fee = Column(Numeric(10, 2), nullable=False, default=25)
    is_active = Column(Boolean, nullable=False, default=True)


class Order(Base):
    __tablename__ = "orders"
    id = Column(String(64), primary_key=True, default=lambda: new_id("order"))
    order_number = Column(String(50), unique=True, nullable=False, index=True)
    user_id = Column(String(64), nullable=True, index=True)
    customer_name = Column(String(200), nullable=False)
    customer_email = Column(String(255), nullable=False)
    customer_mobile = Column(String(20), nullable=False)

    # Pricing
    subtotal = Column(Numeric(10, 2), nullable=False)
    discount = Column(Numeric(10, 2), nullable=False, default=0)
    discount_code = Column(String(50), nullable=True)
    delivery_fee = Column(Numeric(10, 2), nullable=False, default=0)
    driver_tip = Column(Numeric(10, 2), nullable=False, default=0)
    vat_amount = Column(Numeric(10, 2), nullable=False)
    vat_rate = Column(Numeric(5, 4), nullable=False, default=0.05)
    total = Column(Numeric(10, 2), nullable=False)

    # Status
    status = Column(String(32), nullable=False, default="pending", index=True)
    payment_status = Column(String(32), nullable=False, default="pending")
    payment_method = Column(String(32), nullable=False)

    # Delivery
    delivery_address = Column(JSON, nullable=False)
    delivery_notes = Column(Text, nullable=True)
    delivery_zone_id = Column(String(64), nullable=True)
    actual_delivery_at = Column(DateTime, nullable=True)

    status_history = Column(JSON, nullable=False, default=list)
    source = Column(String(20), nullable=False, default="web")

    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan", passive_deletes=True)


class OrderNumber(Base):
    """One row per allocated order number; the autoincrement id is the number."""
    __tablename__ = "order_numbers"
    __table_args__ = {"sqlite_autoincrement": True}
    id = Column(Integer, primary_key=True, autoincrement=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)


class DiscountCode(Base):
    __tablename__ = "discount_codes"
    id = Column(String(64), primary_key=True, default=lambda: new_id("promo"))
    code = Column(String(50), unique=True, nullable=False, index=True)
    type = Column(String(16), nullable=False)  # percentage | fixed
    value = Column(Numeric(10, 2), nullable=False)
    minimum_order = Column(Numeric(10, 2), nullable=False, default=0)
    maximum_discount = Column(Numeric(10, 2), nullable=True)
    usage_limit = Column(Integer, nullable=False, default=0)  # 0 = unlimited
    usage_count = Column(Integer, nullable=False, default=0)
    valid_from = Column(DateTime, nullable=False, default=utcnow)
    valid_to = Column(DateTime, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)


class OrderItem(Base):
    __tablename__ = "order_items"
    id = Column(String(64), primary_key=True, default=lambda: new_id("item"))
    order_id = Column(String(64), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(String(64), nullable=False, index=True)
    product_name = Column(String(200), nullable=False)
    product_name_ar = Column(String(200), nullable=True)
    sku = Column(String(50), nullable=False)
    quantity = Column(Numeric(10, 2), nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)
    total_price = Column(Numeric(10, 2), nullable=False)
    notes = Column(Text, nullable=True)

    order = relationship("Order", back_populates="items")


# -----------------------
# Finance
# -----------------------
class FinanceAccount(Base):
    __tablename__ = "finance_accounts"
    id = Column(String(64), primary_key=True, default=lambda: new_id("acc"))
    name = Column(String(100), nullable=False)
    name_ar = Column(String(100), nullable=True)
    type = Column(String(32), nullable=False)
    balance = Column(Numeric(14, 2), nullable=False, default=0)
    currency = Column(String(8), nullable=False, default="AED")
    is_active = Column(Boolean, nullable=False, default=True)
    bank_name = Column(String(100), nullable=True)
    iban = Column(String(50), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)


class FinanceTransaction(Base):
    __tablename__ = "finance_transactions"
    id = Column(String(64), primary_key=True, default=lambda: new_id("txn"))
    type = Column(String(32), nullable=False, index=True)
    status = Column(String(32), nullable=False, default="completed")
    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(8), nullable=False, default="AED")
    description = Column(Text, nullable=False)
    category = Column(String(32), nullable=True)
    reference = Column(String(100), nullable=True)
    account_id = Column(String(64), ForeignKey("finance_accounts.id"), nullable=False, index=True)
    account_name = Column(String(100), nullable=False)
    created_by = Column(String(64), nullable=False)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)


class FinanceExpense(Base):
    __tablename__ = "finance_expenses"
    id = Column(String(64), primary_key=True, default=lambda: new_id("exp"))
    category = Column(String(32), nullable=False)
    amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(8), nullable=False, default="AED")
    description = Column(Text, nullable=False)
    vendor = Column(String(200), nullable=True)
    invoice_number = Column(String(100), nullable=True)
    due_date = Column(DateTime, nullable=True)
    paid_at = Column(DateTime, nullable=True)
    status = Column(String(32), nullable=False, default="pending")
    account_id = Column(String(64), ForeignKey("finance_accounts.id"), nullable=True)
    created_by = Column(String(64), nullable=False)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
