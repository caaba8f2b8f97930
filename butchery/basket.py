# basket.py
"""
Shopping basket held by the storefront.

The basket owns its line items outright: each item carries a snapshot of the
product's name, price and image taken when it was added, so later catalog
edits never reprice a basket in progress. Quantities are weights and move in
steps of ``MIN_INCREMENT``; anything below one step is removed.

Derived amounts are recomputed after every mutation. They are kept exact and
only rounded by ``totals()`` for display.
"""

import json
import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from butchery.pricing import VatBreakdown, calculate_vat, to_decimal, vat_for
from butchery.settings import settings

# --- Configuration & Setup ---
logger = logging.getLogger(__name__)
MIN_INCREMENT = Decimal("0.25")


# --- Pydantic Schemas ---

class BasketItem(BaseModel):
    """A product line in the basket; ``id`` is the product id."""
    id: str
    name: str
    name_ar: Optional[str] = None
    price: Decimal
    quantity: Decimal = MIN_INCREMENT
    image: Optional[str] = None
    category: Optional[str] = None

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity


class SavedBasket(BaseModel):
    id: str
    name: str
    items: List[BasketItem]
    saved_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


# --- Saved Basket Storage ---

class SavedBasketStore:
    """Named basket snapshots, optionally persisted to a JSON file."""

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path else None
        self._baskets: List[SavedBasket] = self._read()

    def _read(self) -> List[SavedBasket]:
        if not self.path or not self.path.exists():
            return []
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
            return [SavedBasket.model_validate(entry) for entry in raw]
        except (ValueError, TypeError) as e:
            # A corrupt file is treated as empty rather than blocking the basket.
            logger.error(f"Failed to parse saved baskets from {self.path}: {e}")
            return []

    def _write(self) -> None:
        if not self.path:
            return
        payload = [basket.model_dump(mode="json") for basket in self._baskets]
        self.path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")

    def all(self) -> List[SavedBasket]:
        return list(self._baskets)

    def get(self, basket_id: str) -> Optional[SavedBasket]:
        return next((b for b in self._baskets if b.id == basket_id), None)

    def add(self, basket: SavedBasket) -> None:
        self._baskets.append(basket)
        self._write()


# --- Basket Aggregator ---

class Basket:
    def __init__(self, items: Optional[List[BasketItem]] = None, store: Optional[SavedBasketStore] = None):
        self._items: Dict[str, BasketItem] = {}
        # Without an explicit store, saved baskets go to SAVED_BASKETS_PATH (in memory when unset).
        self.store = store or SavedBasketStore(settings.SAVED_BASKETS_PATH or None)
        self.subtotal = Decimal("0")
        self.vat = Decimal("0")
        self.total = Decimal("0")
        for item in items or []:
            self.add_item(item)
        self._recalculate()

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, product_id: str) -> bool:
        return product_id in self._items

    @property
    def items(self) -> List[BasketItem]:
        return list(self._items.values())

    @property
    def item_count(self) -> Decimal:
        return sum((item.quantity for item in self._items.values()), Decimal("0"))

    def get(self, product_id: str) -> Optional[BasketItem]:
        return self._items.get(product_id)

    def _recalculate(self) -> None:
        self.subtotal = sum((item.line_total for item in self._items.values()), Decimal("0"))
        self.vat = vat_for(self.subtotal)
        self.total = self.subtotal + self.vat

    def totals(self) -> VatBreakdown:
        """Subtotal, VAT and total rounded to currency precision."""
        return calculate_vat(self.subtotal)

    # --- Mutations ---

    def add_item(self, item: BasketItem) -> None:
        """Adds a line, or sums the quantity into the existing line for that product."""
        existing = self._items.get(item.id)
        if existing:
            quantity = existing.quantity + to_decimal(item.quantity)
            self._set_quantity(item.id, quantity)
        else:
            self._items[item.id] = item.model_copy()
            self._set_quantity(item.id, to_decimal(item.quantity))
        self._recalculate()

    def remove_item(self, product_id: str) -> None:
        self._items.pop(product_id, None)
        self._recalculate()

    def update_quantity(self, product_id: str, quantity) -> None:
        """Sets a line's quantity; anything under one increment removes the line."""
        if product_id not in self._items:
            return
        self._set_quantity(product_id, to_decimal(quantity))
        self._recalculate()

    def increment(self, product_id: str) -> None:
        item = self._items.get(product_id)
        if item:
            self.update_quantity(product_id, item.quantity + MIN_INCREMENT)

    def decrement(self, product_id: str) -> None:
        item = self._items.get(product_id)
        if item:
            self.update_quantity(product_id, item.quantity - MIN_INCREMENT)

    def clear(self) -> None:
        self._items.clear()
        self._recalculate()

    def _set_quantity(self, product_id: str, quantity: Decimal) -> None:
        if quantity < MIN_INCREMENT:
            self._items.pop(product_id, None)
        else:
            self._items[product_id] = self._items[product_id].model_copy(update={"quantity": quantity})

    # --- Saved Baskets ---

    def save(self, name: str) -> SavedBasket:
        saved = SavedBasket(
            id=f"basket_{uuid.uuid4().hex[:12]}",
            name=name,
            items=[item.model_copy() for item in self._items.values()],
        )
        self.store.add(saved)
        logger.info(f"Saved basket '{name}' with {len(saved.items)} items.")
        return saved

    def saved_baskets(self) -> List[SavedBasket]:
        return self.store.all()

    def load(self, basket_id: str) -> None:
        """Replaces the current items with a saved snapshot; unknown ids are ignored."""
        saved = self.store.get(basket_id)
        if not saved:
            return
        self._items = {item.id: item.model_copy() for item in saved.items}
        self._recalculate()
