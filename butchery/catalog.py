# catalog.py
"""
Catalog filter/sort pipeline.

Filters run in a fixed order (category, then text, then price range) and the
survivors are sorted by one of the storefront's sort keys. The pipeline is
shared by the ``GET /products`` endpoint and the storefront client, and works
on any product object exposing ``id``, ``name``, ``name_ar``, ``description``,
``description_ar``, ``category``, ``price``, ``available`` and ``is_premium``.
"""

from decimal import Decimal
from typing import Callable, Iterable, List, Literal, Mapping, Optional, Union

from pydantic import BaseModel

ALL_CATEGORIES = "all"
PREMIUM_CATEGORY = "premium"

SortOption = Literal["default", "price-low", "price-high", "rating", "name"]
Language = Literal["en", "ar"]
RatingSource = Union[Mapping[str, float], Callable[[str], float]]


class CatalogQuery(BaseModel):
    """What the shopper asked for on the products page."""
    category: str = "All"
    search: str = ""
    min_price: Optional[Decimal] = None
    max_price: Optional[Decimal] = None
    sort: SortOption = "default"
    language: Language = "en"


# --- Localized Field Selection ---

def localized_name(product, language: Language = "en") -> str:
    if language == "ar" and getattr(product, "name_ar", None):
        return product.name_ar
    return product.name


def localized_description(product, language: Language = "en") -> str:
    if language == "ar" and getattr(product, "description_ar", None):
        return product.description_ar
    return product.description or ""


# --- Filters ---

def filter_by_category(products: Iterable, category: str) -> List:
    """Case-insensitive category match; "Premium" selects the premium flag instead."""
    selected = (category or "").strip().lower()
    if not selected or selected == ALL_CATEGORIES:
        return list(products)
    if selected == PREMIUM_CATEGORY:
        return [p for p in products if p.is_premium is True]
    return [p for p in products if (p.category or "").lower() == selected]


def filter_by_text(products: Iterable, search: str, language: Language = "en") -> List:
    query = (search or "").strip().casefold()
    if not query:
        return list(products)

    def matches(product) -> bool:
        return (
            query in localized_name(product, language).casefold()
            or query in localized_description(product, language).casefold()
            or query in (product.category or "").casefold()
        )

    return [p for p in products if matches(p)]


def filter_by_price(products: Iterable, min_price=None, max_price=None) -> List:
    """Inclusive price bounds; a missing bound is open."""
    result = list(products)
    if min_price is not None:
        result = [p for p in result if Decimal(str(p.price)) >= Decimal(str(min_price))]
    if max_price is not None:
        result = [p for p in result if Decimal(str(p.price)) <= Decimal(str(max_price))]
    return result


# --- Sorting ---

def _rating_lookup(ratings: Optional[RatingSource]) -> Callable[[str], float]:
    if ratings is None:
        return lambda product_id: 0.0
    if isinstance(ratings, Mapping):
        return lambda product_id: ratings.get(product_id, 0.0)
    return ratings


def sort_products(
    products: Iterable,
    sort: SortOption = "default",
    language: Language = "en",
    ratings: Optional[RatingSource] = None,
) -> List:
    """Returns a new sorted list; Python's sort is stable, so ties keep catalog order."""
    result = list(products)
    if sort == "price-low":
        result.sort(key=lambda p: Decimal(str(p.price)))
    elif sort == "price-high":
        result.sort(key=lambda p: Decimal(str(p.price)), reverse=True)
    elif sort == "rating":
        rating_of = _rating_lookup(ratings)
        result.sort(key=lambda p: rating_of(p.id), reverse=True)
    elif sort == "name":
        result.sort(key=lambda p: localized_name(p, language).casefold())
    else:
        # Available products first
        result.sort(key=lambda p: not p.available)
    return result


def apply_catalog_query(
    products: Iterable,
    query: CatalogQuery,
    ratings: Optional[RatingSource] = None,
) -> List:
    """Category → text → price range, then sort. Never mutates ``products``."""
    result = filter_by_category(products, query.category)
    result = filter_by_text(result, query.search, query.language)
    result = filter_by_price(result, query.min_price, query.max_price)
    return sort_products(result, query.sort, query.language, ratings)
