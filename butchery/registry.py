# registry.py
"""
Client-side category registry.

Holds the last fetched category list and resolves ids to display names.
Writes go to the API first and are followed by a full refetch, so the local
list only ever mirrors what the server returned.
"""

import logging
from typing import Any, Dict, List, Optional

from butchery.client import ApiError, StorefrontClient
from butchery.schemas import DEFAULT_CATEGORIES, CategoryIn, CategoryOut

logger = logging.getLogger(__name__)


class CategoryRegistry:
    def __init__(self, client: StorefrontClient):
        self.client = client
        self.categories: List[CategoryOut] = []

    def name(self, category_id: str, language: str = "en") -> str:
        category = self.get(category_id)
        if not category:
            return category_id
        return category.name_ar if language == "ar" else category.name_en

    def get(self, category_id: str) -> Optional[CategoryOut]:
        return next((c for c in self.categories if c.id == category_id), None)

    async def refresh(self) -> List[CategoryOut]:
        """Fetches the categories, seeding the defaults first if none exist."""
        try:
            categories = await self.client.list_categories()
            if not categories:
                logger.info("No categories found; seeding defaults.")
                # One at a time so sort order and ids land deterministically.
                for category in DEFAULT_CATEGORIES:
                    await self.client.create_category(category)
                categories = await self.client.list_categories()
        except ApiError as e:
            logger.error(f"Failed to load categories: {e.message}")
            raise
        self.categories = categories
        return self.categories

    async def create(self, category: CategoryIn) -> CategoryOut:
        try:
            created = await self.client.create_category(category)
        except ApiError as e:
            logger.error(f"Failed to create category {category.name_en}: {e.message}")
            raise
        await self.refresh()
        return created

    async def update(self, category_id: str, changes: Dict[str, Any]) -> CategoryOut:
        try:
            updated = await self.client.update_category(category_id, changes)
        except ApiError as e:
            logger.error(f"Failed to update category {category_id}: {e.message}")
            raise
        await self.refresh()
        return updated

    async def delete(self, category_id: str) -> None:
        try:
            await self.client.delete_category(category_id)
        except ApiError as e:
            logger.error(f"Failed to delete category {category_id}: {e.message}")
            raise
        await self.refresh()
