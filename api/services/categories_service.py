"""Category service: owner-scoped category CRUD."""

from collections.abc import Mapping
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from core import get_logger
from models import Category
from repositories.base_repository import SortSpec
from repositories.category_repository import CategoryRepository
from repositories.product_repository import ProductRepository
from services.exceptions import CategoryInUseError, NotFoundOrForbiddenError
from services.products_service import writable_fields

logger = get_logger(__name__)


class CategoryService:
    """Owner-scoped category operations.

    Follows the same not-found policy as ProductService: a category owned
    by someone else is reported exactly like a missing one.
    """

    def __init__(self, db: AsyncSession):
        self.categories = CategoryRepository(db)
        self.products = ProductRepository(db)

    async def _require_owned(self, category_id: str, owner_id: str) -> Category:
        category = await self.categories.find_one(
            {"id": category_id, "owner_id": owner_id}
        )
        if category is None:
            raise NotFoundOrForbiddenError("category")
        return category

    async def list_by_owner(
        self,
        owner_id: str,
        *,
        sort: SortSpec | None = None,
        skip: int = 0,
        limit: int | None = None,
    ) -> list[Category]:
        return await self.categories.find_many(
            {"owner_id": owner_id}, sort=sort or {"name": 1}, skip=skip, limit=limit
        )

    async def count_by_owner(self, owner_id: str) -> int:
        return await self.categories.count({"owner_id": owner_id})

    async def get(self, category_id: str, owner_id: str) -> Category:
        return await self._require_owned(category_id, owner_id)

    async def create(self, data: Mapping[str, Any], owner_id: str) -> Category:
        category = await self.categories.create(
            {**writable_fields(data), "owner_id": owner_id}
        )
        logger.info("category.created", category_id=category.id, owner_id=owner_id)
        return category

    async def update(
        self, category_id: str, patch: Mapping[str, Any], owner_id: str
    ) -> Category:
        await self._require_owned(category_id, owner_id)

        category = await self.categories.update(category_id, writable_fields(patch))
        if category is None:
            raise NotFoundOrForbiddenError("category")

        logger.info("category.updated", category_id=category_id, owner_id=owner_id)
        return category

    async def delete(self, category_id: str, owner_id: str) -> Category:
        """Delete one of the owner's categories.

        Raises:
            NotFoundOrForbiddenError: If absent or owned by someone else
            CategoryInUseError: If any product still references it
        """
        await self._require_owned(category_id, owner_id)

        in_use = await self.products.count({"category_id": category_id})
        if in_use:
            raise CategoryInUseError(category_id, in_use)

        category = await self.categories.delete(category_id)
        if category is None:
            raise NotFoundOrForbiddenError("category")

        logger.info("category.deleted", category_id=category_id, owner_id=owner_id)
        return category
