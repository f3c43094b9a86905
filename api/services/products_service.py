"""Product service: ownership and referential policy over the product table.

ProductService holds a ProductRepository and a CategoryRepository and adds
the rules the generic repository knows nothing about:

- every read and write is scoped to the caller's owner id
- a product's category must exist AND belong to the same owner
- unknown and foreign products raise the same NotFoundOrForbiddenError
- statistics are aggregated per owner

The category check is a separate query issued before the write, not a
transaction. A concurrent category delete between the two can slip through;
the RESTRICT foreign key still prevents dangling references.
"""

from collections.abc import Iterable, Mapping
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from core import get_logger
from models import Category, Product
from repositories.base_repository import InvalidIdentifierError, SortSpec
from repositories.category_repository import CategoryRepository
from repositories.product_repository import ProductRepository
from schemas import CategoryCount, ProductStatistics
from services.exceptions import InvalidReferenceError, NotFoundOrForbiddenError

logger = get_logger(__name__)

LOW_STOCK_THRESHOLD = 10

# Never taken from caller input; owner_id always comes from the session
PROTECTED_FIELDS = frozenset({"id", "owner_id", "created_at", "updated_at"})


def writable_fields(data: Mapping[str, Any]) -> dict[str, Any]:
    """Drop fields a caller may not set directly."""
    return {key: value for key, value in data.items() if key not in PROTECTED_FIELDS}


class ProductService:
    """Owner-scoped product operations."""

    def __init__(self, db: AsyncSession):
        self.products = ProductRepository(db)
        self.categories = CategoryRepository(db)

    async def _require_owned_category(
        self, category_id: object, owner_id: str
    ) -> Category:
        if not isinstance(category_id, str) or not category_id:
            raise InvalidReferenceError("category")
        try:
            category = await self.categories.find_one(
                {"id": category_id, "owner_id": owner_id}
            )
        except InvalidIdentifierError:
            raise InvalidReferenceError("category") from None
        if category is None:
            raise InvalidReferenceError("category")
        return category

    async def _require_owned(
        self, product_id: str, owner_id: str, expand: Iterable[str] = ()
    ) -> Product:
        product = await self.products.find_one(
            {"id": product_id, "owner_id": owner_id}, expand
        )
        if product is None:
            raise NotFoundOrForbiddenError("product")
        return product

    async def list_by_owner(
        self,
        owner_id: str,
        *,
        sort: SortSpec | None = None,
        skip: int = 0,
        limit: int | None = None,
    ) -> list[Product]:
        """List an owner's products with their categories expanded.

        The owner id is trusted as-is (it comes from the authenticated
        session); an unknown owner simply has no products.
        """
        return await self.products.find_many(
            {"owner_id": owner_id},
            expand=("category",),
            sort=sort,
            skip=skip,
            limit=limit,
        )

    async def count_by_owner(self, owner_id: str) -> int:
        return await self.products.count({"owner_id": owner_id})

    async def get(self, product_id: str, owner_id: str) -> Product:
        """Get one of the owner's products, category expanded.

        Raises:
            InvalidIdentifierError: If product_id is malformed
            NotFoundOrForbiddenError: If absent or owned by someone else
        """
        return await self._require_owned(product_id, owner_id, expand=("category",))

    async def create(self, data: Mapping[str, Any], owner_id: str) -> Product:
        """Create a product for owner_id.

        The category reference is checked before anything else, so a bad
        category is reported even when other fields are invalid too.

        Raises:
            InvalidReferenceError: If the category is missing, malformed or
                not owned by owner_id
            ValidationFailedError: If the product fields are invalid
        """
        fields = writable_fields(data)
        await self._require_owned_category(fields.get("category_id"), owner_id)

        product = await self.products.create({**fields, "owner_id": owner_id})
        logger.info(
            "product.created",
            product_id=product.id,
            owner_id=owner_id,
            category_id=product.category_id,
        )
        return product

    async def update(
        self, product_id: str, patch: Mapping[str, Any], owner_id: str
    ) -> Product:
        """Partially update one of the owner's products.

        Fields absent from ``patch`` are left unchanged.

        Raises:
            InvalidIdentifierError: If product_id is malformed
            NotFoundOrForbiddenError: If absent or owned by someone else
            InvalidReferenceError: If a new category_id is not the owner's
            ValidationFailedError: If the resulting product is invalid
        """
        await self._require_owned(product_id, owner_id)

        fields = writable_fields(patch)
        if "category_id" in fields:
            await self._require_owned_category(fields["category_id"], owner_id)

        product = await self.products.update(product_id, fields)
        if product is None:
            # Deleted between the ownership check and the write
            raise NotFoundOrForbiddenError("product")

        logger.info(
            "product.updated",
            product_id=product_id,
            owner_id=owner_id,
            fields=sorted(fields),
        )
        return product

    async def delete(self, product_id: str, owner_id: str) -> Product:
        """Delete one of the owner's products and return it.

        Raises:
            InvalidIdentifierError: If product_id is malformed
            NotFoundOrForbiddenError: If absent or owned by someone else
        """
        await self._require_owned(product_id, owner_id)

        product = await self.products.delete(product_id)
        if product is None:
            raise NotFoundOrForbiddenError("product")

        logger.info("product.deleted", product_id=product_id, owner_id=owner_id)
        return product

    async def statistics(self, owner_id: str) -> ProductStatistics:
        """Aggregate the owner's products.

        category_breakdown has one entry per category that has at least one
        of the owner's products. Entries are in no particular order.
        """
        scope = {"owner_id": owner_id}
        total = await self.products.count(scope)
        low_stock = await self.products.count(
            {**scope, "stock": {"lt": LOW_STOCK_THRESHOLD}}
        )

        groups = await self.products.group_count("category_id", scope)
        names: dict[str, str] = {}
        if groups:
            categories = await self.categories.find_many(
                {"id": {"in": [category_id for category_id, _ in groups]}}
            )
            names = {category.id: category.name for category in categories}

        breakdown = [
            CategoryCount(category_name=names[category_id], count=count)
            for category_id, count in groups
            if category_id in names
        ]
        return ProductStatistics(
            total_products=total,
            low_stock_products=low_stock,
            category_breakdown=breakdown,
        )
