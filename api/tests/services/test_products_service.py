"""Tests for ProductService.

Tests cover:
- create: owned category required, checked before field validation
- update: partial semantics, ownership, category re-validation
- delete: ownership with the same error for absent and foreign products
- list_by_owner: scoping, expansion, sort/skip/limit pass-through
- statistics: totals, low stock threshold, per-category breakdown
"""

import uuid
from decimal import Decimal

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from models import Category, User
from repositories.base_repository import InvalidIdentifierError, ValidationFailedError
from services.exceptions import InvalidReferenceError, NotFoundOrForbiddenError
from services.products_service import (
    LOW_STOCK_THRESHOLD,
    ProductService,
    writable_fields,
)
from tests.factories import CategoryFactory, ProductFactory, create_async


def _input(category: Category, **overrides) -> dict:
    data = {
        "name": "Test Product",
        "category_id": category.id,
        "price": Decimal("29.99"),
        "stock": 15,
    }
    data.update(overrides)
    return data


@pytest.mark.unit
class TestWritableFields:
    def test_drops_protected_fields(self):
        data = {
            "id": "x",
            "owner_id": "y",
            "created_at": "z",
            "updated_at": "z",
            "name": "Lamp",
        }

        assert writable_fields(data) == {"name": "Lamp"}


class TestCreate:
    """Tests for ProductService.create()."""

    async def test_creates_product_with_inputs_and_owner(
        self, db_session: AsyncSession, owner: User, category: Category
    ):
        service = ProductService(db_session)

        product = await service.create(_input(category), owner.id)

        assert product.id
        assert product.owner_id == owner.id
        assert product.category_id == category.id
        assert product.price == Decimal("29.99")
        assert product.stock == 15

    async def test_owner_comes_from_caller_not_input(
        self,
        db_session: AsyncSession,
        owner: User,
        other_owner: User,
        category: Category,
    ):
        service = ProductService(db_session)

        product = await service.create(
            _input(category, owner_id=other_owner.id), owner.id
        )

        assert product.owner_id == owner.id

    async def test_category_of_another_owner_is_invalid_reference(
        self, db_session: AsyncSession, owner: User, foreign_category: Category
    ):
        service = ProductService(db_session)

        with pytest.raises(InvalidReferenceError) as exc_info:
            await service.create(_input(foreign_category), owner.id)

        assert exc_info.value.field == "category"

    @pytest.mark.parametrize(
        "category_id",
        [str(uuid.uuid4()), "not-an-id", "", None, {"ne": str(uuid.uuid4())}],
        ids=["absent", "malformed", "empty", "none", "operator-mapping"],
    )
    async def test_unusable_category_id_is_invalid_reference(
        self, db_session: AsyncSession, owner: User, category: Category, category_id
    ):
        service = ProductService(db_session)

        with pytest.raises(InvalidReferenceError):
            await service.create(_input(category, category_id=category_id), owner.id)

    async def test_missing_category_is_invalid_reference(
        self, db_session: AsyncSession, owner: User, category: Category
    ):
        service = ProductService(db_session)
        data = _input(category)
        del data["category_id"]

        with pytest.raises(InvalidReferenceError):
            await service.create(data, owner.id)

    async def test_category_checked_before_field_validation(
        self, db_session: AsyncSession, owner: User, foreign_category: Category
    ):
        service = ProductService(db_session)

        with pytest.raises(InvalidReferenceError):
            await service.create(
                _input(foreign_category, name="", price=-1), owner.id
            )

    async def test_valid_category_invalid_fields_reports_all_fields(
        self, db_session: AsyncSession, owner: User, category: Category
    ):
        service = ProductService(db_session)

        with pytest.raises(ValidationFailedError) as exc_info:
            await service.create(
                _input(category, name="", price=-1, stock=-1), owner.id
            )

        assert set(exc_info.value.field_errors) == {"name", "price", "stock"}

    async def test_find_by_id_with_expand_returns_category_object(
        self, db_session: AsyncSession, owner: User, category: Category
    ):
        service = ProductService(db_session)

        created = await service.create(_input(category), owner.id)
        found = await service.products.find_by_id(created.id, expand=("category",))

        assert isinstance(found.category, Category)
        assert found.category.name == category.name


class TestGet:
    """Tests for ProductService.get()."""

    async def test_returns_owned_product_with_category(
        self, db_session: AsyncSession, owner: User, category: Category
    ):
        product = await create_async(
            ProductFactory, db_session, owner_id=owner.id, category_id=category.id
        )
        service = ProductService(db_session)

        result = await service.get(product.id, owner.id)

        assert result.id == product.id
        assert result.category.id == category.id

    async def test_foreign_product_is_not_found(
        self,
        db_session: AsyncSession,
        other_owner: User,
        owner: User,
        foreign_category: Category,
    ):
        product = await create_async(
            ProductFactory,
            db_session,
            owner_id=other_owner.id,
            category_id=foreign_category.id,
        )
        service = ProductService(db_session)

        with pytest.raises(NotFoundOrForbiddenError):
            await service.get(product.id, owner.id)

    async def test_malformed_id_is_distinct_from_absent(
        self, db_session: AsyncSession, owner: User
    ):
        service = ProductService(db_session)

        with pytest.raises(InvalidIdentifierError):
            await service.get("not-an-id", owner.id)
        with pytest.raises(NotFoundOrForbiddenError):
            await service.get(str(uuid.uuid4()), owner.id)


class TestUpdate:
    """Tests for ProductService.update()."""

    async def test_updating_price_leaves_stock_unchanged(
        self, db_session: AsyncSession, owner: User, category: Category
    ):
        service = ProductService(db_session)
        product = await service.create(_input(category), owner.id)

        updated = await service.update(product.id, {"price": 39.99}, owner.id)

        assert updated.price == Decimal("39.99")
        assert updated.stock == 15
        assert updated.name == "Test Product"
        assert updated.category_id == category.id

    async def test_moves_product_to_another_owned_category(
        self, db_session: AsyncSession, owner: User, category: Category
    ):
        books = await create_async(
            CategoryFactory, db_session, owner_id=owner.id, name="Books"
        )
        service = ProductService(db_session)
        product = await service.create(_input(category), owner.id)

        updated = await service.update(product.id, {"category_id": books.id}, owner.id)

        assert updated.category_id == books.id

    async def test_moving_to_foreign_category_is_invalid_reference(
        self,
        db_session: AsyncSession,
        owner: User,
        category: Category,
        foreign_category: Category,
    ):
        service = ProductService(db_session)
        product = await service.create(_input(category), owner.id)

        with pytest.raises(InvalidReferenceError):
            await service.update(
                product.id, {"category_id": foreign_category.id}, owner.id
            )

        unchanged = await service.get(product.id, owner.id)
        assert unchanged.category_id == category.id

    async def test_non_owner_gets_same_error_as_absent_id(
        self,
        db_session: AsyncSession,
        owner: User,
        other_owner: User,
        category: Category,
    ):
        service = ProductService(db_session)
        product = await service.create(_input(category), owner.id)

        with pytest.raises(NotFoundOrForbiddenError) as foreign:
            await service.update(product.id, {"stock": 1}, other_owner.id)
        with pytest.raises(NotFoundOrForbiddenError) as absent:
            await service.update(str(uuid.uuid4()), {"stock": 1}, other_owner.id)

        assert str(foreign.value) == str(absent.value)
        assert (await service.get(product.id, owner.id)).stock == 15

    async def test_ownership_cannot_be_transferred(
        self,
        db_session: AsyncSession,
        owner: User,
        other_owner: User,
        category: Category,
    ):
        service = ProductService(db_session)
        product = await service.create(_input(category), owner.id)

        updated = await service.update(
            product.id, {"owner_id": other_owner.id, "stock": 3}, owner.id
        )

        assert updated.owner_id == owner.id
        assert updated.stock == 3

    async def test_invalid_patch_raises_validation_failed(
        self, db_session: AsyncSession, owner: User, category: Category
    ):
        service = ProductService(db_session)
        product = await service.create(_input(category), owner.id)

        with pytest.raises(ValidationFailedError) as exc_info:
            await service.update(product.id, {"stock": -1}, owner.id)

        assert list(exc_info.value.field_errors) == ["stock"]

    async def test_malformed_id_raises_invalid_identifier(
        self, db_session: AsyncSession, owner: User
    ):
        service = ProductService(db_session)

        with pytest.raises(InvalidIdentifierError):
            await service.update("bad-id", {"stock": 1}, owner.id)


class TestDelete:
    """Tests for ProductService.delete()."""

    async def test_deletes_owned_product(
        self, db_session: AsyncSession, owner: User, category: Category
    ):
        service = ProductService(db_session)
        product = await service.create(_input(category), owner.id)

        removed = await service.delete(product.id, owner.id)

        assert removed.id == product.id
        assert await service.count_by_owner(owner.id) == 0

    async def test_non_owner_gets_same_error_as_absent_id(
        self,
        db_session: AsyncSession,
        owner: User,
        other_owner: User,
        category: Category,
    ):
        service = ProductService(db_session)
        product = await service.create(_input(category), owner.id)

        with pytest.raises(NotFoundOrForbiddenError) as foreign:
            await service.delete(product.id, other_owner.id)
        with pytest.raises(NotFoundOrForbiddenError) as absent:
            await service.delete(str(uuid.uuid4()), other_owner.id)

        assert type(foreign.value) is type(absent.value)
        assert str(foreign.value) == str(absent.value)
        assert await service.count_by_owner(owner.id) == 1

    async def test_second_delete_is_not_found(
        self, db_session: AsyncSession, owner: User, category: Category
    ):
        service = ProductService(db_session)
        product = await service.create(_input(category), owner.id)
        await service.delete(product.id, owner.id)

        with pytest.raises(NotFoundOrForbiddenError):
            await service.delete(product.id, owner.id)


class TestListByOwner:
    """Tests for ProductService.list_by_owner()."""

    async def _seed(self, service: ProductService, owner: User, category: Category):
        for name in ("Product 2", "Product 1"):
            await service.create(_input(category, name=name), owner.id)

    async def test_sorts_by_name_ascending(
        self, db_session: AsyncSession, owner: User, category: Category
    ):
        service = ProductService(db_session)
        await self._seed(service, owner, category)

        products = await service.list_by_owner(owner.id, sort={"name": 1})

        assert [p.name for p in products] == ["Product 1", "Product 2"]

    async def test_skip_one_limit_one_returns_second_item(
        self, db_session: AsyncSession, owner: User, category: Category
    ):
        service = ProductService(db_session)
        await self._seed(service, owner, category)

        products = await service.list_by_owner(
            owner.id, sort={"name": 1}, skip=1, limit=1
        )

        assert [p.name for p in products] == ["Product 2"]

    async def test_only_lists_callers_products_with_category_expanded(
        self,
        db_session: AsyncSession,
        owner: User,
        other_owner: User,
        category: Category,
        foreign_category: Category,
    ):
        service = ProductService(db_session)
        await self._seed(service, owner, category)
        await service.create(_input(foreign_category, name="Theirs"), other_owner.id)

        products = await service.list_by_owner(owner.id)

        assert {p.name for p in products} == {"Product 1", "Product 2"}
        assert all(p.category.name == "Electronics" for p in products)
        assert await service.count_by_owner(owner.id) == 2

    async def test_unknown_owner_has_no_products(self, db_session: AsyncSession):
        service = ProductService(db_session)

        assert await service.list_by_owner(str(uuid.uuid4())) == []


class TestStatistics:
    """Tests for ProductService.statistics()."""

    async def test_counts_low_stock_and_groups_by_category(
        self, db_session: AsyncSession, owner: User, category: Category
    ):
        service = ProductService(db_session)
        await service.create(_input(category, name="Product 1", stock=5), owner.id)
        await service.create(_input(category, name="Product 2", stock=50), owner.id)

        stats = await service.statistics(owner.id)

        assert stats.total_products == 2
        assert stats.low_stock_products == 1
        assert len(stats.category_breakdown) == 1
        assert stats.category_breakdown[0].category_name == "Electronics"
        assert stats.category_breakdown[0].count == 2

    async def test_threshold_is_exclusive(
        self, db_session: AsyncSession, owner: User, category: Category
    ):
        service = ProductService(db_session)
        await service.create(_input(category, stock=LOW_STOCK_THRESHOLD), owner.id)
        await service.create(_input(category, stock=LOW_STOCK_THRESHOLD - 1), owner.id)

        stats = await service.statistics(owner.id)

        assert LOW_STOCK_THRESHOLD == 10
        assert stats.low_stock_products == 1

    async def test_breakdown_omits_unused_categories(
        self, db_session: AsyncSession, owner: User, category: Category
    ):
        books = await create_async(
            CategoryFactory, db_session, owner_id=owner.id, name="Books"
        )
        await create_async(CategoryFactory, db_session, owner_id=owner.id, name="Empty")
        service = ProductService(db_session)
        await service.create(_input(category), owner.id)
        await service.create(_input(books), owner.id)
        await service.create(_input(books), owner.id)

        stats = await service.statistics(owner.id)

        breakdown = {c.category_name: c.count for c in stats.category_breakdown}
        assert breakdown == {"Electronics": 1, "Books": 2}

    async def test_excludes_other_owners(
        self,
        db_session: AsyncSession,
        owner: User,
        other_owner: User,
        category: Category,
        foreign_category: Category,
    ):
        service = ProductService(db_session)
        await service.create(_input(category), owner.id)
        await service.create(_input(foreign_category, stock=1), other_owner.id)

        stats = await service.statistics(owner.id)

        assert stats.total_products == 1
        assert stats.low_stock_products == 0
        assert [c.category_name for c in stats.category_breakdown] == ["Electronics"]

    async def test_empty_owner(self, db_session: AsyncSession, owner: User):
        stats = await ProductService(db_session).statistics(owner.id)

        assert stats.total_products == 0
        assert stats.low_stock_products == 0
        assert stats.category_breakdown == []
