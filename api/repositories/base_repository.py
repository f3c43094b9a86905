"""Generic repository: CRUD primitives over one table, with no domain policy.

Concrete repositories bind a SQLAlchemy model and the pydantic document
schema that describes its writable fields:

    class CategoryRepository(BaseRepository[Category]):
        model = Category
        document = CategoryDocument

Filters are a conjunction of predicates keyed by column name. A plain value
is an exact match; a mapping applies comparison operators:

    {"owner_id": owner_id, "stock": {"lt": 10}}

Repositories never commit. The request-scoped session (core.database.get_db)
commits on success and rolls back on error.
"""

import operator
import uuid
from collections.abc import Callable, Iterable, Mapping
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ValidationError
from sqlalchemy import ColumnElement, Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from core.database import Base
from repositories.utils import log_slow_query

Filters = Mapping[str, Any]
SortSpec = Mapping[str, int | str]

ID_FIELD = "id"

ModelT = TypeVar("ModelT", bound=Base)

_OPERATORS: dict[str, Callable[[Any, Any], ColumnElement[bool]]] = {
    "eq": operator.eq,
    "ne": operator.ne,
    "lt": operator.lt,
    "lte": operator.le,
    "gt": operator.gt,
    "gte": operator.ge,
    "in": lambda column, values: column.in_(values),
}

_ASCENDING = {1, "asc", "ascending"}
_DESCENDING = {-1, "desc", "descending"}


class RepositoryError(Exception):
    """Base class for errors raised by repositories."""


class InvalidIdentifierError(RepositoryError):
    """Raised when an id is not a well-formed identifier (canonical UUID)."""

    def __init__(self, value: object):
        self.value = value
        super().__init__(f"Invalid ID format: {value!r}")


class ValidationFailedError(RepositoryError):
    """Raised when data violates the table's document schema.

    ``field_errors`` maps every offending field to its message, not just
    the first one found.
    """

    def __init__(self, field_errors: dict[str, str]):
        self.field_errors = field_errors
        details = ", ".join(f"{field}: {msg}" for field, msg in field_errors.items())
        super().__init__(f"Validation failed: {details}")


def is_valid_id(value: object) -> bool:
    """True for a canonical (lowercase, hyphenated) UUID string."""
    if not isinstance(value, str):
        return False
    try:
        return str(uuid.UUID(value)) == value
    except ValueError:
        return False


def _field_errors(exc: ValidationError) -> dict[str, str]:
    errors: dict[str, str] = {}
    for error in exc.errors():
        field = ".".join(str(part) for part in error["loc"]) or "__root__"
        errors.setdefault(field, error["msg"])
    return errors


class BaseRepository(Generic[ModelT]):
    """CRUD over ``model``, validating writes against ``document``."""

    model: type[ModelT]
    document: type[BaseModel]

    # Domain outcomes rather than storage failures (see log_slow_query)
    expected_errors: tuple[type[Exception], ...] = (
        InvalidIdentifierError,
        ValidationFailedError,
    )

    def __init__(self, db: AsyncSession):
        self.db = db

    # -------------------------------------------------------------------------
    # Query building
    # -------------------------------------------------------------------------

    def _column(self, field: str) -> Any:
        if field not in self.model.__mapper__.columns:
            raise ValueError(f"Unknown field for {self.model.__name__}: {field!r}")
        return getattr(self.model, field)

    def _check_id(self, value: object) -> None:
        if not is_valid_id(value):
            raise InvalidIdentifierError(value)

    def _conditions(self, filters: Filters) -> list[ColumnElement[bool]]:
        conditions: list[ColumnElement[bool]] = []
        for field, condition in filters.items():
            column = self._column(field)
            if not isinstance(condition, Mapping):
                if field == ID_FIELD:
                    self._check_id(condition)
                conditions.append(column == condition)
                continue

            for op, value in condition.items():
                if op not in _OPERATORS:
                    raise ValueError(f"Unknown filter operator: {op!r}")
                if field == ID_FIELD:
                    for item in value if op == "in" else (value,):
                        self._check_id(item)
                conditions.append(_OPERATORS[op](column, value))
        return conditions

    def _order_by(self, sort: SortSpec | None) -> list[Any]:
        clauses = []
        for field, direction in (sort or {}).items():
            column = self._column(field)
            if direction in _DESCENDING:
                clauses.append(column.desc())
            elif direction in _ASCENDING:
                clauses.append(column.asc())
            else:
                raise ValueError(f"Unknown sort direction for {field!r}: {direction!r}")
        # Tie-breaker so skip/limit pages are stable
        if not sort or ID_FIELD not in sort:
            clauses.append(getattr(self.model, ID_FIELD).asc())
        return clauses

    def _select(self, filters: Filters, expand: Iterable[str]) -> Select:
        stmt = select(self.model).where(*self._conditions(filters))

        options = []
        for name in expand:
            if name not in self.model.__mapper__.relationships:
                raise ValueError(f"Unknown relation for {self.model.__name__}: {name!r}")
            options.append(selectinload(getattr(self.model, name)))
        if options:
            # Overwrite relations already in the identity map (e.g. after an update)
            stmt = stmt.options(*options).execution_options(populate_existing=True)
        return stmt

    def _validate(self, data: Mapping[str, Any]) -> BaseModel:
        try:
            return self.document.model_validate(dict(data))
        except ValidationError as exc:
            raise ValidationFailedError(_field_errors(exc)) from None

    async def _get(self, entity_id: str) -> ModelT | None:
        result = await self.db.execute(self._select({ID_FIELD: entity_id}, ()))
        return result.scalar_one_or_none()

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    @log_slow_query("find_by_id")
    async def find_by_id(
        self, entity_id: str, expand: Iterable[str] = ()
    ) -> ModelT | None:
        """Get an entity by id, or None if absent.

        Raises:
            InvalidIdentifierError: If entity_id is malformed (never for absent ids)
        """
        self._check_id(entity_id)
        result = await self.db.execute(self._select({ID_FIELD: entity_id}, expand))
        return result.scalar_one_or_none()

    @log_slow_query("find_one")
    async def find_one(
        self, filters: Filters, expand: Iterable[str] = ()
    ) -> ModelT | None:
        """Get the first entity matching all filters, or None."""
        stmt = self._select(filters, expand).order_by(*self._order_by(None)).limit(1)
        result = await self.db.execute(stmt)
        return result.scalars().first()

    @log_slow_query("find_many")
    async def find_many(
        self,
        filters: Filters | None = None,
        expand: Iterable[str] = (),
        *,
        sort: SortSpec | None = None,
        skip: int = 0,
        limit: int | None = None,
    ) -> list[ModelT]:
        """List entities matching all filters.

        Applied in order: sort, then skip, then limit. A limit of None or 0
        returns every remaining row.
        """
        if skip < 0 or (limit is not None and limit < 0):
            raise ValueError("skip and limit must be non-negative")

        stmt = self._select(filters or {}, expand).order_by(*self._order_by(sort))
        if skip:
            stmt = stmt.offset(skip)
        if limit:
            stmt = stmt.limit(limit)

        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    @log_slow_query("count")
    async def count(self, filters: Filters | None = None) -> int:
        stmt = (
            select(func.count())
            .select_from(self.model)
            .where(*self._conditions(filters or {}))
        )
        result = await self.db.execute(stmt)
        return result.scalar_one()

    @log_slow_query("group_count")
    async def group_count(
        self, field: str, filters: Filters | None = None
    ) -> list[tuple[Any, int]]:
        """Count matching rows per distinct value of ``field``.

        Returns (group_key, count) pairs in no guaranteed order.
        """
        column = self._column(field)
        stmt = (
            select(column, func.count())
            .where(*self._conditions(filters or {}))
            .group_by(column)
        )
        result = await self.db.execute(stmt)
        return [(key, count) for key, count in result.all()]

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    @log_slow_query("create")
    async def create(self, data: Mapping[str, Any]) -> ModelT:
        """Validate and insert a new entity.

        Returns the stored entity with its generated id and defaults.

        Raises:
            ValidationFailedError: With every field violation
        """
        document = self._validate(data)
        instance = self.model(**document.model_dump())
        self.db.add(instance)
        await self.db.flush()
        await self.db.refresh(instance)
        return instance

    @log_slow_query("update")
    async def update(self, entity_id: str, data: Mapping[str, Any]) -> ModelT | None:
        """Apply a partial update. Fields not in ``data`` are left unchanged.

        The merged document (current values + data) is re-validated before
        anything is written.

        Returns:
            The updated entity, or None if no entity has that id

        Raises:
            InvalidIdentifierError: If entity_id is malformed
            ValidationFailedError: If the merged document is invalid
        """
        self._check_id(entity_id)
        instance = await self._get(entity_id)
        if instance is None:
            return None

        current = {field: getattr(instance, field) for field in self.document.model_fields}
        document = self._validate({**current, **data})

        for field in data:
            setattr(instance, field, getattr(document, field))
        await self.db.flush()
        await self.db.refresh(instance)
        return instance

    @log_slow_query("delete")
    async def delete(self, entity_id: str) -> ModelT | None:
        """Delete an entity. Returns the removed entity, or None if absent.

        Raises:
            InvalidIdentifierError: If entity_id is malformed
        """
        self._check_id(entity_id)
        instance = await self._get(entity_id)
        if instance is None:
            return None

        await self.db.delete(instance)
        await self.db.flush()
        return instance
