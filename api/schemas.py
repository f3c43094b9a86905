"""Pydantic schemas for storage documents, service results and the HTTP API."""

import math
from datetime import datetime
from decimal import Decimal
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer, field_validator

from models import UserRole

# Serialized as a JSON number; Decimal would otherwise render as a string
Price = Annotated[
    Decimal, PlainSerializer(float, return_type=float, when_used="json")
]

# Upper bound of the INTEGER stock column
MAX_STOCK = 2**31 - 1

# =============================================================================
# Storage documents
#
# Structural schema of each table, validated by BaseRepository on every
# create and on the merged document of every update.
# =============================================================================


class _Document(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)


class UserDocument(_Document):
    name: str = Field(min_length=1, max_length=255)
    email: str = Field(max_length=255, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    password_hash: str = Field(min_length=1, max_length=255)
    role: UserRole = UserRole.USER


class CategoryDocument(_Document):
    name: str = Field(min_length=1, max_length=255)
    owner_id: str = Field(min_length=1, max_length=36)


class ProductDocument(_Document):
    name: str = Field(min_length=1, max_length=255)
    owner_id: str = Field(min_length=1, max_length=36)
    category_id: str = Field(min_length=1, max_length=36)
    price: Decimal = Field(ge=0, max_digits=10, decimal_places=2)
    stock: int = Field(default=0, ge=0, le=MAX_STOCK)

    @field_validator("stock", mode="before")
    @classmethod
    def reject_boolean_stock(cls, v: object) -> object:
        if isinstance(v, bool):
            raise ValueError("Input should be a valid integer")
        return v


# =============================================================================
# Service results
# =============================================================================


class CategoryCount(BaseModel):
    """Number of an owner's products in one category."""

    category_name: str
    count: int


class ProductStatistics(BaseModel):
    """Aggregate figures over one owner's products."""

    total_products: int
    low_stock_products: int
    category_breakdown: list[CategoryCount]


# =============================================================================
# HTTP API
# =============================================================================


class MessageResponse(BaseModel):
    message: str


class PaginationMeta(BaseModel):
    current_page: int
    total_pages: int
    total_items: int
    items_per_page: int

    @classmethod
    def build(cls, page: int, limit: int, total_items: int) -> "PaginationMeta":
        return cls(
            current_page=page,
            total_pages=math.ceil(total_items / limit),
            total_items=total_items,
            items_per_page=limit,
        )


SortOrder = Literal["asc", "desc"]


class CategorySummary(BaseModel):
    """Category fields inlined into an expanded product."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str


class CategoryResponse(CategorySummary):
    owner_id: str
    created_at: datetime | None = None
    updated_at: datetime | None = None


class CategoryWriteRequest(BaseModel):
    """Category create/update body.

    Shape-only: field rules are enforced by the repository so that every
    violation is reported in one response.
    """

    model_config = ConfigDict(extra="ignore")

    name: str | None = None


class CategoryListResponse(BaseModel):
    categories: list[CategoryResponse]
    pagination: PaginationMeta


class CategoryMutationResponse(MessageResponse):
    category: CategoryResponse


class ProductResponse(BaseModel):
    """Product with its category expanded."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    price: Price
    stock: int
    owner_id: str
    category_id: str
    category: CategorySummary
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ProductWriteRequest(BaseModel):
    """Product create/update body.

    Shape-only: values are passed through and validated by the service layer
    (category ownership first, then the product document), so a single
    response lists every problem. The UI posts numbers as strings.
    """

    model_config = ConfigDict(extra="ignore")

    name: str | None = None
    category_id: str | None = None
    price: Decimal | str | None = None
    # bool listed first so true/false reach the document check unconverted
    stock: bool | int | float | str | None = None


class ProductListResponse(BaseModel):
    products: list[ProductResponse]
    pagination: PaginationMeta


class ProductMutationResponse(MessageResponse):
    product: ProductResponse


class ProductStatisticsResponse(MessageResponse):
    stats: ProductStatistics


class HealthResponse(BaseModel):
    status: str
    service: str
