"""Product endpoints.

All routes are scoped to the authenticated user: the owner id always comes
from the session, never from the request body.
"""

from typing import Annotated, Literal

from fastapi import APIRouter, HTTPException, Query, Request

from core.auth import UserId
from core.config import get_settings
from core.database import DbSession
from core.ratelimit import READ_LIMIT, WRITE_LIMIT, limiter
from repositories.base_repository import InvalidIdentifierError, ValidationFailedError
from schemas import (
    MessageResponse,
    PaginationMeta,
    ProductListResponse,
    ProductMutationResponse,
    ProductResponse,
    ProductStatisticsResponse,
    ProductWriteRequest,
    SortOrder,
)
from services.exceptions import InvalidReferenceError, NotFoundOrForbiddenError
from services.products_service import ProductService

router = APIRouter(prefix="/api/products", tags=["products"])

ProductSortField = Literal["name", "price", "stock", "created_at", "updated_at"]


@router.get("", response_model=ProductListResponse)
@limiter.limit(READ_LIMIT)
async def list_products_endpoint(
    request: Request,
    user_id: UserId,
    db: DbSession,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int | None, Query(ge=1)] = None,
    sort_by: ProductSortField = "created_at",
    sort_order: SortOrder = "desc",
) -> ProductListResponse:
    """List the current user's products, newest first by default.

    ``limit`` defaults to the configured page size and is capped at the
    configured maximum.
    """
    settings = get_settings()
    limit = min(limit or settings.default_page_size, settings.max_page_size)

    service = ProductService(db)
    products = await service.list_by_owner(
        user_id,
        sort={sort_by: -1 if sort_order == "desc" else 1},
        skip=(page - 1) * limit,
        limit=limit,
    )
    total = await service.count_by_owner(user_id)

    return ProductListResponse(
        products=[ProductResponse.model_validate(p) for p in products],
        pagination=PaginationMeta.build(page, limit, total),
    )


@router.get("/stats", response_model=ProductStatisticsResponse)
@limiter.limit(READ_LIMIT)
async def product_stats_endpoint(
    request: Request,
    user_id: UserId,
    db: DbSession,
) -> ProductStatisticsResponse:
    """Totals, low-stock count and per-category counts for the current user."""
    stats = await ProductService(db).statistics(user_id)
    return ProductStatisticsResponse(
        message="Product statistics retrieved successfully",
        stats=stats,
    )


@router.get(
    "/{product_id}",
    response_model=ProductResponse,
    responses={
        400: {"description": "Malformed product id"},
        404: {"description": "Product not found"},
    },
)
@limiter.limit(READ_LIMIT)
async def get_product_endpoint(
    request: Request,
    product_id: str,
    user_id: UserId,
    db: DbSession,
) -> ProductResponse:
    try:
        product = await ProductService(db).get(product_id, user_id)
    except InvalidIdentifierError:
        raise HTTPException(status_code=400, detail="Invalid product id")
    except NotFoundOrForbiddenError as e:
        raise HTTPException(status_code=404, detail=str(e))

    return ProductResponse.model_validate(product)


@router.post(
    "",
    response_model=ProductMutationResponse,
    status_code=201,
    responses={400: {"description": "Invalid fields or category"}},
)
@limiter.limit(WRITE_LIMIT)
async def create_product_endpoint(
    request: Request,
    body: ProductWriteRequest,
    user_id: UserId,
    db: DbSession,
) -> ProductMutationResponse:
    """Create a product in one of the current user's categories."""
    service = ProductService(db)

    try:
        product = await service.create(body.model_dump(exclude_unset=True), user_id)
    except InvalidReferenceError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ValidationFailedError as e:
        raise HTTPException(
            status_code=400,
            detail={"message": "Validation failed", "errors": e.field_errors},
        )

    product = await service.get(product.id, user_id)
    return ProductMutationResponse(
        message="Product created successfully",
        product=ProductResponse.model_validate(product),
    )


@router.put(
    "/{product_id}",
    response_model=ProductMutationResponse,
    responses={
        400: {"description": "Malformed id, invalid fields or category"},
        404: {"description": "Product not found"},
    },
)
@limiter.limit(WRITE_LIMIT)
async def update_product_endpoint(
    request: Request,
    product_id: str,
    body: ProductWriteRequest,
    user_id: UserId,
    db: DbSession,
) -> ProductMutationResponse:
    """Update only the fields present in the body."""
    service = ProductService(db)

    try:
        await service.update(product_id, body.model_dump(exclude_unset=True), user_id)
    except InvalidIdentifierError:
        raise HTTPException(status_code=400, detail="Invalid product id")
    except NotFoundOrForbiddenError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidReferenceError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ValidationFailedError as e:
        raise HTTPException(
            status_code=400,
            detail={"message": "Validation failed", "errors": e.field_errors},
        )

    product = await service.get(product_id, user_id)
    return ProductMutationResponse(
        message="Product updated successfully",
        product=ProductResponse.model_validate(product),
    )


@router.delete(
    "/{product_id}",
    response_model=MessageResponse,
    responses={
        400: {"description": "Malformed product id"},
        404: {"description": "Product not found"},
    },
)
@limiter.limit(WRITE_LIMIT)
async def delete_product_endpoint(
    request: Request,
    product_id: str,
    user_id: UserId,
    db: DbSession,
) -> MessageResponse:
    try:
        await ProductService(db).delete(product_id, user_id)
    except InvalidIdentifierError:
        raise HTTPException(status_code=400, detail="Invalid product id")
    except NotFoundOrForbiddenError as e:
        raise HTTPException(status_code=404, detail=str(e))

    return MessageResponse(message="Product deleted successfully")
