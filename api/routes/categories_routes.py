"""Category endpoints, scoped to the authenticated user."""

from typing import Annotated

from fastapi import APIRouter, HTTPException, Query, Request

from core.auth import UserId
from core.config import get_settings
from core.database import DbSession
from core.ratelimit import READ_LIMIT, WRITE_LIMIT, limiter
from repositories.base_repository import InvalidIdentifierError, ValidationFailedError
from schemas import (
    CategoryListResponse,
    CategoryMutationResponse,
    CategoryResponse,
    CategoryWriteRequest,
    MessageResponse,
    PaginationMeta,
)
from services.categories_service import CategoryService
from services.exceptions import CategoryInUseError, NotFoundOrForbiddenError

router = APIRouter(prefix="/api/categories", tags=["categories"])


@router.get("", response_model=CategoryListResponse)
@limiter.limit(READ_LIMIT)
async def list_categories_endpoint(
    request: Request,
    user_id: UserId,
    db: DbSession,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int | None, Query(ge=1)] = None,
) -> CategoryListResponse:
    """List the current user's categories by name."""
    settings = get_settings()
    limit = min(limit or settings.default_page_size, settings.max_page_size)

    service = CategoryService(db)
    categories = await service.list_by_owner(
        user_id, skip=(page - 1) * limit, limit=limit
    )
    total = await service.count_by_owner(user_id)

    return CategoryListResponse(
        categories=[CategoryResponse.model_validate(c) for c in categories],
        pagination=PaginationMeta.build(page, limit, total),
    )


@router.get(
    "/{category_id}",
    response_model=CategoryResponse,
    responses={
        400: {"description": "Malformed category id"},
        404: {"description": "Category not found"},
    },
)
@limiter.limit(READ_LIMIT)
async def get_category_endpoint(
    request: Request,
    category_id: str,
    user_id: UserId,
    db: DbSession,
) -> CategoryResponse:
    try:
        category = await CategoryService(db).get(category_id, user_id)
    except InvalidIdentifierError:
        raise HTTPException(status_code=400, detail="Invalid category id")
    except NotFoundOrForbiddenError as e:
        raise HTTPException(status_code=404, detail=str(e))

    return CategoryResponse.model_validate(category)


@router.post(
    "",
    response_model=CategoryMutationResponse,
    status_code=201,
    responses={400: {"description": "Invalid fields"}},
)
@limiter.limit(WRITE_LIMIT)
async def create_category_endpoint(
    request: Request,
    body: CategoryWriteRequest,
    user_id: UserId,
    db: DbSession,
) -> CategoryMutationResponse:
    try:
        category = await CategoryService(db).create(
            body.model_dump(exclude_unset=True), user_id
        )
    except ValidationFailedError as e:
        raise HTTPException(
            status_code=400,
            detail={"message": "Validation failed", "errors": e.field_errors},
        )

    return CategoryMutationResponse(
        message="Category created successfully",
        category=CategoryResponse.model_validate(category),
    )


@router.put(
    "/{category_id}",
    response_model=CategoryMutationResponse,
    responses={
        400: {"description": "Malformed id or invalid fields"},
        404: {"description": "Category not found"},
    },
)
@limiter.limit(WRITE_LIMIT)
async def update_category_endpoint(
    request: Request,
    category_id: str,
    body: CategoryWriteRequest,
    user_id: UserId,
    db: DbSession,
) -> CategoryMutationResponse:
    try:
        category = await CategoryService(db).update(
            category_id, body.model_dump(exclude_unset=True), user_id
        )
    except InvalidIdentifierError:
        raise HTTPException(status_code=400, detail="Invalid category id")
    except NotFoundOrForbiddenError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValidationFailedError as e:
        raise HTTPException(
            status_code=400,
            detail={"message": "Validation failed", "errors": e.field_errors},
        )

    return CategoryMutationResponse(
        message="Category updated successfully",
        category=CategoryResponse.model_validate(category),
    )


@router.delete(
    "/{category_id}",
    response_model=MessageResponse,
    responses={
        400: {"description": "Malformed category id"},
        404: {"description": "Category not found"},
        409: {"description": "Category still has products"},
    },
)
@limiter.limit(WRITE_LIMIT)
async def delete_category_endpoint(
    request: Request,
    category_id: str,
    user_id: UserId,
    db: DbSession,
) -> MessageResponse:
    """Delete a category. Refused while any product references it."""
    try:
        await CategoryService(db).delete(category_id, user_id)
    except InvalidIdentifierError:
        raise HTTPException(status_code=400, detail="Invalid category id")
    except NotFoundOrForbiddenError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except CategoryInUseError as e:
        raise HTTPException(status_code=409, detail=str(e))

    return MessageResponse(message="Category deleted successfully")
