"""Repository layer for database operations.

Repositories encapsulate all database queries, keeping services focused on
policy and routes focused on HTTP handling. Every concrete repository is a
BaseRepository bound to one model and its document schema.
"""

from repositories.base_repository import (
    BaseRepository,
    InvalidIdentifierError,
    RepositoryError,
    ValidationFailedError,
)
from repositories.category_repository import CategoryRepository
from repositories.product_repository import ProductRepository
from repositories.user_repository import UserRepository
from repositories.utils import log_slow_query

__all__ = [
    "BaseRepository",
    "CategoryRepository",
    "InvalidIdentifierError",
    "ProductRepository",
    "RepositoryError",
    "UserRepository",
    "ValidationFailedError",
    "log_slow_query",
]
