"""Category repository for database operations."""

from models import Category
from repositories.base_repository import BaseRepository
from schemas import CategoryDocument


class CategoryRepository(BaseRepository[Category]):
    """Repository for Category database operations."""

    model = Category
    document = CategoryDocument
