"""Product repository for database operations."""

from models import Product
from repositories.base_repository import BaseRepository
from schemas import ProductDocument


class ProductRepository(BaseRepository[Product]):
    """Repository for Product database operations.

    Ownership and category checks are not done here; see ProductService.
    """

    model = Product
    document = ProductDocument
