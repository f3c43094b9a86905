"""User repository for database operations."""

from models import User
from repositories.base_repository import BaseRepository
from schemas import UserDocument


class UserRepository(BaseRepository[User]):
    """Repository for User database operations."""

    model = User
    document = UserDocument

    async def get_by_email(self, email: str) -> User | None:
        """Get a user by email.

        Expects email to be pre-normalized (lowercase) by service layer.
        Uses the unique index on email.
        """
        return await self.find_one({"email": email})
