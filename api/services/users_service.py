"""User service for account registration and lookup.

Users are the identity anchor for ownership. Sessions are issued elsewhere;
this module only creates accounts and checks passwords.
"""

import bcrypt
from sqlalchemy.ext.asyncio import AsyncSession

from core import get_logger
from models import User, UserRole
from repositories.user_repository import UserRepository
from services.exceptions import EmailAlreadyRegisteredError

logger = get_logger(__name__)


def normalize_email(email: str) -> str:
    """Emails are case-insensitive; store and look them up in lowercase."""
    return email.strip().lower()


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Check a plaintext password against a stored bcrypt hash."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Stored value is not a bcrypt hash
        return False


async def register_user(
    db: AsyncSession,
    name: str,
    email: str,
    password: str,
    role: UserRole = UserRole.USER,
) -> User:
    """Create a user account.

    Raises:
        EmailAlreadyRegisteredError: If the email already has an account
        ValidationFailedError: If name/email are invalid
    """
    repo = UserRepository(db)
    email = normalize_email(email)

    if await repo.get_by_email(email) is not None:
        raise EmailAlreadyRegisteredError(email)

    user = await repo.create(
        {
            "name": name,
            "email": email,
            "password_hash": hash_password(password),
            "role": role,
        }
    )
    logger.info("user.registered", user_id=user.id, role=user.role.value)
    return user


async def get_user(db: AsyncSession, user_id: str) -> User | None:
    """Get a user by id, or None if absent.

    Raises:
        InvalidIdentifierError: If user_id is malformed
    """
    return await UserRepository(db).find_by_id(user_id)

