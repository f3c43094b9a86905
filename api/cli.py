#!/usr/bin/env python3
"""CLI for Catalog API management tasks.

Usage:
    cd api
    python -m cli <command>

Commands:
    migrate [target]       Apply migrations (default: head)
    downgrade [target]     Revert migrations (default: -1)
    current                Show current revision
    create-user            Register a user account
"""

import argparse
import asyncio
import getpass
import logging
import sys
from pathlib import Path

from alembic import command
from alembic.config import Config

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def get_alembic_config() -> Config:
    api_dir = Path(__file__).resolve().parent
    cfg = Config(str(api_dir / "alembic.ini"))
    # Absolute so it works from any working directory
    cfg.set_main_option("script_location", str(api_dir / "alembic"))
    return cfg


def cmd_migrate(target: str) -> int:
    """Run database migrations."""
    logger.info("Running database migrations to %s...", target)
    command.upgrade(get_alembic_config(), target)
    logger.info("Migrations complete")
    return 0


def cmd_downgrade(target: str) -> int:
    logger.info("Reverting database migrations to %s...", target)
    command.downgrade(get_alembic_config(), target)
    return 0


def cmd_current() -> int:
    command.current(get_alembic_config())
    return 0


async def _create_user(name: str, email: str, password: str, role: str) -> str:
    from core.database import create_engine, create_session_maker, dispose_engine
    from models import UserRole
    from services.users_service import register_user

    engine = create_engine()
    session_maker = create_session_maker(engine)
    try:
        async with session_maker() as session:
            user = await register_user(
                session, name, email, password, role=UserRole(role)
            )
            await session.commit()
            return user.id
    finally:
        await dispose_engine(engine)


def cmd_create_user(args: argparse.Namespace) -> int:
    """Register a user account. Prompts for the password if not given."""
    from repositories.base_repository import ValidationFailedError
    from services.exceptions import EmailAlreadyRegisteredError

    password = args.password or getpass.getpass("Password: ")
    if not password:
        logger.error("Password must not be empty")
        return 1

    try:
        user_id = asyncio.run(_create_user(args.name, args.email, password, args.role))
    except EmailAlreadyRegisteredError as e:
        logger.error(str(e))
        return 1
    except ValidationFailedError as e:
        logger.error(str(e))
        return 1

    logger.info("Created user %s (%s)", args.email, user_id)
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Catalog API CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    migrate = subparsers.add_parser("migrate", help="Apply database migrations")
    migrate.add_argument("target", nargs="?", default="head")

    downgrade = subparsers.add_parser("downgrade", help="Revert database migrations")
    downgrade.add_argument("target", nargs="?", default="-1")

    subparsers.add_parser("current", help="Show current revision")

    create_user = subparsers.add_parser("create-user", help="Register a user account")
    create_user.add_argument("--name", required=True)
    create_user.add_argument("--email", required=True)
    create_user.add_argument("--password", help="Prompted for when omitted")
    create_user.add_argument("--role", choices=["user", "admin"], default="user")

    args = parser.parse_args()

    if args.command == "migrate":
        return cmd_migrate(args.target)
    elif args.command == "downgrade":
        return cmd_downgrade(args.target)
    elif args.command == "current":
        return cmd_current()
    elif args.command == "create-user":
        return cmd_create_user(args)
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main())
