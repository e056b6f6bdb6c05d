#!/usr/bin/env python3
"""
Grant the admin role to an existing identity user.

Usage:
    python scripts/grant_admin.py <user_id> <email> [--super]
"""

import argparse
import asyncio

import structlog

from src.core.config import settings
from src.domain.models.account import AdminRole, AdminUser
from src.persistence.database import init_database
from src.persistence.repositories.admin_repo import AdminRepository

log = structlog.get_logger(__name__)


async def grant_admin(user_id: str, email: str, role: AdminRole) -> None:
    await init_database(settings.database_path)
    admin = await AdminRepository(str(settings.database_path)).add_admin(
        AdminUser(id=user_id, email=email, role=role)
    )
    log.info("admin_granted", user_id=admin.id, email=admin.email, role=admin.role.value)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("user_id")
    parser.add_argument("email")
    parser.add_argument("--super", dest="super_admin", action="store_true")
    args = parser.parse_args()

    role = AdminRole.SUPER_ADMIN if args.super_admin else AdminRole.ADMIN
    asyncio.run(grant_admin(args.user_id, args.email, role))
