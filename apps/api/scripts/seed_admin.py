"""
Seed Admin User

Creates the first admin account. Self-registration only ever creates
students, so run this once after the initial migration.

Usage:
    cd apps/api
    SEED_ADMIN_PASSWORD='...' python scripts/seed_admin.py --email admin@ju.edu --name "Admin"
"""

import argparse
import asyncio
import os

from app.core.database import async_session_maker, close_db
from app.core.security import hash_password
from app.modules.users.models import UserRole
from app.modules.users.repository import UserRepository


async def seed_admin(email: str, name: str, password: str) -> None:
    """Create the admin user if the email is not taken."""
    async with async_session_maker() as db:
        existing_user = await UserRepository.get_by_email(db, email)

        if existing_user:
            print(f"User already exists: {existing_user.email}")
            print(f"  ID: {existing_user.id}")
            print(f"  Role: {existing_user.role.value}")
            return

        admin_user = await UserRepository.create(
            db,
            email=email,
            password_hash=hash_password(password),
            name=name,
            role=UserRole.ADMIN,
        )
        await db.commit()

        print("Admin created successfully!")
        print(f"  Email: {admin_user.email}")
        print(f"  Name: {admin_user.name}")
        print(f"  ID: {admin_user.id}")

    await close_db()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create the first admin account.")
    parser.add_argument("--email", required=True)
    parser.add_argument("--name", default="Administrator")
    args = parser.parse_args()

    password = os.environ.get("SEED_ADMIN_PASSWORD")
    if not password or len(password) < 8:
        parser.error("SEED_ADMIN_PASSWORD must be set to at least 8 characters")

    asyncio.run(seed_admin(args.email, args.name, password))
