"""
Seed an administrador profile.

Creates an administrador with the email and password given in
ADMIN_EMAIL / ADMIN_PASSWORD (defaults: admin@example.com / changeme123).
This script is idempotent - an existing profile with that email is
promoted to administrador instead of duplicated.

Usage:
    python scripts/seed_admin.py

Security:
    IMPORTANT: Change the default password immediately after first login!
    The default credentials are publicly known and insecure.
"""

import asyncio
import os
import sys
from pathlib import Path

# Add backend directory to path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from reportes.core.database import async_session_maker
from reportes.core.security import get_password_hash
from reportes.models.user_profile import ROLE_ADMINISTRADOR
from reportes.repositories.user_profile import UserProfileRepository


DEFAULT_EMAIL = "admin@example.com"
DEFAULT_PASSWORD = "changeme123"


async def seed_admin(email: str, password: str) -> None:
    """
    Create the administrador profile if it doesn't exist.

    Args:
        email: Login email
        password: Initial password (only used when creating)
    """
    async with async_session_maker() as session:
        repo = UserProfileRepository(session)
        try:
            existing = await repo.get_by_email(email)

            if existing is not None:
                if existing.role != ROLE_ADMINISTRADOR:
                    await repo.update_role_and_zona(existing.id, ROLE_ADMINISTRADOR, existing.zona)
                    await session.commit()
                    print(f"Profile {email} promoted to administrador.")
                else:
                    print("Administrador already exists. Skipping...")
                return

            await repo.create_profile(
                email=email,
                hashed_password=get_password_hash(password),
                display_name="Administrador",
                role=ROLE_ADMINISTRADOR,
            )
            await session.commit()

            print("Administrador created successfully!")
            print(f"Email: {email}")
            if password == DEFAULT_PASSWORD:
                print(f"Password: {DEFAULT_PASSWORD}")
                print("")
                print("WARNING: Please change this password immediately after first login!")
                print("This default password is publicly known and insecure.")

        except Exception as e:
            await session.rollback()
            print(f"Error creating administrador: {e}")
            raise


if __name__ == "__main__":
    print("Seeding administrador...")
    asyncio.run(
        seed_admin(
            os.getenv("ADMIN_EMAIL", DEFAULT_EMAIL),
            os.getenv("ADMIN_PASSWORD", DEFAULT_PASSWORD),
        )
    )
    print("Done!")
