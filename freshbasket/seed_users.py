"""
Database seeding script for initial users.

Creates the store ADMIN (who cannot be created through the API), one
delivery agent and one customer for local development. Tokens for them
come from POST /v1/auth/token while DEBUG is on.
"""

import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import select

from freshbasket.app.db.session import AsyncSessionLocal, Base, engine
from freshbasket.app.models.enums import UserRole
from freshbasket.app.models.user import User
from freshbasket.app.models.order import Order  # noqa: F401
from freshbasket.app.models.audit_log import AuditLog  # noqa: F401

SEED_USERS = [
    ("Store Admin", "admin@freshbasket.in", "9000000001", UserRole.ADMIN),
    ("Ravi Kumar", "ravi.agent@freshbasket.in", "9000012345", UserRole.AGENT),
    ("Priya Raman", "priya@freshbasket.in", "9876501234", UserRole.CUSTOMER),
]


async def seed_users():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as db:
        print("🌱 Starting user seeding...")

        result = await db.execute(select(User).where(User.role == UserRole.ADMIN))
        if result.scalars().first():
            print("ℹ️  ADMIN user already exists, skipping seeding")
            return

        users = [User(name=name, email=email, phone=phone, role=role) for name, email, phone, role in SEED_USERS]
        db.add_all(users)
        await db.commit()

        print("\n🎉 User seeding completed successfully!")
        print("\nSeeded users:")
        for user in users:
            print(f"  - {user.role.value:<8} id={user.id:<3} {user.email}")
        print("\nGet a token with: POST /v1/auth/token {\"userId\": <id>}")

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(seed_users())
