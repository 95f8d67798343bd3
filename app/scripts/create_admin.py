import asyncio
import os

from sqlalchemy import select

from app.models.users.user_models import User
from app.core.db import AsyncSessionLocal
from app.core.security import hash_password


async def create_admin(username: str, password: str, role: str = "admin") -> bool:
    async with AsyncSessionLocal() as session:
        exists = await session.scalar(select(User.id).where(User.username == username))
        if exists:
            return False
        session.add(
            User(
                username=username,
                full_name="Administrator",
                password_hash=hash_password(password),
                role=role,
                is_active=True,
            )
        )
        await session.commit()
        return True


if __name__ == "__main__":
    email = os.getenv("ADMIN_EMAIL", "admin@padoca.com.br")
    created = asyncio.run(create_admin(email, os.getenv("ADMIN_PASSWORD", "admin123")))
    print("Admin user created!" if created else f"{email} already exists")
