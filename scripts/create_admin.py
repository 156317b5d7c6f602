"""
Create (or promote) an admin user and print an access token.

Usage:
    python scripts/create_admin.py admin@attireburg.de "Admin Name" [password]
"""
import asyncio
import sys

from sqlalchemy import select

from attireburg.core.security import get_password_hash, create_access_token
from attireburg.database import init_db, get_db_session
from attireburg.models.user import User


async def create_admin(email: str, name: str, password: str | None = None) -> None:
    await init_db()

    async with get_db_session() as db:
        result = await db.execute(select(User).where(User.email == email.strip().lower()))
        user = result.scalar_one_or_none()

        if user:
            user.is_admin = True
            user.is_active = True
            print(f"Promoted existing user {user.email} to admin")
        else:
            user = User(
                email=email.strip().lower(),
                name=name,
                password_hash=get_password_hash(password) if password else None,
                is_admin=True,
            )
            db.add(user)
            print(f"Created admin user {user.email}")

        if password and user.password_hash is None:
            user.password_hash = get_password_hash(password)

        await db.flush()
        token = create_access_token(user.id, additional_claims={"is_admin": True})

    print(f"Access token:\n{token}")


if __name__ == "__main__":
    if len(sys.argv) < 3:
        print(__doc__)
        sys.exit(1)

    asyncio.run(create_admin(sys.argv[1], sys.argv[2], sys.argv[3] if len(sys.argv) > 3 else None))
