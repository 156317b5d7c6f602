"""Initialize database tables."""
import asyncio

from attireburg.database import init_db


async def init():
    """Create all tables."""
    print("Creating database tables...")
    await init_db()
    print("Database tables created successfully!")


if __name__ == "__main__":
    asyncio.run(init())
