"""
Initialize the database: create all tables and seed pre-configured profiles.
Run with: python -m scripts.init_db
"""

import asyncio
from medqueue.config import get_settings
from medqueue.database import DataStore
from medqueue.services.profiles import ProfileResolver


async def init():
    settings = get_settings()
    store = DataStore.from_url(settings.database_url)
    print("Creating database tables...")
    await store.create_all()
    seeded = await ProfileResolver(store).seed_profiles(settings.preconfigured_profiles)
    print(f"All tables created successfully. Seeded {seeded} profile(s).")
    await store.dispose()


if __name__ == "__main__":
    asyncio.run(init())
