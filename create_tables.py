"""
Create the scheduling tables on the configured database.
Existing tables are left untouched.
"""

import asyncio

from telecare.core.config import settings
from telecare.db.base import async_engine, init_models


async def create_tables():
    """Create all tables from the SQLModel metadata."""
    print("=" * 60)
    print("CREATING TELECARE TABLES")
    print("=" * 60)

    try:
        await init_models(async_engine)
        print(f"✅ Tables ready on {async_engine.url.render_as_string(hide_password=True)}")
    except Exception as e:
        print(f"❌ Error creating tables: {e}")
        raise
    finally:
        await async_engine.dispose()


if __name__ == "__main__":
    print(f"Environment: {settings.app_env}")
    asyncio.run(create_tables())
