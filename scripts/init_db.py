#!/usr/bin/env python3
"""Database setup script for TrendBot.

Creates the trends table in the configured database. With ``--reset``
the table is dropped first, discarding every stored trend.
"""

import argparse
import asyncio
import sys

from trendbot.core.db import async_engine, create_all, drop_all
from trendbot.core.settings import get_settings

settings = get_settings()


async def main(reset: bool = False) -> int:
    """Create (and optionally drop) the trendbot tables."""
    target = settings.db_url.split('@')[-1]
    print(f"🔌 Database: {target}")

    try:
        if reset:
            print("🗑️  Dropping existing tables...")
            await drop_all()
        print("📊 Creating database tables...")
        await create_all()
        print("✅ Database tables ready")
        return 0
    except Exception as e:
        print(f"❌ Database setup failed: {e}")
        return 1
    finally:
        await async_engine.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create the TrendBot database tables")
    parser.add_argument("--reset", action="store_true", help="drop existing tables first")
    args = parser.parse_args()
    sys.exit(asyncio.run(main(reset=args.reset)))
