"""Script to initialize the database and seed the doctor roster."""

import argparse
import asyncio

from sqlalchemy import insert, select, text

from app.database import engine
from app.models import doctors, metadata


async def init_db(doctor_names: list[str], specialization: str | None) -> None:
    """Create all tables and insert any doctors not yet on the roster."""
    async with engine.begin() as conn:
        if engine.dialect.name == "postgresql":
            # Enable pgcrypto extension
            await conn.execute(text('CREATE EXTENSION IF NOT EXISTS "pgcrypto"'))

        # Create all tables
        await conn.run_sync(metadata.create_all)

        existing = set((await conn.execute(select(doctors.c.name))).scalars().all())
        new_names = [name for name in doctor_names if name not in existing]
        if new_names:
            await conn.execute(
                insert(doctors),
                [{"name": name, "specialization": specialization} for name in new_names],
            )

    print("✓ Database initialized successfully!")
    if new_names:
        print(f"✓ Added doctors: {', '.join(new_names)}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create tables and seed doctors")
    parser.add_argument("--doctor", action="append", default=[], help="Doctor name to add")
    parser.add_argument("--specialization", default=None, help="Specialization for new doctors")
    args = parser.parse_args()

    asyncio.run(init_db(args.doctor, args.specialization))
