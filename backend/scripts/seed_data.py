"""Seed the database with a demo seller account and sample pitches.

Run inside Docker:
    docker compose exec backend python -m scripts.seed_data
"""

import asyncio
import sys
from pathlib import Path

# Add backend to path so imports work when run as a script
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from sqlalchemy import delete, select

from app.auth.passwords import hash_password
from app.database import async_session_factory, engine
from app.models.user import User
from app.services.pitch_service import generate_pitch_for_user
from app.services.usage_service import increment_usage

# ---------------------------------------------------------------------------
# Seed data definitions
# ---------------------------------------------------------------------------

DEMO_USER = {
    "email": "demo@pitchforge.io",
    "password": "demo1234",
    "name": "Demo Seller",
    "company_name": "PitchForge Demo Co",
}

PROSPECTS = [
    {
        "business_name": "Joe's Lawn Care",
        "contact_name": "Joe Smith",
        "email": "joe@example.com",
        "phone": "512-555-1234",
        "address": "Austin, Texas",
        "website_url": "https://joeslawncare.com",
        "industry": "Lawn Care",
        "sub_industry": "Residential Lawn Maintenance",
        "google_rating": 4.5,
        "num_reviews": 127,
        "pitch_level": 1,
    },
    {
        "business_name": "Sunrise Bakery",
        "contact_name": "Maria Lopez",
        "email": "maria@sunrisebakery.example",
        "address": "Portland, Oregon",
        "industry": "Food & Beverage",
        "sub_industry": "Bakery",
        "google_rating": 4.8,
        "num_reviews": 342,
        "monthly_visits": 2400,
        "avg_transaction": 14.5,
        "repeat_rate": 0.55,
        "pitch_level": 2,
    },
    {
        "business_name": "Peak Performance Fitness",
        "contact_name": "Dana Reed",
        "phone": "303-555-0188",
        "address": "Denver, Colorado",
        "website_url": "https://peakperformance.example",
        "industry": "Fitness",
        "google_rating": 4.2,
        "num_reviews": 89,
        "monthly_visits": 1800,
        "avg_transaction": 45,
        "custom_message": "Loved your new spin studio opening.",
        "pitch_level": 3,
    },
]


async def seed() -> None:
    """Create the demo user and a handful of pitches.

    Idempotent: an existing demo user is deleted first (pitches, jobs and
    usage cascade with it).
    """
    async with async_session_factory() as session:
        existing_user = await session.scalar(select(User).where(User.email == DEMO_USER["email"]))
        if existing_user is not None:
            print(f"Demo user '{DEMO_USER['email']}' already exists. Deleting and re-seeding...")
            await session.execute(delete(User).where(User.id == existing_user.id))
            await session.flush()

        user = User(
            email=DEMO_USER["email"],
            hashed_password=hash_password(DEMO_USER["password"]),
            name=DEMO_USER["name"],
            company_name=DEMO_USER["company_name"],
            is_active=True,
            role="user",
            plan="starter",
        )
        session.add(user)
        await session.flush()
        print(f"Created demo user: {user.email} (id={user.id})")

        for prospect in PROSPECTS:
            pitch = await generate_pitch_for_user(session, user.id, prospect)
            print(f"   {pitch.business_name} (level {pitch.pitch_level})")

        await increment_usage(session, user.id, pitches_generated=len(PROSPECTS))
        await session.commit()

        print()
        print("=" * 60)
        print("Seed Summary")
        print("=" * 60)
        print(f"   Users:   1 ({DEMO_USER['email']} / {DEMO_USER['password']})")
        print(f"   Plan:    starter")
        print(f"   Pitches: {len(PROSPECTS)}")

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(seed())
