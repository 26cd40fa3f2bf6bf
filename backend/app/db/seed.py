"""
Seed the flight catalog.

Usage:
    python -m app.db.seed                 # demo flights for the next two weeks
    python -m app.db.seed flights.json    # import a JSON list of flight records
    python -m app.db.seed --create-tables # also create tables (dev only; use alembic otherwise)
"""

import argparse
import asyncio
import json
import random
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

from pydantic import TypeAdapter

from app.core.logging import get_logger, setup_logging
from app.db.base import Base
from app.db.session import AsyncSessionLocal, engine
from app.schemas.flight import FlightCreate
from app.services.cache_service import close_redis, invalidate_search_cache
from app.services.flight_service import create_flights

logger = get_logger(__name__)

AIRLINES = [("AirBlue", "AB"), ("IndiSky", "IS"), ("Nimbus", "NM"), ("JetRapid", "JR")]
AIRPORTS = ["BLR", "DEL", "MAA", "BOM", "HYD"]


def demo_flights(count: int = 20, seed: Optional[int] = None) -> list[FlightCreate]:
    rng = random.Random(seed)
    today = datetime.now(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)
    records = []
    for _ in range(count):
        origin, destination = rng.sample(AIRPORTS, 2)
        airline, code = rng.choice(AIRLINES)
        departure = today + timedelta(
            days=rng.randint(0, 14), hours=rng.randint(5, 22), minutes=rng.choice([0, 15, 30, 45])
        )
        duration = rng.randint(60, 300)
        capacity = rng.choice([120, 150, 180])
        records.append(
            FlightCreate(
                airline=airline,
                airline_code=code,
                flight_number=rng.randint(100, 999),
                origin=origin,
                destination=destination,
                price=round(rng.uniform(2000, 15000), 2),
                seat_capacity=capacity,
                departure=departure,
                arrival=departure + timedelta(minutes=duration),
                operational_days=sorted(rng.sample(range(7), rng.randint(3, 7))),
            )
        )
    return records


def load_flights(path: Path) -> list[FlightCreate]:
    return TypeAdapter(list[FlightCreate]).validate_python(json.loads(path.read_text()))


async def import_flights(session, records: list[FlightCreate]):
    """Create and commit the flights, then drop cached searches that predate them."""
    flights = await create_flights(session, records)
    await session.commit()
    await invalidate_search_cache()
    return flights


async def run(path: Optional[Path], create_tables: bool, count: int) -> int:
    if create_tables:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    records = load_flights(path) if path else demo_flights(count)

    async with AsyncSessionLocal() as session:
        flights = await import_flights(session, records)

    await close_redis()
    await engine.dispose()
    return len(flights)


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed the flight catalog")
    parser.add_argument("path", nargs="?", type=Path, help="JSON file with a list of flight records")
    parser.add_argument("--count", type=int, default=20, help="number of demo flights")
    parser.add_argument("--create-tables", action="store_true")
    args = parser.parse_args()

    setup_logging()
    created = asyncio.run(run(args.path, args.create_tables, args.count))
    logger.info("seed_complete", flights=created)


if __name__ == "__main__":
    main()
