"""Load a JSON dump of place rows into the places database.

Usage:
    python -m scripts.seed_places path/to/places.json [--database-url URL]

The file must hold a JSON array of objects using the `places` column names
(`id`, `title`, `coordinates_lat`, `coordinates_lng`, `tags_link`, ...).
Rows are upserted by id. A malformed row aborts the whole import.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from sqlalchemy.orm import sessionmaker

from db import DATABASE_URL, init_db, make_engine
from repositories.places import PlacesRepository
from services.places_client import StoreError, decode_places

LOG = logging.getLogger("seed_places")


def seed_places(path: Path, database_url: str = DATABASE_URL) -> int:
    payload = json.loads(path.read_text(encoding="utf-8"))
    places = decode_places(payload)

    engine = make_engine(database_url)
    init_db(bind=engine)
    Session = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    with Session() as session:
        written = PlacesRepository().upsert_places(session, places)
    LOG.info("Seeded %d places into %s", written, database_url)
    return written


def main(argv=None):
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("path", type=Path, help="JSON file with an array of place rows")
    parser.add_argument("--database-url", default=DATABASE_URL)
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO)
    try:
        count = seed_places(args.path, args.database_url)
    except (OSError, ValueError, StoreError):
        LOG.exception("Failed to seed places from %s", args.path)
        sys.exit(2)
    print(f"Seeded {count} places")


if __name__ == "__main__":
    main()
