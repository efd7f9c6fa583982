import json

import pytest
from sqlalchemy.orm import sessionmaker

from db import make_engine
from domain.models import PlaceQuery
from repositories.places import PlacesRepository
from scripts.seed_places import seed_places
from services.places_client import StoreError


def test_seed_places_upserts_rows(tmp_path):
    dump = tmp_path / "places.json"
    dump.write_text(json.dumps([
        {"id": 1, "title": "Old Mill", "coordinates_lat": 45.0, "coordinates_lng": 9.0},
        {"id": 2, "title": "Crypt"},
    ]))
    url = f"sqlite:///{tmp_path / 'seed.sqlite'}"

    assert seed_places(dump, url) == 2
    # re-seeding replaces by id
    dump.write_text(json.dumps([{"id": 1, "title": "Renamed Mill"}]))
    assert seed_places(dump, url) == 1

    engine = make_engine(url)
    with sessionmaker(bind=engine)() as session:
        repo = PlacesRepository()
        assert repo.count(session) == 2
        places = repo.query(session, PlaceQuery(ids=frozenset({1})))
    engine.dispose()
    assert places[0].title == "Renamed Mill"
    assert places[0].coordinates_lat is None


def test_seed_places_rejects_malformed_dump(tmp_path):
    dump = tmp_path / "places.json"
    dump.write_text(json.dumps([{"id": 1}, {"title": "missing id"}]))
    with pytest.raises(StoreError):
        seed_places(dump, f"sqlite:///{tmp_path / 'seed.sqlite'}")
