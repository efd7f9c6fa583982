import asyncio

import pytest

from domain.models import ClusterItem, Coordinate, Place, PlaceQuery, Region
from services.map_session import MapSession
from services.places_client import PlacesClient, StoreError
from services.places_loader import PlacesLoader
from services.preferences import PreferencesStore


class RecordingClient(PlacesClient):
    def __init__(self, places=None):
        self.places = places or []
        self.calls = []
        self.error = None

    async def query(self, place_query: PlaceQuery):
        self.calls.append(place_query)
        if self.error is not None:
            raise self.error
        if place_query.ids is not None:
            return [p for p in self.places if p.id in place_query.ids]
        return list(self.places)


PLACES = [
    Place(id=1, title="Old Mill", city="Bergamo", coordinates_lat=45.0, coordinates_lng=9.0,
          tags_link="/categories/abandoned-places"),
    Place(id=2, title="Hidden Crypt", coordinates_lat=45.0005, coordinates_lng=9.0005,
          tags_link="/categories/underground"),
    Place(id=3, title="Castle", country="Italy", coordinates_lat=46.0, coordinates_lng=10.0,
          tags_link="/categories/abandoned-places",
          description="A ruined castle above the lake"),
    Place(id=4, title="No coordinates", coordinates_lat=45.2),
    Place(id=5, title="Hidden pin", coordinates_lat=45.1, coordinates_lng=9.1, hide_from_maps="true"),
]


def _session(tmp_path, places=PLACES, quiet_period=0.01):
    client = RecordingClient(places)
    loader = PlacesLoader(client, min_loading_seconds=0)
    store = PreferencesStore(str(tmp_path / "prefs.sqlite"))
    return client, store, MapSession(loader, store, quiet_period=quiet_period)


def _loaded_session(tmp_path):
    client, store, session = _session(tmp_path)
    asyncio.run(session.loader.load_all())
    return client, store, session


def test_valid_places_excludes_unmappable_and_hidden(tmp_path):
    _, _, session = _loaded_session(tmp_path)
    assert [p.id for p in session.valid_places] == [1, 2, 3]


def test_available_categories_sorted_unique(tmp_path):
    _, _, session = _loaded_session(tmp_path)
    assert session.available_categories == ["Abandoned Places", "Underground"]


def test_category_filter_and_search_text(tmp_path):
    _, _, session = _loaded_session(tmp_path)
    session.toggle_category("Abandoned Places")
    assert [p.id for p in session.filtered_places] == [1, 3]

    session.search_text = "RUINED"
    assert [p.id for p in session.filtered_places] == [3]

    session.clear_category_filters()
    session.search_text = "bergamo"
    assert [p.id for p in session.filtered_places] == [1]


def test_search_only_looks_at_description_prefix(tmp_path):
    long_text = "x" * 200 + " needle"
    _, _, session = _session(
        tmp_path, [Place(id=9, coordinates_lat=1.0, coordinates_lng=1.0, description=long_text)]
    )
    asyncio.run(session.loader.load_all())
    session.search_text = "needle"
    assert session.filtered_places == []


def test_toggle_favorite_is_its_own_inverse(tmp_path):
    _, store, session = _loaded_session(tmp_path)
    assert session.is_favorite(1) is False

    assert session.toggle_favorite(1) is True
    assert store.get_favorites() == {1}
    assert [p.id for p in session.favorite_places_full] == [1]
    assert [p.id for p in session.favorite_places] == [1]

    assert session.toggle_favorite(1) is False
    assert session.is_favorite(1) is False
    assert store.get_favorites() == set()
    assert session.favorite_places_full == []


def test_toggle_visited_persists(tmp_path):
    _, store, session = _loaded_session(tmp_path)
    session.toggle_visited(3)
    assert store.get_visited() == {3}
    session.toggle_visited(3)
    assert store.get_visited() == set()


def test_preferences_are_restored_on_startup(tmp_path):
    store = PreferencesStore(str(tmp_path / "prefs.sqlite"))
    store.save_favorites({2})
    store.save_visited({3})
    store.save_selected_categories({"Underground"})

    session = MapSession(PlacesLoader(RecordingClient()), store)
    assert session.favorite_ids == {2}
    assert session.visited_ids == {3}
    assert session.selected_categories == {"Underground"}


def test_refresh_favorite_places(tmp_path):
    client, store, session = _loaded_session(tmp_path)
    session.toggle_favorite(3)
    session.toggle_favorite(99)
    places = asyncio.run(session.refresh_favorite_places())
    assert [p.id for p in places] == [3]
    assert client.calls[-1].ids == frozenset({3, 99})


def test_refresh_favorite_places_empty_skips_store(tmp_path):
    client, _, session = _session(tmp_path)
    assert asyncio.run(session.refresh_favorite_places()) == []
    assert client.calls == []


def test_refresh_favorite_places_error_keeps_list(tmp_path):
    client, _, session = _loaded_session(tmp_path)
    session.toggle_favorite(1)
    client.error = StoreError("offline")
    places = asyncio.run(session.refresh_favorite_places())
    assert [p.id for p in places] == [1]


def test_update_clustered_items_uses_filtered_places(tmp_path):
    _, _, session = _loaded_session(tmp_path)
    items = session.update_clustered_items(Region.from_values(45.5, 9.5, 0.03, 0.03))
    assert len(items) == 2
    assert isinstance(items[0], ClusterItem)
    assert [p.id for p in items[0].places] == [1, 2]
    assert items[1].place.id == 3


def test_category_toggle_reclusters_current_region(tmp_path):
    _, _, session = _loaded_session(tmp_path)
    session.current_region = Region.from_values(45.5, 9.5, 0.03, 0.03)
    session.toggle_category("Underground")
    assert [i.item_id for i in session.clustered_items] == ["2"]


def test_camera_burst_triggers_single_fetch_for_last_region(tmp_path):
    client, _, session = _session(tmp_path, quiet_period=0.02)
    regions = [Region.from_values(40.0 + i, 9.0, 0.5, 0.5) for i in range(4)]

    async def scenario():
        for region in regions:
            session.on_camera_change(region)
            await asyncio.sleep(0.002)
        await session.debouncer.wait_idle()

    asyncio.run(scenario())
    assert len(client.calls) == 1
    bounds = client.calls[0].bounds
    assert bounds.min_lat == pytest.approx(43.0 - 0.3)
    assert session.loader.state.loaded_region == regions[-1]
    assert session.current_region == regions[-1]
    # clustered with the freshly loaded data
    assert {i.item_id for i in session.clustered_items} >= {"3"}


def test_close_cancels_pending_fetch(tmp_path):
    client, _, session = _session(tmp_path, quiet_period=0.02)

    async def scenario():
        session.on_camera_change(Region.from_values(45.0, 9.0, 0.5, 0.5))
        session.close()
        await asyncio.sleep(0.05)

    asyncio.run(scenario())
    assert client.calls == []


def test_distance_km(tmp_path):
    _, _, session = _loaded_session(tmp_path)
    assert session.distance_km(Coordinate(45.0, 9.0), PLACES[0]) == pytest.approx(0.0)
    assert session.distance_km(Coordinate(45.0, 9.0), PLACES[3]) is None


class GatedClient(PlacesClient):
    """Every call waits until the test resolves its future."""

    def __init__(self):
        self.calls = []
        self.futures = []

    async def query(self, place_query: PlaceQuery):
        fut = asyncio.get_running_loop().create_future()
        self.calls.append(place_query)
        self.futures.append(fut)
        return await asyncio.shield(fut)


async def _wait_for_calls(client, count):
    while len(client.calls) < count:
        await asyncio.sleep(0.001)


NEARBY_PINS = [
    Place(id=1, coordinates_lat=45.0, coordinates_lng=9.0),
    Place(id=2, coordinates_lat=45.05, coordinates_lng=9.0),
]
WIDE = Region.from_values(45.0, 9.0, 3.0, 3.0)
ZOOMED = Region.from_values(45.0, 9.0, 0.03, 0.03)


def _gated_session(tmp_path):
    client = GatedClient()
    loader = PlacesLoader(client, min_loading_seconds=0)
    store = PreferencesStore(str(tmp_path / "prefs.sqlite"))
    return client, MapSession(loader, store, quiet_period=0.01)


async def _settle_on_wide(client, session):
    session.on_camera_change(WIDE)
    await _wait_for_calls(client, 1)
    client.futures[0].set_result(NEARBY_PINS)
    await session.debouncer.wait_idle()


def test_superseded_camera_action_does_not_recluster_when_next_load_is_declined(tmp_path):
    client, session = _gated_session(tmp_path)

    async def scenario():
        await _settle_on_wide(client, session)
        assert len(session.clustered_items) == 1

        first = session.on_camera_change(ZOOMED)
        await _wait_for_calls(client, 2)
        second = session.on_camera_change(WIDE)
        await asyncio.wait({first, second})

    asyncio.run(scenario())
    assert len(client.calls) == 2
    assert session.current_region == WIDE
    assert session.loader.state.loaded_region == WIDE
    assert session.loader.state.is_loading is False
    assert len(session.clustered_items) == 1
    assert isinstance(session.clustered_items[0], ClusterItem)


def test_superseded_camera_action_loses_to_the_newer_load(tmp_path):
    client, session = _gated_session(tmp_path)
    far_region = Region.from_values(50.0, 9.0, 3.0, 3.0)
    far_place = Place(id=3, coordinates_lat=50.0, coordinates_lng=9.0)

    async def scenario():
        await _settle_on_wide(client, session)

        first = session.on_camera_change(ZOOMED)
        await _wait_for_calls(client, 2)
        second = session.on_camera_change(far_region)
        await _wait_for_calls(client, 3)
        client.futures[2].set_result([far_place])
        client.futures[1].set_result(NEARBY_PINS)
        await asyncio.wait({first, second})

    asyncio.run(scenario())
    state = session.loader.state
    assert state.place_ids == [3]
    assert state.loaded_region == far_region
    assert session.current_region == far_region
    assert [item.item_id for item in session.clustered_items] == ["3"]


def test_unexpected_load_failure_is_logged_not_raised(tmp_path, caplog):
    client, _, session = _session(tmp_path)
    client.error = RuntimeError("boom")

    async def scenario():
        fire = session.on_camera_change(WIDE)
        await asyncio.wait({fire})
        return fire

    fire = asyncio.run(scenario())
    assert fire.exception() is None
    assert "Region load for" in caplog.text
    assert "boom" in caplog.text
