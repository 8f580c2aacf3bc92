import requests

from fakes import FakeResponse, entry
from laendlefinder.core.storage import CatalogStore
from laendlefinder.geocoding import (RATE_LIMIT_MAX, Geocoder, geocode_catalog,
                                     geocode_url)
from laendlefinder.models import Catalog


class QueuedSession:
    """Returns queued responses in order and records the query params."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.headers = {}
        self.queries = []

    def get(self, url, params=None, **kwargs):
        self.queries.append(params["q"])
        result = self.responses.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


def hit(lat="47.41", lon="9.74"):
    return FakeResponse(json_data=[{"lat": lat, "lon": lon}])


def make(*responses, delay=0.0):
    sleeps = []
    session = QueuedSession(*responses)
    return Geocoder(session, delay=delay, sleep=sleeps.append), session, sleeps


def test_geocode_appends_country_and_parses_result():
    geocoder, session, _ = make(hit())
    assert geocoder.geocode("Marktstraße 1, Dornbirn") == (47.41, 9.74)
    assert session.queries == ["Marktstraße 1, Dornbirn, Austria"]
    assert session.headers["User-Agent"].startswith("LaendleFinder")


def test_geocode_keeps_explicit_country():
    geocoder, session, _ = make(hit())
    geocoder.geocode("Dornbirn, Österreich")
    assert session.queries == ["Dornbirn, Österreich"]


def test_results_are_cached_case_insensitively():
    geocoder, session, _ = make(hit(), FakeResponse(json_data=[]))
    assert geocoder.geocode("Dornbirn") == (47.41, 9.74)
    assert geocoder.geocode("  dornbirn ") == (47.41, 9.74)
    assert geocoder.geocode("Nowhere") is None
    assert geocoder.geocode("nowhere") is None
    assert len(session.queries) == 2


def test_blank_address_is_not_queried():
    geocoder, session, _ = make()
    assert geocoder.geocode("   ") is None
    assert session.queries == []


def test_rate_limit_backs_off_without_caching():
    geocoder, session, sleeps = make(FakeResponse(status_code=429), hit())
    assert geocoder.geocode("Dornbirn") is None
    assert geocoder.delay == 0.2
    assert 1 in sleeps
    assert geocoder.geocode("Dornbirn") == (47.41, 9.74)
    assert len(session.queries) == 2


def test_rate_limit_delay_is_capped():
    geocoder, _, _ = make(*[FakeResponse(status_code=429)] * 20)
    for i in range(20):
        geocoder.geocode(f"Street {i}")
    assert geocoder.delay == RATE_LIMIT_MAX


def test_requests_are_spaced_by_delay():
    geocoder, _, sleeps = make(hit(), hit(), delay=1.0)
    geocoder.geocode("A")
    geocoder.geocode("B")
    assert sleeps == [1.0]


def test_http_error_is_cached_as_miss():
    geocoder, session, _ = make(FakeResponse(status_code=500))
    assert geocoder.geocode("Dornbirn") is None
    assert geocoder.geocode("Dornbirn") is None
    assert len(session.queries) == 1


def test_geocode_catalog_fills_missing_coordinates(tmp_path):
    catalog = Catalog([
        entry("https://example.com/a", address="Marktstraße 1, Dornbirn"),
        entry("https://example.com/b", address="Kirchplatz 2, Bregenz", coordinates=(1.0, 2.0)),
        entry("https://example.com/c", address=None, location="Unknown"),
        entry("https://example.com/d", address="Nirgendwo 0"),
        entry("https://example.com/e", address="Seestraße 5, Bregenz"),
    ])
    geocoder, session, _ = make(hit(), FakeResponse(json_data=[]), requests.ConnectionError("down"))
    store = CatalogStore(tmp_path / "properties.csv")

    summary = geocode_catalog(catalog, geocoder, store)

    assert (summary.candidates, summary.geocoded, summary.failed) == (3, 1, 2)
    loaded = store.load()
    assert loaded.get("https://example.com/a").coordinates == (47.41, 9.74)
    assert loaded.get("https://example.com/b").coordinates == (1.0, 2.0)
    assert loaded.get("https://example.com/e").coordinates is None


def test_location_is_used_when_address_is_missing():
    catalog = Catalog([
        entry("https://example.com/a", address="  ", location="Hohenems"),
        entry("https://example.com/b", address=None, location="Hohenems"),
    ])
    geocoder, session, _ = make(hit("47.36", "9.69"))

    summary = geocode_catalog(catalog, geocoder)

    assert summary.geocoded == 2
    assert session.queries == ["Hohenems, Austria"]
    assert catalog.get("https://example.com/b").coordinates == (47.36, 9.69)


def test_geocode_url_updates_only_that_entry(tmp_path):
    store = CatalogStore(tmp_path / "properties.csv")
    catalog = Catalog([
        entry("https://example.com/a", address="Marktstraße 1, Dornbirn"),
        entry("https://example.com/b", address="Kirchplatz 2, Bregenz"),
    ])
    geocoder, session, _ = make(hit())

    assert geocode_url(catalog, geocoder, "https://example.com/b?ref=map", store) is True

    assert session.queries == ["Kirchplatz 2, Bregenz, Austria"]
    loaded = store.load()
    assert loaded.get("https://example.com/b").coordinates == (47.41, 9.74)
    assert loaded.get("https://example.com/a").coordinates is None


def test_geocode_url_skips_missing_and_located_entries():
    catalog = Catalog([entry("https://example.com/a", coordinates=(1.0, 2.0))])
    geocoder, session, _ = make()
    assert geocode_url(catalog, geocoder, "https://example.com/a") is False
    assert geocode_url(catalog, geocoder, "https://example.com/zzz") is False
    assert session.queries == []
