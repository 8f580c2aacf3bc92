from datetime import date
from typing import Dict, List, Optional, Sequence, Union

import requests

from laendlefinder.core.errors import FetchError
from laendlefinder.core.storage import CatalogStore
from laendlefinder.models import (CatalogEntry, ListingSnapshot, ListingStatus,
                                  PropertyType)
from laendlefinder.suppliers.base import Supplier

TODAY = date(2026, 10, 19)


def snapshot(url="https://example.com/a/1", **kw) -> ListingSnapshot:
    fields = dict(
        name="Haus in Dornbirn",
        price="300000",
        location="Dornbirn",
        property_type=PropertyType.HOUSE,
        listing_status=ListingStatus.AVAILABLE,
        observed_on=TODAY,
    )
    fields.update(kw)
    return ListingSnapshot(url=url, **fields)


def entry(url="https://example.com/a/1", **kw) -> CatalogEntry:
    fields = dict(
        name="Haus in Dornbirn",
        price="300000",
        location="Dornbirn",
        property_type=PropertyType.HOUSE,
        listing_status=ListingStatus.AVAILABLE,
        first_seen=date(2026, 1, 1),
        last_seen=date(2026, 10, 1),
    )
    fields.update(kw)
    return CatalogEntry(url=url, **fields)


class FakeSupplier(Supplier):
    """Serves listing pages and listing snapshots from memory."""

    request_delay = 0.5

    def __init__(self, pages: Optional[Dict[int, List[str]]] = None,
                 listings: Optional[Dict[str, Union[ListingSnapshot, Exception]]] = None, **kwargs):
        super().__init__(**kwargs)
        self.pages = pages or {}
        self.listings = listings or {}
        self.pages_fetched: List[int] = []
        self.fetched: List[str] = []

    @property
    def name(self) -> str:
        return "fake"

    @property
    def base_url_marker(self) -> str:
        return "example.com"

    def listing_page_url(self, page: int) -> str:
        return f"https://example.com/list?page={page}"

    def parse_listing_page(self, html: str) -> Sequence[str]:
        return html.split()

    def fetch_listing_page(self, page: int) -> List[str]:
        self.pages_fetched.append(page)
        result = self.pages.get(page, [])
        if isinstance(result, Exception):
            raise result
        return list(result)

    def fetch_one(self, url: str) -> ListingSnapshot:
        self.fetched.append(url)
        result = self.listings.get(url)
        if result is None:
            raise FetchError(url, "not found")
        if isinstance(result, Exception):
            raise result
        return result


class RecordingStore(CatalogStore):
    """CatalogStore that also remembers the catalog size at every save."""

    def __init__(self, path):
        super().__init__(path)
        self.saves: List[int] = []

    def save(self, catalog) -> None:
        self.saves.append(len(catalog))
        super().save(catalog)


class FakeResponse:
    def __init__(self, text="", status_code=200, json_data=None, url="", history=()):
        self.text = text
        self.status_code = status_code
        self._json = json_data
        self.url = url
        self.history = list(history)

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def json(self):
        return self._json

    def raise_for_status(self) -> None:
        if not self.ok:
            raise requests.HTTPError(f"{self.status_code} Error", response=self)


class FakeSession:
    """Stands in for requests.Session; answers by URL, records every call."""

    def __init__(self, responses=None, default=None):
        self.responses = responses or {}
        self.default = default
        self.headers: Dict[str, str] = {}
        self.calls: List[tuple] = []

    def get(self, url, **kwargs):
        self.calls.append((url, kwargs))
        result = self.responses.get(url, self.default)
        if isinstance(result, Exception):
            raise result
        if result is None:
            return FakeResponse(status_code=404, url=url)
        if not result.url:
            result.url = url
        return result
