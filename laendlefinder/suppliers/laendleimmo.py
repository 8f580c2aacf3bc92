import json
import re
from datetime import date
from typing import Any, Dict, Iterator, Optional, Sequence

import requests
from bs4 import BeautifulSoup

from laendlefinder.core.errors import FetchError
from laendlefinder.models import (Coordinates, ListingSnapshot, ListingStatus,
                                  PropertyType)
from laendlefinder.suppliers.base import Supplier
from laendlefinder.utils import parsing

SITE_URL = "https://www.laendleimmo.at"
BASE_URL = f"{SITE_URL}/kaufobjekt"

# /immobilien/{main_type}/{sub_type}/vorarlberg/{district}/{id}
_URL_TYPE_RE = re.compile(r"/immobilien/([^/]+)/([^/]+)/")
_URL_DISTRICT_RE = re.compile(r"/vorarlberg/([^/]+)/")

_MAP_COORD_PATTERNS = [
    re.compile(r'data-lat(?:itude)?="(-?\d+\.\d+)"[^>]*data-(?:lng|lon|longitude)="(-?\d+\.\d+)"'),
    re.compile(r'"lat(?:itude)?"\s*:\s*"?(-?\d+\.\d+)"?\s*,\s*"(?:lng|lon|longitude)"\s*:\s*"?(-?\d+\.\d+)'),
]

_DATE_PATTERNS = [
    re.compile(r"'adReleaseDate':\s*`([^`]+)`"),
    re.compile(r'"adReleaseDate":\s*"([^"]+)"'),
    re.compile(r'"datePublished":\s*"([^"]+)"'),
    re.compile(r'"dateCreated":\s*"([^"]+)"'),
]

GONE_MARKERS = ("nicht mehr verfügbar", "nicht mehr aktiv", "objekt wurde bereits vergeben")
GONE_STATUS_CODES = (404, 410)

UNAVAILABLE = "Unavailable"
UNKNOWN = "Unknown"


def classify_property_type_from_url(url: str) -> Optional[PropertyType]:
    m = _URL_TYPE_RE.search(url)
    if not m:
        return None
    main_type, sub_type = m.group(1).lower(), m.group(2).lower()
    if main_type in ("grundstuck", "grundstueck"):
        return PropertyType.LAND
    if main_type == "wohnung":
        return PropertyType.APARTMENT
    if main_type == "haus":
        return PropertyType.HOUSE
    classified = PropertyType.classify(f"{main_type} {sub_type}")
    return None if classified is PropertyType.UNKNOWN else classified


def district_from_url(url: str) -> Optional[str]:
    m = _URL_DISTRICT_RE.search(url)
    if not m:
        return None
    return m.group(1).replace("-", " ").title()


def extract_coordinates_from_map(body: str) -> Optional[Coordinates]:
    for pattern in _MAP_COORD_PATTERNS:
        m = pattern.search(body)
        if m:
            return float(m.group(1)), float(m.group(2))
    return None


def extract_date_from_html(body: str) -> Optional[date]:
    for pattern in _DATE_PATTERNS:
        m = pattern.search(body)
        if m:
            found = parsing.parse_date_string(m.group(1))
            if found:
                return found
    return None


def _json_ld_objects(soup: BeautifulSoup) -> Iterator[Dict[str, Any]]:
    for node in soup.select('script[type="application/ld+json"]'):
        try:
            data = json.loads(node.string or "")
        except json.JSONDecodeError:
            continue
        if isinstance(data, dict):
            items = data.get("@graph", [data])
        elif isinstance(data, list):
            items = data
        else:
            continue
        for item in items:
            if isinstance(item, dict):
                yield item


def _object(value, what: str) -> Dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"Unexpected {what} in JSON-LD")
    return value


def _text(value) -> str:
    return value.strip() if isinstance(value, str) else ""


def _format_price(value) -> str:
    amount = float(value)
    return str(int(amount)) if amount == int(amount) else str(amount)


class LaendleimmoSupplier(Supplier):
    """laendleimmo.at sale listings (currently on the market)."""

    # the site throttles aggressive clients
    request_delay = 1.0

    @property
    def name(self) -> str:
        return "laendleimmo"

    @property
    def base_url_marker(self) -> str:
        return "laendleimmo.at"

    def listing_page_url(self, page: int) -> str:
        return BASE_URL if page <= 1 else f"{BASE_URL}?page={page}"

    def parse_listing_page(self, html: str) -> Sequence[str]:
        soup = BeautifulSoup(html, "html.parser")
        urls = []
        for a in soup.select("a[href*='/immobilien/']"):
            href = a.get("href") or ""
            if "/vorarlberg/" not in href:
                continue
            full = href if href.startswith("http") else f"{SITE_URL}{href}"
            if full not in urls:
                urls.append(full)
        return urls

    def fetch_one(self, url: str) -> ListingSnapshot:
        self.check_url(url)
        try:
            resp = self.get(url)
            if resp.status_code in GONE_STATUS_CODES or self._redirected_away(resp, url):
                self.log.debug("Listing {} is gone (HTTP {})", url, resp.status_code)
                return self.unavailable_snapshot(url)
            resp.raise_for_status()
            return self.parse_property_page(resp.text, url)
        except requests.RequestException as e:
            raise FetchError(url, f"Failed to fetch property page: {e}") from e
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise FetchError(url, str(e)) from e

    @staticmethod
    def _redirected_away(resp: requests.Response, url: str) -> bool:
        return bool(resp.history) and "/immobilien/" not in (resp.url or "")

    def unavailable_snapshot(self, url: str) -> ListingSnapshot:
        status = ListingStatus.UNAVAILABLE
        return ListingSnapshot(
            url=url,
            name=UNAVAILABLE,
            price=UNAVAILABLE,
            location=UNKNOWN,
            property_type=classify_property_type_from_url(url) or PropertyType.UNKNOWN,
            listing_status=status,
            observed_on=self.observation_date(status),
        )

    # ---- extraction ----

    def parse_property_page(self, body: str, url: str) -> ListingSnapshot:
        soup = BeautifulSoup(body, "html.parser")
        text = soup.get_text(" ", strip=True)
        if any(marker in text.lower() for marker in GONE_MARKERS):
            return self.unavailable_snapshot(url)

        try:
            snapshot = self._from_json_ld(soup, body, text, url)
            self.log.debug("Successfully extracted from JSON-LD")
            return snapshot
        except ValueError as e:
            self.log.debug("JSON-LD extraction failed ({}), falling back to HTML parsing", e)
        return self._from_html(soup, body, text, url)

    def _from_json_ld(self, soup: BeautifulSoup, body: str, text: str, url: str) -> ListingSnapshot:
        data = next((d for d in _json_ld_objects(soup) if d.get("name") and d.get("offers")), None)
        if data is None:
            raise ValueError("Name not found in JSON-LD")
        name = data["name"]
        if not isinstance(name, str):
            raise ValueError("Unexpected name in JSON-LD")
        offers = data["offers"]
        if isinstance(offers, list):
            offers = offers[0] if offers else {}
        offers = _object(offers, "offers")
        try:
            price_value = float(offers.get("price") or 0)
        except (TypeError, ValueError):
            price_value = 0
        if price_value <= 0:
            raise ValueError("Price not found in JSON-LD")

        place = _object(data.get("location"), "location")
        address_data = _object(place.get("address"), "address")
        locality = _text(address_data.get("addressLocality"))
        street = _text(address_data.get("streetAddress"))
        if street and locality:
            address = f"{street}, {locality}"
        else:
            address = street or None

        geo = _object(place.get("geo"), "geo")
        coordinates = None
        if geo.get("latitude") is not None and geo.get("longitude") is not None:
            try:
                coordinates = (float(geo["latitude"]), float(geo["longitude"]))
            except (TypeError, ValueError):
                self.log.debug("Unusable geo coordinates in JSON-LD for {}", url)
        if coordinates is None:
            coordinates = extract_coordinates_from_map(body)

        description = _text(data.get("description"))
        size_living = parsing.extract_living_size_from_text(description) or parsing.extract_living_size_from_text(text)
        size_ground = parsing.extract_ground_size_from_text(description) or parsing.extract_ground_size_from_text(text)

        listed_on = (parsing.parse_date_string(_text(data.get("datePublished")))
                     or parsing.parse_date_string(_text(data.get("dateCreated")))
                     or extract_date_from_html(body))

        return self._snapshot(
            url,
            name=name,
            price=_format_price(price_value),
            location=locality or UNKNOWN,
            property_type=classify_property_type_from_url(url) or PropertyType.classify(name),
            date=listed_on,
            coordinates=coordinates,
            address=address,
            size_living=size_living,
            size_ground=size_ground,
        )

    def _from_html(self, soup: BeautifulSoup, body: str, text: str, url: str) -> ListingSnapshot:
        title_el = soup.select_one("h1") or soup.select_one("title")
        title = title_el.get_text(" ", strip=True) if title_el else ""
        if not title:
            raise ValueError("Title not found")

        price = UNKNOWN
        for selector in (".price", ".preis", "[class*='price']"):
            el = soup.select_one(selector)
            digits = re.sub(r"[^\d]", "", el.get_text()) if el else ""
            if digits:
                price = str(int(digits))
                break

        location = None
        crumbs = soup.select(".breadcrumb a, .breadcrumbs a, nav[aria-label='breadcrumb'] a")
        if crumbs:
            location = crumbs[-1].get_text(strip=True) or None
        location = location or district_from_url(url) or UNKNOWN

        address = None
        address_el = soup.select_one(".location, .address, [class*='address']")
        if address_el is not None:
            address = address_el.get_text(" ", strip=True) or None

        property_type = classify_property_type_from_url(url)
        if property_type is None:
            type_el = soup.select_one(".property-type, .objektart")
            property_type = PropertyType.classify(type_el.get_text() if type_el else title)

        return self._snapshot(
            url,
            name=title,
            price=price,
            location=location,
            property_type=property_type,
            date=extract_date_from_html(body),
            coordinates=extract_coordinates_from_map(body),
            address=address,
            size_living=parsing.extract_living_size_from_text(text),
            size_ground=parsing.extract_ground_size_from_text(text),
        )

    def _snapshot(self, url: str, **fields) -> ListingSnapshot:
        status = ListingStatus.AVAILABLE
        return ListingSnapshot(
            url=url,
            listing_status=status,
            observed_on=self.observation_date(status),
            **fields,
        )
