import time
from dataclasses import dataclass, replace
from typing import Callable, Dict, Optional

import requests
from loguru import logger

from laendlefinder.models import Catalog, CatalogEntry, Coordinates, is_sentinel

NOMINATIM_URL = "https://nominatim.openstreetmap.org/search"
USER_AGENT = "LaendleFinder/1.0 (Real Estate Scraper)"

RATE_LIMIT_STEP = 0.2   # seconds added after every HTTP 429
RATE_LIMIT_MAX = 2.0


class Geocoder:
    """Address -> (lat, lng) via Nominatim, with an in-memory cache."""

    def __init__(self, session: Optional[requests.Session] = None, *, base_url: str = NOMINATIM_URL,
                 delay: float = 0.0, sleep: Callable[[float], None] = time.sleep, timeout: float = 10):
        self.session = session or requests.Session()
        self.session.headers.setdefault("User-Agent", USER_AGENT)
        self.base_url = base_url
        self.delay = delay
        self.timeout = timeout
        self.cache: Dict[str, Optional[Coordinates]] = {}
        self.request_count = 0
        self._sleep = sleep

    def _rate_limit(self) -> None:
        if self.request_count > 0 and self.delay > 0:
            self._sleep(self.delay)
        self.request_count += 1

    def geocode(self, address: str) -> Optional[Coordinates]:
        if not address or not address.strip():
            return None

        cache_key = address.strip().lower()
        if cache_key in self.cache:
            logger.debug("Cache hit for address: {}", address)
            return self.cache[cache_key]

        self._rate_limit()
        query = address if ("Austria" in address or "Österreich" in address) else f"{address}, Austria"
        params = {"q": query, "format": "json", "limit": 1, "countrycodes": "at"}
        resp = self.session.get(self.base_url, params=params, timeout=self.timeout)

        if resp.status_code == 429:
            self.delay = min(self.delay + RATE_LIMIT_STEP, RATE_LIMIT_MAX)
            logger.warning("Rate limit hit (HTTP 429), delay now {:.1f}s", self.delay)
            self._sleep(1)
            # not cached: worth retrying on a later pass
            return None
        if not resp.ok:
            logger.debug("HTTP error {} for {}", resp.status_code, query)
            self.cache[cache_key] = None
            return None

        results = resp.json()
        result = None
        if results:
            try:
                result = float(results[0]["lat"]), float(results[0]["lon"])
            except (KeyError, TypeError, ValueError):
                logger.debug("Failed to parse coordinates for: {}", address)
        self.cache[cache_key] = result
        return result


@dataclass
class GeocodeSummary:
    candidates: int = 0
    geocoded: int = 0
    failed: int = 0


def query_for(entry: CatalogEntry) -> Optional[str]:
    """The address when one is known, else the location name."""
    if entry.address and entry.address.strip():
        return entry.address
    if not is_sentinel(entry.location):
        return entry.location
    return None


def _geocode_entry(catalog: Catalog, geocoder: Geocoder, entry: CatalogEntry) -> bool:
    query = query_for(entry)
    try:
        coords = geocoder.geocode(query)
    except (requests.RequestException, ValueError) as e:
        logger.warning("Geocoding failed for {}: {}", entry.url, e)
        return False
    if coords is None:
        return False
    catalog.upsert(replace(entry, coordinates=coords))
    logger.debug("Geocoded {} -> {}", query, coords)
    return True


def geocode_catalog(catalog: Catalog, geocoder: Geocoder, store=None, checkpoint_every: int = 10) -> GeocodeSummary:
    """Fill missing coordinates from addresses (or locations); saves every few hits and at the end."""
    summary = GeocodeSummary()
    pending = [e for e in catalog if e.coordinates is None and query_for(e)]
    summary.candidates = len(pending)
    logger.info("Found {} properties needing geocoding", len(pending))

    for entry in pending:
        if not _geocode_entry(catalog, geocoder, entry):
            summary.failed += 1
            continue
        summary.geocoded += 1
        if store is not None and summary.geocoded % checkpoint_every == 0:
            store.save(catalog)

    if store is not None and summary.geocoded:
        store.save(catalog)
    logger.info("Geocoding completed: {} geocoded, {} failed", summary.geocoded, summary.failed)
    return summary


def geocode_url(catalog: Catalog, geocoder: Geocoder, url: str, store=None) -> bool:
    """Geocode the one catalog entry for `url`; False when it is missing or already located."""
    entry = catalog.get(url)
    if entry is None:
        logger.warning("Property not found in catalog: {}", url)
        return False
    if entry.coordinates is not None:
        logger.info("Property already has coordinates: {}", url)
        return False
    if not query_for(entry):
        logger.info("Nothing to geocode for {}", url)
        return False
    if not _geocode_entry(catalog, geocoder, entry):
        return False
    if store is not None:
        store.save(catalog)
    return True
