"""Choosing which listing URLs a run fetches."""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date
from enum import Enum
from typing import Callable, List, Optional

from laendlefinder.models import Catalog, CatalogEntry, ListingStatus
from laendlefinder.suppliers.base import Supplier
from laendlefinder.utils.urls import canonicalize, unique_canonical


class Mode(str, Enum):
    NEW = "new"
    REFRESH = "refresh"
    REFRESH_BY_AGE = "refresh-by-age"
    LEGACY_PAGED = "legacy-paged"
    SINGLE_TARGET = "single-target"


@dataclass(frozen=True)
class FrontierRequest:
    mode: Mode = Mode.NEW
    max_pages: Optional[int] = None
    max_items: Optional[int] = None
    refresh_age_days: Optional[int] = None
    target_url: Optional[str] = None

    def __post_init__(self):
        if self.mode is Mode.REFRESH_BY_AGE and (self.refresh_age_days is None or self.refresh_age_days < 1):
            raise ValueError("refresh_age_days must be at least 1")
        if self.mode is Mode.LEGACY_PAGED and (self.max_pages is None or self.max_pages < 1):
            raise ValueError("legacy paged mode needs max_pages >= 1")
        if self.mode is Mode.SINGLE_TARGET and not self.target_url:
            raise ValueError("single target mode needs a target_url")
        if self.max_items is not None and self.max_items < 0:
            raise ValueError("max_items must not be negative")


@dataclass
class Frontier:
    mode: Mode
    urls: List[str] = field(default_factory=list)
    discovered: int = 0       # URLs seen on listing pages (discovery modes)
    known_count: int = 0      # of those, already in the catalog
    touched: List[str] = field(default_factory=list)  # known URLs whose last_seen advanced
    is_update: bool = False   # single target already in the catalog

    @property
    def empty(self) -> bool:
        return not self.urls


def _age_sort_key(entry: CatalogEntry):
    anchor = entry.date or entry.first_seen
    # undated entries first, then oldest first
    return (anchor is not None, anchor or date.min)


def is_stale(entry: CatalogEntry, today: date, max_age_days: int) -> bool:
    if entry.listing_status is not ListingStatus.AVAILABLE:
        return False
    if entry.last_seen is None:
        return True
    return (today - entry.last_seen).days > max_age_days


def touch(catalog: Catalog, url: str, today: date) -> bool:
    """Advance last_seen of a re-observed entry to today."""
    entry = catalog.get(url)
    if entry is None or (entry.last_seen is not None and entry.last_seen >= today):
        return False
    first_seen = entry.first_seen or today
    catalog.upsert(replace(entry, first_seen=first_seen, last_seen=today))
    return True


def _discover(catalog: Catalog, supplier: Supplier, request: FrontierRequest, today: date,
              on_page: Optional[Callable[[int, int, int], None]]) -> Frontier:
    known = {canonicalize(e.url) for e in catalog.for_origin(supplier.base_url_marker)}
    max_pages = request.max_pages if request.mode is Mode.LEGACY_PAGED else None
    found = unique_canonical(supplier.enumerate_candidates(known, max_pages=max_pages, on_page=on_page))

    frontier = Frontier(mode=request.mode, discovered=len(found))
    for url in found:
        if url in known:
            frontier.known_count += 1
            if touch(catalog, url, today):
                frontier.touched.append(url)
        else:
            frontier.urls.append(url)
    return frontier


def select_frontier(
    catalog: Catalog,
    supplier: Supplier,
    request: FrontierRequest,
    today: Optional[date] = None,
    on_page: Optional[Callable[[int, int, int], None]] = None,
) -> Frontier:
    """Compute this run's candidate URLs for `supplier`.

    Discovery modes (NEW, LEGACY_PAGED) update last_seen of re-observed
    catalog entries in place; the caller is responsible for persisting that.
    """
    today = today or date.today()
    marker = supplier.base_url_marker

    if request.mode in (Mode.NEW, Mode.LEGACY_PAGED):
        frontier = _discover(catalog, supplier, request, today, on_page)
    elif request.mode is Mode.REFRESH:
        frontier = Frontier(mode=request.mode, urls=[e.url for e in catalog.for_origin(marker)])
    elif request.mode is Mode.REFRESH_BY_AGE:
        stale = [e for e in catalog.for_origin(marker) if is_stale(e, today, request.refresh_age_days)]
        stale.sort(key=_age_sort_key)
        frontier = Frontier(mode=request.mode, urls=[e.url for e in stale])
    elif request.mode is Mode.SINGLE_TARGET:
        url = canonicalize(request.target_url)
        frontier = Frontier(mode=request.mode, urls=[url], is_update=url in catalog)
    else:
        raise ValueError(f"Unsupported mode: {request.mode}")

    if request.max_items is not None:
        frontier.urls = frontier.urls[:request.max_items]
    return frontier
