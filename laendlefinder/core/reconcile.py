"""Merging fresh listing observations into catalog entries."""
from __future__ import annotations

from dataclasses import replace
from datetime import date
from typing import Iterable, Optional

from laendlefinder.models import (DESCRIPTIVE_FIELDS, Catalog, CatalogEntry,
                                  ListingSnapshot, ListingStatus, is_sentinel)
from laendlefinder.utils.urls import canonicalize


def _earliest(*dates: Optional[date]) -> Optional[date]:
    known = [d for d in dates if d is not None]
    return min(known) if known else None


def _pick(existing_value, fresh_value):
    # extraction is lossy: a placeholder must never overwrite a known value
    if is_sentinel(fresh_value) and not is_sentinel(existing_value):
        return existing_value
    return fresh_value


def _backfill(existing_value, fresh_value):
    if is_sentinel(existing_value) and not is_sentinel(fresh_value):
        return fresh_value
    return existing_value


def is_disappearance(existing: CatalogEntry, fresh: ListingSnapshot) -> bool:
    return (fresh.listing_status is ListingStatus.UNAVAILABLE
            and existing.listing_status is not ListingStatus.UNAVAILABLE)


def merge(existing: Optional[CatalogEntry], fresh: ListingSnapshot, today: Optional[date] = None) -> CatalogEntry:
    """Reconcile one fresh snapshot with the catalog entry for the same URL.

    - no existing entry: the snapshot becomes an entry first/last seen on its
      observation date (or today)
    - disappearance (fresh Unavailable, existing not): existing data wins,
      placeholders are backfilled, only the status flips; first_seen and
      last_seen stay as they were since absence confirms nothing
    - otherwise: fresh data wins field by field unless it is a placeholder,
      status always follows fresh, first_seen only moves earlier
    """
    today = today or date.today()

    if existing is None:
        seen = fresh.observed_on or today
        return CatalogEntry.from_snapshot(fresh, first_seen=seen, last_seen=seen)

    if is_disappearance(existing, fresh):
        fields = {f: _backfill(getattr(existing, f), getattr(fresh, f)) for f in DESCRIPTIVE_FIELDS}
        return replace(existing, listing_status=ListingStatus.UNAVAILABLE, **fields)

    fields = {f: _pick(getattr(existing, f), getattr(fresh, f)) for f in DESCRIPTIVE_FIELDS}
    first_seen = _earliest(existing.first_seen, fresh.observed_on)
    last_seen = fresh.observed_on or existing.last_seen
    if first_seen and last_seen and last_seen < first_seen:
        last_seen = first_seen
    return replace(
        existing,
        listing_status=fresh.listing_status,
        first_seen=first_seen,
        last_seen=last_seen,
        **fields,
    )


def fold(existing: CatalogEntry, later: CatalogEntry, today: Optional[date] = None) -> CatalogEntry:
    """Merge a later catalog record for the same URL into an earlier one."""
    merged = merge(existing, later.as_snapshot(), today)
    first_seen = _earliest(merged.first_seen, later.first_seen)
    last_seen = merged.last_seen
    if first_seen and last_seen and last_seen < first_seen:
        last_seen = first_seen
    return replace(merged, first_seen=first_seen, last_seen=last_seen)


def deduplicate(entries: Iterable[CatalogEntry], today: Optional[date] = None) -> Catalog:
    """Collapse repeated URLs into one entry each.

    The first occurrence keeps its position and is updated in place by every
    later occurrence, in encounter order. Running it on an already
    deduplicated catalog changes nothing.
    """
    catalog = Catalog()
    for entry in entries:
        url = canonicalize(entry.url)
        if url != entry.url:
            entry = replace(entry, url=url)
        current = catalog.get(url)
        catalog.upsert(entry if current is None else fold(current, entry, today))
    return catalog
