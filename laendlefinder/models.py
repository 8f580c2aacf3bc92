from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Dict, Iterator, List, Optional, Tuple

from laendlefinder.utils.urls import belongs_to, canonicalize

Coordinates = Tuple[float, float]

# Placeholders emitted by extraction when a value could not be found
SENTINEL_STRINGS = {"", "unknown", "unavailable", "n/a"}


def is_sentinel(value) -> bool:
    if value is None:
        return True
    if isinstance(value, PropertyType):
        return value is PropertyType.UNKNOWN
    if isinstance(value, str):
        return value.strip().lower() in SENTINEL_STRINGS
    return False


class PropertyType(str, Enum):
    APARTMENT = "apartment"
    HOUSE = "house"
    LAND = "land"
    UNKNOWN = "unknown"

    @classmethod
    def from_token(cls, token: Optional[str]) -> "PropertyType":
        """Decode a CSV token; anything unrecognized becomes UNKNOWN."""
        return _PROPERTY_TYPE_TOKENS.get((token or "").strip().lower(), cls.UNKNOWN)

    @classmethod
    def classify(cls, text: Optional[str]) -> "PropertyType":
        """Classify free text (German listing titles, URL segments)."""
        t = (text or "").lower()
        if not t:
            return cls.UNKNOWN
        # land first: "Baugrund für ein Haus" is still a plot
        for keyword in ("grundstück", "grundstueck", "grundstuck", "baugrund", "bauplatz", "acker", "wiese"):
            if keyword in t:
                return cls.LAND
        for keyword in ("wohnung", "apartment", "penthouse", "maisonette", "dachgeschoss"):
            if keyword in t:
                return cls.APARTMENT
        for keyword in ("haus", "villa", "bungalow", "chalet"):
            if keyword in t:
                return cls.HOUSE
        return cls.UNKNOWN

    @property
    def token(self) -> str:
        return self.value


class ListingStatus(str, Enum):
    AVAILABLE = "available"
    SOLD = "sold"
    UNAVAILABLE = "unavailable"

    @classmethod
    def from_token(cls, token: Optional[str]) -> Optional["ListingStatus"]:
        """Decode a CSV token; returns None for unrecognized tokens."""
        return _LISTING_STATUS_TOKENS.get((token or "").strip().lower())

    @property
    def token(self) -> str:
        return self.value


_PROPERTY_TYPE_TOKENS: Dict[str, PropertyType] = {t.value: t for t in PropertyType}
_LISTING_STATUS_TOKENS: Dict[str, ListingStatus] = {s.value: s for s in ListingStatus}

# Fields that reconciliation treats as descriptive (everything but identity,
# status and the tracking dates)
DESCRIPTIVE_FIELDS = (
    "name",
    "price",
    "location",
    "property_type",
    "date",
    "coordinates",
    "address",
    "size_living",
    "size_ground",
)


@dataclass(frozen=True)
class ListingSnapshot:
    url: str
    name: str
    price: str                      # display string, e.g. "350000"
    location: str
    property_type: PropertyType
    listing_status: ListingStatus
    date: Optional[date] = None     # transaction or publish date
    coordinates: Optional[Coordinates] = None
    address: Optional[str] = None
    size_living: Optional[str] = None
    size_ground: Optional[str] = None
    observed_on: Optional[date] = None  # unset when the fetch could not confirm presence


@dataclass(frozen=True)
class CatalogEntry:
    url: str
    name: str
    price: str
    location: str
    property_type: PropertyType
    listing_status: ListingStatus
    date: Optional[date] = None
    coordinates: Optional[Coordinates] = None
    address: Optional[str] = None
    size_living: Optional[str] = None
    size_ground: Optional[str] = None
    first_seen: Optional[date] = None
    last_seen: Optional[date] = None

    @classmethod
    def from_snapshot(cls, snapshot: ListingSnapshot, first_seen: Optional[date], last_seen: Optional[date]) -> "CatalogEntry":
        return cls(
            url=snapshot.url,
            name=snapshot.name,
            price=snapshot.price,
            location=snapshot.location,
            property_type=snapshot.property_type,
            listing_status=snapshot.listing_status,
            date=snapshot.date,
            coordinates=snapshot.coordinates,
            address=snapshot.address,
            size_living=snapshot.size_living,
            size_ground=snapshot.size_ground,
            first_seen=first_seen,
            last_seen=last_seen,
        )

    def as_snapshot(self) -> ListingSnapshot:
        """View this entry as an observation made on its last_seen date."""
        return ListingSnapshot(
            url=self.url,
            name=self.name,
            price=self.price,
            location=self.location,
            property_type=self.property_type,
            listing_status=self.listing_status,
            date=self.date,
            coordinates=self.coordinates,
            address=self.address,
            size_living=self.size_living,
            size_ground=self.size_ground,
            observed_on=self.last_seen,
        )


@dataclass
class Catalog:
    """Ordered catalog with one entry per canonical URL.

    Existing entries are replaced in place, unseen URLs are appended, so the
    persisted file diffs cleanly between runs.
    """

    entries: List[CatalogEntry] = field(default_factory=list)
    _index: Dict[str, int] = field(default_factory=dict, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        self._reindex()

    def _reindex(self) -> None:
        self._index = {}
        for pos, entry in enumerate(self.entries):
            self._index.setdefault(canonicalize(entry.url), pos)

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[CatalogEntry]:
        return iter(self.entries)

    def __contains__(self, url: str) -> bool:
        return canonicalize(url) in self._index

    def get(self, url: str) -> Optional[CatalogEntry]:
        pos = self._index.get(canonicalize(url))
        return None if pos is None else self.entries[pos]

    def upsert(self, entry: CatalogEntry) -> bool:
        """Store entry; returns True when it was appended as a new URL."""
        key = canonicalize(entry.url)
        pos = self._index.get(key)
        if pos is None:
            self._index[key] = len(self.entries)
            self.entries.append(entry)
            return True
        self.entries[pos] = entry
        return False

    def urls(self) -> List[str]:
        return [e.url for e in self.entries]

    def for_origin(self, marker: str) -> List[CatalogEntry]:
        return [e for e in self.entries if belongs_to(e.url, marker)]
