import csv
import shutil
from datetime import date
from pathlib import Path
from typing import Dict, List, Optional

from loguru import logger

from laendlefinder.core.errors import (CatalogError, CatalogFormatError,
                                       CatalogWriteError)
from laendlefinder.core.reconcile import deduplicate
from laendlefinder.models import (Catalog, CatalogEntry, Coordinates,
                                  ListingStatus, PropertyType)
from laendlefinder.utils.urls import canonicalize

DATA_DIR = Path("./data")
CATALOG_FILE = DATA_DIR / "properties.csv"

COLUMNS = [
    "url",
    "name",
    "price",
    "location",
    "property_type",
    "listing_status",
    "date",
    "coordinates",
    "address",
    "size_living",
    "size_ground",
    "first_seen",
    "last_seen",
]


def backup_path_for(path: Path) -> Path:
    return path.with_name(path.name + ".bak")


# ---- field codecs ----

def format_date(d: Optional[date]) -> str:
    return d.isoformat() if d else ""


def parse_date(raw: str) -> Optional[date]:
    raw = (raw or "").strip()
    if not raw:
        return None
    return date.fromisoformat(raw)


def format_coordinates(coords: Optional[Coordinates]) -> str:
    if coords is None:
        return ""
    lat, lng = coords
    return f"{lat},{lng}"


def parse_coordinates(raw: str) -> Optional[Coordinates]:
    raw = (raw or "").strip()
    if not raw:
        return None
    lat, lng = raw.split(",")
    return float(lat), float(lng)


def _optional(raw: str) -> Optional[str]:
    return raw if raw else None


def entry_to_row(e: CatalogEntry) -> Dict[str, str]:
    return {
        "url": e.url,
        "name": e.name or "",
        "price": e.price or "",
        "location": e.location or "",
        "property_type": e.property_type.token,
        "listing_status": e.listing_status.token,
        "date": format_date(e.date),
        "coordinates": format_coordinates(e.coordinates),
        "address": e.address or "",
        "size_living": e.size_living or "",
        "size_ground": e.size_ground or "",
        "first_seen": format_date(e.first_seen),
        "last_seen": format_date(e.last_seen),
    }


def row_to_entry(row: Dict[str, str], path: Path, line: int) -> CatalogEntry:
    status = ListingStatus.from_token(row["listing_status"])
    if status is None:
        logger.warning("{}:{} unknown listing status {!r}, treating as available",
                       path, line, row["listing_status"])
        status = ListingStatus.AVAILABLE
    try:
        return CatalogEntry(
            url=canonicalize(row["url"]),
            name=row["name"],
            price=row["price"],
            location=row["location"],
            property_type=PropertyType.from_token(row["property_type"]),
            listing_status=status,
            date=parse_date(row["date"]),
            coordinates=parse_coordinates(row["coordinates"]),
            address=_optional(row["address"]),
            size_living=_optional(row["size_living"]),
            size_ground=_optional(row["size_ground"]),
            first_seen=parse_date(row["first_seen"]),
            last_seen=parse_date(row["last_seen"]),
        )
    except ValueError as e:
        raise CatalogFormatError(path, f"invalid value: {e}", line) from e


class CatalogStore:
    """The listing catalog as a CSV file plus a single backup copy."""

    def __init__(self, path: Path = CATALOG_FILE, backup_path: Optional[Path] = None):
        self.path = Path(path)
        self.backup_path = Path(backup_path) if backup_path else backup_path_for(self.path)

    def load(self) -> Catalog:
        if not self.path.exists():
            logger.debug("No catalog at {}, starting empty", self.path)
            return Catalog()

        entries: List[CatalogEntry] = []
        try:
            f = self.path.open(newline="", encoding="utf-8")
        except OSError as e:
            raise CatalogError(f"Could not read catalog {self.path}: {e}") from e
        with f:
            reader = csv.DictReader(f)
            try:
                header = reader.fieldnames or []
                missing = [c for c in COLUMNS if c not in header]
                if missing:
                    raise CatalogFormatError(self.path, f"missing columns: {', '.join(missing)}", 1)
                for row in reader:
                    line = reader.line_num
                    if None in row:
                        raise CatalogFormatError(self.path, "record has more fields than the header", line)
                    if any(row[c] is None for c in COLUMNS):
                        raise CatalogFormatError(self.path, "record is missing fields", line)
                    entries.append(row_to_entry(row, self.path, line))
            except (UnicodeDecodeError, csv.Error) as e:
                raise CatalogFormatError(self.path, f"unreadable catalog: {e}", reader.line_num or None) from e

        catalog = deduplicate(entries)
        if len(catalog) != len(entries):
            logger.info("Collapsed {} duplicate catalog records", len(entries) - len(catalog))
        return catalog

    def save(self, catalog: Catalog) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            if self.path.exists():
                shutil.copyfile(self.path, self.backup_path)
            with self.path.open("w", newline="", encoding="utf-8") as f:
                writer = csv.DictWriter(f, fieldnames=COLUMNS)
                writer.writeheader()
                for entry in catalog:
                    writer.writerow(entry_to_row(entry))
        except OSError as e:
            raise CatalogWriteError(f"Could not write catalog {self.path}: {e}") from e
