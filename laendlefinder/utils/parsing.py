import re
from datetime import date, datetime
from typing import Optional

# vol.at titles: "In Dornbirn wurde eine Wohnung um 350.000 Euro verkauft"
_PRICE_RE = re.compile(r"um\s+([\d.,]+)\s+Euro")
_LOCATION_RE = re.compile(r"\bin\s+([A-Za-zÄÖÜäöüß-]+)")
_TYPE_RE = re.compile(r"\beine?\s+([A-Za-zÄÖÜäöüß-]+)")

_LIVING_RE = re.compile(
    r"(?:Wohnfläche|Wohnflaeche|Nutzfläche)\s*(?:ca\.)?\s*:?\s*(?:ca\.)?\s*([\d.,]+)\s*(m²|m2|qm)",
    re.IGNORECASE,
)
_GROUND_RE = re.compile(
    r"(?:Grundstücksfläche|Grundstuecksfläche|Grundfläche|Grundstück)\s*(?:ca\.)?\s*:?\s*(?:ca\.)?\s*([\d.,]+)\s*(m²|m2|qm)",
    re.IGNORECASE,
)

DATE_FORMATS = ("%Y-%m-%d", "%d.%m.%Y", "%d/%m/%Y", "%Y/%m/%d")


def parse_euro_amount(raw: str) -> str:
    """'350.000' -> '350000', '1.234,50' -> '1234.5'."""
    value = float(raw.replace(".", "").replace(",", "."))
    return str(value) if value != int(value) else str(int(value))


def extract_price(text: str) -> str:
    m = _PRICE_RE.search(text or "")
    if not m:
        raise ValueError("Price not found in text")
    return parse_euro_amount(m.group(1))


def extract_location(text: str) -> str:
    m = _LOCATION_RE.search(text or "")
    if not m:
        raise ValueError("Location not found in text")
    return m.group(1)


def extract_property_type(text: str) -> Optional[str]:
    m = _TYPE_RE.search(text or "")
    return m.group(1) if m else None


def _size(regex: re.Pattern, text: str) -> Optional[str]:
    m = regex.search(text or "")
    if not m:
        return None
    return f"{m.group(1)} m²"


def extract_living_size_from_text(text: str) -> Optional[str]:
    return _size(_LIVING_RE, text)


def extract_ground_size_from_text(text: str) -> Optional[str]:
    return _size(_GROUND_RE, text)


def parse_date_string(raw: Optional[str]) -> Optional[date]:
    if not raw:
        return None
    raw = raw.strip()
    # ISO timestamps like 2025-07-25T10:00:00+02:00
    if "T" in raw:
        raw = raw.split("T", 1)[0]
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(raw, fmt).date()
        except ValueError:
            continue
    return None
