import json
from typing import Any, Dict, Optional, Sequence

import requests
from bs4 import BeautifulSoup

from laendlefinder.core.errors import FetchError
from laendlefinder.models import ListingSnapshot, ListingStatus, PropertyType
from laendlefinder.suppliers.base import Supplier
from laendlefinder.utils import parsing

INDEX_URL = "https://www.vol.at/themen/grund-und-boden"

HEADLINE_SELECTORS = [
    "h1.article-headline",
    "h1",
    ".article-headline",
    ".headline",
    "header h1",
    "article h1",
]

GRUND_UND_BODEN_BLOCK = "russmedia/grund-und-boden"


class VolSupplier(Supplier):
    """vol.at "Grund und Boden": published property transactions (always sold)."""

    def __init__(self, session: Optional[requests.Session] = None, *, cookies: Optional[str] = None, **kwargs):
        super().__init__(session, **kwargs)
        if cookies:
            self._session.headers["Cookie"] = cookies.strip()

    @property
    def name(self) -> str:
        return "vol"

    @property
    def base_url_marker(self) -> str:
        return "vol.at"

    def listing_page_url(self, page: int) -> str:
        return INDEX_URL if page <= 1 else f"{INDEX_URL}?page={page}"

    def parse_listing_page(self, html: str) -> Sequence[str]:
        soup = BeautifulSoup(html, "html.parser")
        node = soup.select_one("#topicDataNode")
        if node is None:
            raise ValueError("Topic data script not found")
        data = json.loads(node.string or "")
        if not isinstance(data, dict):
            raise ValueError("Topic data is not a JSON object")
        raw = data.get("prefetchedRawData") or {}
        hits = (raw.get("hits") or []) if isinstance(raw, dict) else None
        if not isinstance(hits, list):
            raise ValueError("Unexpected hits in topic data")
        links = [h.get("link") for h in hits if isinstance(h, dict)]
        return [link.replace("\\/", "/") for link in links if isinstance(link, str) and link]

    def fetch_one(self, url: str) -> ListingSnapshot:
        self.check_url(url)
        try:
            resp = self.get(url)
            resp.raise_for_status()
            return self.parse_property_page(resp.text, url)
        except requests.RequestException as e:
            raise FetchError(url, f"Failed to fetch property page: {e}") from e
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise FetchError(url, str(e)) from e

    # ---- extraction ----

    def parse_property_page(self, html: str, url: str) -> ListingSnapshot:
        soup = BeautifulSoup(html, "html.parser")
        node = soup.select_one("#externalPostDataNode")
        if node is not None:
            self.log.debug("Found externalPostDataNode for {}", url)
            return self._from_post_json(json.loads(node.string or ""), url)

        self.log.debug("JavaScript data not found, falling back to HTML parsing")
        headline = ""
        for selector in HEADLINE_SELECTORS:
            el = soup.select_one(selector)
            if el is not None and el.get_text(strip=True):
                headline = el.get_text(" ", strip=True)
                break
        if not headline:
            raise ValueError("Headline not found with any selector")
        return self._snapshot(url, headline)

    def _from_post_json(self, data: Dict[str, Any], url: str) -> ListingSnapshot:
        post = data["content"]["data"]["post"]
        if not isinstance(post, dict):
            raise ValueError("Post not found in JSON data")
        title = post.get("title")
        if not title or not isinstance(title, str):
            raise ValueError("Title not found in JSON data")

        blocks = post.get("blocks")
        details = self._grund_und_boden(blocks if isinstance(blocks, list) else [])
        coords = details.get("coords")
        coordinates = None
        if isinstance(coords, dict) and all(isinstance(coords.get(k), (int, float)) for k in ("lat", "lng")):
            coordinates = (float(coords["lat"]), float(coords["lng"]))

        transaction_date = details.get("transactionDate")
        address = details.get("address")
        return self._snapshot(
            url,
            title,
            date=parsing.parse_date_string(transaction_date) if isinstance(transaction_date, str) else None,
            coordinates=coordinates,
            address=address if isinstance(address, str) and address else None,
            size_living=str(details["sizeLiving"]) if details.get("sizeLiving") else None,
        )

    @staticmethod
    def _grund_und_boden(blocks) -> Dict[str, Any]:
        for block in blocks:
            if not isinstance(block, dict) or block.get("ot") != GRUND_UND_BODEN_BLOCK:
                continue
            attrs = block.get("a")
            for attr in attrs if isinstance(attrs, list) else []:
                if isinstance(attr, dict) and attr.get("key") == "data" and isinstance(attr.get("value"), str):
                    try:
                        details = json.loads(attr["value"])
                    except json.JSONDecodeError:
                        return {}
                    return details if isinstance(details, dict) else {}
        return {}

    def _snapshot(self, url: str, title: str, **details) -> ListingSnapshot:
        price = parsing.extract_price(title)
        location = parsing.extract_location(title)
        type_word = parsing.extract_property_type(title)
        if type_word is None:
            # third word of the title is usually the object kind
            words = title.split()
            type_word = words[2] if len(words) >= 3 else "Grundstück"
        property_type = PropertyType.classify(type_word)
        if property_type is PropertyType.UNKNOWN:
            property_type = PropertyType.classify(title)

        status = ListingStatus.SOLD
        return ListingSnapshot(
            url=url,
            name=title,
            price=price,
            location=location,
            property_type=property_type,
            listing_status=status,
            observed_on=self.observation_date(status),
            **details,
        )
