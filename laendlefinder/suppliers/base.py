from abc import ABC, abstractmethod
from datetime import date
from typing import Callable, Iterable, List, Optional, Sequence

import requests
from loguru import logger

from laendlefinder.core.errors import FetchError
from laendlefinder.models import ListingSnapshot, ListingStatus
from laendlefinder.utils.urls import belongs_to, canonicalize

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
)

# New mode stops after this many listing pages without an unseen URL
STALE_PAGE_LIMIT = 5


class Supplier(ABC):
    request_delay: float = 0.1
    stale_page_limit: int = STALE_PAGE_LIMIT
    timeout: float = 30

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        *,
        user_agent: str = DEFAULT_USER_AGENT,
        stale_page_limit: Optional[int] = None,
        clock: Callable[[], date] = date.today,
        log=None,
    ):
        # Reuse a session for keep-alive + connection pooling
        self._session = session or requests.Session()
        self._session.headers.setdefault("User-Agent", user_agent)
        if stale_page_limit is not None:
            self.stale_page_limit = stale_page_limit
        self._clock = clock
        self.log = log or logger.bind(source=self.name)

    @property
    @abstractmethod
    def name(self) -> str:
        """Short unique supplier name, e.g. 'vol'."""

    @property
    @abstractmethod
    def base_url_marker(self) -> str:
        """Substring identifying this origin's URLs, e.g. 'vol.at'."""

    @abstractmethod
    def listing_page_url(self, page: int) -> str:
        """URL of the 1-based listing (index) page."""

    @abstractmethod
    def parse_listing_page(self, html: str) -> Sequence[str]:
        """Listing URLs found on one index page, in page order."""

    @abstractmethod
    def fetch_one(self, url: str) -> ListingSnapshot:
        """Fetch and extract one listing. Raises FetchError."""

    # ---- shared plumbing ----

    def observation_date(self, status: ListingStatus) -> Optional[date]:
        # a vanished listing is not a confirmation of presence
        if status is ListingStatus.UNAVAILABLE:
            return None
        return self._clock()

    def check_url(self, url: str) -> None:
        if not belongs_to(url, self.base_url_marker):
            raise FetchError(url, f"URL does not match the base URL of the scraper: {self.base_url_marker}")

    def get(self, url: str, **kwargs) -> requests.Response:
        return self._session.get(url, timeout=self.timeout, **kwargs)

    def fetch_listing_page(self, page: int) -> List[str]:
        url = self.listing_page_url(page)
        self.log.debug("Fetching listing page {}", url)
        resp = self.get(url)
        resp.raise_for_status()
        return [canonicalize(u) for u in self.parse_listing_page(resp.text)]

    def enumerate_candidates(self, known: Iterable[str], max_pages: Optional[int] = None,
                             on_page: Optional[Callable[[int, int, int], None]] = None) -> List[str]:
        """Walk listing pages and return discovered URLs in discovery order.

        With max_pages set, pages 1..max_pages are walked. Without it the walk
        continues until `stale_page_limit` consecutive pages bring no URL
        outside `known`. Either way it stops early on an empty page or a page
        that fails to load.
        """
        known = {canonicalize(u) for u in known}
        found: List[str] = []
        seen = set()
        stale = 0
        page = 1
        while max_pages is None or page <= max_pages:
            try:
                urls = self.fetch_listing_page(page)
            except (requests.RequestException, ValueError, KeyError, TypeError, AttributeError) as e:
                self.log.warning("Error scraping listing page {}: {}", page, e)
                break
            if not urls:
                self.log.debug("No more properties found on page {}, stopping", page)
                break

            unseen = 0
            for u in urls:
                if u in seen:
                    continue
                seen.add(u)
                found.append(u)
                if u not in known:
                    unseen += 1

            new_total = sum(1 for u in found if u not in known)
            if on_page:
                on_page(page, len(found), new_total)
            self.log.debug("Page {}: {} urls, {} unseen", page, len(urls), unseen)

            if max_pages is None:
                stale = 0 if unseen else stale + 1
                if stale >= self.stale_page_limit:
                    self.log.debug("{} consecutive pages without new listings, stopping", stale)
                    break
            page += 1
        return found
