"""One crawl execution: load, select, fetch/reconcile/checkpoint, summarize."""
from __future__ import annotations

import time
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Callable, List, Optional

from loguru import logger

from laendlefinder.core import reconcile
from laendlefinder.core.errors import FetchError, SingleTargetError
from laendlefinder.core.frontier import (Frontier, FrontierRequest, Mode,
                                         select_frontier)
from laendlefinder.core.storage import CatalogStore
from laendlefinder.models import Catalog
from laendlefinder.suppliers.base import Supplier
from laendlefinder.utils.formatting import Reporter
from laendlefinder.utils.urls import canonicalize


@dataclass(frozen=True)
class FailedItem:
    url: str
    reason: str


@dataclass
class RunSummary:
    mode: Mode
    candidates: int = 0
    scraped: List[str] = field(default_factory=list)
    inserted: int = 0
    updated: int = 0
    touched: int = 0
    failures: List[FailedItem] = field(default_factory=list)
    catalog_size: int = 0

    @property
    def succeeded(self) -> int:
        return len(self.scraped)

    @property
    def failed(self) -> int:
        return len(self.failures)


class RunSequencer:
    """Drives a supplier over the catalog, one listing at a time.

    Every successful fetch is merged and the whole catalog written before the
    next request, so an interrupted run keeps everything scraped so far.
    """

    def __init__(
        self,
        supplier: Supplier,
        store: CatalogStore,
        *,
        reporter: Optional[Reporter] = None,
        request_delay: Optional[float] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], date] = date.today,
        log=None,
    ):
        self.supplier = supplier
        self.store = store
        self.reporter = reporter or Reporter()
        self.request_delay = supplier.request_delay if request_delay is None else request_delay
        self._sleep = sleep
        self._clock = clock
        self.log = log or logger.bind(source=supplier.name)

    def run(self, request: FrontierRequest) -> RunSummary:
        today = self._clock()
        catalog = self.store.load()
        self.reporter.loaded(len(catalog))
        self.log.info("Loaded {} catalog entries from {}", len(catalog), self.store.path)

        frontier = select_frontier(catalog, self.supplier, request, today=today,
                                   on_page=self.reporter.page_scanned)
        self.reporter.frontier_selected(frontier)
        if frontier.touched:
            self.log.info("{} known listings re-observed, refreshing last_seen", len(frontier.touched))
            self.store.save(catalog)

        summary = RunSummary(mode=request.mode, candidates=len(frontier.urls), touched=len(frontier.touched))
        if frontier.empty:
            self.log.info("Nothing to fetch")
        else:
            self._fetch_all(frontier, catalog, summary, today)

        summary.catalog_size = len(catalog)
        self.reporter.summary(summary)
        self.log.info("Run finished: {} successful, {} failed, {} in catalog",
                      summary.succeeded, summary.failed, summary.catalog_size)

        if request.mode is Mode.SINGLE_TARGET and summary.failures:
            first = summary.failures[0]
            raise SingleTargetError(first.url, first.reason)
        return summary

    def update_single(self, url: str) -> RunSummary:
        """Re-check one listing: fetch it, reconcile in place (or append), persist."""
        return self.run(FrontierRequest(mode=Mode.SINGLE_TARGET, target_url=url))

    def _fetch_all(self, frontier: Frontier, catalog: Catalog, summary: RunSummary, today: date) -> None:
        total = len(frontier.urls)
        for i, url in enumerate(frontier.urls):
            if i:
                self._sleep(self.request_delay)
            self.reporter.start(url, i, total)
            try:
                snapshot = self.supplier.fetch_one(url)
            except FetchError as e:
                self.log.warning("Error scraping {}: {}", url, e.reason)
                summary.failures.append(FailedItem(url, e.reason))
                self.reporter.failed(url, e.reason)
                continue

            if canonicalize(snapshot.url) != url:
                snapshot = replace(snapshot, url=url)
            merged = reconcile.merge(catalog.get(url), snapshot, today)
            inserted = catalog.upsert(merged)
            self.store.save(catalog)

            summary.scraped.append(url)
            if inserted:
                summary.inserted += 1
            else:
                summary.updated += 1
            self.reporter.succeeded(url, inserted)
            self.log.debug("Saved {} ({})", url, merged.listing_status.token)
