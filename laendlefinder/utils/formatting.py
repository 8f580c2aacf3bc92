import sys
from typing import Sequence, TextIO

MAX_URL_WIDTH = 70
RULE = "─" * 80


def truncate_url(url: str, width: int = MAX_URL_WIDTH) -> str:
    return url if len(url) <= width else url[: width - 3] + "..."


def progress_bar(done: int, total: int, width: int = 30) -> str:
    filled = width * done // total if total else width
    pct = 100 * done // total if total else 100
    return f"[{'█' * filled}{'░' * (width - filled)}] {done}/{total} ({pct}%)"


class Reporter:
    """Progress hooks called by the run sequencer. Silent by default."""

    def loaded(self, total: int) -> None:
        pass

    def page_scanned(self, page: int, urls_found: int, new_urls: int) -> None:
        pass

    def frontier_selected(self, frontier) -> None:
        pass

    def start(self, url: str, index: int, total: int) -> None:
        pass

    def succeeded(self, url: str, inserted: bool) -> None:
        pass

    def failed(self, url: str, reason: str) -> None:
        pass

    def summary(self, summary) -> None:
        pass


class ConsoleReporter(Reporter):
    """Plain terminal output: one line per listing plus a closing summary."""

    def __init__(self, stream: TextIO = None):
        self.stream = stream or sys.stdout

    def _print(self, line: str = "") -> None:
        print(line, file=self.stream, flush=True)

    def loaded(self, total: int) -> None:
        self._print(f"📁 Loaded {total} existing properties")

    def page_scanned(self, page: int, urls_found: int, new_urls: int) -> None:
        self._print(f"⏳ Page {page}: {urls_found} URLs gathered, {new_urls} new")

    def frontier_selected(self, frontier) -> None:
        if frontier.discovered:
            self._print(f"🔎 {len(frontier.urls)} new, {frontier.known_count} known "
                        f"({len(frontier.touched)} marked as seen)")
        else:
            self._print(f"🔁 {len(frontier.urls)} properties selected ({frontier.mode.value})")

    def start(self, url: str, index: int, total: int) -> None:
        self._print(f"🔄 {progress_bar(index, total)} {truncate_url(url)}")

    def succeeded(self, url: str, inserted: bool) -> None:
        self._print(f"  ✅ {'added' if inserted else 'updated'} {truncate_url(url)}")

    def failed(self, url: str, reason: str) -> None:
        self._print(f"  ❌ {truncate_url(url)}")

    def summary(self, summary) -> None:
        line = f"✅ Scraping completed: {summary.succeeded} successful"
        if summary.failed:
            line += f", {summary.failed} failed"
        line += f" | DB: {summary.catalog_size} total"
        self._print(RULE)
        self._print(line)
        self.failure_report(summary.failures)

    def failure_report(self, failures: Sequence) -> None:
        if not failures:
            return
        self._print()
        self._print(f"❌ Failure Report ({len(failures)} failed URLs):")
        for f in failures:
            self._print(f"  • {f.url}")
            self._print(f"    Reason: {f.reason}")
