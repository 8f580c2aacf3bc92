import io
from datetime import date

import pytest

from fakes import TODAY, FakeSupplier, RecordingStore, entry, snapshot
from laendlefinder.core.errors import SingleTargetError
from laendlefinder.core.frontier import FrontierRequest, Mode
from laendlefinder.core.sequencer import RunSequencer
from laendlefinder.core.storage import CatalogStore
from laendlefinder.models import Catalog, ListingStatus
from laendlefinder.utils.formatting import ConsoleReporter

A = "https://example.com/a"
B = "https://example.com/b"
C = "https://example.com/c"


def make(tmp_path, supplier, catalog=None, reporter=None):
    store = RecordingStore(tmp_path / "properties.csv")
    if catalog is not None:
        CatalogStore(store.path).save(catalog)
    sleeps = []
    seq = RunSequencer(supplier, store, reporter=reporter, sleep=sleeps.append, clock=lambda: TODAY)
    return seq, store, sleeps


def test_every_success_is_checkpointed(tmp_path):
    supplier = FakeSupplier(pages={1: [A, B, C]}, listings={A: snapshot(A), B: snapshot(B), C: snapshot(C)})
    seq, store, _ = make(tmp_path, supplier)

    summary = seq.run(FrontierRequest())

    assert store.saves == [1, 2, 3]
    assert summary.inserted == 3
    assert summary.catalog_size == 3
    assert store.load().urls() == [A, B, C]


def test_failures_are_recorded_and_run_continues(tmp_path):
    supplier = FakeSupplier(pages={1: [A, B, C]}, listings={A: snapshot(A), C: snapshot(C)})
    seq, store, _ = make(tmp_path, supplier)

    summary = seq.run(FrontierRequest())

    assert supplier.fetched == [A, B, C]
    assert summary.succeeded == 2
    assert summary.failed == 1
    assert summary.failures[0].url == B
    assert summary.failures[0].reason == "not found"
    assert store.saves == [1, 2]


def test_requests_are_paced(tmp_path):
    supplier = FakeSupplier(pages={1: [A, B, C]}, listings={A: snapshot(A), C: snapshot(C)})
    seq, _, sleeps = make(tmp_path, supplier)
    seq.run(FrontierRequest())
    assert sleeps == [0.5, 0.5]


def test_request_delay_override(tmp_path):
    supplier = FakeSupplier(pages={1: [A, B]}, listings={A: snapshot(A), B: snapshot(B)})
    sleeps = []
    seq = RunSequencer(supplier, CatalogStore(tmp_path / "p.csv"), request_delay=2.0,
                       sleep=sleeps.append, clock=lambda: TODAY)
    seq.run(FrontierRequest())
    assert sleeps == [2.0]


def test_empty_frontier_leaves_catalog_alone(tmp_path):
    supplier = FakeSupplier(pages={})
    seq, store, _ = make(tmp_path, supplier, catalog=Catalog([entry(A)]))
    summary = seq.run(FrontierRequest())
    assert summary.candidates == 0
    assert summary.catalog_size == 1
    assert store.saves == []


def test_touched_entries_are_saved_before_fetching(tmp_path):
    supplier = FakeSupplier(pages={1: [A, B]}, listings={B: snapshot(B)})
    seq, store, _ = make(tmp_path, supplier, catalog=Catalog([entry(A, last_seen=date(2026, 9, 1))]))

    summary = seq.run(FrontierRequest())

    assert summary.touched == 1
    assert supplier.fetched == [B]
    assert store.saves == [1, 2]
    assert store.load().get(A).last_seen == TODAY


def test_refresh_updates_in_place(tmp_path):
    catalog = Catalog([entry(A, price="300000"), entry(B, price="200000")])
    supplier = FakeSupplier(listings={
        A: snapshot(A, price="290000"),
        B: snapshot(B, listing_status=ListingStatus.UNAVAILABLE, price="Unavailable", observed_on=None),
    })
    seq, store, _ = make(tmp_path, supplier, catalog=catalog)

    summary = seq.run(FrontierRequest(mode=Mode.REFRESH))

    assert summary.updated == 2 and summary.inserted == 0
    loaded = store.load()
    assert loaded.urls() == [A, B]
    assert loaded.get(A).price == "290000"
    assert loaded.get(A).last_seen == TODAY
    assert loaded.get(B).listing_status is ListingStatus.UNAVAILABLE
    assert loaded.get(B).price == "200000"
    assert loaded.get(B).last_seen == entry(B).last_seen


def test_snapshot_url_is_canonicalized(tmp_path):
    supplier = FakeSupplier(pages={1: [A]}, listings={A: snapshot(A + "?ref=1")})
    seq, store, _ = make(tmp_path, supplier)
    seq.run(FrontierRequest())
    assert store.load().urls() == [A]


def test_update_single_updates_existing_entry(tmp_path):
    supplier = FakeSupplier(listings={A: snapshot(A, price="1")})
    seq, store, _ = make(tmp_path, supplier, catalog=Catalog([entry(A), entry(B)]))

    summary = seq.update_single(A + "?utm=x")

    assert summary.updated == 1
    assert store.load().get(A).price == "1"
    assert len(store.load()) == 2


def test_update_single_appends_unknown_listing(tmp_path):
    supplier = FakeSupplier(listings={C: snapshot(C)})
    seq, store, _ = make(tmp_path, supplier, catalog=Catalog([entry(A)]))
    summary = seq.update_single(C)
    assert summary.inserted == 1
    assert store.load().urls() == [A, C]


def test_single_target_failure_reports_then_raises(tmp_path):
    out = io.StringIO()
    supplier = FakeSupplier()
    seq, store, _ = make(tmp_path, supplier, catalog=Catalog([entry(A)]), reporter=ConsoleReporter(out))

    with pytest.raises(SingleTargetError) as exc:
        seq.update_single(B)

    assert exc.value.url == B
    assert "Failed to scrape URL" in str(exc.value)
    assert "0 successful, 1 failed" in out.getvalue()
    assert store.saves == []
    assert store.load().urls() == [A]


def test_console_summary_lists_failures(tmp_path):
    out = io.StringIO()
    supplier = FakeSupplier(pages={1: [A, B]}, listings={A: snapshot(A)})
    seq, _, _ = make(tmp_path, supplier, reporter=ConsoleReporter(out))
    seq.run(FrontierRequest())
    text = out.getvalue()
    assert "✅ Scraping completed: 1 successful, 1 failed | DB: 1 total" in text
    assert "Failure Report (1 failed URLs)" in text
    assert f"• {B}" in text
    assert "Reason: not found" in text
