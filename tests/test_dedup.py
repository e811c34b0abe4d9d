# File: tests/test_dedup.py
from site_mirror.crawler.dedup import DedupStore


def test_claims_are_first_come():
    store = DedupStore()
    assert store.try_claim_asset("https://example.com/a.png")
    assert not store.try_claim_asset("https://example.com/a.png")
    assert store.has_asset("https://example.com/a.png")
    assert store.asset_count == 1


def test_script_claims_are_separate_from_assets():
    store = DedupStore()
    assert store.try_claim_asset("https://example.com/app.js")
    assert store.try_claim_script("https://example.com/app.js")
    assert not store.try_claim_script("https://example.com/app.js")
    assert store.script_count == 1


def test_failed_urls():
    store = DedupStore()
    assert not store.has_failed("https://example.com/x.css")
    store.mark_failed("https://example.com/x.css")
    assert store.has_failed("https://example.com/x.css")
