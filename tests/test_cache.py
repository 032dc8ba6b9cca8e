"""
Tests for the per-resource result cache.
"""

import pytest

from postpilot.models import FaqItem, Feature, LinkSuggestion
from postpilot.storage import CacheLayer, KVCache
from postpilot.storage.cache import cache_key


@pytest.fixture
def cache(store):
    return CacheLayer(store, ttl=3600)


class TestCacheLayer:
    """get / put / invalidate"""

    def test_miss(self, cache):
        """Nothing cached yet."""
        assert cache.get(1, Feature.FAQ) is None

    def test_faq_items_come_back_as_items(self, cache):
        """FAQ lists survive the JSON round trip as FaqItem objects."""
        cache.put(1, Feature.FAQ, [FaqItem("Q", "A")])
        assert cache.get(1, Feature.FAQ) == [FaqItem("Q", "A")]

    def test_links_come_back_as_suggestions(self, cache):
        """Link lists come back as LinkSuggestion objects."""
        cache.put(1, Feature.LINKS, [LinkSuggestion("Python", 5)])
        assert cache.get(1, Feature.LINKS) == [LinkSuggestion("Python", 5)]

    def test_features_are_separate(self, cache):
        """Each feature has its own entry for the same resource."""
        cache.put(1, Feature.SUMMARY, "Short.")
        assert cache.get(1, Feature.FAQ) is None
        assert cache.get(1, Feature.SUMMARY) == "Short."

    def test_entry_expires_after_ttl(self, cache, clock):
        """Entries are gone once the TTL has passed."""
        cache.put(1, Feature.SUMMARY, "Short.")
        clock.advance(3599)
        assert cache.get(1, Feature.SUMMARY) == "Short."
        clock.advance(1)
        assert cache.get(1, Feature.SUMMARY) is None

    def test_ttl_override(self, cache, clock):
        """put() accepts a TTL for one entry."""
        cache.put(1, Feature.SUMMARY, "Short.", ttl=10)
        clock.advance(10)
        assert cache.get(1, Feature.SUMMARY) is None

    def test_invalidate_clears_all_features(self, cache):
        """invalidate() drops FAQ, summary and links together."""
        cache.put(7, Feature.FAQ, [FaqItem("Q", "A")])
        cache.put(7, Feature.SUMMARY, "Short.")
        cache.put(7, Feature.LINKS, [LinkSuggestion("Python", 5)])
        cache.put(8, Feature.SUMMARY, "Other resource.")

        cache.invalidate(7)

        for feature in Feature:
            assert cache.get(7, feature) is None
        assert cache.get(8, Feature.SUMMARY) == "Other resource."

    def test_unreadable_entry_is_discarded(self, cache, store):
        """A corrupt entry is treated as a miss and removed."""
        KVCache(store).set(cache_key(1, Feature.FAQ), [{"wrong": "shape"}], 100)
        assert cache.get(1, Feature.FAQ) is None
        assert KVCache(store).get(cache_key(1, Feature.FAQ)) is None

    def test_key_layout(self):
        """Keys are feature then resource."""
        assert cache_key(42, Feature.FAQ) == "faq_42"
        assert cache_key("42", Feature.LINKS) == "links_42"
