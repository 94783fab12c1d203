"""Tests for the URL filter."""

import pytest

from config.settings import FilterConfig
from imaging.url_filter import UrlFilter, url_extension


@pytest.fixture
def flt():
    return UrlFilter(FilterConfig())


class TestUrlExtension:

    def test_plain(self):
        assert url_extension("https://x.com/a/b/photo.JPG") == "jpg"

    def test_query_ignored(self):
        assert url_extension("https://x.com/photo.png?w=800") == "png"

    def test_no_extension(self):
        assert url_extension("https://x.com/images/12345") is None


class TestUrlFilter:

    @pytest.mark.parametrize("url", [
        "https://cdn.example.com/p/harris-tip-2nx.jpg",
        "http://example.com/img/8f3e2b91.jpeg",
        "https://example.com/photo.png?size=1000",
        "https://example.com/media/12345",
        "https://example.com/silicone-mat.jpg",
        "https://cdn.example.com/p/low-profile-cutting-tip.jpg",
    ])
    def test_keeps_product_urls(self, flt, url):
        assert flt.check(url).keep, flt.check(url).reason

    def test_gif_dropped(self, flt):
        decision = flt.check("https://example.com/anim.gif")
        assert not decision.keep
        assert ".gif" in decision.reason

    @pytest.mark.parametrize("url", [
        "https://example.com/brand-logo.png",
        "https://example.com/assets/icons/cart.png",
        "https://example.com/p/thumb/widget.jpg",
        "https://example.com/p/widget_small.jpg",
        "https://example.com/placeholder.jpg",
        "https://example.com/category/tools.jpg",
        "https://example.com/users/profile/jane.jpg",
    ])
    def test_deny_terms(self, flt, url):
        assert not flt.allows(url)

    def test_thumbnail_dimensions(self, flt):
        assert not flt.allows("https://example.com/widget-150x150.jpg")
        assert flt.allows("https://example.com/widget-1000x1000.jpg")

    @pytest.mark.parametrize("url", [
        "",
        "   ",
        "not a url",
        "ftp://example.com/a.jpg",
        "https:///a.jpg",
        None,
    ])
    def test_malformed(self, flt, url):
        assert not flt.check(url).keep

    def test_filter_counts_and_order(self, flt):
        kept, rejected = flt.filter([
            "https://example.com/b.jpg",
            "https://example.com/logo.png",
            " https://example.com/a.png ",
            "https://example.com/c.webp",
        ])
        assert kept == ["https://example.com/b.jpg", "https://example.com/a.png"]
        assert rejected == 2

    def test_custom_extensions(self):
        flt = UrlFilter(FilterConfig(allowed_extensions=("webp",)))
        assert flt.allows("https://example.com/c.webp")
        assert not flt.allows("https://example.com/c.jpg")
