from datetime import datetime

from folio.feeds import (
    FeedItem,
    RSSGenerator,
    SitemapGenerator,
    create_default_feed_registry,
)

CONFIG = {"url": "https://example.com/", "title": "Swift & Friends"}

ITEMS = [
    FeedItem("About", "/about/", "page"),
    FeedItem("Older", "/2024/01/01/older/", "post", datetime(2024, 1, 1), "Old <news>"),
    FeedItem("Newer & Better", "/2024/02/01/newer/", "post", datetime(2024, 2, 1)),
    FeedItem("Swift", "/categories/Swift/", "listing"),
]


def test_feeds_need_a_base_url(tmp_path):
    assert SitemapGenerator().generate(ITEMS, {}) is None
    assert RSSGenerator().generate(ITEMS, {"url": ""}) is None
    assert create_default_feed_registry().generate_all(tmp_path, ITEMS, {}) == []
    assert list(tmp_path.iterdir()) == []


def test_sitemap_lists_every_document():
    xml = SitemapGenerator().generate(ITEMS, CONFIG)
    assert xml.startswith('<?xml version="1.0" encoding="UTF-8"?>')
    assert "<loc>https://example.com/about/</loc>" in xml
    assert "<loc>https://example.com/categories/Swift/</loc>" in xml
    assert (
        "<url><loc>https://example.com/2024/02/01/newer/</loc>"
        "<lastmod>2024-02-01</lastmod></url>" in xml
    )


def test_rss_contains_posts_newest_first_escaped():
    xml = RSSGenerator().generate(ITEMS, CONFIG)
    assert "<title>Swift &amp; Friends</title>" in xml
    assert "About" not in xml
    assert xml.index("Newer &amp; Better") < xml.index("Older")
    assert "<description>Old &lt;news&gt;</description>" in xml
    assert "<pubDate>Mon, 01 Jan 2024 00:00:00 +0000</pubDate>" in xml


def test_rss_is_limited():
    posts = [
        FeedItem(f"Post {day}", f"/2024/01/{day:02d}/", "post", datetime(2024, 1, day))
        for day in range(1, 26)
    ]
    xml = RSSGenerator(limit=20).generate(posts, CONFIG)
    assert xml.count("<item>") == 20
    assert "Post 25" in xml
    assert "<title>Post 5</title>" not in xml


def test_registry_writes_files(tmp_path):
    generated = create_default_feed_registry().generate_all(tmp_path, ITEMS, CONFIG)
    assert generated == ["sitemap.xml", "rss.xml"]
    assert (tmp_path / "sitemap.xml").read_text(encoding="utf-8").endswith("</urlset>\n")
    assert (tmp_path / "rss.xml").exists()
