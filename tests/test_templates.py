from datetime import datetime
from pathlib import Path

from markupsafe import Markup

from folio.content import ContentUnitBuilder, render_unit
from folio.html_writer import TocEntry
from folio.layouts import Layout
from folio.taxonomy import build_taxonomy
from folio.templates import (
    TemplateEngine,
    build_page_context,
    build_site_context,
    render_toc,
)


def rendered(unit_id, text):
    return render_unit(ContentUnitBuilder(Path("site")).build_from_text(unit_id, text))


POSTS = [
    rendered("_posts/2024-01-01-first.md", "---\ntitle: First\ncategories: Swift\n---\nOne"),
    rendered("_posts/2024-02-01-second.md", "---\ntitle: Second\ncategories: Swift\n---\nTwo"),
    rendered("_posts/2024-03-01-third.md", "---\ntitle: Third\ntags: [news]\n---\nThree"),
    rendered("about.md", "---\ntitle: About\nsubtitle: Who we are\n---\n## Team\n"),
]

PERMALINKS = {
    "_posts/2024-01-01-first.md": "/2024/01/01/first/",
    "_posts/2024-02-01-second.md": "/2024/02/01/second/",
    "_posts/2024-03-01-third.md": "/2024/03/01/third/",
    "about.md": "/about/",
}


def site_context(config=None):
    return build_site_context(
        config or {"title": "Notes"},
        POSTS,
        PERMALINKS,
        build_taxonomy(r.unit for r in POSTS),
    )


def test_render_toc_nests_by_level():
    toc = [TocEntry("a", "A", 2), TocEntry("b", "B & C", 3), TocEntry("d", "D", 2)]
    assert render_toc(toc) == Markup(
        '<ul><li><a href="#a">A</a><ul><li><a href="#b">B &amp; C</a></li></ul></li>'
        '<li><a href="#d">D</a></li></ul>'
    )
    assert render_toc([]) == Markup("")


def test_url_for(tmp_path):
    engine = TemplateEngine(tmp_path, {})
    assert engine.url_for("assets/app.js") == "/assets/app.js"
    assert engine.url_for("http://cdn.com/lib.js") == "http://cdn.com/lib.js"
    assert engine.url_for("/about/") == "/about/"

    engine = TemplateEngine(tmp_path, {"url": "https://example.com/"})
    assert engine.url_for("/about/") == "https://example.com/about/"


def test_site_context_lists_posts_newest_first():
    site = site_context()
    assert site["title"] == "Notes"
    assert [p["title"] for p in site["posts"]] == ["Third", "Second", "First"]
    assert [p["title"] for p in site["pages"]] == ["About"]
    assert [p["url"] for p in site["categories"]["Swift"]] == [
        "/2024/02/01/second/",
        "/2024/01/01/first/",
    ]
    assert [p["title"] for p in site["tags"]["news"]] == ["Third"]


def test_page_context_links_neighbours():
    site = site_context()
    second = next(r for r in POSTS if r.unit.title == "Second")
    page = build_page_context(second, PERMALINKS[second.id], site)
    assert page["url"] == "/2024/02/01/second/"
    assert page["date"] == datetime(2024, 2, 1)
    assert page["categories"] == ["Swift"]
    assert page["previous"]["title"] == "First"
    assert page["next"]["title"] == "Third"

    newest = next(r for r in POSTS if r.unit.title == "Third")
    page = build_page_context(newest, PERMALINKS[newest.id], site)
    assert page["next"] is None
    assert page["previous"]["title"] == "Second"


def test_page_context_exposes_front_matter_and_toc():
    about = POSTS[-1]
    page = build_page_context(about, "/about/", site_context())
    assert page["subtitle"] == "Who we are"
    assert page["kind"] == "page"
    assert page["previous"] is None and page["next"] is None
    assert page["toc"] == [TocEntry("team", "Team", 2)]


def test_render_layout_with_helpers(tmp_path):
    engine = TemplateEngine(tmp_path, {"url": "https://example.com"})
    layout = Layout(
        "default",
        '<nav>{{ render_toc(page.toc) }}</nav><a href="{{ url_for(page.url) }}">'
        "{{ page.title }}</a>{{ content }}",
    )
    about = POSTS[-1]
    page = build_page_context(about, "/about/", site_context())
    html = engine.render_layout(layout, Markup(about.html), {"page": page})
    assert '<nav><ul><li><a href="#team">Team</a></li></ul></nav>' in html
    assert '<a href="https://example.com/about/">About</a>' in html
    assert '<h2 id="team">Team</h2>' in html


def test_includes_are_available(tmp_path):
    (tmp_path / "_includes").mkdir()
    (tmp_path / "_includes" / "footer.html").write_text(
        "<footer>{{ site.title }}</footer>", encoding="utf-8"
    )
    engine = TemplateEngine(tmp_path, {})
    layout = Layout("default", '{{ content }}{% include "footer.html" %}')
    html = engine.render_layout(layout, Markup("<p>x</p>"), {"site": {"title": "Notes"}})
    assert html == "<p>x</p><footer>Notes</footer>"


def test_listing_template(tmp_path):
    engine = TemplateEngine(tmp_path, {})
    site = site_context()
    html = engine.render_listing(
        {"term": "Swift", "taxonomy": "category", "units": site["categories"]["Swift"]}
    )
    assert "<h1>Swift</h1>" in html
    assert '<a href="/2024/02/01/second/">Second</a>' in html
    assert html.index("Second") < html.index("First")
    assert '<time datetime="2024-02-01">' in html


def test_pygments_css_helper(tmp_path):
    engine = TemplateEngine(tmp_path, {})
    layout = Layout("default", "<style>{{ pygments_css() }}</style>{{ content }}")
    html = engine.render_layout(layout, Markup(""), {})
    assert ".highlight" in html
