import logging
from pathlib import Path

import pytest

from folio.build import DEFAULT_CONFIG, build_site, load_config, run_parallel
from folio.errors import (
    AmbiguousPermalink,
    BuildError,
    LayoutCycle,
    UnknownLayout,
    UnterminatedCodeBlock,
)
from folio.nodes import CodeBlock


def write(root: Path, rel: str, text: str) -> None:
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def create_site(tmp_path: Path) -> Path:
    site = tmp_path / "site"
    write(site, "folio.yaml", "title: Swift Notes\nurl: https://example.com\n")
    write(
        site,
        "_layouts/default.html",
        "<html><head><title>{{ page.title }} | {{ site.title }}</title></head>"
        "<body>{{ content }}</body></html>",
    )
    write(
        site,
        "_layouts/post.html",
        "---\nlayout: default\n---\n"
        "<article><h1>{{ page.title }}</h1>{{ content }}"
        '<p class="nav">{% if page.previous %}{{ page.previous.title }}{% endif %}</p>'
        "</article>",
    )
    write(
        site,
        "_posts/2024-01-01-mastering-optionals.md",
        "---\n"
        "title: Mastering Optionals in Swift\n"
        "date: 2024-01-01\n"
        "categories: [Swift, iOS]\n"
        "tags: [optionals]\n"
        "layout: post\n"
        "---\n"
        "Optionals in depth.\n"
        "\n"
        "```swift\n"
        "if let name { print(name) }\n"
        "```\n",
    )
    write(
        site,
        "_posts/2024-02-10-result-builders.md",
        "---\ntitle: Result Builders\ncategories: Swift\nlayout: post\n---\nBuilders.\n",
    )
    write(site, "about.md", "---\ntitle: About\nlayout: default\n---\nWho we are.\n")
    write(site, "draft.md", "---\ntitle: Draft\npublished: false\n---\nNot yet.\n")
    return site


def test_build_site_end_to_end(tmp_path):
    site = create_site(tmp_path)
    output = tmp_path / "output"
    result = build_site(site, output)

    optionals_id = "_posts/2024-01-01-mastering-optionals.md"
    builders_id = "_posts/2024-02-10-result-builders.md"
    assert [r.id for r in result.units] == [optionals_id, builders_id, "about.md"]
    assert result.permalinks[optionals_id] == "/2024/01/01/mastering-optionals-in-swift/"
    assert result.taxonomy.categories["Swift"] == (builders_id, optionals_id)
    assert result.taxonomy.categories["iOS"] == (optionals_id,)

    optionals = next(r for r in result.units if r.id == optionals_id)
    assert CodeBlock("swift", "if let name { print(name) }") in optionals.tree

    post_html = (output / "2024/01/01/mastering-optionals-in-swift/index.html").read_text(
        encoding="utf-8"
    )
    assert post_html.startswith(
        "<html><head><title>Mastering Optionals in Swift | Swift Notes</title>"
    )
    assert "<article><h1>Mastering Optionals in Swift</h1>" in post_html
    assert 'class="highlight"' in post_html

    builders_html = (output / "2024/02/10/result-builders/index.html").read_text(
        encoding="utf-8"
    )
    assert '<p class="nav">Mastering Optionals in Swift</p>' in builders_html

    assert (output / "about/index.html").exists()
    assert not (output / "draft").exists()

    listing = (output / "categories/Swift/index.html").read_text(encoding="utf-8")
    assert listing.index("Result Builders") < listing.index("Mastering Optionals")
    assert 'href="https://example.com/2024/02/10/result-builders/"' in listing
    assert (output / "categories/iOS/index.html").exists()
    assert (output / "tags/optionals/index.html").exists()

    assert result.feeds == ["sitemap.xml", "rss.xml"]
    rss = (output / "rss.xml").read_text(encoding="utf-8")
    assert "Result Builders" in rss and "About" not in rss
    assert result.output_dir == output


def test_unpublished_units_can_be_included(tmp_path):
    site = create_site(tmp_path)
    result = build_site(site, None, include_unpublished=True)
    assert "draft.md" in result.permalinks
    assert "draft.md" in result.documents


def test_check_mode_writes_nothing(tmp_path):
    site = create_site(tmp_path)
    result = build_site(site)
    assert result.output_dir is None
    assert result.feeds == []
    assert "category:Swift" in result.documents
    assert sorted(p.name for p in tmp_path.iterdir()) == ["site"]


def test_worker_count_does_not_change_output(tmp_path):
    site = create_site(tmp_path)
    single = build_site(site, workers=1)
    pooled = build_site(site, workers=4)
    assert single.documents == pooled.documents
    assert single.permalinks == pooled.permalinks


def test_duplicate_posts_are_ambiguous(tmp_path):
    site = create_site(tmp_path)
    write(
        site,
        "swift/_posts/2024-01-01-optionals-copy.md",
        "---\ntitle: Mastering Optionals in Swift\n---\nCopy.\n",
    )
    output = tmp_path / "output"
    with pytest.raises(AmbiguousPermalink) as excinfo:
        build_site(site, output)
    assert set(excinfo.value.unit_ids) == {
        "_posts/2024-01-01-mastering-optionals.md",
        "swift/_posts/2024-01-01-optionals-copy.md",
    }
    assert not output.exists()


def test_page_cannot_shadow_a_listing(tmp_path):
    site = create_site(tmp_path)
    write(site, "swift.md", "---\npermalink: /categories/Swift/\n---\nMine.\n")
    with pytest.raises(AmbiguousPermalink) as excinfo:
        build_site(site)
    assert set(excinfo.value.unit_ids) == {"swift.md", "category:Swift"}


def test_similar_terms_get_distinct_listings(tmp_path):
    site = create_site(tmp_path)
    write(site, "_posts/2024-03-01-cpp.md", "---\ntitle: Cpp\ntags: [C++, async/await]\n---\nA\n")
    write(site, "_posts/2024-03-02-cs.md", "---\ntitle: Cs\ntags: [C#, async-await]\n---\nB\n")
    write(site, "_posts/2024-03-03-c.md", "---\ntitle: C\ntags: [C]\n---\nC\n")
    output = tmp_path / "output"
    result = build_site(site, output)

    paths = {l.term: l.permalink for l in result.listings if l.taxonomy == "tag"}
    assert paths["C++"] == "/tags/C%2B%2B/"
    assert paths["C#"] == "/tags/C%23/"
    assert paths["C"] == "/tags/C/"
    assert paths["async/await"] == "/tags/async%2Fawait/"
    assert paths["async-await"] == "/tags/async-await/"
    assert "Cpp" in (output / "tags/C++/index.html").read_text(encoding="utf-8")
    assert "Cs" in (output / "tags/C#/index.html").read_text(encoding="utf-8")
    assert (output / "tags/async/await/index.html").exists()
    assert (output / "tags/async-await/index.html").exists()


def test_layout_cycle_fails_build(tmp_path):
    site = create_site(tmp_path)
    write(site, "_layouts/a.html", "---\nlayout: b\n---\n{{ content }}")
    write(site, "_layouts/b.html", "---\nlayout: a\n---\n{{ content }}")
    write(site, "loop.md", "---\nlayout: a\n---\nLoop.\n")
    with pytest.raises(LayoutCycle) as excinfo:
        build_site(site)
    assert excinfo.value.chain == ("a", "b", "a")
    assert excinfo.value.unit_id == "loop.md"


def test_unknown_layout_fails_build(tmp_path):
    site = create_site(tmp_path)
    write(site, "lost.md", "---\nlayout: nowhere\n---\nLost.\n")
    with pytest.raises(UnknownLayout) as excinfo:
        build_site(site)
    assert excinfo.value.unit_id == "lost.md"


def test_unterminated_code_block_fails_build(tmp_path):
    site = create_site(tmp_path)
    write(site, "broken.md", "---\ntitle: Broken\n---\n```swift\nlet x = 1\n")
    with pytest.raises(UnterminatedCodeBlock) as excinfo:
        build_site(site)
    assert excinfo.value.unit_id == "broken.md"
    assert excinfo.value.line == 4


def test_failed_build_leaves_output_untouched(tmp_path):
    site = create_site(tmp_path)
    output = tmp_path / "output"
    output.mkdir()
    (output / "keep.txt").write_text("previous build", encoding="utf-8")
    write(site, "broken.md", "no front matter")
    with pytest.raises(BuildError):
        build_site(site, output)
    assert (output / "keep.txt").read_text(encoding="utf-8") == "previous build"


def test_output_inside_source_is_not_read_back(tmp_path):
    site = create_site(tmp_path)
    output = site / "public"
    first = build_site(site, output)
    second = build_site(site, output)
    assert [r.id for r in second.units] == [r.id for r in first.units]
    assert (output / "about/index.html").exists()


def test_output_must_not_contain_source(tmp_path):
    site = create_site(tmp_path)
    with pytest.raises(BuildError):
        build_site(site, site)
    with pytest.raises(BuildError):
        build_site(site, tmp_path)


def test_missing_source_directory(tmp_path):
    with pytest.raises(BuildError):
        build_site(tmp_path / "nope")


def test_no_clean_keeps_existing_files(tmp_path):
    site = create_site(tmp_path)
    output = tmp_path / "output"
    output.mkdir()
    (output / "CNAME").write_text("example.com", encoding="utf-8")
    build_site(site, output, clean_output=False)
    assert (output / "CNAME").exists()
    build_site(site, output)
    assert not (output / "CNAME").exists()


def test_config_and_overrides(tmp_path):
    site = create_site(tmp_path)
    write(
        site,
        "folio.yaml",
        "permalink: /blog/:title/\ncategory_path: /topics/:name/\n"
        "category_layout: default\nworkers: 2\n",
    )
    output = tmp_path / "output"
    result = build_site(site, output, url="https://notes.example.org")
    assert result.config["workers"] == 2
    assert result.permalinks["_posts/2024-02-10-result-builders.md"] == (
        "/blog/result-builders/"
    )
    listing = (output / "topics/Swift/index.html").read_text(encoding="utf-8")
    assert listing.startswith("<html><head><title>Swift | </title>")
    assert 'href="https://notes.example.org/blog/result-builders/"' in listing
    assert (output / "sitemap.xml").exists()


def test_invalid_worker_count(tmp_path):
    site = create_site(tmp_path)
    write(site, "folio.yaml", "workers: 0\n")
    with pytest.raises(BuildError):
        build_site(site)


def test_load_config(tmp_path, caplog):
    assert load_config(tmp_path) == DEFAULT_CONFIG
    (tmp_path / "folio.yaml").write_text("- not\n- a mapping\n", encoding="utf-8")
    with caplog.at_level(logging.WARNING, logger="folio.build"):
        assert load_config(tmp_path) == DEFAULT_CONFIG
    assert "not a mapping" in caplog.text
    (tmp_path / "folio.yaml").write_text("title: [broken\n", encoding="utf-8")
    with pytest.raises(BuildError):
        load_config(tmp_path)


def test_run_parallel_keeps_order_and_raises_first_error():
    assert run_parallel(lambda x: x * 2, [3, 1, 2], workers=3) == [6, 2, 4]
    assert run_parallel(lambda x: x, []) == []

    def fail_on_two(x):
        if x == 2:
            raise ValueError("two")
        return x

    with pytest.raises(ValueError, match="two"):
        run_parallel(fail_on_two, [1, 2, 3], workers=1)
