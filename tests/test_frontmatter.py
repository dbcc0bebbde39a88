from datetime import date

import pytest

from folio.errors import MalformedFrontMatter
from folio.frontmatter import dump_front_matter, parse_front_matter


def test_parse_front_matter_splits_metadata_and_body():
    text = "---\ntitle: Hello\ntags: [swift, ios]\n---\n# Heading\n\nBody\n"
    meta, body = parse_front_matter(text)
    assert meta == {"title": "Hello", "tags": ["swift", "ios"]}
    assert body == "# Heading\n\nBody\n"


def test_parse_front_matter_accepts_dots_and_bom():
    meta, body = parse_front_matter("\ufeff---\ntitle: Dots\n...\nBody")
    assert meta == {"title": "Dots"}
    assert body == "Body"


def test_empty_block_gives_empty_mapping():
    meta, body = parse_front_matter("---\n---\nJust body")
    assert meta == {}
    assert body == "Just body"


def test_body_may_contain_horizontal_rules():
    meta, body = parse_front_matter("---\ntitle: Rules\n---\nAbove\n\n---\n\nBelow\n")
    assert meta == {"title": "Rules"}
    assert body == "Above\n\n---\n\nBelow\n"


@pytest.mark.parametrize(
    "text",
    [
        "# No front matter\n",
        "---\ntitle: never closed\nbody\n",
        "---\ntitle: [unclosed\n---\nbody\n",
        "---\n- just\n- a list\n---\nbody\n",
        "---\nplain scalar\n---\nbody\n",
    ],
)
def test_malformed_front_matter_is_rejected(text):
    with pytest.raises(MalformedFrontMatter) as excinfo:
        parse_front_matter(text, "_posts/2024-01-01-bad.md")
    assert excinfo.value.unit_id == "_posts/2024-01-01-bad.md"
    assert "_posts/2024-01-01-bad.md" in str(excinfo.value)


def test_dump_then_parse_keeps_every_known_key():
    meta = {
        "title": "Mastering Optionals in Swift",
        "date": date(2024, 1, 1),
        "layout": "post",
        "categories": ["Swift", "iOS"],
        "tags": ["optionals"],
        "permalink": "/swift/:title/",
        "published": False,
        "slug": "optionals",
        "excerpt": "Unwrapping, safely: a tour.",
    }
    body = "Intro\n\n```swift\nlet x: Int? = nil\n```\n"
    parsed, parsed_body = parse_front_matter(dump_front_matter(meta, body))
    assert parsed == meta
    assert parsed_body == body


def test_dump_empty_metadata():
    text = dump_front_matter({}, "Body")
    assert text == "---\n---\nBody"
    assert parse_front_matter(text) == ({}, "Body")
