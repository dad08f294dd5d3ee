"""Tests for front matter parsing and serialisation."""

from __future__ import annotations

import pytest

from blogpress.errors import MalformedFrontMatter
from blogpress.frontmatter import FrontMatter, parse_front_matter, parse_list, serialize_front_matter


class TestParseFrontMatter:
    def test_no_opening_marker_means_empty_metadata(self) -> None:
        text = "# Just a heading\n\nSome text.\n"
        front_matter, body = parse_front_matter(text)
        assert len(front_matter) == 0
        assert body == text

    def test_horizontal_rule_later_in_file_is_not_front_matter(self) -> None:
        text = "Intro\n---\nmore\n"
        front_matter, body = parse_front_matter(text)
        assert len(front_matter) == 0
        assert body == text

    def test_parses_block_and_keeps_body_exact(self) -> None:
        raw = b"---\ntitle: Hello\nlayout: post\n---\n# Hi\n\n  indented\n"
        front_matter, body = parse_front_matter(raw)
        assert front_matter["title"] == "Hello"
        assert front_matter["layout"] == "post"
        assert body == "# Hi\n\n  indented\n"

    def test_key_order_is_preserved(self) -> None:
        front_matter, _ = parse_front_matter("---\nzeta: 1\nalpha: 2\nmid: 3\n---\n")
        assert list(front_matter) == ["zeta", "alpha", "mid"]

    def test_strips_byte_order_mark(self) -> None:
        front_matter, body = parse_front_matter("\ufeff---\ntitle: BOM\n---\nbody\n".encode("utf-8"))
        assert front_matter["title"] == "BOM"
        assert body == "body\n"

    def test_dot_closing_marker(self) -> None:
        front_matter, body = parse_front_matter("---\ntitle: Dots\n...\nbody\n")
        assert front_matter["title"] == "Dots"
        assert body == "body\n"

    def test_unclosed_block_is_malformed(self) -> None:
        with pytest.raises(MalformedFrontMatter, match="never closed"):
            parse_front_matter("---\ntitle: Hello\n\n# Body without closing marker\n")

    def test_invalid_yaml_is_malformed(self) -> None:
        with pytest.raises(MalformedFrontMatter):
            parse_front_matter("---\ntitle: [unclosed\n---\nbody\n")

    def test_non_mapping_block_is_malformed(self) -> None:
        with pytest.raises(MalformedFrontMatter, match="mapping"):
            parse_front_matter("---\n- a\n- b\n---\nbody\n")

    def test_nested_mapping_value_is_rejected(self) -> None:
        with pytest.raises(MalformedFrontMatter, match="author"):
            parse_front_matter("---\nauthor:\n  name: Someone\n---\nbody\n")

    def test_undecodable_bytes_are_malformed(self) -> None:
        with pytest.raises(MalformedFrontMatter, match="UTF-8"):
            parse_front_matter(b"---\ntitle: \xff\xfe\n---\n")

    def test_empty_block(self) -> None:
        front_matter, body = parse_front_matter("---\n---\nbody\n")
        assert len(front_matter) == 0
        assert body == "body\n"


class TestValueShapes:
    def test_dates_become_iso_strings(self) -> None:
        front_matter, _ = parse_front_matter("---\ndate: 2020-01-01\nupdated: 2020-01-02 10:30:00\n---\n")
        assert front_matter["date"] == "2020-01-01"
        assert front_matter["updated"] == "2020-01-02 10:30:00"

    def test_lists_become_string_tuples(self) -> None:
        front_matter, _ = parse_front_matter("---\ntags: [a, b, 3]\n---\n")
        assert front_matter["tags"] == ("a", "b", "3")

    def test_scalars_keep_their_type(self) -> None:
        front_matter, _ = parse_front_matter("---\ncomments: true\ncount: 3\nratio: 1.5\n---\n")
        assert front_matter["comments"] is True
        assert front_matter["count"] == 3
        assert front_matter["ratio"] == 1.5

    def test_null_values_are_dropped(self) -> None:
        front_matter, _ = parse_front_matter("---\ntitle: Hello\nexcerpt:\n---\n")
        assert "excerpt" not in front_matter

    def test_get_list_splits_comma_strings(self) -> None:
        front_matter = FrontMatter({"tags": "java, spring , junit"})
        assert front_matter.get_list("tags") == ["java", "spring", "junit"]
        assert front_matter.get_list("missing") == []

    def test_get_str_rejects_lists(self) -> None:
        front_matter = FrontMatter({"title": ["a", "b"]})
        with pytest.raises(MalformedFrontMatter, match="title"):
            front_matter.get_str("title")

    def test_get_bool(self) -> None:
        front_matter = FrontMatter({"comments": "yes", "draft": False})
        assert front_matter.get_bool("comments") is True
        assert front_matter.get_bool("draft") is False
        assert front_matter.get_bool("published", True) is True

    def test_is_immutable(self) -> None:
        front_matter = FrontMatter({"title": "x"})
        with pytest.raises(TypeError):
            front_matter["title"] = "y"  # type: ignore[index]

    def test_parse_list_brackets(self) -> None:
        assert parse_list("[a, 'b', \"c\"]") == ["a", "b", "c"]


class TestRoundTrip:
    @pytest.mark.parametrize(
        "text",
        [
            "---\ntitle: Hello\ndate: 2020-01-01\ntags: [a, b]\n---\n# Hi\n",
            "---\nlayout: post\ntitle: 'Spring Security: CSRF'\ncategories:\n  - java\n  - spring\n"
            "comments: true\nexcerpt: Configure it.\n---\nBody\n",
            "---\ntitle: \"true\"\ncount: 7\nratio: 0.25\nempty_list: []\n---\n",
            "---\ntitle: Multi\nsummary: |\n  line one\n  line two\n---\ntext\n",
            "no front matter at all\n",
        ],
    )
    def test_parse_serialize_parse_is_stable(self, text: str) -> None:
        front_matter, body = parse_front_matter(text)
        again, again_body = parse_front_matter(serialize_front_matter(front_matter, body))
        assert again == front_matter
        assert list(again) == list(front_matter)
        assert again_body == body

    def test_serialize_without_metadata_returns_body(self) -> None:
        assert serialize_front_matter(FrontMatter(), "body\n") == "body\n"

    def test_serialize_accepts_plain_mapping(self) -> None:
        text = serialize_front_matter({"title": "Hi", "tags": ["x"]})
        assert text.startswith("---\n")
        front_matter, _ = parse_front_matter(text)
        assert front_matter["tags"] == ("x",)
