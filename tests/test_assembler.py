"""Tests for output paths, layouts, indexes and collision detection."""

from __future__ import annotations

from pathlib import Path

import pytest

from blogpress.assembler import assemble, find_collisions, output_path, resolve_layout
from blogpress.content import PAGE, make_post
from blogpress.errors import MalformedFrontMatter, NotFound, UnknownLayout
from blogpress.index import RenderedPage, build_index
from blogpress.layouts import Layout, load_layouts
from blogpress.pipeline import render_post


def _post(name: str, front: str = "", body: str = "Body\n", kind: str = "post"):
    folder = "_posts" if kind == "post" else "_pages"
    text = f"---\n{front}\n---\n{body}" if front else body
    return make_post(Path(folder) / name, text, kind=kind)


@pytest.fixture
def layouts(config) -> dict[str, Layout]:
    return load_layouts(config.layouts)


class TestOutputPath:
    def test_default_permalink_uses_date_and_slug(self, config) -> None:
        assert output_path(_post("2020-01-02-hello.md"), config) == "2020/01/02/hello.html"

    def test_pretty_permalink_with_categories(self, make_config) -> None:
        config = make_config(permalink="/:categories/:year/:month/:day/:title/")
        post = _post("2020-01-02-hello.md", "categories: [Java, Spring Security]")
        assert output_path(post, config) == "java/spring-security/2020/01/02/hello/index.html"

    def test_front_matter_permalink(self, config) -> None:
        post = _post("2020-01-02-hello.md", "permalink: /notes/:slug")
        assert output_path(post, config) == "notes/hello.html"

    def test_page_keeps_its_relative_path(self, config) -> None:
        post = _post("guides/setup.md", "title: Setup", kind=PAGE)
        assert output_path(post, config) == "guides/setup.html"

    def test_page_permalink_directory(self, config) -> None:
        post = _post("about.md", "permalink: /about/", kind=PAGE)
        assert output_path(post, config) == "about/index.html"

    def test_permalink_cannot_escape_output(self, config) -> None:
        post = _post("2020-01-02-hello.md", "permalink: /../../etc/passwd")
        with pytest.raises(MalformedFrontMatter, match="leaves the output directory"):
            output_path(post, config)

    def test_same_inputs_same_path(self, config) -> None:
        post = _post("2020-01-02-hello.md", "title: Hello")
        assert output_path(post, config) == output_path(post, config)


class TestLayouts:
    def test_load_layouts_by_name(self, layouts) -> None:
        assert set(layouts) == {"default", "page", "post"}
        assert "{{content}}" in layouts["post"].template

    def test_layout_front_matter_is_stripped(self, tmp_path: Path) -> None:
        (tmp_path / "base.html").write_text("---\nauthor: x\n---\n<main>{{content}}</main>\n", encoding="utf-8")
        layout = load_layouts(tmp_path)["base"]
        assert layout.template == "<main>{{content}}</main>\n"

    def test_missing_layouts_directory(self, tmp_path: Path) -> None:
        with pytest.raises(NotFound):
            load_layouts(tmp_path / "missing")

    def test_default_layouts_by_kind(self, config, layouts) -> None:
        assert resolve_layout(_post("2020-01-01-a.md"), layouts, config).name == "post"
        assert resolve_layout(_post("a.md", "title: A", kind=PAGE), layouts, config).name == "page"

    def test_unknown_layout(self, config, layouts) -> None:
        post = _post("2020-01-01-a.md", "layout: missing")
        with pytest.raises(UnknownLayout) as excinfo:
            resolve_layout(post, layouts, config)
        assert excinfo.value.layout == "missing"
        assert excinfo.value.path == Path("_posts/2020-01-01-a.md")


class TestIndex:
    def test_groups_are_rebuilt_from_posts(self, config) -> None:
        entries = [
            render_post(_post("2020-01-01-a.md", "tags: [x, y]\ncategories: [c]"), config),
            render_post(_post("2020-02-01-b.md", "tags: [y]"), config),
            render_post(_post("about.md", "tags: [x]", kind=PAGE), config),
        ]
        index = build_index(entries)
        assert [entry.post.slug for entry in index.posts] == ["b", "a"]
        assert [entry.post.slug for entry in index.tags["x"]] == ["a"]
        assert [entry.post.slug for entry in index.tags["y"]] == ["b", "a"]
        assert [entry.post.slug for entry in index.categories["c"]] == ["a"]
        assert list(index.months) == ["2020-01", "2020-02"]

    def test_same_date_orders_by_source(self, config) -> None:
        entries = [render_post(_post(name), config) for name in ("2020-01-01-b.md", "2020-01-01-a.md")]
        assert [entry.post.slug for entry in build_index(entries).posts] == ["a", "b"]


class TestAssemble:
    def test_hello_post_scenario(self, config, layouts) -> None:
        post = _post("2020-01-01-hello.md", 'title: "Hello"\ndate: "2020-01-01"\ntags: [a, b]', "# Hi\n")
        assembly = assemble([render_post(post, config)], layouts, config)
        pages = {page.path: page.content.decode("utf-8") for page in assembly.pages}
        assert not assembly.errors
        assert ">Hi</h1>" in pages["2020/01/01/hello.html"]
        assert "<title>Hello | Test Blog</title>" in pages["2020/01/01/hello.html"]
        assert [entry.post.title for entry in assembly.index.tags["a"]] == ["Hello"]
        assert [entry.post.title for entry in assembly.index.tags["b"]] == ["Hello"]
        assert "../2020/01/01/hello.html" in pages["tags/a.html"]
        assert "../2020/01/01/hello.html" in pages["tags/b.html"]
        assert "2020/01/01/hello.html" in pages["index.html"]
        assert "https://example.org/2020/01/01/hello.html" in pages["feed.xml"]
        assert "https://example.org/2020/01/01/hello.html" in pages["sitemap.xml"]

    def test_unknown_layout_is_collected(self, config, layouts) -> None:
        good = render_post(_post("2020-01-01-good.md"), config)
        bad = render_post(_post("2020-01-02-bad.md", "layout: missing"), config)
        assembly = assemble([good, bad], layouts, config)
        paths = {page.path for page in assembly.pages}
        assert "2020/01/01/good.html" in paths
        assert "2020/01/02/bad.html" not in paths
        assert len(assembly.errors) == 1
        assert isinstance(assembly.errors[0], UnknownLayout)
        assert assembly.errors[0].path == Path("_posts/2020-01-02-bad.md")

    def test_neighbour_links(self, config, layouts) -> None:
        entries = [render_post(_post(f"2020-01-0{day}-p{day}.md"), config) for day in (1, 2, 3)]
        pages = {page.path: page.content.decode() for page in assemble(entries, layouts, config).pages}
        middle = pages["2020/01/02/p2.html"]
        assert 'rel="prev" href="../../../2020/01/01/p1.html"' in middle
        assert 'rel="next" href="../../../2020/01/03/p3.html"' in middle

    def test_listing_without_list_layout_uses_fallback(self, make_config, layouts) -> None:
        config = make_config(list_layout="nope")
        assembly = assemble([], layouts, config)
        index_html = next(page for page in assembly.pages if page.path == "index.html").content.decode()
        assert "<!doctype html>" in index_html
        assert "No posts yet." in index_html

    def test_pagination(self, make_config, layouts) -> None:
        config = make_config(posts_per_page=2)
        entries = [render_post(_post(f"2020-01-0{day}-p{day}.md"), config) for day in (1, 2, 3)]
        paths = {page.path for page in assemble(entries, layouts, config).pages}
        assert {"index.html", "page-2.html"} <= paths
        assert "page-3.html" not in paths

    def test_front_matter_is_escaped_into_layout(self, config) -> None:
        layouts = {"post": Layout("post", "<meta content=\"{{page.subtitle}}\">{{content}}")}
        post = _post("2020-01-01-a.md", "subtitle: '<script>'")
        page = next(
            page for page in assemble([render_post(post, config)], layouts, config).pages if page.path.endswith("a.html")
        )
        assert b'content="&lt;script&gt;"' in page.content

    def test_excerpt_mentioning_a_placeholder_stays_in_its_attribute(self, config) -> None:
        layouts = {"post": Layout("post", "<meta content=\"{{excerpt}}\">{{content}}")}
        post = _post("2020-01-01-a.md", "title: A", "Use {{content}} in layouts.\n\nBODYTEXT\n")
        page = next(
            page for page in assemble([render_post(post, config)], layouts, config).pages if page.path.endswith("a.html")
        )
        text = page.content.decode()
        meta = text[: text.index(">") + 1]
        assert meta == "<meta content=\"Use {{content}} in layouts. BODYTEXT\">"
        assert text.count("<p>BODYTEXT</p>") == 1

    def test_colliding_posts(self, config, layouts) -> None:
        first = render_post(_post("2020-01-01-one.md", "permalink: /same.html"), config)
        second = render_post(_post("2020-01-02-two.md", "permalink: /same.html"), config)
        assembly = assemble([first, second], layouts, config)
        assert len(assembly.collisions) == 1
        collision = assembly.collisions[0]
        message = str(collision)
        assert "_posts/2020-01-01-one.md" in message
        assert "_posts/2020-01-02-two.md" in message
        assert set(collision.sources) == {
            Path("_posts/2020-01-01-one.md"),
            Path("_posts/2020-01-02-two.md"),
        }


def test_collision_with_generated_page() -> None:
    pages = [RenderedPage("index.html", b"a", (Path("_pages/index.md"),)), RenderedPage("index.html", b"b")]
    [collision] = find_collisions(pages)
    assert "_pages/index.md and generated page" in str(collision)


def test_distinct_paths_do_not_collide() -> None:
    assert find_collisions([RenderedPage("a.html", b"a"), RenderedPage("b.html", b"b")]) == []
