from __future__ import annotations

import html
import math
from typing import TYPE_CHECKING, Mapping, Optional, Sequence

from .index import RenderedPage, RenderedPost, SiteIndex, newest_first
from .layouts import FALLBACK_SHELL, Layout
from .render import highlight_stylesheet, render_template
from .utils import join_url, rfc822_date, root_prefix, slugify

if TYPE_CHECKING:
    from .config import SiteConfig

HIGHLIGHT_CSS_PATH = "css/highlight.css"


def site_context(config: "SiteConfig") -> dict[str, str]:
    return {f"site.{key}": html.escape(value) for key, value in sorted(config.site_vars.items())}


def tag_url(name: str) -> str:
    return f"tags/{slugify(name)}.html"


def category_url(name: str) -> str:
    return f"categories/{slugify(name)}.html"


def term_links(names: Sequence[str], root: str, url_for, css_class: str) -> str:
    return " ".join(
        f'<a class="{css_class}" href="{root}/{url_for(name)}">{html.escape(name)}</a>' for name in names
    )


def wrap_listing(
    title: str,
    content: str,
    rel_path: str,
    layouts: Mapping[str, Layout],
    config: "SiteConfig",
) -> RenderedPage:
    layout = layouts.get(config.list_layout)
    template = layout.template if layout is not None else FALLBACK_SHELL
    root = root_prefix(rel_path)
    page_title = f"{title} | {config.title}" if title != config.title else title
    html_doc = render_template(
        template,
        **site_context(config),
        **{"page.title": html.escape(title)},
        title=html.escape(page_title),
        root=root,
        url=rel_path,
        toc="",
        content=content,
    )
    return RenderedPage(rel_path, html_doc.encode("utf-8"))


def build_post_list(entries: Sequence[RenderedPost], root: str) -> str:
    items = []
    for entry in entries:
        post = entry.post
        tags = term_links(post.tags, root, tag_url, "tag")
        items.append(
            '<article class="post-card">'
            f'<div class="post-meta"><time datetime="{post.date.date().isoformat()}">'
            f"{post.date:%Y-%m-%d}</time>"
            f'<span class="post-tags">{tags}</span></div>'
            f'<h2 class="post-title"><a href="{root}/{entry.url}">{html.escape(post.title)}</a></h2>'
            f'<p class="post-summary">{html.escape(entry.excerpt)}</p>'
            "</article>"
        )
    if not items:
        return '<p class="post-empty">No posts yet.</p>'
    return "\n".join(items)


def page_url(page: int) -> str:
    if page == 1:
        return "index.html"
    return f"page-{page}.html"


def build_pagination(page: int, total_pages: int) -> str:
    if total_pages <= 1:
        return ""
    items = []
    if page > 1:
        items.append(f'<a class="page-link" href="./{page_url(page - 1)}">Previous</a>')
    else:
        items.append('<span class="page-link is-disabled">Previous</span>')
    numbers = []
    for num in range(1, total_pages + 1):
        if num == page:
            numbers.append(f'<span class="page-number is-active">{num}</span>')
        else:
            numbers.append(f'<a class="page-number" href="./{page_url(num)}">{num}</a>')
    items.append(f'<div class="page-numbers">{"".join(numbers)}</div>')
    if page < total_pages:
        items.append(f'<a class="page-link" href="./{page_url(page + 1)}">Next</a>')
    else:
        items.append('<span class="page-link is-disabled">Next</span>')
    return f'<nav class="pagination">{"".join(items)}</nav>'


def build_index_pages(index: SiteIndex, layouts: Mapping[str, Layout], config: "SiteConfig") -> list[RenderedPage]:
    per_page = config.posts_per_page
    total_pages = max(1, math.ceil(len(index.posts) / per_page))
    pages = []
    for page in range(1, total_pages + 1):
        start = (page - 1) * per_page
        page_posts = index.posts[start : start + per_page]
        content = (
            '<div class="section-head"><h1>Latest posts</h1></div>'
            f'<div class="post-list">{build_post_list(page_posts, ".")}</div>'
            f"{build_pagination(page, total_pages)}"
        )
        title = config.title if page == 1 else f"Page {page}"
        pages.append(wrap_listing(title, content, page_url(page), layouts, config))
    return pages


def _merge_by_slug(groups: Mapping[str, Sequence[RenderedPost]]) -> dict[str, tuple[str, list[RenderedPost]]]:
    # Names that slugify alike ("C++" and "c") share one page.
    merged: dict[str, tuple[str, list[RenderedPost]]] = {}
    for name, entries in groups.items():
        slug = slugify(name)
        if slug in merged:
            merged[slug][1].extend(entry for entry in entries if entry not in merged[slug][1])
        else:
            merged[slug] = (name, list(entries))
    return merged


def build_term_pages(
    groups: Mapping[str, Sequence[RenderedPost]],
    folder: str,
    heading: str,
    layouts: Mapping[str, Layout],
    config: "SiteConfig",
) -> list[RenderedPage]:
    pages = []
    for slug, (name, entries) in _merge_by_slug(groups).items():
        rel_path = f"{folder}/{slug}.html"
        entries = newest_first(entries)
        content = (
            f'<div class="section-head"><h1>{html.escape(heading)}: {html.escape(name)}</h1>'
            f'<p class="count">{len(entries)} posts</p></div>'
            f'<div class="post-list">{build_post_list(entries, root_prefix(rel_path))}</div>'
        )
        pages.append(wrap_listing(name, content, rel_path, layouts, config))
    return pages


def build_archive(index: SiteIndex, layouts: Mapping[str, Layout], config: "SiteConfig") -> RenderedPage:
    root = "."
    sections = []
    for month in sorted(index.months, reverse=True):
        rows = []
        for entry in index.months[month]:
            rows.append(
                f'<li><span class="archive-date">{entry.post.date:%Y-%m-%d}</span>'
                f'<a href="{root}/{entry.url}">{html.escape(entry.post.title)}</a></li>'
            )
        sections.append(
            f'<section class="archive-group"><h2>{month}</h2>'
            f'<ul class="archive-list">{"".join(rows)}</ul></section>'
        )
    if not sections:
        sections.append('<p class="archive-empty">No posts yet.</p>')
    terms = []
    for label, folder, groups in (("Tags", "tags", index.tags), ("Categories", "categories", index.categories)):
        if not groups:
            continue
        items = "".join(
            f'<li><a href="{root}/{folder}/{slug}.html">{html.escape(name)}</a>'
            f'<span class="count">{len(entries)}</span></li>'
            for slug, (name, entries) in _merge_by_slug(groups).items()
        )
        terms.append(f'<section class="archive-terms"><h2>{label}</h2><ul>{items}</ul></section>')
    content = (
        '<div class="section-head"><h1>Archive</h1>'
        f'<p class="count">{len(index.posts)} posts</p></div>'
        f'{"".join(sections)}{"".join(terms)}'
    )
    return wrap_listing("Archive", content, "archive.html", layouts, config)


def build_feed(index: SiteIndex, config: "SiteConfig") -> Optional[RenderedPage]:
    site_url = config.base_url.rstrip("/")
    if not site_url:
        return None
    items = []
    for entry in index.posts[: config.feed_limit]:
        link = join_url(site_url, entry.url)
        categories = "".join(
            f"<category>{html.escape(name)}</category>" for name in (*entry.post.categories, *entry.post.tags)
        )
        items.append(
            "\n".join(
                [
                    "<item>",
                    f"<title>{html.escape(entry.post.title)}</title>",
                    f"<link>{link}</link>",
                    f"<guid>{link}</guid>",
                    f"<pubDate>{rfc822_date(entry.post.date)}</pubDate>",
                    f"{categories}<description>{html.escape(entry.excerpt)}</description>",
                    "</item>",
                ]
            )
        )
    channel = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        '<rss version="2.0">',
        "<channel>",
        f"<title>{html.escape(config.title)}</title>",
        f"<link>{site_url}/</link>",
        f"<description>{html.escape(config.description)}</description>",
    ]
    if index.posts:
        channel.append(f"<lastBuildDate>{rfc822_date(index.posts[0].post.date)}</lastBuildDate>")
    channel.extend(items)
    channel.extend(["</channel>", "</rss>", ""])
    return RenderedPage("feed.xml", "\n".join(channel).encode("utf-8"))


def build_sitemap(pages: Sequence[RenderedPage], index: SiteIndex, config: "SiteConfig") -> Optional[RenderedPage]:
    site_url = config.base_url.rstrip("/")
    if not site_url:
        return None
    lastmod = {entry.url: entry.post.date for entry in index.posts}
    items = []
    for rel_path in sorted(page.path for page in pages if page.path.endswith(".html")):
        url = site_url + "/" if rel_path == "index.html" else join_url(site_url, rel_path)
        lines = ["<url>", f"<loc>{html.escape(url)}</loc>"]
        if rel_path in lastmod:
            lines.append(f"<lastmod>{lastmod[rel_path].date().isoformat()}</lastmod>")
        lines.append("</url>")
        items.append("\n".join(lines))
    sitemap = "\n".join(
        [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">',
            *items,
            "</urlset>",
            "",
        ]
    )
    return RenderedPage("sitemap.xml", sitemap.encode("utf-8"))


def build_listings(index: SiteIndex, layouts: Mapping[str, Layout], config: "SiteConfig") -> list[RenderedPage]:
    pages = build_index_pages(index, layouts, config)
    pages.extend(build_term_pages(index.tags, "tags", "Tag", layouts, config))
    pages.extend(build_term_pages(index.categories, "categories", "Category", layouts, config))
    pages.append(build_archive(index, layouts, config))
    if config.highlight:
        css = highlight_stylesheet(config.highlight_style)
        pages.append(RenderedPage(HIGHLIGHT_CSS_PATH, css.encode("utf-8")))
    if config.enable_feed:
        feed = build_feed(index, config)
        if feed is not None:
            pages.append(feed)
    return pages
