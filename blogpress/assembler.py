"""Site assembly: layouts applied to rendered posts plus generated listings.

Everything here is computed in memory. Nothing touches the output directory
until `output.write_site` receives the finished page list.
"""

from __future__ import annotations

import html
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable, Mapping, Optional

from .content import Post
from .errors import MalformedFrontMatter, SiteError, UnknownLayout, WriteFailure, with_path
from .index import RenderedPage, RenderedPost, SiteIndex, build_index
from .layouts import Layout
from .pages import build_listings, build_sitemap, category_url, site_context, tag_url, term_links
from .render import render_template
from .utils import root_prefix, slugify

if TYPE_CHECKING:
    from .config import SiteConfig

PERMALINK_TOKEN_RE = re.compile(r":(year|month|day|title|slug|categories)\b")


@dataclass(frozen=True)
class Assembly:
    pages: tuple[RenderedPage, ...]
    errors: tuple[SiteError, ...]
    index: SiteIndex
    collisions: tuple[WriteFailure, ...] = ()


def output_path(post: Post, config: "SiteConfig") -> str:
    """Output location derived only from the source path and front matter."""
    pattern = post.front_matter.get_str("permalink")
    if pattern is None and not post.is_post:
        try:
            rel = (config.source / post.source).relative_to(config.pages)
        except ValueError:
            rel = post.source
        return rel.with_suffix(".html").as_posix()
    if pattern is None:
        pattern = config.permalink

    date = post.date
    values = {
        "year": f"{date:%Y}" if date else "",
        "month": f"{date:%m}" if date else "",
        "day": f"{date:%d}" if date else "",
        "title": post.slug,
        "slug": post.slug,
        "categories": "/".join(slugify(name) for name in post.categories),
    }
    path = PERMALINK_TOKEN_RE.sub(lambda match: values[match.group(1)], pattern)
    parts = [part for part in path.split("/") if part]
    if any(part in {".", ".."} for part in parts):
        raise MalformedFrontMatter(f"permalink {pattern!r} leaves the output directory")
    if not parts or path.endswith("/"):
        parts.append("index.html")
    elif "." not in parts[-1]:
        parts[-1] += ".html"
    return "/".join(parts)


def resolve_layout(post: Post, layouts: Mapping[str, Layout], config: "SiteConfig") -> Layout:
    name = post.layout or (config.default_layout if post.is_post else config.page_layout)
    layout = layouts.get(name)
    if layout is None:
        raise UnknownLayout(name, post.source)
    return layout


def _front_matter_context(post: Post) -> dict[str, str]:
    context = {}
    for key, value in post.front_matter.items():
        if isinstance(value, tuple):
            text = ", ".join(value)
        elif isinstance(value, bool):
            text = "true" if value else "false"
        else:
            text = str(value)
        context[f"page.{key}"] = html.escape(text)
    return context


def _neighbour_link(entry: Optional[RenderedPost], root: str, rel: str) -> str:
    if entry is None:
        return ""
    return f'<a class="post-{rel}" rel="{rel}" href="{root}/{entry.url}">{html.escape(entry.post.title)}</a>'


def apply_layout(
    entry: RenderedPost,
    layout: Layout,
    config: "SiteConfig",
    previous: Optional[RenderedPost] = None,
    following: Optional[RenderedPost] = None,
) -> RenderedPage:
    post = entry.post
    root = root_prefix(entry.url)
    context = {
        **site_context(config),
        **_front_matter_context(post),
        "page.title": html.escape(post.title),
        "page.url": entry.url,
        "title": html.escape(post.title),
        "date": f"{post.date:%Y-%m-%d}" if post.date else "",
        "date_iso": post.date.isoformat() if post.date else "",
        "url": entry.url,
        "root": root,
        "excerpt": html.escape(entry.excerpt),
        "tags": term_links(post.tags, root, tag_url, "tag"),
        "categories": term_links(post.categories, root, category_url, "category"),
        "comments": "true" if post.comments else "false",
        "previous": _neighbour_link(previous, root, "prev"),
        "next": _neighbour_link(following, root, "next"),
        "toc": entry.body.toc,
        "content": entry.body.html,
    }
    html_doc = render_template(layout.template, **context)
    return RenderedPage(entry.url, html_doc.encode("utf-8"), (post.source,))


def find_collisions(pages: Iterable[RenderedPage]) -> list[WriteFailure]:
    """One `WriteFailure` per output path claimed by more than one page."""
    seen: dict[str, RenderedPage] = {}
    collisions = []
    for page in pages:
        other = seen.get(page.path)
        if other is None:
            seen[page.path] = page
            continue
        sources = (*other.sources, *page.sources)
        names = [source.as_posix() for source in sources] or ["generated page"]
        if len(names) < 2:
            names.append("generated page")
        collisions.append(
            WriteFailure(
                f"output path {page.path} is produced by both {names[0]} and {names[1]}",
                sources=sources,
                path=page.path,
            )
        )
    return collisions


def assemble(entries: Iterable[RenderedPost], layouts: Mapping[str, Layout], config: "SiteConfig") -> Assembly:
    """Apply layouts and build listings.

    Per-post layout errors and output path collisions are collected, not raised.
    """
    errors: list[SiteError] = []
    resolved: dict[RenderedPost, Layout] = {}
    for entry in entries:
        try:
            resolved[entry] = resolve_layout(entry.post, layouts, config)
        except SiteError as exc:
            errors.append(with_path(exc, entry.post.source))

    index = build_index(resolved)
    neighbours: dict[RenderedPost, tuple[Optional[RenderedPost], Optional[RenderedPost]]] = {}
    for position, entry in enumerate(index.posts):
        newer = index.posts[position - 1] if position > 0 else None
        older = index.posts[position + 1] if position + 1 < len(index.posts) else None
        neighbours[entry] = (older, newer)

    pages = []
    for entry, layout in resolved.items():
        previous, following = neighbours.get(entry, (None, None))
        pages.append(apply_layout(entry, layout, config, previous, following))
    pages.extend(build_listings(index, layouts, config))
    if config.enable_sitemap:
        sitemap = build_sitemap(pages, index, config)
        if sitemap is not None:
            pages.append(sitemap)

    collisions = find_collisions(pages)
    pages.sort(key=lambda page: page.path)
    return Assembly(tuple(pages), tuple(errors), index, tuple(collisions))
