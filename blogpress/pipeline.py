from __future__ import annotations

import sys
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Iterable, TypeVar, Union

from .assembler import assemble, output_path
from .content import PAGE, POST, Post, make_post
from .errors import SiteError, with_path
from .index import RenderedPost
from .layouts import load_layouts
from .loader import ContentSource
from .output import collect_static, find_static_collisions, write_site
from .render import make_excerpt, render_body
from .utils import root_prefix

if TYPE_CHECKING:
    from .config import SiteConfig

T = TypeVar("T")
R = TypeVar("R")


@dataclass(frozen=True)
class BuildReport:
    written: tuple[str, ...]
    errors: tuple[SiteError, ...]
    drafts: tuple[Path, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.errors


def _attempt(func: Callable[[T], R], item: T) -> Union[R, SiteError]:
    try:
        return func(item)
    except SiteError as exc:
        return exc


def _map(func: Callable[[T], R], items: Iterable[T], workers: int) -> list[Union[R, SiteError]]:
    items = list(items)
    if workers <= 1 or len(items) <= 1:
        return [_attempt(func, item) for item in items]
    with ThreadPoolExecutor(max_workers=min(workers, len(items))) as executor:
        return list(executor.map(lambda item: _attempt(func, item), items))


def _relative_to_source(path: Path, config: "SiteConfig") -> Path:
    try:
        return path.relative_to(config.source)
    except ValueError:
        return path


def iter_sources(config: "SiteConfig") -> list[tuple[Path, bytes, str]]:
    """Every content file as `(source-relative path, raw bytes, kind)`."""
    items = [
        (_relative_to_source(config.posts / rel, config), raw, POST) for rel, raw in ContentSource(config.posts)
    ]
    if config.pages.is_dir():
        items.extend(
            (_relative_to_source(config.pages / rel, config), raw, PAGE) for rel, raw in ContentSource(config.pages)
        )
    return items


def render_post(post: Post, config: "SiteConfig") -> RenderedPost:
    try:
        url = output_path(post, config)
        body = render_body(post.body, config, root_prefix(url))
    except SiteError as exc:
        raise with_path(exc, post.source)
    return RenderedPost(post=post, url=url, body=body, excerpt=make_excerpt(body.html, post.excerpt))


def build_site(config: "SiteConfig") -> BuildReport:
    """Run one full build.

    Broken posts are reported and left out while every other post is still
    written. Two pages claiming one output path are reported alongside them and
    nothing is written. A missing content root or layouts directory, or any
    failure while writing output, aborts the build by raising.
    """
    layouts = load_layouts(config.layouts)
    sources = iter_sources(config)
    errors: list[SiteError] = []

    posts: list[Post] = []
    drafts: list[Path] = []
    for result in _map(lambda item: make_post(item[0], item[1], item[2]), sources, config.build_workers):
        if isinstance(result, SiteError):
            errors.append(result)
        elif result.draft and not config.drafts:
            drafts.append(result.source)
        else:
            posts.append(result)

    entries: list[RenderedPost] = []
    for result in _map(lambda post: render_post(post, config), posts, config.build_workers):
        if isinstance(result, SiteError):
            errors.append(result)
        else:
            entries.append(result)

    assembly = assemble(entries, layouts, config)
    errors.extend(assembly.errors)
    collisions = [*assembly.collisions, *find_static_collisions(assembly.pages, collect_static(config.static))]
    written: list[str] = []
    if collisions:
        # nothing is written while output paths collide
        errors.extend(collisions)
    else:
        written = write_site(
            assembly.pages,
            config.output,
            static_dir=config.static,
            clean=config.clean,
            project_root=config.root or config.source,
        )
    errors.sort(key=lambda exc: exc.path.as_posix() if exc.path else "")
    return BuildReport(written=tuple(written), errors=tuple(errors), drafts=tuple(drafts))


def print_report(report: BuildReport, quiet: bool = False) -> None:
    for error in report.errors:
        print(f"{error}", file=sys.stderr)
    if quiet:
        return
    print(f"Wrote {len(report.written)} files.")
    if report.drafts:
        print(f"Skipped {len(report.drafts)} drafts.")
    if report.errors:
        print(f"{len(report.errors)} files failed.", file=sys.stderr)
