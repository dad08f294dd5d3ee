from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from .errors import NotFound, SiteError, with_path
from .frontmatter import parse_front_matter
from .loader import list_files

LAYOUT_EXTENSIONS = (".html", ".htm")

# Used for listing pages when the site has no list layout of its own.
FALLBACK_SHELL = """<!doctype html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>{{title}}</title>
<link rel="stylesheet" href="{{root}}/css/highlight.css">
</head>
<body>
<header><a href="{{root}}/index.html">{{site.title}}</a></header>
<main>{{content}}</main>
</body>
</html>
"""


@dataclass(frozen=True)
class Layout:
    """A named page template with a `{{content}}` hole."""

    name: str
    template: str


def load_layouts(layouts_dir: Path) -> dict[str, Layout]:
    if not layouts_dir.is_dir():
        raise NotFound("layouts directory not found", layouts_dir)
    layouts = {}
    for path in list_files(layouts_dir, LAYOUT_EXTENSIONS):
        name = path.relative_to(layouts_dir).with_suffix("").as_posix()
        try:
            _, template = parse_front_matter(path.read_bytes())
        except SiteError as exc:
            raise with_path(exc, path)
        layouts[name] = Layout(name=name, template=template)
    return layouts
