from __future__ import annotations

import argparse
import sys
import time
from pathlib import Path
from typing import Optional, Sequence

from . import __version__
from .config import DEFAULT_CONFIG, SiteConfig
from .errors import SiteError
from .pipeline import build_site, print_report
from .serve import DEFAULT_HOST, DEFAULT_PORT, PreviewServer


def add_site_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--config", default=DEFAULT_CONFIG, help="Path to site config file (TOML/YAML/JSON).")
    parser.add_argument("--source", default=None, help="Directory holding posts, pages, layouts and static files.")
    parser.add_argument("--posts", default=None, help="Posts directory, relative to the source.")
    parser.add_argument("--pages", default=None, help="Standalone pages directory, relative to the source.")
    parser.add_argument("--layouts", default=None, help="Layouts directory, relative to the source.")
    parser.add_argument("--static", default=None, help="Static assets directory, relative to the source.")
    parser.add_argument("--output", default=None, help="Output directory for the site.")
    parser.add_argument("--base-url", default=None, help="Public site URL used for the feed and sitemap.")
    parser.add_argument(
        "--clean",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Replace the output directory instead of updating it in place.",
    )
    parser.add_argument(
        "--drafts",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Include posts marked as drafts.",
    )
    parser.add_argument(
        "--highlight",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Syntax-highlight code blocks with Pygments.",
    )
    parser.add_argument(
        "--build-workers",
        default=None,
        type=int,
        help="Number of worker threads for parsing/rendering (0 = auto).",
    )
    parser.add_argument("-q", "--quiet", action="store_true", help="Only report errors.")


def make_config(args: argparse.Namespace) -> SiteConfig:
    return SiteConfig.load(
        Path(args.config),
        source=args.source,
        posts=args.posts,
        pages=args.pages,
        layouts=args.layouts,
        static=args.static,
        output=args.output,
        base_url=args.base_url,
        clean=args.clean,
        drafts=args.drafts,
        highlight=args.highlight,
        build_workers=args.build_workers,
    )


def run_build(args: argparse.Namespace) -> int:
    start = time.perf_counter()
    try:
        config = make_config(args)
        report = build_site(config)
    except SiteError as exc:
        print(f"Build failed: {exc}", file=sys.stderr)
        return 1
    elapsed = time.perf_counter() - start
    print_report(report, args.quiet)
    if not args.quiet:
        print(f"Build completed in {elapsed:.2f}s.")
        print(f"Site generated in: {config.output}")
    return 0 if report.ok else 1


def run_serve(args: argparse.Namespace) -> int:
    try:
        config = make_config(args)
    except SiteError as exc:
        print(f"Build failed: {exc}", file=sys.stderr)
        return 1
    try:
        server = PreviewServer(
            config,
            host=args.host,
            port=args.port,
            watch=args.watch,
            config_factory=lambda: make_config(args),
            quiet=args.quiet,
        )
    except OSError as exc:
        print(f"Cannot listen on {args.host}:{args.port}: {exc}", file=sys.stderr)
        return 1
    report = server.rebuild()
    if report is None and not config.output.is_dir():
        server.server_close()
        return 1
    server.serve()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="blogpress", description="Markdown blog generator.")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    commands = parser.add_subparsers(dest="command")

    build = commands.add_parser("build", help="Build the site once.")
    add_site_options(build)
    build.set_defaults(handler=run_build)

    serve = commands.add_parser("serve", help="Build, then serve the site locally.")
    add_site_options(serve)
    serve.add_argument("--host", default=DEFAULT_HOST, help="Interface to bind.")
    serve.add_argument("--port", default=DEFAULT_PORT, type=int, help="Port to listen on.")
    serve.add_argument(
        "--watch",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Rebuild when source files change.",
    )
    serve.set_defaults(handler=run_serve)
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    argv = list(sys.argv[1:] if argv is None else argv)
    if not argv or argv[0] not in {"build", "serve", "-h", "--help", "--version"}:
        argv.insert(0, "build")
    args = parser.parse_args(argv)
    return args.handler(args)
