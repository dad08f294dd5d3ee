"""Local preview server.

Single-threaded: a rebuild always finishes before the next request is read,
so a request never sees half-rebuilt output.
"""

from __future__ import annotations

import functools
import http.server
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Iterable, Optional

from .errors import SiteError
from .loader import list_files
from .pipeline import BuildReport, build_site, print_report

if TYPE_CHECKING:
    from .config import SiteConfig

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 4000
POLL_INTERVAL = 0.5

IDLE = "idle"
BUILDING = "building"
SERVING = "serving"


def snapshot(paths: Iterable[Path]) -> dict[str, int]:
    """Modification times (ns) of every file under the given roots."""
    state = {}
    for root in paths:
        if root.is_file():
            state[root.as_posix()] = root.stat().st_mtime_ns
        elif root.is_dir():
            for path in list_files(root):
                try:
                    state[path.as_posix()] = path.stat().st_mtime_ns
                except FileNotFoundError:
                    continue
    return state


class PreviewHandler(http.server.SimpleHTTPRequestHandler):
    def do_GET(self) -> None:
        self.server.refresh()
        super().do_GET()

    def do_HEAD(self) -> None:
        self.server.refresh()
        super().do_HEAD()


class PreviewServer(http.server.HTTPServer):
    def __init__(
        self,
        config: "SiteConfig",
        host: str = DEFAULT_HOST,
        port: int = DEFAULT_PORT,
        watch: bool = True,
        builder: Callable[["SiteConfig"], BuildReport] = build_site,
        config_factory: Optional[Callable[[], "SiteConfig"]] = None,
        quiet: bool = False,
    ) -> None:
        self.config = config
        self.watch = watch
        self.builder = builder
        self.config_factory = config_factory
        self.quiet = quiet
        self.state = IDLE
        self.last_report: Optional[BuildReport] = None
        self._snapshot: dict[str, int] = {}
        handler = functools.partial(PreviewHandler, directory=str(config.output))
        super().__init__((host, port), handler)

    @property
    def url(self) -> str:
        host, port = self.server_address[:2]
        return f"http://{host}:{port}/"

    def changed(self) -> bool:
        return snapshot(self.config.watched_paths()) != self._snapshot

    def rebuild(self) -> Optional[BuildReport]:
        self.state = BUILDING
        try:
            if self.config_factory is not None:
                self.config = self.config_factory()
            self._snapshot = snapshot(self.config.watched_paths())
            report = self.builder(self.config)
        except SiteError as exc:
            print(f"Build failed: {exc}", file=sys.stderr)
            return None
        finally:
            self.state = SERVING
        self.last_report = report
        print_report(report, self.quiet)
        return report

    def refresh(self) -> None:
        if self.watch and self.changed():
            if not self.quiet:
                print("Change detected, rebuilding...")
            self.rebuild()

    def service_actions(self) -> None:
        self.refresh()

    def serve(self) -> None:
        if not self.quiet:
            print(f"Serving {self.config.output} at {self.url}")
        try:
            self.serve_forever(poll_interval=POLL_INTERVAL)
        except KeyboardInterrupt:
            print("Shutting down server.")
        finally:
            self.server_close()
