from __future__ import annotations

import os
import shutil
import tempfile
from pathlib import Path
from typing import Iterable, Optional, Sequence

from .errors import WriteFailure
from .index import RenderedPage
from .loader import list_files


def collect_static(static_dir: Optional[Path]) -> list[tuple[str, Path]]:
    if static_dir is None or not static_dir.is_dir():
        return []
    return [
        (path.relative_to(static_dir).as_posix(), path) for path in list_files(static_dir, include_hidden=True)
    ]


def check_clean_target(output_dir: Path, project_root: Path) -> None:
    output_resolved = output_dir.resolve()
    root_resolved = project_root.resolve()
    if output_resolved == root_resolved:
        raise WriteFailure("refusing to clean the project root", path=output_dir)
    if not output_resolved.is_relative_to(root_resolved):
        raise WriteFailure("refusing to clean an output directory outside the project root", path=output_dir)


def find_static_collisions(pages: Sequence[RenderedPage], static: Iterable[tuple[str, Path]]) -> list[WriteFailure]:
    by_path = {page.path: page for page in pages}
    collisions = []
    for rel, source in static:
        page = by_path.get(rel)
        if page is None:
            continue
        other = page.sources[0].as_posix() if page.sources else "generated page"
        collisions.append(
            WriteFailure(
                f"output path {rel} is produced by both {source.as_posix()} and {other}",
                sources=(source, *page.sources),
                path=rel,
            )
        )
    return collisions


def _make_staging(output_dir: Path) -> Path:
    staging = Path(tempfile.mkdtemp(prefix=f".{output_dir.name}-staging-", dir=output_dir.parent))
    # mkdtemp is owner-only; the staged tree may become the output root
    umask = os.umask(0)
    os.umask(umask)
    staging.chmod(0o777 & ~umask)
    return staging


def _stage(pages: Sequence[RenderedPage], static: Sequence[tuple[str, Path]], staging: Path) -> None:
    for page in pages:
        target = staging / page.path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(page.content)
    for rel, source in static:
        target = staging / rel
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(source, target)


def _swap(staging: Path, output_dir: Path) -> None:
    if not output_dir.exists():
        os.replace(staging, output_dir)
        return
    holding = Path(tempfile.mkdtemp(prefix=f".{output_dir.name}-old-", dir=output_dir.parent))
    previous = holding / "previous"
    os.replace(output_dir, previous)
    try:
        os.replace(staging, output_dir)
    except OSError:
        os.replace(previous, output_dir)
        raise
    finally:
        shutil.rmtree(holding, ignore_errors=True)


def _merge(staging: Path, output_dir: Path) -> None:
    for source in list_files(staging, include_hidden=True):
        target = output_dir / source.relative_to(staging)
        target.parent.mkdir(parents=True, exist_ok=True)
        os.replace(source, target)


def write_site(
    pages: Sequence[RenderedPage],
    output_dir: Path,
    static_dir: Optional[Path] = None,
    clean: bool = False,
    project_root: Optional[Path] = None,
) -> list[str]:
    """Write a finished build: stage everything first, then move it into place.

    With `clean` the staged tree replaces the old output wholesale; otherwise
    files are moved in one by one and unrelated files are left alone. Returns
    the relative paths written.
    """
    static = collect_static(static_dir)
    collisions = find_static_collisions(pages, static)
    if collisions:
        raise collisions[0]
    if clean:
        check_clean_target(output_dir, project_root or Path.cwd())

    try:
        output_dir.parent.mkdir(parents=True, exist_ok=True)
        staging = _make_staging(output_dir)
    except OSError as exc:
        raise WriteFailure(f"cannot create staging directory: {exc}", path=output_dir) from exc

    try:
        try:
            _stage(pages, static, staging)
        except OSError as exc:
            raise WriteFailure(f"cannot write output: {exc}", path=output_dir) from exc
        try:
            if clean or not output_dir.exists():
                _swap(staging, output_dir)
            else:
                _merge(staging, output_dir)
        except OSError as exc:
            raise WriteFailure(f"cannot commit output: {exc}", path=output_dir) from exc
    finally:
        shutil.rmtree(staging, ignore_errors=True)
    return sorted([page.path for page in pages] + [rel for rel, _ in static])
