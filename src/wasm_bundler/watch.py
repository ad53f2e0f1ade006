"""Rebuild-watch directives for the host build system."""

from __future__ import annotations

import sys
from collections.abc import Iterable, Iterator
from pathlib import Path
from typing import Literal, TextIO

from wasm_bundler.config import BuildRequest, absolute_path

WatchFormat = Literal["cargo", "plain"]
WATCH_FORMATS: tuple[WatchFormat, ...] = ("cargo", "plain")


class WatchSet:
    """Insertion-ordered set of paths whose change invalidates a build."""

    def __init__(self, paths: Iterable[Path] = ()) -> None:
        self._paths: dict[Path, None] = {}
        for path in paths:
            self.add(path)

    def add(self, path: Path) -> None:
        self._paths.setdefault(path, None)

    def __iter__(self) -> Iterator[Path]:
        return iter(self._paths)

    def __len__(self) -> int:
        return len(self._paths)

    def __contains__(self, path: object) -> bool:
        return path in self._paths

    def __repr__(self) -> str:
        return f"WatchSet({list(self._paths)!r})"


def compute_watch_set(request: BuildRequest) -> WatchSet:
    """Directories are watched whole; files inside are not enumerated.

    The manifest and template are listed individually. The stylesheet's
    directory, the static assets and the Rust sources are listed as
    directories so that added or removed files also trigger a rebuild.
    Paths that do not exist are left out: cargo treats a missing
    ``rerun-if-changed`` path as always changed.
    """
    src_dir = absolute_path(request.src_dir)
    stylesheet = src_dir / request.stylesheet
    candidates = [
        absolute_path(request.manifest),
        src_dir / request.template,
        stylesheet,
        stylesheet.parent,
        src_dir / request.static_dir,
        src_dir / "src",
        *(absolute_path(extra) for extra in request.additional_watch_dirs),
    ]
    return WatchSet(path for path in candidates if path.exists())


def format_directives(watch: WatchSet, fmt: WatchFormat = "cargo") -> list[str]:
    if fmt == "cargo":
        return [f"cargo:rerun-if-changed={path}" for path in watch]
    if fmt == "plain":
        return [str(path) for path in watch]
    raise ValueError(f"Unknown watch format: {fmt}")


def emit_directives(
    watch: WatchSet, fmt: WatchFormat = "cargo", stream: TextIO | None = None
) -> None:
    out = stream or sys.stdout
    for line in format_directives(watch, fmt):
        print(line, file=out)
    out.flush()
