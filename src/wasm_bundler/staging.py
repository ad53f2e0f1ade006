"""Assembly of the output tree."""

from __future__ import annotations

import errno
import logging
import os
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path

from wasm_bundler.errors import StagingError

logger = logging.getLogger(__name__)

INDEX_HTML = "index.html"
STATIC_DIR = "static"
SNIPPETS_DIR = "snippets"


@dataclass(frozen=True)
class StagedFiles:
    html: str
    wasm: Path
    wasm_name: str
    glue_source: str
    glue_name: str
    static_dir: Path | None = None
    snippets_dir: Path | None = None


def _raise_walk_error(exc: OSError) -> None:
    raise exc


def _check_not_looping(root: Path, name: str) -> None:
    real_root = Path(os.path.realpath(root))
    real_child = Path(os.path.realpath(root / name))
    if real_root.is_relative_to(real_child):
        raise OSError(errno.ELOOP, "Symbolic link loop", str(root / name))


def copy_tree(src: Path, dest: Path) -> int:
    """Copy every file under ``src`` to ``dest`` byte for byte.

    Symlinked files and directories are copied as their targets. Unlike
    ``shutil.copytree`` this stops at the first unreadable entry instead
    of collecting errors and carrying on.
    """
    copied = 0
    for root, dirs, files in os.walk(
        src, onerror=_raise_walk_error, followlinks=True
    ):
        dirs.sort()
        for name in dirs:
            _check_not_looping(Path(root), name)
        rel_root = Path(root).relative_to(src)
        target_root = dest / rel_root
        target_root.mkdir(parents=True, exist_ok=True)
        for name in sorted(files):
            shutil.copyfile(Path(root) / name, target_root / name)
            copied += 1
    return copied


def _fill(partial: Path, files: StagedFiles) -> None:
    (partial / INDEX_HTML).write_text(files.html, encoding="utf-8")
    (partial / files.glue_name).write_text(files.glue_source, encoding="utf-8")
    shutil.copyfile(files.wasm, partial / files.wasm_name)
    if files.static_dir is not None and files.static_dir.is_dir():
        count = copy_tree(files.static_dir, partial / STATIC_DIR)
        logger.debug("Copied %d static file(s) from %s", count, files.static_dir)
    if files.snippets_dir is not None and files.snippets_dir.is_dir():
        copy_tree(files.snippets_dir, partial / SNIPPETS_DIR)


def _swap_into_place(partial: Path, dist_dir: Path) -> None:
    previous: Path | None = None
    if dist_dir.exists():
        previous = dist_dir.with_name(f"{dist_dir.name}.old")
        if previous.exists():
            shutil.rmtree(previous)
        os.replace(dist_dir, previous)
    try:
        os.replace(partial, dist_dir)
    except OSError:
        if previous is not None:
            os.replace(previous, dist_dir)
        raise
    if previous is not None:
        shutil.rmtree(previous, ignore_errors=True)


def stage_output(dist_dir: Path, files: StagedFiles) -> Path:
    """Build the output tree next to ``dist_dir`` and swap it in.

    A failure leaves any existing ``dist_dir`` untouched.
    """
    try:
        dist_dir.parent.mkdir(parents=True, exist_ok=True)
        partial = Path(
            tempfile.mkdtemp(prefix=f"{dist_dir.name}.partial-", dir=dist_dir.parent)
        )
    except OSError as exc:
        raise StagingError(
            f"Failed to create a staging directory for {dist_dir}: {exc}"
        ) from exc
    try:
        _fill(partial, files)
        _swap_into_place(partial, dist_dir)
    except OSError as exc:
        shutil.rmtree(partial, ignore_errors=True)
        raise StagingError(f"Failed to assemble {dist_dir}: {exc}") from exc
    logger.info("Wrote frontend bundle to %s", dist_dir)
    return dist_dir
