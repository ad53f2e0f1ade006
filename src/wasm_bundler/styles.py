"""SCSS compilation for the frontend's root stylesheet."""

from __future__ import annotations

import logging
from pathlib import Path

import sass

from wasm_bundler.errors import StyleCompileError

logger = logging.getLogger(__name__)

OUTPUT_STYLE = "compressed"
PRECISION = 4


def compile_stylesheet(path: Path, include_paths: list[Path] | None = None) -> str:
    """Compile ``path`` and everything it imports into one CSS string.

    The stylesheet's own directory is always on the include path, so
    ``@import "partials/buttons"`` resolves relative to it.
    """
    if not path.is_file():
        raise StyleCompileError(f"Stylesheet not found: {path}")
    search = [str(path.parent)]
    search.extend(str(extra) for extra in include_paths or [])
    try:
        css = sass.compile(
            filename=str(path),
            output_style=OUTPUT_STYLE,
            precision=PRECISION,
            include_paths=search,
        )
    except sass.CompileError as exc:
        raise StyleCompileError(f"Sass compilation failed: {exc}") from exc
    logger.debug("Compiled %s (%d bytes of CSS)", path, len(css))
    return css


def stylesheet_markup(css: str) -> str:
    return f"<style>{css}</style>"
