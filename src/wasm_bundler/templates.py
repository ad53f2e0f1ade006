"""Rendering of the frontend's index.html template."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import jinja2
from jinja2 import meta
from markupsafe import Markup

from wasm_bundler.errors import MissingTemplateVariable, TemplateError

logger = logging.getLogger(__name__)

STYLESHEET_VAR = "stylesheet"
JAVASCRIPT_VAR = "javascript"
BASE_URL_VAR = "base_url"
REQUIRED_VARS = frozenset({STYLESHEET_VAR, JAVASCRIPT_VAR})


@dataclass(frozen=True)
class RenderContext:
    stylesheet: str
    javascript: str
    base_url: str = ""

    def as_template_vars(self) -> dict[str, object]:
        # Both blocks are generated by the pipeline; only base_url goes
        # through autoescaping.
        return {
            STYLESHEET_VAR: Markup(self.stylesheet),
            JAVASCRIPT_VAR: Markup(self.javascript),
            BASE_URL_VAR: self.base_url,
        }


def _environment() -> jinja2.Environment:
    return jinja2.Environment(
        autoescape=True,
        undefined=jinja2.StrictUndefined,
        keep_trailing_newline=True,
    )


def read_template(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except OSError as exc:
        raise TemplateError(
            f"Failed to read {path}. This should be a source file in the "
            "frontend project."
        ) from exc


def check_template(source: str, name: str = "index.html") -> None:
    env = _environment()
    try:
        ast = env.parse(source, name=name)
    except jinja2.TemplateSyntaxError as exc:
        raise TemplateError(f"{name}:{exc.lineno}: {exc.message}") from exc
    referenced = meta.find_undeclared_variables(ast)
    missing = REQUIRED_VARS - referenced
    if missing:
        raise MissingTemplateVariable(name, missing)


def render_template(
    source: str, context: RenderContext, name: str = "index.html"
) -> str:
    check_template(source, name)
    env = _environment()
    try:
        template = env.from_string(source)
        html = template.render(context.as_template_vars())
    except jinja2.UndefinedError as exc:
        raise TemplateError(f"{name}: {exc.message}") from exc
    except jinja2.TemplateError as exc:
        raise TemplateError(f"{name}: {exc}") from exc
    logger.debug("Rendered %s (%d bytes)", name, len(html))
    return html
