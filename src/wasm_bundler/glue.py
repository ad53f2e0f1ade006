"""Normalization of the wasm-bindgen glue script.

wasm-bindgen has shipped three shapes of the default-exported
initializer over time:

- ``async function init(input)`` exported as ``init`` (before 0.2.84)
- ``async function __wbg_init(input)`` exported as ``__wbg_init``
- ``async function __wbg_init(module_or_path)``, which warns when called
  with a bare URL and expects ``{ module_or_path: url }`` (0.2.93+)

Every recognized shape is rewritten so the initializer is bound to
``init`` and the call site is generated to match its calling convention.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from wasm_bundler.errors import UnrecognizedGlueFormat

logger = logging.getLogger(__name__)

INIT_NAME = "init"
CallStyle = Literal["positional", "object"]


@dataclass(frozen=True)
class GlueFormat:
    name: str
    signature: re.Pattern[str]
    default_export: re.Pattern[str]
    call_style: CallStyle
    rename_from: str | None = None

    def matches(self, source: str) -> bool:
        return bool(self.signature.search(source)) and bool(
            self.default_export.search(source)
        )

    def normalize(self, source: str) -> str:
        if self.rename_from is None:
            return source
        return re.sub(rf"\b{re.escape(self.rename_from)}\b", INIT_NAME, source)

    def entry_call(self, wasm_url: str) -> str:
        url = json.dumps(wasm_url)
        if self.call_style == "object":
            return f"{INIT_NAME}({{ module_or_path: {url} }});"
        return f"{INIT_NAME}({url});"


def _signature(names: str, param: str) -> re.Pattern[str]:
    return re.compile(rf"\basync\s+function\s+(?:{names})\s*\(\s*{param}\b")


def _default_export(names: str) -> re.Pattern[str]:
    return re.compile(rf"\bexport\s+default\s+(?:{names})\s*;")


# Tried in order; the first match wins.
GLUE_FORMATS: tuple[GlueFormat, ...] = (
    GlueFormat(
        name="wbg-init-object",
        signature=_signature("__wbg_init|init", "module_or_path"),
        default_export=_default_export("__wbg_init|init"),
        call_style="object",
        rename_from="__wbg_init",
    ),
    GlueFormat(
        name="wbg-init-positional",
        signature=_signature("__wbg_init", "input"),
        default_export=_default_export("__wbg_init"),
        call_style="positional",
        rename_from="__wbg_init",
    ),
    GlueFormat(
        name="legacy-init",
        signature=_signature("init", "input"),
        default_export=_default_export("init"),
        call_style="positional",
    ),
)


@dataclass(frozen=True)
class NormalizedGlue:
    source: str
    format: GlueFormat

    def entry_call(self, wasm_url: str) -> str:
        return self.format.entry_call(wasm_url)

    def script_markup(self, wasm_url: str) -> str:
        call = self.entry_call(wasm_url)
        return f'<script type="module">{self.source} {call} </script>'


def detect_format(source: str) -> GlueFormat:
    for glue_format in GLUE_FORMATS:
        if glue_format.matches(source):
            return glue_format
    raise UnrecognizedGlueFormat(
        "Glue script does not define a known wasm initializer; expected one of: "
        + ", ".join(glue_format.name for glue_format in GLUE_FORMATS)
    )


def normalize_glue(source: str) -> NormalizedGlue:
    glue_format = detect_format(source)
    return NormalizedGlue(source=glue_format.normalize(source), format=glue_format)


def post_process(glue_path: Path) -> NormalizedGlue:
    """Normalize the glue script in place and return its contents."""
    try:
        source = glue_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise UnrecognizedGlueFormat(f"Failed to read {glue_path}: {exc}") from exc
    try:
        normalized = normalize_glue(source)
    except UnrecognizedGlueFormat as exc:
        raise UnrecognizedGlueFormat(f"{glue_path}: {exc.diagnostic}") from exc
    if normalized.source != source:
        glue_path.write_text(normalized.source, encoding="utf-8")
    logger.debug("Glue script %s matched %s", glue_path, normalized.format.name)
    return normalized
