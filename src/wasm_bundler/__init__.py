"""Bundles a WebAssembly single-page app for embedding into a host binary."""

from __future__ import annotations

from wasm_bundler.config import BuildRequest
from wasm_bundler.errors import (
    BundlerError,
    ConfigurationError,
    MissingTemplateVariable,
    StagingError,
    StyleCompileError,
    TemplateError,
    ToolchainFailure,
    UnrecognizedGlueFormat,
)
from wasm_bundler.pipeline import BuildResult, bundle, run
from wasm_bundler.watch import WatchSet, compute_watch_set

__all__ = [
    "BuildRequest",
    "BuildResult",
    "BundlerError",
    "ConfigurationError",
    "MissingTemplateVariable",
    "StagingError",
    "StyleCompileError",
    "TemplateError",
    "ToolchainFailure",
    "UnrecognizedGlueFormat",
    "WatchSet",
    "bundle",
    "compute_watch_set",
    "run",
]
