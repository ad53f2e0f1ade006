"""Sequencing of the bundling stages."""

from __future__ import annotations

import concurrent.futures
import logging
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal, TextIO

from wasm_bundler.config import BuildRequest, ResolvedRequest
from wasm_bundler.errors import BundlerError
from wasm_bundler.glue import NormalizedGlue, post_process
from wasm_bundler.staging import StagedFiles, stage_output
from wasm_bundler.styles import compile_stylesheet, stylesheet_markup
from wasm_bundler.templates import RenderContext, read_template, render_template
from wasm_bundler.toolchain import (
    CompiledWasmArtifact,
    ProcessRunner,
    compile_frontend,
)
from wasm_bundler.watch import WatchFormat, WatchSet, compute_watch_set, emit_directives

logger = logging.getLogger(__name__)

PipelineState = Literal[
    "not_started",
    "configuring",
    "toolchain_running",
    "post_processing",
    "stylesheet_compiling",
    "template_rendering",
    "staging",
    "watch_emitting",
    "done",
]


@dataclass
class BuildResult:
    state: PipelineState = "not_started"
    output_dir: Path | None = None
    error: BundlerError | None = None
    failed_state: PipelineState | None = None
    watch_set: WatchSet = field(default_factory=WatchSet)
    elapsed_sec: float = 0.0

    @property
    def ok(self) -> bool:
        return self.state == "done" and self.error is None

    def raise_for_error(self) -> Path:
        if self.error is not None:
            raise self.error
        if self.output_dir is None:
            raise RuntimeError(f"Pipeline stopped in state {self.state}")
        return self.output_dir


class Pipeline:
    """Runs one bundling invocation, stopping at the first failure.

    Nothing is retried. The stylesheet is compiled on a worker thread
    while the toolchain runs, and both are joined before rendering.
    """

    def __init__(
        self,
        request: BuildRequest,
        *,
        runner: ProcessRunner | None = None,
        cancel: threading.Event | None = None,
        watch_format: WatchFormat = "cargo",
        watch_stream: TextIO | None = None,
    ) -> None:
        self.request = request
        self.runner = runner
        self.cancel = cancel
        self.watch_format = watch_format
        self.watch_stream = watch_stream
        self.result = BuildResult()

    def _enter(self, state: PipelineState) -> None:
        logger.debug("pipeline: %s -> %s", self.result.state, state)
        self.result.state = state

    def run(self) -> BuildResult:
        start = time.monotonic()
        self.result.watch_set = compute_watch_set(self.request)
        try:
            self._run_stages()
        except BundlerError as exc:
            self.result.error = exc
            self.result.failed_state = self.result.state
            self._enter("done")
            logger.error("Frontend bundle failed during %s", self.result.failed_state)
        finally:
            self.result.elapsed_sec = time.monotonic() - start
        if self.result.ok:
            logger.info(
                "Frontend bundle ready at %s (%.2fs)",
                self.result.output_dir,
                self.result.elapsed_sec,
            )
        return self.result

    def _run_stages(self) -> None:
        self._enter("configuring")
        resolved = self.request.resolve()

        self._enter("toolchain_running")
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as executor:
            style_future = executor.submit(
                compile_stylesheet, resolved.stylesheet_path
            )
            artifact = compile_frontend(resolved, self.runner, cancel=self.cancel)

        self._enter("post_processing")
        glue = post_process(artifact.glue)

        self._enter("stylesheet_compiling")
        css = style_future.result()

        self._enter("template_rendering")
        html = self._render(resolved, glue, css)

        self._enter("staging")
        self.result.output_dir = stage_output(
            resolved.dist_dir, self._staged_files(resolved, artifact, glue, html)
        )

        self._enter("watch_emitting")
        emit_directives(self.result.watch_set, self.watch_format, self.watch_stream)
        self._enter("done")

    def _render(self, resolved: ResolvedRequest, glue: NormalizedGlue, css: str) -> str:
        context = RenderContext(
            stylesheet=stylesheet_markup(css),
            javascript=glue.script_markup(resolved.wasm_file_name),
            base_url=resolved.request.base_url,
        )
        source = read_template(resolved.template_path)
        return render_template(source, context, name=resolved.request.template)

    def _staged_files(
        self,
        resolved: ResolvedRequest,
        artifact: CompiledWasmArtifact,
        glue: NormalizedGlue,
        html: str,
    ) -> StagedFiles:
        return StagedFiles(
            html=html,
            wasm=artifact.wasm,
            wasm_name=resolved.wasm_file_name,
            glue_source=glue.source,
            glue_name=artifact.glue.name,
            static_dir=resolved.static_path,
            snippets_dir=artifact.snippets,
        )


def bundle(
    request: BuildRequest,
    *,
    runner: ProcessRunner | None = None,
    cancel: threading.Event | None = None,
    watch_format: WatchFormat = "cargo",
    watch_stream: TextIO | None = None,
) -> BuildResult:
    return Pipeline(
        request,
        runner=runner,
        cancel=cancel,
        watch_format=watch_format,
        watch_stream=watch_stream,
    ).run()


def run(request: BuildRequest, **kwargs: Any) -> Path:
    """Bundle ``request`` and return the output directory, raising on failure."""
    return bundle(request, **kwargs).raise_for_error()
