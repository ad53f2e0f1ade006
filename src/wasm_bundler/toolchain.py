"""Invocation of the external WebAssembly toolchain (wasm-pack)."""

from __future__ import annotations

import logging
import os
import shutil
import signal
import subprocess
import threading
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from wasm_bundler.config import ResolvedRequest, wasm_pack_executable
from wasm_bundler.errors import ToolchainFailure

logger = logging.getLogger(__name__)

OUT_NAME = "package"
WASM_TARGET = "web"
POLL_INTERVAL_SEC = 0.2
TERMINATE_GRACE_SEC = 5.0


@dataclass(frozen=True)
class ProcessResult:
    returncode: int
    stdout: str
    stderr: str


class ProcessRunner(Protocol):
    def __call__(
        self,
        cmd: list[str],
        *,
        cwd: Path,
        env: Mapping[str, str],
        cancel: threading.Event | None = None,
    ) -> ProcessResult: ...


@dataclass(frozen=True)
class CompiledWasmArtifact:
    out_dir: Path
    wasm: Path
    glue: Path
    manifest: Path | None
    snippets: Path | None


def _terminate_process_group(
    proc: subprocess.Popen[str], *, grace_sec: float = TERMINATE_GRACE_SEC
) -> None:
    if proc.poll() is not None:
        return
    if os.name != "nt":
        try:
            os.killpg(proc.pid, signal.SIGTERM)
        except ProcessLookupError:
            return
        try:
            proc.wait(timeout=grace_sec)
            return
        except subprocess.TimeoutExpired:
            try:
                os.killpg(proc.pid, signal.SIGKILL)
            except ProcessLookupError:
                return
    else:
        proc.terminate()
    try:
        proc.wait(timeout=2.0)
    except subprocess.TimeoutExpired:
        proc.kill()
        proc.wait()


class SubprocessRunner:
    """Runs a command to completion, with no timeout.

    The child gets its own process group so that cancelling the build
    also takes down the cargo/rustc processes it spawned.
    """

    def __init__(self, poll_interval: float = POLL_INTERVAL_SEC) -> None:
        self.poll_interval = poll_interval

    def __call__(
        self,
        cmd: list[str],
        *,
        cwd: Path,
        env: Mapping[str, str],
        cancel: threading.Event | None = None,
    ) -> ProcessResult:
        proc = subprocess.Popen(
            cmd,
            cwd=cwd,
            env=dict(env),
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            start_new_session=os.name != "nt",
        )
        output: dict[str, str] = {}
        reader = threading.Thread(
            target=_collect_output, args=(proc, output), daemon=True
        )
        reader.start()
        try:
            while True:
                if cancel is not None and cancel.is_set():
                    _terminate_process_group(proc)
                    reader.join()
                    raise ToolchainFailure(
                        f"{cmd[0]} was cancelled",
                        returncode=proc.returncode,
                        stdout=output.get("stdout", ""),
                        stderr=output.get("stderr", ""),
                        cancelled=True,
                    )
                reader.join(timeout=self.poll_interval)
                if not reader.is_alive():
                    break
        except KeyboardInterrupt:
            _terminate_process_group(proc)
            raise
        return ProcessResult(
            returncode=proc.returncode,
            stdout=output.get("stdout", ""),
            stderr=output.get("stderr", ""),
        )


def _collect_output(proc: subprocess.Popen[str], output: dict[str, str]) -> None:
    stdout, stderr = proc.communicate()
    output["stdout"] = stdout or ""
    output["stderr"] = stderr or ""


def wasm_pack_command(
    resolved: ResolvedRequest, executable: str | None = None
) -> list[str]:
    return [
        executable or wasm_pack_executable(),
        "build",
        "--target",
        WASM_TARGET,
        "--release" if resolved.request.release else "--dev",
        "--no-typescript",
        "--out-name",
        OUT_NAME,
        "--out-dir",
        str(resolved.tmp_dir),
    ]


def toolchain_env(
    resolved: ResolvedRequest, base: Mapping[str, str] | None = None
) -> dict[str, str]:
    env = dict(os.environ if base is None else base)
    env["CARGO_TARGET_DIR"] = str(resolved.target_dir)
    return env


def locate_artifacts(out_dir: Path) -> CompiledWasmArtifact:
    wasm = out_dir / f"{OUT_NAME}_bg.wasm"
    glue = out_dir / f"{OUT_NAME}.js"
    missing = [path.name for path in (wasm, glue) if not path.is_file()]
    if missing:
        raise ToolchainFailure(
            f"Toolchain reported success but {', '.join(missing)} "
            f"is missing from {out_dir}"
        )
    manifest = out_dir / "package.json"
    snippets = out_dir / "snippets"
    return CompiledWasmArtifact(
        out_dir=out_dir,
        wasm=wasm,
        glue=glue,
        manifest=manifest if manifest.is_file() else None,
        snippets=snippets if snippets.is_dir() else None,
    )


def compile_frontend(
    resolved: ResolvedRequest,
    runner: ProcessRunner | None = None,
    *,
    cancel: threading.Event | None = None,
) -> CompiledWasmArtifact:
    runner = runner or SubprocessRunner()
    cmd = wasm_pack_command(resolved)
    resolved.target_dir.mkdir(parents=True, exist_ok=True)
    # wasm-pack rewrites the other outputs but never prunes snippets/.
    stale_snippets = resolved.tmp_dir / "snippets"
    if stale_snippets.is_dir():
        shutil.rmtree(stale_snippets)
    logger.info("Compiling %s with %s", resolved.manifest.name, cmd[0])
    logger.debug(
        "Toolchain command: %s (CARGO_TARGET_DIR=%s)", cmd, resolved.target_dir
    )
    try:
        result = runner(
            cmd, cwd=resolved.src_dir, env=toolchain_env(resolved), cancel=cancel
        )
    except OSError as exc:
        raise ToolchainFailure(f"Failed to run {cmd[0]}: {exc}") from exc
    if result.returncode != 0:
        raise ToolchainFailure(
            f"{cmd[0]} failed to build {resolved.manifest.name}",
            returncode=result.returncode,
            stdout=result.stdout,
            stderr=result.stderr,
        )
    return locate_artifacts(resolved.tmp_dir)
