"""Error taxonomy for the bundling pipeline."""

from __future__ import annotations

from collections.abc import Iterable


class BundlerError(RuntimeError):
    stage = "bundle"

    def __init__(self, diagnostic: str) -> None:
        super().__init__(diagnostic)
        self.diagnostic = diagnostic

    def format_error(self) -> str:
        return f"WASM_BUNDLER_ERROR: {self.stage} failed\n{self.diagnostic}"


class ConfigurationError(BundlerError):
    stage = "configuration"


class ToolchainFailure(BundlerError):
    stage = "toolchain"

    def __init__(
        self,
        diagnostic: str,
        *,
        returncode: int | None = None,
        stdout: str = "",
        stderr: str = "",
        cancelled: bool = False,
    ) -> None:
        super().__init__(diagnostic)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        self.cancelled = cancelled

    def format_error(self) -> str:
        lines = [super().format_error()]
        if self.returncode is not None:
            lines.append(f"  exit code: {self.returncode}")
        if self.stdout.strip():
            lines.append("stdout:")
            lines.append(self.stdout.rstrip())
        if self.stderr.strip():
            lines.append("stderr:")
            lines.append(self.stderr.rstrip())
        return "\n".join(lines)


class UnrecognizedGlueFormat(BundlerError):
    stage = "post-processing"


class StyleCompileError(BundlerError):
    stage = "stylesheet"


class TemplateError(BundlerError):
    stage = "template"


class MissingTemplateVariable(TemplateError):
    def __init__(self, template: str, missing: Iterable[str]) -> None:
        self.missing = tuple(sorted(missing))
        names = ", ".join(self.missing)
        super().__init__(f"{template} does not reference required variable(s): {names}")


class StagingError(BundlerError):
    stage = "staging"
