"""Build request and environment configuration."""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from wasm_bundler.errors import ConfigurationError

ENV_PREFIX = "WASM_BUNDLER_"
DEFAULT_WASM_PACK = "wasm-pack"
DEFAULT_TARGET_DIR_NAME = "web-target"
HOST_TARGET_DIR_NAME = "target"


def _raw_getenv(key: str, default: str = "") -> str:
    return os.environ.get(key, default)


def env_setting(name: str, default: str = "") -> str:
    raw = _raw_getenv(f"{ENV_PREFIX}{name}", "").strip()
    return raw or default


def wasm_pack_executable() -> str:
    return env_setting("WASM_PACK", DEFAULT_WASM_PACK)


def absolute_path(path: Path) -> Path:
    path = path.expanduser()
    if not path.is_absolute():
        path = (Path.cwd() / path).resolve()
    return path


@dataclass(frozen=True)
class FrontendManifest:
    path: Path
    name: str
    version: str | None = None


def load_manifest(path: Path) -> FrontendManifest:
    try:
        with path.open("rb") as handle:
            data: dict[str, Any] = tomllib.load(handle)
    except FileNotFoundError as exc:
        raise ConfigurationError(f"Frontend manifest not found: {path}") from exc
    except (OSError, tomllib.TOMLDecodeError) as exc:
        raise ConfigurationError(
            f"Failed to read frontend manifest {path}: {exc}"
        ) from exc
    package = data.get("package")
    if not isinstance(package, dict) or not isinstance(package.get("name"), str):
        raise ConfigurationError(f"{path} has no [package] name")
    version = package.get("version")
    return FrontendManifest(
        path=path,
        name=package["name"],
        version=version if isinstance(version, str) else None,
    )


@dataclass(frozen=True)
class BuildRequest:
    """Inputs for one pipeline invocation.

    ``target_dir`` is the isolated build-state directory handed to the
    toolchain. It has to differ from the host build's own ``target``
    directory, which the outer cargo process keeps locked while build
    scripts run.
    """

    src_dir: Path
    dist_dir: Path
    workspace_root: Path
    manifest_path: Path | None = None
    target_dir: Path | None = None
    tmp_dir: Path | None = None
    base_url: str = ""
    wasm_version: str | None = None
    release: bool = True
    additional_watch_dirs: tuple[Path, ...] = field(default_factory=tuple)
    stylesheet: str = "css/style.scss"
    template: str = "index.html"
    static_dir: str = "static"

    @property
    def manifest(self) -> Path:
        if self.manifest_path is not None:
            return self.manifest_path
        return self.src_dir / "Cargo.toml"

    @property
    def isolated_target_dir(self) -> Path:
        if self.target_dir is not None:
            return self.target_dir
        return self.workspace_root / DEFAULT_TARGET_DIR_NAME

    def resolve(self) -> ResolvedRequest:
        src_dir = absolute_path(self.src_dir)
        workspace_root = absolute_path(self.workspace_root)
        manifest = load_manifest(absolute_path(self.manifest))
        target_dir = absolute_path(self.isolated_target_dir)
        _check_isolated(target_dir, workspace_root)
        tmp_dir = (
            absolute_path(self.tmp_dir)
            if self.tmp_dir is not None
            else target_dir / "wasm-bundler" / manifest.name
        )
        wasm_version = self.wasm_version or manifest.version
        if not wasm_version:
            raise ConfigurationError(
                f"No wasm version given and {manifest.path} has no [package] version"
            )
        return ResolvedRequest(
            request=self,
            src_dir=src_dir,
            dist_dir=absolute_path(self.dist_dir),
            workspace_root=workspace_root,
            manifest=manifest,
            target_dir=target_dir,
            tmp_dir=tmp_dir,
            wasm_version=wasm_version,
        )


@dataclass(frozen=True)
class ResolvedRequest:
    request: BuildRequest
    src_dir: Path
    dist_dir: Path
    workspace_root: Path
    manifest: FrontendManifest
    target_dir: Path
    tmp_dir: Path
    wasm_version: str

    @property
    def wasm_file_name(self) -> str:
        return f"app-{self.wasm_version}.wasm"

    @property
    def stylesheet_path(self) -> Path:
        return self.src_dir / self.request.stylesheet

    @property
    def template_path(self) -> Path:
        return self.src_dir / self.request.template

    @property
    def static_path(self) -> Path:
        return self.src_dir / self.request.static_dir

    @property
    def rust_src_path(self) -> Path:
        return self.src_dir / "src"

    @property
    def additional_watch_dirs(self) -> tuple[Path, ...]:
        return tuple(absolute_path(path) for path in self.request.additional_watch_dirs)


def host_target_dirs(workspace_root: Path) -> list[Path]:
    dirs = [workspace_root / HOST_TARGET_DIR_NAME]
    raw = _raw_getenv("CARGO_TARGET_DIR", "").strip()
    if raw:
        dirs.append(absolute_path(Path(raw)))
    return dirs


def _check_isolated(target_dir: Path, workspace_root: Path) -> None:
    for host_dir in host_target_dirs(workspace_root):
        if target_dir.resolve() == host_dir.resolve():
            raise ConfigurationError(
                f"Isolated target directory {target_dir} is the host build "
                "directory; pick a separate path such as "
                f"{workspace_root / DEFAULT_TARGET_DIR_NAME}"
            )
