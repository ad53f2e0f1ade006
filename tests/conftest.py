from __future__ import annotations

from pathlib import Path

import pytest

from tests.frontend_fixtures import CARGO_TOML, INDEX_TEMPLATE, FakeToolchain
from wasm_bundler.config import BuildRequest


@pytest.fixture
def frontend(tmp_path: Path) -> Path:
    root = tmp_path / "workspace" / "frontend"
    (root / "src").mkdir(parents=True)
    (root / "css" / "partials").mkdir(parents=True)
    (root / "static" / "img").mkdir(parents=True)
    (root / "Cargo.toml").write_text(CARGO_TOML, encoding="utf-8")
    (root / "src" / "lib.rs").write_text("pub fn start() {}\n", encoding="utf-8")
    (root / "index.html").write_text(INDEX_TEMPLATE, encoding="utf-8")
    (root / "css" / "_vars.scss").write_text("$brand: #336699;\n", encoding="utf-8")
    (root / "css" / "partials" / "_layout.scss").write_text(
        ".layout { display: flex; }\n", encoding="utf-8"
    )
    (root / "css" / "style.scss").write_text(
        '@import "vars";\n@import "partials/layout";\n'
        "body { color: $brand; .title { margin: 0; } }\n",
        encoding="utf-8",
    )
    (root / "static" / "robots.txt").write_text("User-agent: *\n", encoding="utf-8")
    (root / "static" / "img" / "logo.bin").write_bytes(bytes(range(256)))
    return root


@pytest.fixture
def request_for(frontend: Path, tmp_path: Path):
    def _make(**overrides: object) -> BuildRequest:
        params: dict[str, object] = {
            "src_dir": frontend,
            "dist_dir": tmp_path / "out" / "ui",
            "workspace_root": frontend.parent,
        }
        params.update(overrides)
        return BuildRequest(**params)  # type: ignore[arg-type]

    return _make


@pytest.fixture
def fake_toolchain() -> FakeToolchain:
    return FakeToolchain()


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("CARGO_TARGET_DIR", raising=False)
    monkeypatch.delenv("OUT_DIR", raising=False)
    monkeypatch.delenv("PROFILE", raising=False)
    monkeypatch.delenv("CARGO_PKG_VERSION", raising=False)
    monkeypatch.delenv("WASM_BUNDLER_WASM_PACK", raising=False)
