from __future__ import annotations

import dataclasses
import errno
import os
import shutil
from pathlib import Path

import pytest

import wasm_bundler.staging as staging
from wasm_bundler.errors import StagingError
from wasm_bundler.staging import StagedFiles, copy_tree, stage_output


def _files(tmp_path: Path, static_dir: Path | None = None) -> StagedFiles:
    wasm = tmp_path / "package_bg.wasm"
    wasm.write_bytes(b"\x00asm\x01\x00\x00\x00")
    return StagedFiles(
        html="<html></html>",
        wasm=wasm,
        wasm_name="app-1.0.0.wasm",
        glue_source="export default init;",
        glue_name="package.js",
        static_dir=static_dir,
    )


def _snapshot(root: Path) -> dict[str, bytes]:
    return {
        path.relative_to(root).as_posix(): path.read_bytes()
        for path in root.rglob("*")
        if path.is_file()
    }


def test_copy_tree_preserves_bytes_and_paths(frontend: Path, tmp_path: Path) -> None:
    dest = tmp_path / "copy"
    copied = copy_tree(frontend / "static", dest)
    assert copied == 2
    assert _snapshot(dest) == _snapshot(frontend / "static")


def test_stage_output_layout(frontend: Path, tmp_path: Path) -> None:
    dist = tmp_path / "out" / "ui"
    stage_output(dist, _files(tmp_path, frontend / "static"))
    assert (dist / "index.html").read_text(encoding="utf-8") == "<html></html>"
    assert (dist / "package.js").read_text(encoding="utf-8") == "export default init;"
    assert (dist / "app-1.0.0.wasm").read_bytes().startswith(b"\x00asm")
    assert _snapshot(dist / "static") == _snapshot(frontend / "static")
    assert sorted(p.name for p in dist.parent.iterdir()) == ["ui"]


def test_stage_output_replaces_previous_tree(tmp_path: Path) -> None:
    dist = tmp_path / "ui"
    (dist / "static").mkdir(parents=True)
    (dist / "static" / "stale.txt").write_text("old", encoding="utf-8")
    stage_output(dist, _files(tmp_path))
    assert not (dist / "static" / "stale.txt").exists()
    assert (dist / "index.html").is_file()
    assert not (tmp_path / "ui.old").exists()


def test_missing_static_dir_is_skipped(tmp_path: Path) -> None:
    dist = tmp_path / "ui"
    stage_output(dist, _files(tmp_path, tmp_path / "no-static"))
    assert not (dist / "static").exists()


def test_snippets_are_copied(tmp_path: Path) -> None:
    snippets = tmp_path / "snippets" / "demo-abc"
    snippets.mkdir(parents=True)
    (snippets / "inline0.js").write_text("export const x = 1;", encoding="utf-8")
    files = dataclasses.replace(_files(tmp_path), snippets_dir=tmp_path / "snippets")
    dist = tmp_path / "ui"
    stage_output(dist, files)
    assert (dist / "snippets" / "demo-abc" / "inline0.js").is_file()


@pytest.mark.skipif(
    os.name == "nt" or os.geteuid() == 0, reason="needs POSIX permissions as non-root"
)
def test_unreadable_static_file_fails_and_keeps_previous(
    frontend: Path, tmp_path: Path
) -> None:
    dist = tmp_path / "ui"
    dist.mkdir()
    (dist / "index.html").write_text("previous", encoding="utf-8")
    secret = frontend / "static" / "secret.txt"
    secret.write_text("x", encoding="utf-8")
    secret.chmod(0)
    try:
        with pytest.raises(StagingError, match="secret.txt"):
            stage_output(dist, _files(tmp_path, frontend / "static"))
    finally:
        secret.chmod(0o644)
    assert (dist / "index.html").read_text(encoding="utf-8") == "previous"
    assert sorted(p.name for p in tmp_path.iterdir() if p.name.startswith("ui")) == [
        "ui"
    ]


def test_missing_wasm_fails_without_output(tmp_path: Path) -> None:
    files = _files(tmp_path)
    files.wasm.unlink()
    dist = tmp_path / "ui"
    with pytest.raises(StagingError):
        stage_output(dist, files)
    assert not dist.exists()


@pytest.mark.skipif(os.name == "nt", reason="needs POSIX symlinks")
def test_symlinked_static_dir_is_copied(frontend: Path, tmp_path: Path) -> None:
    shared = tmp_path / "shared-assets"
    shared.mkdir()
    (shared / "font.woff2").write_bytes(b"wOF2\x00\x01")
    (frontend / "static" / "fonts").symlink_to(shared, target_is_directory=True)
    dist = tmp_path / "ui"
    stage_output(dist, _files(tmp_path, frontend / "static"))
    copied = dist / "static" / "fonts" / "font.woff2"
    assert copied.read_bytes() == b"wOF2\x00\x01"
    assert not (dist / "static" / "fonts").is_symlink()


@pytest.mark.skipif(os.name == "nt", reason="needs POSIX symlinks")
def test_symlink_loop_in_static_fails(frontend: Path, tmp_path: Path) -> None:
    (frontend / "static" / "img" / "again").symlink_to(
        frontend / "static", target_is_directory=True
    )
    dist = tmp_path / "ui"
    with pytest.raises(StagingError, match="again"):
        stage_output(dist, _files(tmp_path, frontend / "static"))
    assert not dist.exists()


@pytest.mark.skipif(os.name == "nt", reason="needs POSIX symlinks")
def test_dangling_static_symlink_fails_and_keeps_previous(
    frontend: Path, tmp_path: Path
) -> None:
    dist = tmp_path / "ui"
    dist.mkdir()
    (dist / "index.html").write_text("previous", encoding="utf-8")
    (frontend / "static" / "gone.css").symlink_to(tmp_path / "missing.css")
    with pytest.raises(StagingError, match="gone.css"):
        stage_output(dist, _files(tmp_path, frontend / "static"))
    assert _snapshot(dist) == {"index.html": b"previous"}
    assert sorted(p.name for p in tmp_path.iterdir() if p.name.startswith("ui")) == [
        "ui"
    ]


def test_copy_error_midway_fails_and_keeps_previous(
    frontend: Path, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    dist = tmp_path / "ui"
    dist.mkdir()
    (dist / "index.html").write_text("previous", encoding="utf-8")
    real_copyfile = shutil.copyfile
    copied: list[str] = []

    def _copyfile(src, dst, *args, **kwargs):  # type: ignore[no-untyped-def]
        if Path(src).name == "logo.bin":
            raise PermissionError(errno.EACCES, "Permission denied", str(src))
        copied.append(Path(src).name)
        return real_copyfile(src, dst, *args, **kwargs)

    monkeypatch.setattr(staging.shutil, "copyfile", _copyfile)
    with pytest.raises(StagingError, match="logo.bin"):
        stage_output(dist, _files(tmp_path, frontend / "static"))
    assert "robots.txt" in copied
    assert _snapshot(dist) == {"index.html": b"previous"}
    assert sorted(p.name for p in tmp_path.iterdir() if p.name.startswith("ui")) == [
        "ui"
    ]
