from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path

from wasm_bundler.config import BuildRequest, env_setting
from wasm_bundler.pipeline import bundle
from wasm_bundler.watch import WATCH_FORMATS, compute_watch_set, emit_directives

LOG_FORMAT = "[wasm-bundler] %(levelname)s %(message)s"


def _configure_logging(verbose: bool) -> None:
    level_name = "DEBUG" if verbose else env_setting("LOG", "INFO").upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level = logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT, stream=sys.stderr)


def _default_dist_dir() -> str | None:
    # Inside a cargo build script the bundle belongs under OUT_DIR.
    out_dir = os.environ.get("OUT_DIR")
    if out_dir:
        return str(Path(out_dir) / "ui")
    return None


def _default_release() -> bool:
    profile = os.environ.get("PROFILE")
    if profile:
        return profile != "debug"
    return True


def _default_wasm_version() -> str | None:
    # Set by cargo for build scripts; covers `version.workspace = true`.
    return os.environ.get("CARGO_PKG_VERSION") or None


def _add_request_args(parser: argparse.ArgumentParser, *, needs_dist: bool) -> None:
    parser.add_argument(
        "--src-dir",
        default=".",
        help="Frontend crate directory (holds Cargo.toml, index.html, css/, static/).",
    )
    dist_default = _default_dist_dir()
    parser.add_argument(
        "--dist-dir",
        default=dist_default,
        required=needs_dist and dist_default is None,
        help="Output directory for the bundle (default: $OUT_DIR/ui).",
    )
    parser.add_argument(
        "--workspace-root",
        default=".",
        help="Workspace root; the isolated target directory is placed here.",
    )
    parser.add_argument(
        "--manifest", help="Frontend Cargo.toml (default: SRC/Cargo.toml)."
    )
    parser.add_argument(
        "--target-dir",
        help="Isolated build-state directory (default: WORKSPACE/web-target).",
    )
    parser.add_argument("--tmp-dir", help="Directory for raw toolchain output.")
    parser.add_argument(
        "--base-url",
        default="",
        help="Value passed to the template as base_url.",
    )
    parser.add_argument(
        "--wasm-version",
        default=_default_wasm_version(),
        help=(
            "Version used to name app-<version>.wasm "
            "(default: $CARGO_PKG_VERSION, then the manifest version)."
        ),
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--release", dest="release", action="store_true")
    mode.add_argument("--dev", dest="release", action="store_false")
    parser.set_defaults(release=_default_release())
    parser.add_argument(
        "--watch-dir",
        action="append",
        default=[],
        help="Additional directory whose changes require a rebuild (repeatable).",
    )
    parser.add_argument("--watch-format", choices=WATCH_FORMATS, default="cargo")
    parser.add_argument("-v", "--verbose", action="store_true")


def _request_from_args(args: argparse.Namespace) -> BuildRequest:
    return BuildRequest(
        src_dir=Path(args.src_dir),
        dist_dir=Path(args.dist_dir or "dist"),
        workspace_root=Path(args.workspace_root),
        manifest_path=Path(args.manifest) if args.manifest else None,
        target_dir=Path(args.target_dir) if args.target_dir else None,
        tmp_dir=Path(args.tmp_dir) if args.tmp_dir else None,
        base_url=args.base_url,
        wasm_version=args.wasm_version,
        release=args.release,
        additional_watch_dirs=tuple(Path(path) for path in args.watch_dir),
    )


def build(args: argparse.Namespace) -> int:
    result = bundle(_request_from_args(args), watch_format=args.watch_format)
    if result.error is not None:
        print(result.error.format_error(), file=sys.stderr)
        return 1
    return 0


def watch(args: argparse.Namespace) -> int:
    emit_directives(compute_watch_set(_request_from_args(args)), args.watch_format)
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="wasm-bundler")
    subparsers = parser.add_subparsers(dest="command", required=True)

    build_parser = subparsers.add_parser(
        "build", help="Compile and bundle a wasm frontend"
    )
    _add_request_args(build_parser, needs_dist=True)
    watch_parser = subparsers.add_parser(
        "watch", help="Print rebuild-watch directives without building"
    )
    _add_request_args(watch_parser, needs_dist=False)

    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    try:
        if args.command == "build":
            return build(args)
        if args.command == "watch":
            return watch(args)
    except KeyboardInterrupt:
        print("wasm-bundler: interrupted", file=sys.stderr)
        return 130

    return 2


if __name__ == "__main__":
    raise SystemExit(main())
