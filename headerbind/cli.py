"""Command-line front end.

::

    python -m headerbind windows.h -I C:/sdk/um -I C:/sdk/shared --out bindings

Writes one file per output module, the aggregator and, for the Rust
writer, a ``Cargo.toml`` so the output builds as a crate.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from headerbind.arch import DEFAULT_ARCH, list_profiles
from headerbind.diagnostics import DuplicateSymbolError, FatalIOError
from headerbind.emitter import NAMESPACE_POLICIES
from headerbind.pipeline import BindingResult, RunConfig, generate
from headerbind.providers import EnvironmentSearchPaths
from headerbind.symbols import DUPLICATE_POLICIES
from headerbind.writers import get_default_writer, list_writers

logger = logging.getLogger(__name__)

CARGO_TOML = """\
[package]
name = "{crate_name}"
version = "0.1.0"
edition = "2021"
description = "Generated bindings for {entry}"

[lib]
path = "src/lib.rs"

[dependencies]
"""


def write_output(result: BindingResult, out_dir: Path, crate_name: str, writer: str, entry: str = "") -> list[Path]:
    """Write the rendered files of a run.

    Rust output is laid out as a crate: sources under ``src/`` and a
    ``Cargo.toml`` at ``out_dir``. Other writers put every file directly
    in ``out_dir``.

    :returns: The paths written.
    """
    source_dir = out_dir / "src" if writer == "rust" else out_dir
    source_dir.mkdir(parents=True, exist_ok=True)
    written: list[Path] = []
    for file_name, text in result.modules.items():
        path = source_dir / file_name
        path.write_text(text, encoding="utf-8")
        written.append(path)
    if writer == "rust":
        manifest = out_dir / "Cargo.toml"
        manifest.write_text(CARGO_TOML.format(crate_name=crate_name, entry=entry or "headers"), encoding="utf-8")
        written.append(manifest)
    return written


def _parse_define(text: str) -> tuple[str, str]:
    name, sep, value = text.partition("=")
    if not name.strip():
        raise argparse.ArgumentTypeError(f"invalid macro definition: {text!r}")
    return name.strip(), value if sep else "1"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m headerbind",
        description="Generate Rust bindings from C headers.",
    )
    parser.add_argument("entry", metavar="ENTRY", help="Entry header, as a path or a name found on the include path")
    parser.add_argument(
        "-I",
        "--include",
        dest="include",
        action="append",
        default=[],
        metavar="DIR",
        help="Add an include search directory (repeatable; default: directories in %%INCLUDE%%)",
    )
    parser.add_argument(
        "--arch",
        default=DEFAULT_ARCH,
        choices=list_profiles(),
        help=f"Target architecture (default: {DEFAULT_ARCH})",
    )
    parser.add_argument("--out", default="bindings", metavar="DIR", help="Output directory (default: bindings)")
    parser.add_argument(
        "--duplicates",
        default="first",
        choices=DUPLICATE_POLICIES,
        help="What to do when a symbol is declared twice (default: first)",
    )
    parser.add_argument(
        "--namespace",
        default="flat",
        choices=list(NAMESPACE_POLICIES),
        help="How the aggregator exposes modules (default: flat)",
    )
    parser.add_argument(
        "-D",
        "--define",
        dest="define",
        action="append",
        default=[],
        type=_parse_define,
        metavar="NAME=VALUE",
        help="Predefine a macro (repeatable)",
    )
    parser.add_argument(
        "--writer",
        default=get_default_writer(),
        choices=list_writers(),
        help=f"Output format (default: {get_default_writer()})",
    )
    parser.add_argument("--report", metavar="FILE", help="Write the run report as JSON to FILE")
    parser.add_argument("--crate-name", default="bindings", help="Name of the generated crate (default: bindings)")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="More logging (-vv for debug)")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    level = logging.WARNING
    if args.verbose == 1:
        level = logging.INFO
    elif args.verbose > 1:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")

    config = RunConfig(
        arch=args.arch,
        search_paths=list(args.include),
        provider=EnvironmentSearchPaths(),
        extra_macros=dict(args.define),
        duplicate_policy=args.duplicates,
        namespace_policy=args.namespace,
        writer=args.writer,
        crate_name=args.crate_name,
    )
    try:
        result = generate(args.entry, config)
    except FatalIOError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1
    except DuplicateSymbolError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    out_dir = Path(args.out)
    written = write_output(result, out_dir, args.crate_name, args.writer, entry=Path(args.entry).name)
    if args.report:
        Path(args.report).write_text(result.report.to_json(), encoding="utf-8")

    counts = result.report.counts_by_kind()
    summary = ", ".join(f"{kind}={n}" for kind, n in counts.items()) or "no diagnostics"
    print(f"Wrote {len(written)} files to {out_dir} ({len(result.headers)} headers; {summary})")
    return 0


if __name__ == "__main__":
    sys.exit(main())
