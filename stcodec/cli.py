"""stcodec CLI – inspect, validate, diff, extract and convert safetensors files."""

from __future__ import annotations

import argparse
import logging
import os
import sys

import numpy as np

from . import __version__
from .digest import tensor_digest
from .errors import CodecError
from .serialization import TensorFile, save_file

logger = logging.getLogger("stcodec")


# ── Terminal UI (colors only on a TTY without NO_COLOR) ─────────────────────

_COLORS = {
    "reset": "\033[0m",
    "dim": "\033[2m",
    "bold": "\033[1m",
    "green": "\033[32m",
    "red": "\033[31m",
    "cyan": "\033[36m",
}


def _color_enabled() -> bool:
    if not hasattr(sys.stdout, "isatty") or not sys.stdout.isatty():
        return False
    return os.environ.get("NO_COLOR", "").strip() == ""


def _c(name: str, text: str) -> str:
    if not _color_enabled():
        return text
    return f"{_COLORS[name]}{text}{_COLORS['reset']}"


def _section(title: str) -> str:
    return _c("cyan", f"\n  ◆ {title}")


def _ok(msg: str) -> str:
    return _c("green", "✓ ") + msg


def _fail(msg: str) -> str:
    return _c("red", "✗ ") + msg


def _table(headers: list[str], rows: list[list[str]]) -> list[str]:
    """Render a plain column-aligned table."""
    widths = [len(h) for h in headers]
    for row in rows:
        widths = [max(w, len(cell)) for w, cell in zip(widths, row)]
    fmt = "  ".join(f"{{:<{w}}}" for w in widths)
    lines = [_c("bold", fmt.format(*headers))]
    lines.append("  ".join("─" * w for w in widths))
    lines.extend(fmt.format(*row) for row in rows)
    return lines


# ── inspect ─────────────────────────────────────────────────────────────────


def cmd_inspect(args: argparse.Namespace) -> int:
    with TensorFile(args.file) as f:
        header = f.header
        print(_c("bold", "\n  safetensors  ") + _c("dim", args.file))
        print(_section("Header"))
        print(f"    header length   {header.header_length}")
        print(f"    payload offset  {header.payload_offset}")
        print(f"    payload bytes   {header.payload_size}")

        print(_section(f"Metadata ({len(header.metadata)})"))
        for key in sorted(header.metadata):
            print(f"    {key} = {header.metadata[key]!r}")

        names = f.keys()
        limit = len(names) if args.max_tensors is None else args.max_tensors
        show = max(0, min(limit, len(names)))
        print(_section(f"Tensors ({len(names)}, showing {show})"))
        headers = ["Name", "Dtype", "Shape", "Offsets"]
        if args.digest:
            headers.append("BLAKE3")
        rows = []
        for name in names[:show]:
            info = header.tensors[name]
            row = [name, info.dtype.name, str(list(info.shape)),
                   f"[{info.data_offsets[0]}, {info.data_offsets[1]})"]
            if args.digest:
                row.append(tensor_digest(f.get_lazy(name))[:16])
            rows.append(row)
        for line in _table(headers, rows):
            print("    " + line)
        if len(names) > show:
            print(_c("dim", f"\n    … and {len(names) - show} more "
                            "(use --max-tensors to show more)"))
    print()
    return 0


# ── validate ────────────────────────────────────────────────────────────────


def cmd_validate(args: argparse.Namespace) -> int:
    try:
        with TensorFile(args.file) as f:
            if args.full:
                for name in f.keys():
                    f.get_tensor(name)
            mode = "full" if args.full else "header"
            print(_ok(f"{len(f)} tensors ({mode} verify)."))
    except CodecError as exc:
        print(_fail(str(exc)), file=sys.stderr)
        return 1
    return 0


# ── make-test-vector ────────────────────────────────────────────────────────


def cmd_make_test_vector(args: argparse.Namespace) -> int:
    w = np.arange(4, dtype="<f4").reshape(2, 2)
    path = save_file({"w": w}, args.output, {"version": "1"})
    print(_ok(f"Wrote {path}"))
    return 0


# ── convert-npz ─────────────────────────────────────────────────────────────


def cmd_convert_npz(args: argparse.Namespace) -> int:
    with np.load(args.input, allow_pickle=False) as npz:
        tensors = {name: npz[name] for name in npz.files}
    metadata = {"source_format": "npz"}
    path = save_file(tensors, args.output, metadata, max_workers=args.workers)
    print(_ok(f"Converted {len(tensors)} tensors → {path}"))
    return 0


# ── extract ─────────────────────────────────────────────────────────────────


def cmd_extract(args: argparse.Namespace) -> int:
    with TensorFile(args.file) as f:
        if args.tensor not in f:
            print(_fail(f"tensor {args.tensor!r} not found"), file=sys.stderr)
            return 1
        arr = f.get_tensor(args.tensor)
        np.save(args.output, arr, allow_pickle=False)
    print(_ok(f"Extracted {args.tensor} ({arr.nbytes:,} bytes) → {args.output}"))
    return 0


# ── diff ────────────────────────────────────────────────────────────────────


def cmd_diff(args: argparse.Namespace) -> int:
    """Compare two files by tensor set, dtype, shape and content digest."""
    with TensorFile(args.file_a) as fa, TensorFile(args.file_b) as fb:
        names_a, names_b = set(fa.keys()), set(fb.keys())
        only_a = sorted(names_a - names_b)
        only_b = sorted(names_b - names_a)
        differing: list[tuple[str, str]] = []
        for name in sorted(names_a & names_b):
            ia, ib = fa.header.tensors[name], fb.header.tensors[name]
            if ia.dtype != ib.dtype:
                differing.append((name, f"dtype {ia.dtype.name} vs {ib.dtype.name}"))
            elif ia.shape != ib.shape:
                differing.append((name, f"shape {list(ia.shape)} vs {list(ib.shape)}"))
            elif tensor_digest(fa.get_lazy(name)) != tensor_digest(fb.get_lazy(name)):
                differing.append((name, "content"))
        meta_equal = fa.metadata == fb.metadata

    print(_c("bold", "\n  diff  ") + _c("dim", f"{args.file_a}  vs  {args.file_b}"))
    for title, names in (("Only in first", only_a), ("Only in second", only_b)):
        if names:
            print(_section(f"{title} ({len(names)})"))
            for name in names if args.show_all else names[:10]:
                print(f"    {name}")
    if differing:
        print(_section(f"Differing ({len(differing)})"))
        for name, why in differing:
            print(f"    {name}: {why}")
    if not meta_equal:
        print(_section("Metadata differs"))

    if only_a or only_b or differing or not meta_equal:
        print()
        return 1
    print(_ok(f"identical ({len(names_a)} tensors)"))
    return 0


# ── Entry point ─────────────────────────────────────────────────────────────


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="stcodec", description="safetensors inspection and conversion"
    )
    parser.add_argument(
        "--version", action="version", version=f"stcodec {__version__}"
    )
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Enable debug logging")
    sub = parser.add_subparsers(dest="command")

    p = sub.add_parser("inspect", help="Show header, metadata and tensors",
                       aliases=["info"])
    p.add_argument("file")
    p.add_argument("--max-tensors", type=int, default=None)
    p.add_argument("--digest", action="store_true",
                   help="Show a BLAKE3 digest per tensor (reads the payload)")

    p = sub.add_parser("validate", help="Validate a safetensors file")
    p.add_argument("file")
    p.add_argument("--full", action="store_true",
                   help="Also read every tensor's bytes")

    p = sub.add_parser("make-test-vector", help="Write a small golden file")
    p.add_argument("output")

    p = sub.add_parser("convert-npz", help=".npz -> safetensors")
    p.add_argument("input")
    p.add_argument("output")
    p.add_argument("--workers", type=int, default=None,
                   help="Thread pool size for materialization")

    p = sub.add_parser("extract", help="Write one tensor to a .npy file")
    p.add_argument("file")
    p.add_argument("tensor")
    p.add_argument("output")

    p = sub.add_parser("diff", help="Compare two safetensors files")
    p.add_argument("file_a")
    p.add_argument("file_b")
    p.add_argument("--all", dest="show_all", action="store_true",
                   help="List every tensor name")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING, format="%(message)s")

    cmds = {
        "inspect": cmd_inspect,
        "info": cmd_inspect,
        "validate": cmd_validate,
        "make-test-vector": cmd_make_test_vector,
        "convert-npz": cmd_convert_npz,
        "extract": cmd_extract,
        "diff": cmd_diff,
    }
    logger.debug("stcodec %s: %s", __version__, args.command)
    fn = cmds.get(args.command)
    if fn is None:
        parser.print_help()
        return 1
    try:
        return fn(args)
    except CodecError as exc:
        print(_fail(str(exc)), file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
