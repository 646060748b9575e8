from __future__ import annotations

import argparse
import os
import sys
import time
from typing import List, Optional

from fct.archive import FctArchive
from fct.constants import DEFAULT_CHUNK_SIZE, MAX_CHUNK_SIZE
from fct.errors import FctError, FormatError
from fct.pathutil import expand_inputs


_ALIASES = {"a": "append", "c": "create", "e": "extract", "l": "list", "r": "remove", "i": "info"}


def _parse_ordinals(values: List[str]) -> List[int]:
    """Turn 1-based ordinals from the command line into 0-based positions."""
    positions: List[int] = []
    for v in values:
        try:
            n = int(v)
        except ValueError:
            raise ValueError(f"File indices must be numbers: {v!r}")
        if n < 1:
            raise ValueError("File indices must start from 1")
        positions.append(n - 1)
    return positions


def _warn_damaged(archive: FctArchive) -> None:
    if archive.scan_truncated_at is not None:
        print(
            f"Warning: archive is damaged at offset {archive.scan_truncated_at}; "
            "entries from there on are ignored. Use --strict to fail instead.",
            file=sys.stderr,
        )


def _add_inputs(archive: FctArchive, inputs: List[str], *, root: Optional[str], quiet: bool) -> bool:
    paths = expand_inputs(inputs)
    t0 = time.time()

    def _on_entry(arc_path: str):
        if not quiet:
            print(f"   adding: {arc_path}")

    def _on_error(path: str, exc: Exception):
        print(f"Warning: failed to add {path}: {exc}", file=sys.stderr)

    failed = archive.append_many(paths, root=root, on_entry=_on_entry, on_error=_on_error)
    dt = max(0.000001, time.time() - t0)
    print(f"Done: added {len(paths) - len(failed)}/{len(paths)} files in {dt:.1f}s")
    if failed:
        print("Failed to add files:")
        for p in failed:
            print(f"  {p}")
        return False
    return True


def cmd_create(
    archive: str,
    inputs: List[str],
    *,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    root: Optional[str] = None,
    quiet: bool = False,
) -> bool:
    """Create a new archive and add files/directories to it.

    Args:
        archive: Path of the archive to create (an existing file is replaced).
        inputs: Files or directories to add; directories are expanded recursively.
        chunk_size: Block size in bytes (1..65535), fixed for the archive's lifetime.
        root: Directory archived paths are made relative to (default: current directory).
        quiet: Only print the summary.

    Returns:
        True when every file was added.
    """
    with FctArchive.create(archive, chunk_size) as a:
        print(f"Archive created: {archive} (chunk size {a.chunk_size})")
        return _add_inputs(a, inputs, root=root, quiet=quiet)


def cmd_append(archive: str, inputs: List[str], *, root: Optional[str] = None, quiet: bool = False) -> bool:
    """Append files/directories to an existing archive."""
    with FctArchive(archive) as a:
        return _add_inputs(a, inputs, root=root, quiet=quiet)


def cmd_list(archive: str, *, strict: bool = False) -> bool:
    """List archive entries as ``ordinal: path size``."""
    with FctArchive(archive, strict=strict) as a:
        entries = a.list()
        _warn_damaged(a)
    if not entries:
        print("No files in archive")
        return True
    for e in entries:
        print(f"{e.ordinal}: {e.path} {e.size}")
    return True


def cmd_extract(archive: str, *, outdir: str = ".", ordinals: Optional[List[str]] = None, quiet: bool = False) -> bool:
    """Extract entries (all, or the given 1-based ordinals) into ``outdir``.

    Files that already exist in ``outdir`` are skipped, never overwritten.
    """
    positions = _parse_ordinals(ordinals or [])
    extracted = 0
    skipped = 0

    def _on_entry(arc_path: str, written: bool):
        nonlocal extracted, skipped
        if written:
            extracted += 1
            if not quiet:
                print(f" extracting: {arc_path}")
        else:
            skipped += 1
            print(f"   skipping: {arc_path} (exists)")

    def _on_error(arc_path: str, exc: Exception):
        print(f"Warning: failed to extract {arc_path}: {exc}", file=sys.stderr)

    t0 = time.time()
    with FctArchive(archive) as a:
        failed = a.extract_many(outdir, positions, on_entry=_on_entry, on_error=_on_error)
        _warn_damaged(a)
    dt = max(0.000001, time.time() - t0)
    print(f"Done: extracted {extracted} files in {dt:.1f}s; skipped={skipped} failed={len(failed)}")
    if failed:
        print("Failed to extract files:")
        for p in failed:
            print(f"  {p}")
        return False
    return True


def cmd_remove(archive: str, ordinals: List[str]) -> bool:
    """Remove entries by 1-based ordinal, rewriting the archive."""
    positions = _parse_ordinals(ordinals)
    with FctArchive(archive) as a:
        names = {i: h.path for i, h in enumerate(a.headers())}
        for i in sorted(set(positions)):
            if i in names:
                print(f"   removing: {names[i]}")
        removed = a.remove(positions)
    print(f"Done: removed {removed} files")
    return True


def cmd_info(archive: str) -> bool:
    """Show archive information."""
    with FctArchive(archive) as a:
        headers = a.headers()
        logical = sum(h.size(a.chunk_size) for h in headers)
        stored = sum(h.stored_size(a.chunk_size) for h in headers)
        print(f"Archive: {archive}")
        print(f"  Chunk size: {a.chunk_size}")
        print(f"  Entries: {len(headers)}")
        print(f"  Content bytes: {logical}")
        print(f"  Stored bytes: {stored} (padding {stored - logical})")
        print(f"  File size: {os.path.getsize(archive)}")
        _warn_damaged(a)
    return True


def main(argv: List[str] | None = None):
    ap = argparse.ArgumentParser(
        prog="fct",
        description="FCT file container: packs files into one archive of fixed-size chunks",
        epilog="Aliases: c=create a=append e=extract l=list r=remove i=info. Indices are 1-based as shown by 'list'.",
    )
    sub = ap.add_subparsers(dest="cmd", required=True)

    ap_create = sub.add_parser("create", aliases=["c"], help="Create archive")
    ap_create.add_argument("archive", help="Archive path")
    ap_create.add_argument("inputs", nargs="+", help="Input files/directories")
    ap_create.add_argument(
        "--chunk-size",
        type=int,
        default=DEFAULT_CHUNK_SIZE,
        help=f"Chunk size in bytes (1..{MAX_CHUNK_SIZE}, default {DEFAULT_CHUNK_SIZE})",
    )
    ap_create.add_argument("--root", help="Store paths relative to this directory (default: current directory)")
    ap_create.add_argument("--quiet", help="limit outputs to summaries only", action="store_true")

    ap_append = sub.add_parser("append", aliases=["a"], help="Append to archive")
    ap_append.add_argument("archive", help="Archive path")
    ap_append.add_argument("inputs", nargs="+", help="Input files/directories")
    ap_append.add_argument("--root", help="Store paths relative to this directory (default: current directory)")
    ap_append.add_argument("--quiet", help="limit outputs to summaries only", action="store_true")

    ap_extract = sub.add_parser("extract", aliases=["e"], help="Extract from archive")
    ap_extract.add_argument("archive", help="Archive path")
    ap_extract.add_argument("indices", nargs="*", help="File indices (if none, all are extracted)")
    ap_extract.add_argument("--outdir", default=".", help="Output directory")
    ap_extract.add_argument("--quiet", help="limit outputs to summaries only", action="store_true")

    ap_list = sub.add_parser("list", aliases=["l"], help="List archive contents")
    ap_list.add_argument("archive", help="Archive path")
    ap_list.add_argument("--strict", action="store_true", help="Fail on a damaged entry header instead of stopping there")

    ap_remove = sub.add_parser("remove", aliases=["r"], help="Remove files from archive (rewrites it)")
    ap_remove.add_argument("archive", help="Archive path")
    ap_remove.add_argument("indices", nargs="+", help="File indices to remove")

    ap_info = sub.add_parser("info", aliases=["i"], help="Show archive information")
    ap_info.add_argument("archive", help="Archive path")

    args = ap.parse_args(argv)
    cmd = _ALIASES.get(args.cmd, args.cmd)
    ok = True
    try:
        if cmd == "create":
            ok = cmd_create(args.archive, args.inputs, chunk_size=args.chunk_size, root=args.root, quiet=args.quiet)
        elif cmd == "append":
            ok = cmd_append(args.archive, args.inputs, root=args.root, quiet=args.quiet)
        elif cmd == "extract":
            ok = cmd_extract(args.archive, outdir=args.outdir, ordinals=args.indices, quiet=args.quiet)
        elif cmd == "list":
            ok = cmd_list(args.archive, strict=args.strict)
        elif cmd == "remove":
            ok = cmd_remove(args.archive, args.indices)
        elif cmd == "info":
            ok = cmd_info(args.archive)
        else:
            raise RuntimeError("Unknown command")
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)
    except FormatError as e:
        print(f"Error: archive is damaged or not an FCT archive: {e}", file=sys.stderr)
        sys.exit(2)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)
    except RuntimeError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)
    except (FctError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)
    if not ok:
        sys.exit(1)


if __name__ == "__main__":
    main()
