from __future__ import annotations

import os
from typing import List

from .errors import PathError


def norm_path(p: str) -> str:
    """Normalize archive paths to a canonical forward-slash form.

    Rules:
    - Convert backslashes to slashes
    - Strip leading/trailing slashes
    - Remove empty and '.' segments
    - Reject '..' segments
    """
    p = p.replace("\\", "/").strip("/")
    parts = [q for q in p.split("/") if q not in ("", ".")]
    for q in parts:
        if q == "..":
            raise PathError(f"Path may not contain '..': {p}")
    return "/".join(parts)


def relativize(root: str, path: str) -> str:
    """Return ``path`` relative to ``root`` as a forward-slash archive path.

    Raises PathError when ``path`` is not below ``root`` (or lives on another
    drive) or when nothing is left after normalization.
    """
    root_abs = os.path.abspath(os.fspath(root))
    path_abs = os.path.abspath(os.fspath(path))
    try:
        rel = os.path.relpath(path_abs, start=root_abs)
    except ValueError as exc:
        raise PathError(f"Could not get relative path for {path_abs} from {root_abs}: {exc}") from exc
    if rel == os.pardir or rel.startswith(os.pardir + os.sep):
        raise PathError(f"{path_abs} is outside of {root_abs}")
    arc = norm_path(rel.replace(os.sep, "/"))
    if not arc:
        raise PathError(f"Could not get relative path for {path_abs} from {root_abs}")
    return arc


def expand_directory(path: str) -> List[str]:
    """List regular files under ``path`` recursively, in a stable order."""
    files: List[str] = []
    for root, dirnames, filenames in os.walk(os.fspath(path)):
        dirnames.sort()
        # prune symlink directories to avoid walking into them
        dirnames[:] = [d for d in dirnames if not os.path.islink(os.path.join(root, d))]
        for fn in sorted(filenames):
            full = os.path.join(root, fn)
            if os.path.isfile(full):
                files.append(full)
    return files


def expand_inputs(paths: List[str]) -> List[str]:
    """Replace directories in ``paths`` by the files they contain."""
    out: List[str] = []
    for p in paths:
        if os.path.isdir(p):
            out.extend(expand_directory(p))
        else:
            out.append(os.fspath(p))
    return out
