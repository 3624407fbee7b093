"""
Paths
=====
Centralises workspace-relative path handling so that the loader, the ignore
rules, the vector-store backends and the sync service all agree on how a file
is identified: a POSIX-style path relative to the workspace root.
"""
import posixpath
from pathlib import Path
from typing import Optional, TypedDict, Union

PathLike = Union[str, Path]


class _Paths(TypedDict):
    state_dir:  str
    chroma_db:  str


# Relative to the workspace root.
PATHS: _Paths = {
    "state_dir": ".ragsync",
    "chroma_db": ".ragsync/chroma_db",
}


def resolve_in_workspace(workspace_root: PathLike, path: PathLike) -> Path:
    """Resolve `path` against the workspace root (absolute paths are kept)."""
    p = Path(path)
    if not p.is_absolute():
        p = Path(workspace_root) / p
    return p.resolve()


def to_relative_posix(workspace_root: PathLike, path: PathLike) -> str:
    """
    Return `path` relative to the workspace root in POSIX form.
    Raises ValueError when the path lies outside the workspace.
    """
    root = Path(workspace_root).resolve()
    p = Path(path)
    if not p.is_absolute():
        rel = posixpath.normpath(p.as_posix())
        if rel == ".." or rel.startswith("../"):
            raise ValueError(f"{path} is outside the workspace")
        return rel
    return p.resolve().relative_to(root).as_posix()


def relative_dir_if_inside(workspace_root: PathLike, path: Optional[PathLike]) -> Optional[str]:
    """Workspace-relative POSIX dir for `path`, or None when it lies outside."""
    if not path:
        return None
    try:
        rel = to_relative_posix(workspace_root, resolve_in_workspace(workspace_root, path))
    except ValueError:
        return None
    return None if rel in ("", ".") else rel
