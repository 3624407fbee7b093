# -*- coding: utf-8 -*-
"""
ignore_rules.py

One place that decides whether a workspace-relative path takes part in
indexing. The DocumentLoader (full scans) and the RagIndexService watcher
(incremental events) both ask the same IgnoreRules instance, so a file that a
full sync skips is also skipped when it changes on disk.

A path is ignored when ANY of these match:
    - default excludes (VCS metadata, dependency and build directories)
    - backend storage directories inside the workspace (never index the index)
    - explicit exclude globs
    - .gitignore rules (when respected)
    - a dot-prefixed path component (".env", ".idea/...")
and, when include globs are configured, when NONE of them match.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, List, Optional, Sequence

import pathspec

from ragsync.utils.logging import SimpleLogger

DEFAULT_EXCLUDES: List[str] = [
    ".git/",
    ".hg/",
    ".svn/",
    "node_modules/",
    "dist/",
    "build/",
    "__pycache__/",
    ".venv/",
    "venv/",
]


class IgnoreRules:
    def __init__(
        self,
        *,
        include_patterns: Optional[Sequence[str]] = None,
        exclude_patterns: Optional[Sequence[str]] = None,
        gitignore_lines: Optional[Iterable[str]] = None,
        extra_excluded_dirs: Optional[Sequence[str]] = None,
        ignore_dot_paths: bool = True,
    ) -> None:
        self.include_patterns = list(include_patterns or [])
        self.exclude_patterns = list(exclude_patterns or [])
        self.excluded_dirs = [d.strip("/") for d in (extra_excluded_dirs or []) if d.strip("/")]
        self.ignore_dot_paths = ignore_dot_paths

        self._defaults = pathspec.GitIgnoreSpec.from_lines(DEFAULT_EXCLUDES)
        self._excludes = pathspec.GitIgnoreSpec.from_lines(
            self.exclude_patterns + [f"/{d}/" for d in self.excluded_dirs]
        )
        self._gitignore = (
            pathspec.GitIgnoreSpec.from_lines(list(gitignore_lines)) if gitignore_lines is not None else None
        )
        self._includes = (
            pathspec.GitIgnoreSpec.from_lines(self.include_patterns) if self.include_patterns else None
        )

    @classmethod
    def for_workspace(
        cls,
        workspace_root: Path,
        *,
        include_patterns: Optional[Sequence[str]] = None,
        exclude_patterns: Optional[Sequence[str]] = None,
        respect_gitignore: bool = True,
        extra_excluded_dirs: Optional[Sequence[str]] = None,
    ) -> "IgnoreRules":
        gitignore_lines = load_gitignore(workspace_root) if respect_gitignore else None
        return cls(
            include_patterns=include_patterns,
            exclude_patterns=exclude_patterns,
            gitignore_lines=gitignore_lines,
            extra_excluded_dirs=extra_excluded_dirs,
        )

    @property
    def has_gitignore(self) -> bool:
        return self._gitignore is not None

    # ------------------------------------------------------------------

    def is_ignored(self, rel_path: str) -> bool:
        """`rel_path` is a workspace-relative POSIX path to a file."""
        rel = rel_path.replace("\\", "/").lstrip("/")
        if not rel or rel.startswith("../"):
            return True
        if self.ignore_dot_paths and any(part.startswith(".") for part in rel.split("/")):
            return True
        if self._defaults.match_file(rel) or self._excludes.match_file(rel):
            return True
        if self._gitignore is not None and self._gitignore.match_file(rel):
            return True
        if self._includes is not None and not self._includes.match_file(rel):
            return True
        return False

    def is_dir_pruned(self, rel_dir: str) -> bool:
        """Directories that can be skipped entirely during a scan."""
        rel = rel_dir.replace("\\", "/").strip("/")
        if not rel:
            return False
        if self.ignore_dot_paths and rel.rsplit("/", 1)[-1].startswith("."):
            return True
        dir_pattern = rel + "/"
        if self._defaults.match_file(dir_pattern) or self._excludes.match_file(dir_pattern):
            return True
        return self._gitignore is not None and self._gitignore.match_file(dir_pattern)


def load_gitignore(workspace_root: Path) -> Optional[List[str]]:
    """Lines of <root>/.gitignore, or None when the file does not exist."""
    gitignore_path = Path(workspace_root) / ".gitignore"
    try:
        content = gitignore_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        SimpleLogger.info(".gitignore not found, using default ignore patterns.")
        return None
    except OSError as e:
        SimpleLogger.warning(f"Error reading .gitignore at {gitignore_path}: {e}")
        return None
    lines = [line for line in content.splitlines() if line.strip() and not line.lstrip().startswith("#")]
    SimpleLogger.info(f"Loaded {len(lines)} ignore patterns from .gitignore.")
    return lines
