"""
DocumentLoader
==============
Responsible for discovering and loading source files below a workspace root.
"""

from pathlib import Path
from typing import Iterator, List, Optional

from ragsync.ingestion.ignore_rules import IgnoreRules
from ragsync.ingestion.types import Document
from ragsync.utils.logging import SimpleLogger

_BINARY_SNIFF_BYTES = 8192


class DocumentLoader:
    """Scans the workspace and returns one Document per readable text file."""

    def __init__(self, root: Path, rules: Optional[IgnoreRules] = None) -> None:
        """
        :param root: Workspace root; document ids are paths relative to it.
        :param rules: Ignore rules; defaults to the built-in excludes only.
        """
        self.root = Path(root).resolve()
        self.rules = rules or IgnoreRules()

    def load_documents(self) -> List[Document]:
        """
        Load all non-ignored files under the root.
        Files that cannot be read or look binary are skipped with a warning.

        :return: Documents sorted by id (workspace-relative POSIX path).
        """
        if not self.root.exists():
            raise FileNotFoundError(f"Workspace root does not exist: {self.root}")

        SimpleLogger.info(f"Scanning directory: {self.root}")
        docs: List[Document] = []
        for file_path in sorted(self._iter_files(self.root)):
            rel_path = file_path.relative_to(self.root).as_posix()
            if self.rules.is_ignored(rel_path):
                continue
            try:
                doc = self.load_file(rel_path)
            except OSError as e:
                SimpleLogger.warning(f"Skipping file {rel_path} due to read error: {e}")
                continue
            if doc is not None:
                docs.append(doc)

        SimpleLogger.info(f"Successfully loaded {len(docs)} documents.")
        return docs

    def load_file(self, rel_path: str) -> Optional[Document]:
        """
        Read one workspace file into a Document (None for binary content).
        OSError (including FileNotFoundError) propagates to the caller.
        """
        file_path = self.root / rel_path
        raw = file_path.read_bytes()
        if b"\x00" in raw[:_BINARY_SNIFF_BYTES]:
            SimpleLogger.debug(f"Skipping binary file {rel_path}")
            return None
        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError:
            # Fallback: latin-1 never fails, keeps non-UTF8 files indexable
            text = raw.decode("latin-1")

        st = file_path.stat()
        created = getattr(st, "st_birthtime", st.st_ctime)
        return Document(
            id=rel_path,
            content=text,
            metadata={
                "file_path": rel_path,
                "created_at": created * 1000.0,
                "last_modified": st.st_mtime * 1000.0,
                "size": int(st.st_size),
            },
        )

    def _iter_files(self, folder: Path) -> Iterator[Path]:
        try:
            entries = list(folder.iterdir())
        except OSError as e:
            SimpleLogger.warning(f"Cannot list directory {folder}: {e}")
            return
        for entry in entries:
            if entry.is_symlink():
                continue
            if entry.is_dir():
                rel_dir = entry.relative_to(self.root).as_posix()
                if not self.rules.is_dir_pruned(rel_dir):
                    yield from self._iter_files(entry)
            elif entry.is_file():
                yield entry
