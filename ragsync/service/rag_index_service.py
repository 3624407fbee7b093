# -*- coding: utf-8 -*-
"""
rag_index_service.py

Keeps a vector index synchronized with a workspace directory.

Lifecycle:
    service = RagIndexService(RagServiceConfig(...), workspace_root)
    await service.initialize()              # embedder + IndexManager + ignore rules
    await service.sync_workspace_index()    # full reconciliation pass
    await service.start_watching()          # debounced incremental updates
    ...
    await service.close()

States:
    uninitialized -> initialized -> syncing | watching | idle -> stopped

Events:
    add / change -> debounced reindex of that file (one timer per path)
    unlink       -> immediate delete_where({"file_path": path})
Events that arrive while a full sync runs are dropped; the sync itself
reflects the disk state it scanned.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import List, Optional, Union

import watchfiles
from watchfiles import Change

from ragsync.config.rag_config import ChromaDBConfig, RagServiceConfig
from ragsync.exceptions import ServiceStateError
from ragsync.ingestion.chunker import Chunker
from ragsync.ingestion.embedder import EmbeddingProvider, create_embedder
from ragsync.ingestion.ignore_rules import IgnoreRules
from ragsync.ingestion.index_manager import IndexManager
from ragsync.ingestion.ingestion_manager import FileIndexResult, IngestionManager, SyncStats
from ragsync.ingestion.loader import DocumentLoader
from ragsync.ingestion.parsing import ParserRegistry
from ragsync.service.debouncer import Debouncer
from ragsync.utils.logging import SimpleLogger
from ragsync.utils.paths import PATHS, relative_dir_if_inside, to_relative_posix


class ServiceState(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"
    SYNCING = "syncing"
    WATCHING = "watching"
    IDLE = "idle"
    STOPPED = "stopped"


@dataclass(frozen=True)
class ServiceStatus:
    state: ServiceState
    initialized: bool
    syncing: bool
    watching: bool
    initial_scan_complete: bool
    pending_files: int
    processed_files_count: int
    total_files_initial_scan: int


_EVENT_NAMES = {Change.added: "add", Change.modified: "change", Change.deleted: "unlink"}


class _WorkspaceFilter(watchfiles.DefaultFilter):
    """watchfiles filter backed by the service's IgnoreRules."""

    def __init__(self, root: Path, rules: IgnoreRules) -> None:
        self._root = root
        self._rules = rules
        super().__init__()

    def __call__(self, change: Change, path: str) -> bool:
        try:
            rel = to_relative_posix(self._root, path)
        except ValueError:
            return False
        return not self._rules.is_ignored(rel)


class RagIndexService:
    def __init__(
        self,
        config: RagServiceConfig,
        workspace_root: Union[str, Path],
        *,
        embedder: Optional[EmbeddingProvider] = None,
        index_manager: Optional[IndexManager] = None,
    ) -> None:
        """
        :param config: Service configuration (backends, watching, ignore rules, chunking).
        :param workspace_root: Directory to index; chunk ids are relative to it.
        :param embedder: Pre-built provider; built from config.embedding when None.
        :param index_manager: Pre-built manager; built from config.vector_store when None.
        """
        self.config = config
        self.workspace_root = Path(workspace_root).resolve()
        self._embedder = embedder
        self._index_manager = index_manager

        self._state = ServiceState.UNINITIALIZED
        self._syncing = False
        self._initial_scan_complete = False
        self._processed_files = 0
        self._total_files_initial_scan = 0
        self.generation = 0

        self._rules: Optional[IgnoreRules] = None
        self._loader: Optional[DocumentLoader] = None
        self._ingestion: Optional[IngestionManager] = None
        self._debouncer = Debouncer(config.debounce_delay, self._debounced_index)
        self._watch_task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None

        SimpleLogger.debug(f"RagIndexService created for {self.workspace_root}")

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def index_manager(self) -> Optional[IndexManager]:
        return self._index_manager

    @property
    def embedder(self) -> Optional[EmbeddingProvider]:
        return self._embedder

    @property
    def ingestion_manager(self) -> Optional[IngestionManager]:
        return self._ingestion

    @property
    def ignore_rules(self) -> Optional[IgnoreRules]:
        return self._rules

    @property
    def state(self) -> ServiceState:
        return self._state

    @property
    def is_initialized(self) -> bool:
        return self._state not in (ServiceState.UNINITIALIZED, ServiceState.STOPPED)

    @property
    def is_watching(self) -> bool:
        return self._watch_task is not None and not self._watch_task.done()

    def get_service_status(self) -> ServiceStatus:
        return ServiceStatus(
            state=self._state,
            initialized=self.is_initialized,
            syncing=self._syncing,
            watching=self.is_watching,
            initial_scan_complete=self._initial_scan_complete,
            pending_files=self._debouncer.pending,
            processed_files_count=self._processed_files,
            total_files_initial_scan=self._total_files_initial_scan,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """Build embedder, index manager and ignore rules. A second call only warns."""
        if self._state != ServiceState.UNINITIALIZED:
            SimpleLogger.warning("RagIndexService already initialized.")
            return

        SimpleLogger.info("Initializing RagIndexService...")
        if self._embedder is None:
            self._embedder = create_embedder(self.config.embedding)
        if self._index_manager is None:
            self._index_manager = await IndexManager.create(self.config.vector_store, self.workspace_root)

        self._rules = IgnoreRules.for_workspace(
            self.workspace_root,
            include_patterns=self.config.include_patterns,
            exclude_patterns=self.config.exclude_patterns,
            respect_gitignore=self.config.respect_gitignore,
            extra_excluded_dirs=self._storage_dirs(),
        )
        self._loader = DocumentLoader(self.workspace_root, self._rules)
        self._ingestion = IngestionManager(
            self._index_manager,
            self._embedder,
            Chunker(ParserRegistry(), self.config.chunking_options),
            self.config.chunking_options,
        )
        self._state = ServiceState.INITIALIZED
        SimpleLogger.info("RagIndexService initialized successfully.")

    async def sync_workspace_index(self) -> Optional[SyncStats]:
        """
        Full reconciliation: index every non-ignored file and delete stale ids.
        Returns None when a sync is already running (the call is skipped).
        """
        self._require_initialized("sync")
        if self._syncing:
            SimpleLogger.warning("Sync already in progress. Skipping.")
            return None

        self._syncing = True
        self._state = ServiceState.SYNCING
        SimpleLogger.info("Starting workspace index synchronization...")
        try:
            documents = await asyncio.to_thread(self._loader.load_documents)
            if not self._initial_scan_complete:
                self._total_files_initial_scan = len(documents)
            if not documents:
                SimpleLogger.info("No documents found to index after filtering.")
            stats = await self._ingestion.sync_documents(documents)
            self._processed_files += stats.files_indexed
            self._initial_scan_complete = True
            self.generation += 1
            SimpleLogger.info("Workspace index synchronization completed.")
            return stats
        finally:
            self._syncing = False
            if self._state == ServiceState.SYNCING:
                self._state = ServiceState.WATCHING if self.is_watching else ServiceState.IDLE

    async def start_watching(self) -> bool:
        """Start the file watcher task. Returns True when a watcher was started."""
        if not self.is_initialized:
            SimpleLogger.warning("Cannot start watching, service not initialized.")
            return False
        if not self.config.auto_watch_enabled:
            SimpleLogger.info("Auto-watching is disabled in configuration.")
            return False
        if self.is_watching:
            SimpleLogger.warning("Watcher already running.")
            return False

        SimpleLogger.info("Starting file watcher...")
        self._stop_event = asyncio.Event()
        self._watch_task = asyncio.create_task(self._watch_loop(self._stop_event))
        if not self._syncing:
            self._state = ServiceState.WATCHING
        return True

    async def stop_watching(self) -> None:
        """Stop the watcher and drop every pending debounce timer. Idempotent."""
        cancelled = self._debouncer.cancel_all()
        task, self._watch_task = self._watch_task, None
        if task is None:
            return
        SimpleLogger.info("Stopping file watcher...")
        if self._stop_event is not None:
            self._stop_event.set()
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        if self._state == ServiceState.WATCHING:
            self._state = ServiceState.IDLE
        SimpleLogger.info(f"File watcher stopped ({cancelled} pending updates dropped).")

    async def close(self) -> None:
        """Stop watching, let running reindexes finish, release backends."""
        if self._state == ServiceState.STOPPED:
            return
        await self.stop_watching()
        await self._debouncer.drain()
        if self._embedder is not None:
            await self._embedder.aclose()
        if self._index_manager is not None:
            await self._index_manager.close()
        self._state = ServiceState.STOPPED
        SimpleLogger.info("RagIndexService stopped.")

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    async def handle_file_event(self, event: str, path: Union[str, Path]) -> None:
        """
        Route one watcher event ("add" | "change" | "unlink") for an absolute
        or workspace-relative path.
        """
        if self._syncing:
            SimpleLogger.debug(f"Dropping {event} event for {path}: sync in progress.")
            return
        rel = self._relative(path)
        if rel is None or self._rules is None or self._rules.is_ignored(rel):
            return

        SimpleLogger.info(f"File event: {event} - {rel}")
        if event in ("add", "change"):
            if (self.workspace_root / rel).is_dir():
                return
            self._debouncer.schedule(rel)
        elif event == "unlink":
            self._debouncer.cancel(rel)
            await self._delete_file_index(rel)
        else:
            SimpleLogger.debug(f"Unhandled event type {event} for {rel}")

    async def index_file(self, path: Union[str, Path]) -> Optional[FileIndexResult]:
        """
        Re-index one file now (chunk, embed, upsert, drop stale chunks).
        A missing file is treated as a deletion and returns None.
        Holds the per-file lock, so it never interleaves with another
        reindex or delete of the same path.
        """
        self._require_initialized("index a file")
        rel = self._relative(path)
        if rel is None:
            raise ValueError(f"Path is outside the workspace: {path}")

        async with self._ingestion.lock_for(rel):
            try:
                doc = await asyncio.to_thread(self._loader.load_file, rel)
            except FileNotFoundError:
                SimpleLogger.info(f"File {rel} not found during indexing (likely deleted). Attempting cleanup.")
                await self._delete_entries(rel)
                return None

            if doc is None:
                deleted = await self._index_manager.delete_where({"file_path": rel})
                return FileIndexResult(rel, 0, deleted)

            result = await self._ingestion.reindex_document(doc)
        self._processed_files += 1
        return result

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _watch_loop(self, stop_event: asyncio.Event) -> None:
        watch_filter = _WorkspaceFilter(self.workspace_root, self._rules)
        try:
            async for changes in watchfiles.awatch(
                self.workspace_root,
                watch_filter=watch_filter,
                stop_event=stop_event,
                recursive=True,
                ignore_permission_denied=True,
            ):
                for change, path in sorted(changes, key=lambda c: c[1]):
                    await self.handle_file_event(_EVENT_NAMES.get(change, str(change)), path)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            SimpleLogger.error("Watcher error", e)

    async def _debounced_index(self, rel: str) -> None:
        if self._syncing:
            return
        SimpleLogger.info(f"Indexing file: {rel}")
        try:
            await self.index_file(rel)
        except Exception as e:
            SimpleLogger.error(f"Error indexing file {rel}", e)

    async def _delete_file_index(self, rel: str) -> None:
        if self._syncing:
            return
        async with self._ingestion.lock_for(rel):
            await self._delete_entries(rel)

    async def _delete_entries(self, rel: str) -> None:
        SimpleLogger.info(f"Deleting index entries for file: {rel}")
        try:
            await self._index_manager.delete_where({"file_path": rel})
        except Exception as e:
            SimpleLogger.error(f"Error deleting index entries for {rel}", e)

    def _relative(self, path: Union[str, Path]) -> Optional[str]:
        try:
            return to_relative_posix(self.workspace_root, path)
        except ValueError:
            return None

    def _storage_dirs(self) -> List[str]:
        dirs = [PATHS["state_dir"]]
        vs = self.config.vector_store
        if isinstance(vs, ChromaDBConfig) and vs.path:
            rel = relative_dir_if_inside(self.workspace_root, vs.path)
            if rel is not None:
                SimpleLogger.info(f"Ignoring vector DB path: {rel}")
                dirs.append(rel)
        return dirs

    def _require_initialized(self, action: str) -> None:
        if not self.is_initialized or self._ingestion is None:
            raise ServiceStateError(f"RagIndexService must be initialized before trying to {action}.")
