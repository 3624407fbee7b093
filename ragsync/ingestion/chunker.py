"""
Chunker
=======
Splits source text into bounded chunks for embedding.

Code in a supported language is cut along syntax-tree boundaries (functions,
classes, declarations, comments). Everything else, and every case where the
tree cannot be used, goes through the overlapping window splitter. Parsing
problems never raise: the result carries a `warning` in its metadata instead.
"""

from __future__ import annotations

import bisect
from dataclasses import dataclass, replace
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

from ragsync.config.rag_config import ChunkingOptions
from ragsync.exceptions import ChunkingError
from ragsync.ingestion.language import SupportedLanguage, coerce_language
from ragsync.ingestion.parsing import DEFERRED_LANGUAGES, ParserRegistry
from ragsync.ingestion.types import Chunk
from ragsync.utils.logging import SimpleLogger

FALLBACK_PREFIX = "Fallback text splitting applied"
LARGE_NODE_WARNING = "Fallback split applied to large node"
FILLER_NODE_TYPE = "text_between_nodes"


def split_text_with_overlap(text: str, max_size: int, overlap: int) -> List[Tuple[int, int]]:
    """
    Window spans (start, end) over `text`.

    Windows are at most `max_size` characters and advance by
    `max_size - overlap`; the last window ends exactly at len(text).
    """
    if max_size <= 0:
        raise ChunkingError("max_size must be positive")
    if overlap < 0:
        raise ChunkingError("overlap must be non-negative")
    if overlap >= max_size:
        raise ChunkingError("overlap must be smaller than max_size")

    text_length = len(text)
    if text_length <= max_size:
        return [(0, text_length)]

    spans: List[Tuple[int, int]] = []
    step = max(1, max_size - overlap)
    start = 0
    while start < text_length:
        end = min(start + max_size, text_length)
        spans.append((start, end))
        if end == text_length:
            break
        start += step
    return spans


# ---------------------------------------------------------------------------
# Internal span records for the tree walk
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class _Span:
    start: int
    end: int
    node_type: str
    warning: Optional[str] = None
    fallback_index: Optional[int] = None
    fallback_total: Optional[int] = None

    @property
    def mergeable(self) -> bool:
        return self.warning is None


@dataclass(frozen=True)
class _Filler:
    start: int
    end: int


class _Source:
    """Source text plus byte->char and char->line lookups."""

    def __init__(self, text: str) -> None:
        self.text = text
        self.data = text.encode("utf-8")
        if len(self.data) == len(text):
            self._char_bytes: Optional[List[int]] = None  # pure ASCII, identity
        else:
            offsets, pos = [], 0
            for ch in text:
                offsets.append(pos)
                pos += len(ch.encode("utf-8"))
            self._char_bytes = offsets
        self._line_starts = [0] + [i + 1 for i, ch in enumerate(text) if ch == "\n"]

    def char(self, byte_offset: int) -> int:
        if self._char_bytes is None:
            return byte_offset
        if byte_offset >= len(self.data):
            return len(self.text)
        return bisect.bisect_right(self._char_bytes, byte_offset) - 1

    def line(self, char_offset: int) -> int:
        """1-based line of the character at char_offset."""
        return bisect.bisect_right(self._line_starts, char_offset)


# ---------------------------------------------------------------------------
# Chunker
# ---------------------------------------------------------------------------

class Chunker:
    """Syntax-aware splitter with a window-based fallback."""

    def __init__(self, parsers: Optional[ParserRegistry] = None, options: Optional[ChunkingOptions] = None):
        self.parsers = parsers or ParserRegistry()
        self.options = options or ChunkingOptions()

    def chunk(
        self,
        text: str,
        language: Union[SupportedLanguage, str, None],
        options: Optional[ChunkingOptions] = None,
        base_metadata: Optional[Dict[str, Any]] = None,
    ) -> List[Chunk]:
        """
        Split `text` into chunks in document order.

        :param text: Full source text.
        :param language: Language tag or None for plain text.
        :param options: Size limits; defaults to the Chunker's own options.
        :param base_metadata: Copied into every chunk (file_path, source, ...).
        :return: Chunks whose content length never exceeds max_chunk_size.
        """
        opts = options or self.options
        base = dict(base_metadata or {})
        if not text or not text.strip():
            return []

        lang = coerce_language(language)
        if lang is None:
            if language is not None:
                SimpleLogger.debug(f"Unknown language '{language}', using text splitting.")
            return self._fallback(text, opts, base, None, f"{FALLBACK_PREFIX} (no language)")

        if lang in DEFERRED_LANGUAGES:
            reason = f"{DEFERRED_LANGUAGES[lang]} AST deferred"
            return self._fallback(text, opts, base, lang, f"{FALLBACK_PREFIX} ({reason})")

        if not self.parsers.has_parser(lang):
            return self._fallback(text, opts, base, lang, f"{FALLBACK_PREFIX} (no parser for {lang.value})")

        source = _Source(text)
        try:
            tree = self.parsers.parse(source.data, lang)
            spans = self._walk(tree.root_node, source, self.parsers.boundary_types(lang), opts)
        except Exception as e:  # grammar crash or unexpected tree shape
            SimpleLogger.error(f"AST chunking failed for {base.get('file_path', 'snippet')}", e)
            return self._fallback(text, opts, base, lang, f"{FALLBACK_PREFIX} (parsing error: {e})")

        spans = [s for s in spans if text[s.start:s.end].strip()]
        if not spans:
            return self._fallback(text, opts, base, lang, f"{FALLBACK_PREFIX} (no AST chunks)")
        return [self._to_chunk(s, source, base, lang) for s in spans]

    # ------------------------------------------------------------------
    # Fallback
    # ------------------------------------------------------------------

    def _fallback(
        self,
        text: str,
        opts: ChunkingOptions,
        base: Dict[str, Any],
        lang: Optional[SupportedLanguage],
        warning: str,
    ) -> List[Chunk]:
        SimpleLogger.debug(f"{warning} for {base.get('file_path', 'snippet')}")
        source = _Source(text)
        windows = split_text_with_overlap(text, opts.max_chunk_size, opts.chunk_overlap)
        spans = [
            _Span(start, end, "text", warning, i + 1, len(windows))
            for i, (start, end) in enumerate(windows)
        ]
        return [self._to_chunk(s, source, base, lang) for s in spans]

    # ------------------------------------------------------------------
    # Tree walk
    # ------------------------------------------------------------------

    def _walk(self, node: Any, src: _Source, boundary, opts: ChunkingOptions) -> List[_Span]:
        start, end = src.char(node.start_byte), src.char(node.end_byte)
        fits = end - start <= opts.max_chunk_size

        if node.type in boundary and fits:
            return [_Span(start, end, node.type)]

        children = list(_meaningful_descendants(node, boundary))
        if children:
            return self._segment(start, end, children, src, boundary, opts)

        if fits:
            return [_Span(start, end, node.type)]
        return self._split_span(start, end, node.type, src.text, opts, LARGE_NODE_WARNING)

    def _segment(self, start, end, children, src: _Source, boundary, opts: ChunkingOptions) -> List[_Span]:
        pieces: List[Union[_Span, _Filler]] = []
        cursor = start
        for child in children:
            child_start = src.char(child.start_byte)
            filler = _trimmed(src.text, cursor, child_start)
            if filler is not None:
                pieces.append(filler)
            pieces.extend(self._walk(child, src, boundary, opts))
            cursor = max(cursor, src.char(child.end_byte))
        filler = _trimmed(src.text, cursor, end)
        if filler is not None:
            pieces.append(filler)
        return self._merge_fillers(pieces, src.text, opts)

    def _merge_fillers(self, pieces, text: str, opts: ChunkingOptions) -> List[_Span]:
        """Fold small gaps into a neighbouring chunk, keep large gaps as their own chunks."""
        max_size = opts.max_chunk_size
        threshold = max(10, int(0.1 * max_size))
        result: List[_Span] = []
        pending: Optional[_Filler] = None

        def absorb_backwards(filler: _Filler) -> None:
            prev = result[-1] if result else None
            if prev is not None and prev.mergeable and filler.end - prev.start <= max_size:
                result[-1] = replace(prev, end=max(prev.end, filler.end))
            else:
                result.extend(self._split_span(filler.start, filler.end, FILLER_NODE_TYPE, text, opts, None))

        for piece in pieces:
            if isinstance(piece, _Filler):
                if pending is not None:
                    absorb_backwards(pending)
                    pending = None
                if len(text[piece.start:piece.end].strip()) < threshold:
                    pending = piece
                else:
                    result.extend(self._split_span(piece.start, piece.end, FILLER_NODE_TYPE, text, opts, None))
                continue

            if pending is not None:
                if piece.mergeable and piece.end - pending.start <= max_size:
                    piece = replace(piece, start=pending.start)
                else:
                    absorb_backwards(pending)
                pending = None
            result.append(piece)

        if pending is not None:
            absorb_backwards(pending)
        return result

    def _split_span(
        self, start: int, end: int, node_type: str, text: str, opts: ChunkingOptions, warning: Optional[str]
    ) -> List[_Span]:
        if end - start <= opts.max_chunk_size:
            return [_Span(start, end, node_type)]
        windows = split_text_with_overlap(text[start:end], opts.max_chunk_size, opts.chunk_overlap)
        return [
            _Span(start + s, start + e, node_type, warning or LARGE_NODE_WARNING, i + 1, len(windows))
            for i, (s, e) in enumerate(windows)
        ]

    # ------------------------------------------------------------------

    @staticmethod
    def _to_chunk(span: _Span, src: _Source, base: Dict[str, Any], lang: Optional[SupportedLanguage]) -> Chunk:
        metadata = dict(base)
        metadata["node_type"] = span.node_type
        metadata["start_line"] = src.line(span.start)
        metadata["end_line"] = src.line(max(span.start, span.end - 1))
        if lang is not None:
            metadata["language"] = lang.value
        if span.warning is not None:
            metadata["warning"] = span.warning
        if span.fallback_total is not None:
            metadata["fallback_index"] = span.fallback_index
            metadata["fallback_total"] = span.fallback_total
        doc_id = base.get("file_path") or base.get("source") or "code_snippet"
        return Chunk(
            id=str(doc_id),
            content=src.text[span.start:span.end],
            metadata=metadata,
            start_position=span.start,
            end_position=span.end,
        )


def _meaningful_descendants(node: Any, boundary) -> Iterator[Any]:
    """Closest boundary-type descendants, looking through wrapper nodes."""
    for child in node.children:
        if child.type in boundary:
            yield child
        else:
            yield from _meaningful_descendants(child, boundary)


def _trimmed(text: str, start: int, end: int) -> Optional[_Filler]:
    if end <= start:
        return None
    segment = text[start:end]
    stripped = segment.strip()
    if not stripped:
        return None
    lead = len(segment) - len(segment.lstrip())
    return _Filler(start + lead, start + lead + len(stripped))
