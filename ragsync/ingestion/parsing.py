# -*- coding: utf-8 -*-
"""
parsing.py

Tree-sitter grammars for the chunker.

ParserRegistry owns the loaded parsers for one Chunker instance. Grammars are
resolved lazily through tree-sitter-language-pack and cached per registry;
a grammar that fails to load is cached as "unavailable" so the chunker falls
back to text splitting without retrying on every file.
"""

from __future__ import annotations

import threading
from typing import Any, Dict, FrozenSet, Optional

from tree_sitter_language_pack import get_parser

from ragsync.ingestion.language import SupportedLanguage
from ragsync.utils.logging import SimpleLogger

# Node kinds that make good chunk boundaries, per language.
CHUNK_BOUNDARY_TYPES: Dict[SupportedLanguage, FrozenSet[str]] = {
    SupportedLanguage.PYTHON: frozenset({
        "function_definition", "class_definition", "decorated_definition", "comment",
    }),
    SupportedLanguage.JAVASCRIPT: frozenset({
        "function_declaration", "generator_function_declaration", "class_declaration",
        "method_definition", "lexical_declaration", "variable_declaration",
        "export_statement", "comment",
    }),
    SupportedLanguage.TYPESCRIPT: frozenset({
        "function_declaration", "generator_function_declaration", "class_declaration",
        "abstract_class_declaration", "method_definition", "lexical_declaration",
        "variable_declaration", "export_statement", "interface_declaration",
        "type_alias_declaration", "enum_declaration", "comment",
    }),
    SupportedLanguage.TSX: frozenset({
        "function_declaration", "generator_function_declaration", "class_declaration",
        "abstract_class_declaration", "method_definition", "lexical_declaration",
        "variable_declaration", "export_statement", "interface_declaration",
        "type_alias_declaration", "enum_declaration", "jsx_element",
        "jsx_self_closing_element", "comment",
    }),
    SupportedLanguage.JSON: frozenset({"object", "array", "pair"}),
    SupportedLanguage.CSS: frozenset({
        "rule_set", "media_statement", "keyframes_statement", "import_statement",
        "at_rule", "comment",
    }),
    SupportedLanguage.HTML: frozenset({"element", "script_element", "style_element", "comment"}),
    SupportedLanguage.XML: frozenset({"element", "Comment", "comment"}),
}

# Prose/markup formats whose AST chunking is not implemented yet.
DEFERRED_LANGUAGES: Dict[SupportedLanguage, str] = {
    SupportedLanguage.MARKDOWN: "Markdown",
}


class ParserRegistry:
    """Lazily loads and caches one tree-sitter parser per language."""

    def __init__(self) -> None:
        self._parsers: Dict[SupportedLanguage, Optional[Any]] = {}
        # tree-sitter parsers are not safe to share between threads
        self._lock = threading.Lock()

    def has_parser(self, language: SupportedLanguage) -> bool:
        return language in CHUNK_BOUNDARY_TYPES and self._get(language) is not None

    def boundary_types(self, language: SupportedLanguage) -> FrozenSet[str]:
        return CHUNK_BOUNDARY_TYPES.get(language, frozenset())

    def parse(self, source: bytes, language: SupportedLanguage) -> Any:
        """Parse UTF-8 bytes; raises RuntimeError when no grammar is available."""
        parser = self._get(language)
        if parser is None:
            raise RuntimeError(f"Unsupported language or missing grammar for: {language.value}")
        with self._lock:
            tree = parser.parse(source)
        if tree is None:
            raise RuntimeError(f"Failed to parse code for language {language.value}. Parser returned None.")
        return tree

    def _get(self, language: SupportedLanguage) -> Optional[Any]:
        with self._lock:
            if language in self._parsers:
                return self._parsers[language]
            try:
                parser = get_parser(language.value)
                SimpleLogger.debug(f"Grammar for {language.value} loaded.")
            except Exception as e:  # unknown grammar name, missing binary wheel...
                SimpleLogger.warning(f"Grammar for {language.value} unavailable: {e}")
                parser = None
            self._parsers[language] = parser
            return parser
