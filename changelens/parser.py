"""Source parsing and position bookkeeping built on Tree-sitter.

Tree-sitter grammars for JavaScript and TypeScript produce a concrete syntax
tree; :class:`SourceParser` folds it into the smaller :class:`SyntaxNode`
tree used by the locator and the bundler.  Every node carries character
offsets and a 1-based line / 0-based column location computed through a
:class:`SourceIndex` over the same text.
"""

from __future__ import annotations

import bisect
import importlib
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from tree_sitter import Language, Parser as TSParser

from .errors import ParseError
from .models import NodeKind, SourceLocation, SyntaxNode

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Language <-> file-extension mapping
# ---------------------------------------------------------------------------
LANGUAGE_MAP: Dict[str, str] = {
    ".ts": "typescript",
    ".mts": "typescript",
    ".cts": "typescript",
    ".tsx": "tsx",
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
}

SKIP_DIRS = {
    "node_modules", ".git", "dist", "build", "out", "coverage",
    ".next", ".nuxt", ".cache", ".changelens",
}

# Grammar node type -> node kind
_KIND_MAP: Dict[str, NodeKind] = {
    "program": NodeKind.PROGRAM,
    "statement_block": NodeKind.BLOCK,
    "function_declaration": NodeKind.FUNCTION_DECLARATION,
    "generator_function_declaration": NodeKind.FUNCTION_DECLARATION,
    "function_expression": NodeKind.FUNCTION_EXPRESSION,
    "function": NodeKind.FUNCTION_EXPRESSION,
    "generator_function": NodeKind.FUNCTION_EXPRESSION,
    "arrow_function": NodeKind.ARROW_FUNCTION,
    "method_definition": NodeKind.METHOD,
    "if_statement": NodeKind.IF_STATEMENT,
    "export_statement": NodeKind.EXPORT_DECLARATION,
    "class_declaration": NodeKind.CLASS_DECLARATION,
    "abstract_class_declaration": NodeKind.CLASS_DECLARATION,
    "class": NodeKind.CLASS_DECLARATION,
    "import_statement": NodeKind.IMPORT_DECLARATION,
    "lexical_declaration": NodeKind.VARIABLE_DECLARATION,
    "variable_declaration": NodeKind.VARIABLE_DECLARATION,
    "interface_declaration": NodeKind.TYPE_DECLARATION,
    "type_alias_declaration": NodeKind.TYPE_DECLARATION,
    "enum_declaration": NodeKind.TYPE_DECLARATION,
    "identifier": NodeKind.IDENTIFIER,
    "type_identifier": NodeKind.IDENTIFIER,
    "shorthand_property_identifier": NodeKind.IDENTIFIER,
    "shorthand_property_identifier_pattern": NodeKind.IDENTIFIER,
    "string": NodeKind.STRING_LITERAL,
    "template_string": NodeKind.STRING_LITERAL,
}

_NAMED_KINDS = {
    NodeKind.FUNCTION_DECLARATION,
    NodeKind.FUNCTION_EXPRESSION,
    NodeKind.METHOD,
    NodeKind.CLASS_DECLARATION,
    NodeKind.TYPE_DECLARATION,
}


def language_for(path: Union[str, Path]) -> Optional[str]:
    return LANGUAGE_MAP.get(Path(path).suffix.lower())


# ===================================================================
# SourceIndex
# ===================================================================

class SourceIndex:
    """Line index over one file's text.

    Lines are separated by a single ``\\n``; a ``\\r`` before it stays part of
    the line, so offsets always address the original text.
    """

    def __init__(self, text: str) -> None:
        self.text = text
        self._lines = text.split("\n")
        self._line_starts: List[int] = []
        offset = 0
        for line in self._lines:
            self._line_starts.append(offset)
            offset += len(line) + 1
        self.is_ascii = text.isascii()
        self._line_bytes: Dict[int, bytes] = {}

    @property
    def line_count(self) -> int:
        return len(self._lines)

    def line(self, line: int) -> str:
        return self._lines[line - 1]

    def offset_at(self, line: int, column: int = 0) -> int:
        """Character offset of 1-based *line*, 0-based *column*.

        Lines past the end of the file map to the end of the text.
        """
        if line < 1:
            raise ValueError(f"line numbers are 1-based, got {line}")
        if line > len(self._line_starts):
            return len(self.text)
        return self._line_starts[line - 1] + column

    def location_of(self, offset: int) -> Tuple[int, int]:
        """Inverse of :meth:`offset_at`."""
        offset = max(0, min(offset, len(self.text)))
        idx = bisect.bisect_right(self._line_starts, offset) - 1
        return idx + 1, offset - self._line_starts[idx]

    def get_text(self, location: Optional[SourceLocation] = None) -> str:
        if location is None:
            return self.text
        start = self.offset_at(location.start_line, location.start_column)
        end = self.offset_at(location.end_line, location.end_column)
        return self.text[start:end]

    def char_column(self, row: int, byte_column: int) -> int:
        """Convert a Tree-sitter byte column on 0-based *row* to characters."""
        if self.is_ascii:
            return byte_column
        raw = self._line_bytes.get(row)
        if raw is None:
            raw = self._lines[row].encode("utf-8")
            self._line_bytes[row] = raw
        return len(raw[:byte_column].decode("utf-8", errors="ignore"))


# ===================================================================
# SourceParser
# ===================================================================

class SourceParser:
    """Error-checking JavaScript / TypeScript parser.

    Tree-sitter itself recovers from bad input; this parser instead refuses
    any tree containing ``ERROR`` or missing nodes and raises
    :class:`~changelens.errors.ParseError`, so callers can skip the file.
    """

    # language name -> (module, factory attribute)
    _GRAMMAR_MODULES: Dict[str, Tuple[str, str]] = {
        "javascript": ("tree_sitter_javascript", "language"),
        "typescript": ("tree_sitter_typescript", "language_typescript"),
        "tsx": ("tree_sitter_typescript", "language_tsx"),
    }

    def __init__(self, languages: Optional[List[str]] = None) -> None:
        self._parsers: Dict[str, TSParser] = {}
        self._requested_languages = languages or list(self._GRAMMAR_MODULES)
        self._init_parsers()

    def _init_parsers(self) -> None:
        for lang in self._requested_languages:
            grammar = self._GRAMMAR_MODULES.get(lang)
            if grammar is None:
                logger.warning("No grammar module mapped for language '%s'", lang)
                continue
            mod_name, factory = grammar
            try:
                mod = importlib.import_module(mod_name)
                self._parsers[lang] = TSParser(Language(getattr(mod, factory)()))
                logger.debug("Loaded tree-sitter parser for %s", lang)
            except ImportError:
                logger.warning(
                    "Grammar package '%s' not installed for language '%s'. "
                    "Install with: pip install %s",
                    mod_name, lang, mod_name.replace("_", "-"),
                )

    def supports_language(self, language: str) -> bool:
        return language in self._parsers

    def supports_file(self, path: Union[str, Path]) -> bool:
        lang = language_for(path)
        return lang is not None and lang in self._parsers

    # ------------------------------------------------------------------
    # Parsing
    # ------------------------------------------------------------------

    def parse(
        self,
        text: str,
        path: Union[str, Path] = "<source>.ts",
        index: Optional[SourceIndex] = None,
    ) -> SyntaxNode:
        """Parse *text* and return the program root.

        The grammar is chosen from the extension of *path*; unknown
        extensions are parsed as TypeScript.
        """
        lang = language_for(path) or "typescript"
        parser = self._parsers.get(lang)
        if parser is None:
            raise ParseError(str(path), f"no parser available for {lang}")

        tree = parser.parse(text.encode("utf-8"))
        if tree.root_node.has_error:
            raise ParseError(str(path), "syntax error", _first_error_position(tree.root_node))

        index = index or SourceIndex(text)
        try:
            return _Converter(index).convert(tree.root_node)
        except RecursionError:
            raise ParseError(str(path), "syntax tree nested too deeply") from None

    def parse_file(self, path: Union[str, Path]) -> Tuple[SyntaxNode, SourceIndex]:
        """Read *path* as UTF-8 and parse it; returns ``(root, index)``."""
        text = Path(path).read_text(encoding="utf-8")
        index = SourceIndex(text)
        return self.parse(text, path, index), index


def _first_error_position(root: Any) -> Optional[Tuple[int, int]]:
    stack = [root]
    while stack:
        node = stack.pop()
        if node.type == "ERROR" or node.is_missing:
            return node.start_point[0] + 1, node.start_point[1]
        stack.extend(reversed(node.children))
    return None


# ===================================================================
# Tree-sitter -> SyntaxNode conversion
# ===================================================================

class _Converter:
    """Builds :class:`SyntaxNode` trees with per-kind child accessors."""

    def __init__(self, index: SourceIndex) -> None:
        self.index = index

    def convert(self, ts_node: Any) -> SyntaxNode:
        ts_children = ts_node.named_children
        children = [self.convert(ch) for ch in ts_children]
        by_span = {
            (t.type, t.start_byte, t.end_byte): c for t, c in zip(ts_children, children)
        }

        kind = _KIND_MAP.get(ts_node.type)
        if kind is None:
            kind = NodeKind.STATEMENT if ts_node.type.endswith(
                ("_statement", "_declaration")
            ) else NodeKind.OTHER

        start_row, start_col = ts_node.start_point[0], ts_node.start_point[1]
        end_row, end_col = ts_node.end_point[0], ts_node.end_point[1]
        location = SourceLocation(
            start_line=start_row + 1,
            start_column=self.index.char_column(start_row, start_col),
            end_line=end_row + 1,
            end_column=self.index.char_column(end_row, end_col),
        )
        node = SyntaxNode(
            kind=kind,
            node_type=ts_node.type,
            start=self.index.offset_at(location.start_line, location.start_column),
            end=self.index.offset_at(location.end_line, location.end_column),
            location=location,
            children=children,
        )

        def field(name: str) -> Optional[SyntaxNode]:
            ts_child = ts_node.child_by_field_name(name)
            if ts_child is None:
                return None
            return by_span.get((ts_child.type, ts_child.start_byte, ts_child.end_byte))

        if kind in (NodeKind.PROGRAM, NodeKind.BLOCK):
            node.statements = _statements(children)
        elif kind in (
            NodeKind.FUNCTION_DECLARATION,
            NodeKind.FUNCTION_EXPRESSION,
            NodeKind.ARROW_FUNCTION,
            NodeKind.METHOD,
        ):
            node.body = field("body")
        elif kind is NodeKind.IF_STATEMENT:
            node.consequent = field("consequence")
            else_clause = field("alternative")
            if else_clause is not None:
                branch = _statements(else_clause.children)
                node.alternate = branch[0] if branch else None
        elif kind is NodeKind.EXPORT_DECLARATION:
            node.declaration = field("declaration") or field("value")
        elif kind is NodeKind.CLASS_DECLARATION:
            class_body = field("body")
            if class_body is not None:
                node.members = _statements(class_body.children)

        node.name = self._name_of(ts_node, node)
        return node

    @staticmethod
    def _name_of(ts_node: Any, node: SyntaxNode) -> Optional[str]:
        if node.kind in _NAMED_KINDS:
            name_node = ts_node.child_by_field_name("name")
            return name_node.text.decode("utf-8") if name_node is not None else None
        if node.kind is NodeKind.VARIABLE_DECLARATION:
            for child in ts_node.named_children:
                if child.type == "variable_declarator":
                    name_node = child.child_by_field_name("name")
                    if name_node is not None and name_node.type == "identifier":
                        return name_node.text.decode("utf-8")
            return None
        if node.kind is NodeKind.EXPORT_DECLARATION and node.declaration is not None:
            return node.declaration.name
        if node.kind is NodeKind.IDENTIFIER:
            return ts_node.text.decode("utf-8")
        return None


def _statements(children: List[SyntaxNode]) -> List[SyntaxNode]:
    return [c for c in children if c.node_type != "comment"]
