"""Core data models shared by parsing, localization, and bundling layers."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Set, Tuple


class NodeKind(str, Enum):
    PROGRAM = "program"
    BLOCK = "block"
    FUNCTION_DECLARATION = "function_declaration"
    FUNCTION_EXPRESSION = "function_expression"
    ARROW_FUNCTION = "arrow_function"
    METHOD = "method"
    IF_STATEMENT = "if_statement"
    EXPORT_DECLARATION = "export_declaration"
    CLASS_DECLARATION = "class_declaration"
    IMPORT_DECLARATION = "import_declaration"
    VARIABLE_DECLARATION = "variable_declaration"
    TYPE_DECLARATION = "type_declaration"
    IDENTIFIER = "identifier"
    STRING_LITERAL = "string_literal"
    STATEMENT = "statement"
    OTHER = "other"


FUNCTION_KINDS = frozenset({
    NodeKind.FUNCTION_DECLARATION,
    NodeKind.FUNCTION_EXPRESSION,
    NodeKind.ARROW_FUNCTION,
    NodeKind.METHOD,
})


@dataclass(frozen=True)
class SourceLocation:
    """Start/end position; lines are 1-based, columns 0-based."""

    start_line: int
    start_column: int
    end_line: int
    end_column: int


@dataclass(eq=False)
class SyntaxNode:
    """One node of a parsed file.

    ``start``/``end`` are character offsets into the file text.  Nodes without
    a range are unlocated and never answer position queries.  The per-kind
    accessors (``body``, ``consequent`` ...) point into ``children``.
    """

    kind: NodeKind
    node_type: str
    start: Optional[int] = None
    end: Optional[int] = None
    location: Optional[SourceLocation] = None
    name: Optional[str] = None
    children: List["SyntaxNode"] = field(default_factory=list)
    body: Optional["SyntaxNode"] = None
    statements: List["SyntaxNode"] = field(default_factory=list)
    consequent: Optional["SyntaxNode"] = None
    alternate: Optional["SyntaxNode"] = None
    declaration: Optional["SyntaxNode"] = None
    members: List["SyntaxNode"] = field(default_factory=list)

    @property
    def is_located(self) -> bool:
        return self.start is not None and self.end is not None

    def contains(self, offset: int) -> bool:
        if not self.is_located:
            return False
        return self.start <= offset < self.end  # type: ignore[operator]

    def walk(self) -> Iterator["SyntaxNode"]:
        """Pre-order traversal, without recursion."""
        stack: List[SyntaxNode] = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def __repr__(self) -> str:
        return (
            f"SyntaxNode(kind={self.kind.value!r}, name={self.name!r}, "
            f"start={self.start}, end={self.end})"
        )


@dataclass(frozen=True)
class EnclosingMatch:
    line: int
    node: SyntaxNode


@dataclass
class ImportBinding:
    """A name bound in a file by an import declaration."""

    local_name: str
    imported_name: str
    specifier: str
    node: SyntaxNode
    namespace: bool = False


@dataclass
class ContextBundle:
    """Accumulator owned by one top-level bundling call."""

    token_limit: int
    fingerprint_length: int = 100
    fragments: List[str] = field(default_factory=list)
    used_fragments: Set[str] = field(default_factory=set)
    visited_targets: Set[Tuple[str, str]] = field(default_factory=set)
    token_count: int = 0
    truncated: bool = False

    def fingerprint(self, text: str) -> str:
        return text[: self.fingerprint_length]

    def is_used(self, text: str) -> bool:
        return self.fingerprint(text) in self.used_fragments

    def mark_used(self, *texts: str) -> None:
        for text in texts:
            self.used_fragments.add(self.fingerprint(text))

    @property
    def text(self) -> str:
        return "".join(self.fragments)


@dataclass
class ContextSettings:
    max_depth: int = 2
    token_limit: int = 30000
    fingerprint_length: int = 100
    resolve_extensions: List[str] = field(default_factory=lambda: [".ts", ".js", ".tsx", ".jsx"])
    excluded_dirs: List[str] = field(
        default_factory=lambda: ["node_modules", "dist", "build", "out"]
    )
    source_dirs: List[str] = field(default_factory=lambda: ["src"])

    @classmethod
    def from_mapping(cls, data: Dict[str, Any]) -> "ContextSettings":
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        return cls(**known)


@dataclass
class ChangedSnippet:
    file_path: str
    kind: str
    name: Optional[str]
    start_line: int
    end_line: int
    text: str
    changed_lines: List[int] = field(default_factory=list)


@dataclass
class PipelineResult:
    snippets: List[ChangedSnippet] = field(default_factory=list)
    contexts: List[str] = field(default_factory=list)
    skipped: Dict[str, str] = field(default_factory=dict)
    truncated: bool = False

    @property
    def is_empty(self) -> bool:
        return not self.snippets
