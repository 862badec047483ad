"""Find the smallest syntax node enclosing each changed line."""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Set

from .models import FUNCTION_KINDS, EnclosingMatch, NodeKind, SyntaxNode
from .parser import SourceIndex

logger = logging.getLogger(__name__)


def descend(node: SyntaxNode) -> List[SyntaxNode]:
    """Children the locator is allowed to search below *node*.

    Containers yield their statements, function-like nodes the statements of
    a block body, ``if`` both branches, exports the wrapped declaration and
    classes their members.  Every other kind is a leaf for locating.
    """
    kind = node.kind
    if kind in (NodeKind.PROGRAM, NodeKind.BLOCK):
        return node.statements
    if kind in FUNCTION_KINDS:
        if node.body is not None and node.body.kind is NodeKind.BLOCK:
            return node.body.statements
        return []
    if kind is NodeKind.IF_STATEMENT:
        return [n for n in (node.consequent, node.alternate) if n is not None]
    if kind is NodeKind.EXPORT_DECLARATION:
        return [node.declaration] if node.declaration is not None else []
    if kind is NodeKind.CLASS_DECLARATION:
        return node.members
    return []


def find_enclosing_node(root: SyntaxNode, offset: int) -> Optional[SyntaxNode]:
    """Return the deepest node containing *offset*, or None.

    A node whose range misses *offset* excludes its whole subtree.  When no
    searchable child contains the offset the current node is the answer.
    """
    if not root.contains(offset):
        return None

    current = root
    while True:
        for child in descend(current):
            if child.contains(offset):
                current = child
                break
        else:
            return current


def find_enclosing_nodes(
    root: SyntaxNode,
    lines: Iterable[int],
    index: SourceIndex,
) -> List[SyntaxNode]:
    """Map 1-based *lines* to distinct enclosing nodes, in line order.

    The program root and import declarations are never returned.
    """
    return [m.node for m in find_enclosing_matches(root, lines, index)]


def find_enclosing_matches(
    root: SyntaxNode,
    lines: Iterable[int],
    index: SourceIndex,
) -> List[EnclosingMatch]:
    matches: List[EnclosingMatch] = []
    seen: Set[int] = set()

    for line in lines:
        if line < 1:
            logger.debug("Ignoring non-positive line number %d", line)
            continue
        node = find_enclosing_node(root, index.offset_at(line, 0))
        if node is None or id(node) in seen:
            continue
        if node is root or node.kind in (NodeKind.PROGRAM, NodeKind.IMPORT_DECLARATION):
            continue
        seen.add(id(node))
        matches.append(EnclosingMatch(line=line, node=node))

    return matches


def lines_by_node(
    root: SyntaxNode,
    lines: Iterable[int],
    index: SourceIndex,
) -> List[EnclosingMatch]:
    """Like :func:`find_enclosing_matches` but keeps every line.

    Used to report which changed lines fell into each located node.
    """
    result: List[EnclosingMatch] = []
    for line in lines:
        if line < 1:
            continue
        node = find_enclosing_node(root, index.offset_at(line, 0))
        if node is None or node is root or node.kind is NodeKind.IMPORT_DECLARATION:
            continue
        result.append(EnclosingMatch(line=line, node=node))
    return result
