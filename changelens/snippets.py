"""Turn located nodes back into source text, and find nodes by text.

The bundler receives code snippets rather than positions, so nodes have to
be re-located by their text.  Matching is best-effort: three strategies of
increasing tolerance are tried in order and the first hit wins.  Heavily
duplicated code can match in more than one place.
"""

from __future__ import annotations

import re
from typing import Callable, Iterable, List, Optional, Sequence

from .models import NodeKind, SyntaxNode
from .parser import SourceIndex

MatchStrategy = Callable[[str, str], bool]

# Kinds worth offering as bundling candidates
CANDIDATE_KINDS = frozenset({
    NodeKind.BLOCK,
    NodeKind.FUNCTION_DECLARATION,
    NodeKind.FUNCTION_EXPRESSION,
    NodeKind.ARROW_FUNCTION,
    NodeKind.METHOD,
    NodeKind.IF_STATEMENT,
    NodeKind.EXPORT_DECLARATION,
    NodeKind.CLASS_DECLARATION,
    NodeKind.VARIABLE_DECLARATION,
    NodeKind.TYPE_DECLARATION,
    NodeKind.STATEMENT,
})

_NON_WORD_RE = re.compile(r"\W+")
_COMMENT_RE = re.compile(r"/\*[\s\S]*?\*/|//.*")
_MULTI_SPACE_RE = re.compile(r"\s{2,}")
_PUNCT_SPACE_RE = re.compile(r"\s*([{};=()>,])\s*")
_SIMPLE_FUNCTION_RE = re.compile(r"function\s+(\w+)\s*\(([^)]*)\)\s*\{([^}]*)\}")


def extract_text(node: SyntaxNode, index: SourceIndex) -> str:
    """Source text covered by *node*, or ``""`` for unlocated nodes."""
    if node.location is None:
        return ""
    return index.get_text(node.location)


def extract_texts(nodes: Iterable[SyntaxNode], index: SourceIndex) -> List[str]:
    """Texts of *nodes*, dropping empty ones."""
    return [t for t in (extract_text(n, index) for n in nodes) if t]


# ------------------------------------------------------------------
# Minifier
# ------------------------------------------------------------------

def minimize_code(code: str) -> str:
    """Squash *code* so formatting differences stop mattering.

    Strips comments, collapses whitespace, removes spaces around
    punctuation and folds brace-free single-block functions into arrows.
    """
    code = _COMMENT_RE.sub("", code)
    code = _MULTI_SPACE_RE.sub(" ", code)
    code = _PUNCT_SPACE_RE.sub(r"\1", code)

    def _to_arrow(match: "re.Match[str]") -> str:
        name, args, body = match.groups()
        body = re.sub(r"return\s+", "", body.strip(), count=1)
        return f"{name}={args.strip()}=>{body}"

    code = _SIMPLE_FUNCTION_RE.sub(_to_arrow, code)
    return code.strip()


# ------------------------------------------------------------------
# Match strategies
# ------------------------------------------------------------------

def exact_match(candidate: str, seed: str) -> bool:
    return bool(seed) and seed in candidate


def stripped_match(candidate: str, seed: str) -> bool:
    seed_words = _NON_WORD_RE.sub("", seed)
    return bool(seed_words) and seed_words in _NON_WORD_RE.sub("", candidate)


def minified_match(candidate: str, seed: str) -> bool:
    seed_min = minimize_code(seed)
    return bool(seed_min) and seed_min in minimize_code(candidate)


MATCH_STRATEGIES: Sequence[MatchStrategy] = (exact_match, stripped_match, minified_match)


def matches_seed(
    candidate: str,
    seed: str,
    strategies: Sequence[MatchStrategy] = MATCH_STRATEGIES,
) -> bool:
    return any(strategy(candidate, seed) for strategy in strategies)


def find_matching_nodes(
    root: SyntaxNode,
    index: SourceIndex,
    seed: str,
    strategies: Sequence[MatchStrategy] = MATCH_STRATEGIES,
) -> List[SyntaxNode]:
    """All nodes (pre-order) whose text contains *seed* under some strategy.

    Includes the program root and import declarations; the caller decides
    whether those are too coarse.
    """
    seed = seed.strip()
    if not seed:
        return []
    found: List[SyntaxNode] = []
    for node in root.walk():
        if node.kind not in CANDIDATE_KINDS and node.kind not in (
            NodeKind.PROGRAM,
            NodeKind.IMPORT_DECLARATION,
        ):
            continue
        text = extract_text(node, index)
        if text and matches_seed(text, seed, strategies):
            found.append(node)
    return found


def pick_candidate(candidates: Sequence[SyntaxNode], seed: str) -> Optional[SyntaxNode]:
    """Drop whole-file and import candidates; prefer an exact name match."""
    remaining = [
        c for c in candidates
        if c.kind not in (NodeKind.PROGRAM, NodeKind.IMPORT_DECLARATION)
    ]
    if not remaining:
        return None
    wanted = seed.strip()
    for candidate in remaining:
        if candidate.name is not None and candidate.name == wanted:
            return candidate
    return remaining[0]
