"""Assemble the context bundle for a changed snippet.

Starting from a seed snippet in a file, the bundler picks the node the seed
refers to, emits the import lines it depends on, the node's own source, and
then follows each local import into the module it resolves to, looking up
the imported names there.  The walk stops at ``max_depth`` levels, never
emits the same fragment twice, and drops everything once the token budget
is spent.

Layout of one level::

    import { foo } from "./bar";

    /*PRIMARY CODE STARTS HERE*/      (outermost level only)

    /*file:src/app.ts*/
    <node source>

    <next level ...>
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Set, Tuple, Union

from .errors import ParseError
from .import_resolver import ImportResolver
from .models import ContextBundle, ContextSettings, ImportBinding, NodeKind, SyntaxNode
from .parser import SourceIndex, SourceParser
from .snippets import extract_text, find_matching_nodes, pick_candidate

logger = logging.getLogger(__name__)

PRIMARY_MARKER = "/*PRIMARY CODE STARTS HERE*/"
FILE_MARKER = "/*file:{path}*/"


def estimate_tokens(text: str) -> int:
    """Approximate token count (1 token ~ 4 chars)."""
    if not text:
        return 0
    return max(1, len(text) // 4)


# ------------------------------------------------------------------
# Import bindings
# ------------------------------------------------------------------

def collect_import_bindings(root: SyntaxNode, index: SourceIndex) -> List[ImportBinding]:
    """Names bound by the top-level import declarations of *root*."""
    bindings: List[ImportBinding] = []
    for stmt in root.statements:
        if stmt.kind is NodeKind.IMPORT_DECLARATION:
            bindings.extend(_bindings_of(stmt, index))
    return bindings


def _bindings_of(import_node: SyntaxNode, index: SourceIndex) -> List[ImportBinding]:
    strings = [n for n in import_node.walk() if n.kind is NodeKind.STRING_LITERAL]
    if not strings:
        return []
    specifier = _unquote(strings[-1], index)

    bindings: List[ImportBinding] = []
    for node in import_node.walk():
        if node.node_type == "import_specifier":
            ids = [c.name for c in node.children if c.kind is NodeKind.IDENTIFIER and c.name]
            if ids:
                bindings.append(ImportBinding(
                    local_name=ids[-1], imported_name=ids[0],
                    specifier=specifier, node=import_node,
                ))
        elif node.node_type == "namespace_import":
            for c in node.children:
                if c.kind is NodeKind.IDENTIFIER and c.name:
                    bindings.append(ImportBinding(
                        local_name=c.name, imported_name=c.name,
                        specifier=specifier, node=import_node, namespace=True,
                    ))
        elif node.node_type in ("import_clause", "import_require_clause"):
            # default import, or `import x = require("y")`
            for c in node.children:
                if c.kind is NodeKind.IDENTIFIER and c.name:
                    bindings.append(ImportBinding(
                        local_name=c.name, imported_name=c.name,
                        specifier=specifier, node=import_node,
                    ))
    return bindings


def _unquote(node: SyntaxNode, index: SourceIndex) -> str:
    text = extract_text(node, index)
    if len(text) >= 2 and text[0] in "\"'`" and text[-1] == text[0]:
        return text[1:-1]
    return text


def referenced_identifiers(node: SyntaxNode) -> Set[str]:
    """Lower-cased identifiers used anywhere inside *node*."""
    return {
        n.name.lower()
        for n in node.walk()
        if n.kind is NodeKind.IDENTIFIER and n.name
    }


# ------------------------------------------------------------------
# Bundler
# ------------------------------------------------------------------

class ContextBundler:
    """Depth- and token-bounded walk over a file's local imports."""

    def __init__(
        self,
        project_root: Union[str, Path],
        parser: Optional[SourceParser] = None,
        resolver: Optional[ImportResolver] = None,
        settings: Optional[ContextSettings] = None,
    ) -> None:
        self.project_root = Path(os.path.abspath(project_root))
        self.settings = settings or ContextSettings()
        self.parser = parser or SourceParser()
        self.resolver = resolver or ImportResolver(
            self.project_root,
            extensions=self.settings.resolve_extensions,
            excluded_dirs=self.settings.excluded_dirs,
            source_dirs=self.settings.source_dirs,
        )

    def new_bundle(self, token_limit: Optional[int] = None) -> ContextBundle:
        return ContextBundle(
            token_limit=token_limit if token_limit is not None else self.settings.token_limit,
            fingerprint_length=self.settings.fingerprint_length,
        )

    def extract_code_and_references(
        self,
        file_paths: Sequence[Union[str, Path]],
        seed_snippets: Sequence[str],
        max_depth: Optional[int] = None,
    ) -> str:
        """Concatenated context for each ``(file, seed)`` pair."""
        return self.bundle(file_paths, seed_snippets, max_depth).text

    def bundle(
        self,
        file_paths: Sequence[Union[str, Path]],
        seed_snippets: Sequence[str],
        max_depth: Optional[int] = None,
        token_limit: Optional[int] = None,
    ) -> ContextBundle:
        """Like :meth:`extract_code_and_references` but returns the bundle.

        A fresh :class:`ContextBundle` is created for every call, so
        fingerprints and the token count never leak between calls.
        """
        depth_limit = self.settings.max_depth if max_depth is None else max_depth
        bundle = self.new_bundle(token_limit)
        sources: Dict[str, Optional[Tuple[SyntaxNode, SourceIndex]]] = {}

        for path, seed in zip(file_paths, seed_snippets):
            text = self._walk(os.path.abspath(path), seed, 0, depth_limit, bundle, sources)
            if text:
                bundle.fragments.append(text)

        if bundle.truncated:
            logger.info(
                "Context truncated at %d tokens (limit %d)",
                bundle.token_count, bundle.token_limit,
            )
        return bundle

    # ------------------------------------------------------------------
    # Recursive walk
    # ------------------------------------------------------------------

    def _walk(
        self,
        path: str,
        seed: str,
        depth: int,
        max_depth: int,
        bundle: ContextBundle,
        sources: Dict[str, Optional[Tuple[SyntaxNode, SourceIndex]]],
    ) -> str:
        if depth >= max_depth:
            return ""

        parsed = self._load(path, sources)
        if parsed is None:
            return ""
        root, index = parsed

        candidate = pick_candidate(find_matching_nodes(root, index, seed), seed)
        if candidate is None:
            logger.debug("No node matching seed %r in %s", seed[:40], path)
            return ""

        code = extract_text(candidate, index)
        if not code or bundle.is_used(code):
            return ""
        bundle.mark_used(code)

        bindings = collect_import_bindings(root, index)
        referenced = referenced_identifiers(candidate)
        used = [b for b in bindings if b.local_name.lower() in referenced]

        parts: List[str] = []
        for binding in used:
            import_text = extract_text(binding.node, index)
            if not import_text or bundle.is_used(import_text):
                continue
            bundle.mark_used(import_text)
            parts.append(self._gate(import_text + "\n", bundle))

        parts.append(self._gate("\n", bundle))
        if depth == 0:
            parts.append(self._gate(PRIMARY_MARKER + "\n", bundle))
        parts.append(self._gate("\n", bundle))
        parts.append(self._gate(
            FILE_MARKER.format(path=self._display_path(path)) + "\n" + code + "\n",
            bundle,
        ))
        parts.append(self._gate("\n", bundle))

        for binding in used:
            resolved = self.resolver.resolve(path, binding.specifier)
            if not self.resolver.is_local(resolved):
                logger.debug("Treating %r as external", binding.specifier)
                continue
            for sibling in bindings:
                if sibling.node is not binding.node or sibling.namespace:
                    continue
                target = (resolved, sibling.imported_name)
                if target in bundle.visited_targets:
                    continue
                bundle.visited_targets.add(target)
                parts.append(self._walk(
                    resolved, sibling.imported_name, depth + 1, max_depth, bundle, sources,
                ))

        return "".join(parts)

    def _load(
        self,
        path: str,
        sources: Dict[str, Optional[Tuple[SyntaxNode, SourceIndex]]],
    ) -> Optional[Tuple[SyntaxNode, SourceIndex]]:
        if path not in sources:
            try:
                sources[path] = self.parser.parse_file(path)
            except ParseError as exc:
                logger.warning("Skipping unparsable file: %s", exc)
                sources[path] = None
            except (OSError, UnicodeDecodeError) as exc:
                logger.warning("Could not read %s: %s", path, exc)
                sources[path] = None
        return sources[path]

    @staticmethod
    def _gate(text: str, bundle: ContextBundle) -> str:
        """Admit *text* if it fits the remaining budget, else drop it."""
        if not text or bundle.truncated:
            return ""
        tokens = estimate_tokens(text)
        if bundle.token_count + tokens > bundle.token_limit:
            bundle.truncated = True
            return ""
        bundle.token_count += tokens
        return text

    def _display_path(self, path: str) -> str:
        try:
            return Path(path).relative_to(self.project_root).as_posix()
        except ValueError:
            return path
