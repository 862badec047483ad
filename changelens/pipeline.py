"""Top-level orchestration: changed files -> snippets -> context bundles."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Union

from .context_bundler import ContextBundler
from .diff_parser import parse_diff
from .errors import GitError, ParseError
from .import_resolver import ImportResolver
from .locator import find_enclosing_matches, lines_by_node
from .models import ChangedSnippet, ContextSettings, PipelineResult
from .parser import SourceParser
from .snippets import extract_text

logger = logging.getLogger(__name__)

DiffProvider = Callable[[str], str]


class ChangeLocalizationPipeline:
    """Locates changed code units and gathers context for each of them.

    Files are processed one after another.  A file that cannot be read or
    parsed, or whose diff git cannot produce, is recorded in
    :attr:`PipelineResult.skipped` and the run goes on.
    """

    def __init__(
        self,
        project_root: Union[str, Path],
        settings: Optional[ContextSettings] = None,
        parser: Optional[SourceParser] = None,
        resolver: Optional[ImportResolver] = None,
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
        self.bundler = ContextBundler(
            self.project_root,
            parser=self.parser,
            resolver=self.resolver,
            settings=self.settings,
        )

    def _abs(self, file_path: Union[str, Path]) -> Path:
        path = Path(file_path)
        return path if path.is_absolute() else self.project_root / path

    def is_candidate_file(self, file_path: Union[str, Path]) -> bool:
        """Supported language and not under an excluded directory."""
        return self.parser.supports_file(file_path) and not self.resolver.is_excluded(
            self._abs(file_path)
        )

    def locate_changes(self, file_path: Union[str, Path], diff_text: str) -> List[ChangedSnippet]:
        """Snippets of the smallest units enclosing the lines *diff_text* adds.

        Raises:
            ParseError: the file does not parse.
            OSError: the file cannot be read.
        """
        lines = parse_diff(diff_text)
        if not lines:
            return []

        path = self._abs(file_path)
        root, index = self.parser.parse_file(path)

        per_node: Dict[int, List[int]] = {}
        for match in lines_by_node(root, lines, index):
            per_node.setdefault(id(match.node), []).append(match.line)

        snippets: List[ChangedSnippet] = []
        for match in find_enclosing_matches(root, lines, index):
            node = match.node
            text = extract_text(node, index)
            if not text or node.location is None:
                continue
            snippets.append(ChangedSnippet(
                file_path=str(path),
                kind=node.kind.value,
                name=node.name,
                start_line=node.location.start_line,
                end_line=node.location.end_line,
                text=text,
                changed_lines=sorted(set(per_node.get(id(node), [match.line]))),
            ))
        logger.debug("%s: %d changed lines -> %d snippets", path, len(lines), len(snippets))
        return snippets

    def run(
        self,
        changed_files: Iterable[str],
        diff_for: DiffProvider,
        max_depth: Optional[int] = None,
        token_limit: Optional[int] = None,
        with_context: bool = True,
    ) -> PipelineResult:
        """Process every changed file, then bundle context per snippet.

        *diff_for* returns the unified diff of one file.  An empty result
        (``result.is_empty``) means there is nothing to generate tests for.
        """
        result = PipelineResult()

        for file_path in changed_files:
            if not self.is_candidate_file(file_path):
                result.skipped[file_path] = "unsupported or excluded"
                continue
            try:
                snippets = self.locate_changes(file_path, diff_for(file_path))
            except (ParseError, GitError) as exc:
                logger.warning("Skipping %s: %s", file_path, exc)
                result.skipped[file_path] = str(exc)
                continue
            except (OSError, UnicodeDecodeError) as exc:
                logger.warning("Could not read %s: %s", file_path, exc)
                result.skipped[file_path] = str(exc)
                continue
            result.snippets.extend(snippets)

        if with_context:
            for snippet in result.snippets:
                bundle = self.bundler.bundle(
                    [snippet.file_path], [snippet.text],
                    max_depth=max_depth, token_limit=token_limit,
                )
                result.contexts.append(bundle.text)
                result.truncated = result.truncated or bundle.truncated

        if result.is_empty:
            logger.info("No changed code units found in %d skipped file(s)", len(result.skipped))
        return result
