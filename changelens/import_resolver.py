"""Resolve import specifiers to files on disk.

Resolution order:

1. ``compilerOptions.paths`` / ``baseUrl`` aliases from the project's
   ``tsconfig.json`` (or ``jsconfig.json``), when one is present.
2. Plain resolution relative to the importing file's directory.

A specifier that resolves to nothing, or only to files under a vendor or
build-output directory, comes back unchanged.  Callers treat that as an
external module and stop there.
"""

from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Sequence, Union

logger = logging.getLogger(__name__)

CONFIG_NAMES = ("tsconfig.json", "jsconfig.json")

_JSON_COMMENT_RE = re.compile(r'("(?:\\.|[^"\\])*")|//[^\n]*|/\*[\s\S]*?\*/')
_TRAILING_COMMA_RE = re.compile(r",(\s*[}\]])")


@dataclass
class AliasConfig:
    base_dir: Path
    paths: Dict[str, List[str]] = field(default_factory=dict)
    has_base_url: bool = False


def load_jsonc(text: str) -> dict:
    """Parse JSON that may contain comments and trailing commas."""
    text = _JSON_COMMENT_RE.sub(lambda m: m.group(1) or "", text)
    text = _TRAILING_COMMA_RE.sub(r"\1", text)
    return json.loads(text)


class ImportResolver:
    """Maps ``(importing file, specifier)`` pairs to absolute file paths."""

    def __init__(
        self,
        project_root: Union[str, Path],
        extensions: Sequence[str] = (".ts", ".js", ".tsx", ".jsx"),
        excluded_dirs: Sequence[str] = ("node_modules", "dist", "build", "out"),
        source_dirs: Sequence[str] = ("src",),
    ) -> None:
        self.project_root = Path(os.path.abspath(project_root))
        self.extensions = list(extensions)
        self.excluded_dirs = set(excluded_dirs)
        self.source_dirs = list(source_dirs)
        self._alias_config: Optional[AliasConfig] = None
        self._alias_loaded = False

    # ------------------------------------------------------------------
    # Alias configuration
    # ------------------------------------------------------------------

    def alias_config(self) -> Optional[AliasConfig]:
        """The project's alias configuration, loaded once; None if absent."""
        if not self._alias_loaded:
            self._alias_config = self._load_alias_config()
            self._alias_loaded = True
        return self._alias_config

    def _load_alias_config(self) -> Optional[AliasConfig]:
        for name in CONFIG_NAMES:
            config_path = self.project_root / name
            if not config_path.is_file():
                continue
            try:
                options = self._read_compiler_options(config_path, seen=set())
            except (OSError, ValueError) as exc:
                logger.warning("Could not read %s: %s", config_path, exc)
                return None

            base_url = options.get("baseUrl")
            base_dir = options.get("_baseDir", config_path.parent)
            if base_url is not None:
                base_dir = (Path(options.get("_baseUrlDir", config_path.parent)) / base_url)
            paths = options.get("paths") or {}
            logger.debug("Loaded %d path aliases from %s", len(paths), config_path)
            return AliasConfig(
                base_dir=Path(os.path.normpath(base_dir)),
                paths={k: list(v) for k, v in paths.items() if isinstance(v, list)},
                has_base_url=base_url is not None,
            )
        logger.debug("No path-alias configuration under %s", self.project_root)
        return None

    def _read_compiler_options(self, config_path: Path, seen: set) -> dict:
        """``compilerOptions`` of *config_path*, merged over relative ``extends``."""
        config_path = Path(os.path.normpath(config_path))
        if config_path in seen:
            return {}
        seen.add(config_path)

        data = load_jsonc(config_path.read_text(encoding="utf-8"))
        options: dict = {}

        parent = data.get("extends")
        if isinstance(parent, str) and parent.startswith("."):
            parent_path = config_path.parent / parent
            if parent_path.suffix != ".json":
                parent_path = parent_path.with_name(parent_path.name + ".json")
            if parent_path.is_file():
                options.update(self._read_compiler_options(parent_path, seen))

        own = data.get("compilerOptions") or {}
        if "baseUrl" in own:
            options["_baseUrlDir"] = config_path.parent
        if "paths" in own and "baseUrl" not in own and "baseUrl" not in options:
            options["_baseDir"] = config_path.parent
        options.update(own)
        return options

    def _alias_candidates(self, config: AliasConfig, specifier: str) -> Iterator[Path]:
        best: Optional[str] = None
        best_prefix = -1
        captured = ""
        for pattern in config.paths:
            if "*" in pattern:
                prefix, suffix = pattern.split("*", 1)
                if (
                    specifier.startswith(prefix)
                    and specifier.endswith(suffix)
                    and len(specifier) >= len(prefix) + len(suffix)
                    and len(prefix) > best_prefix
                ):
                    best, best_prefix = pattern, len(prefix)
                    captured = specifier[len(prefix): len(specifier) - len(suffix)]
            elif pattern == specifier:
                best, best_prefix, captured = pattern, len(pattern), ""
                break

        if best is not None:
            for target in config.paths[best]:
                yield config.base_dir / target.replace("*", captured, 1)

        if config.has_base_url and not specifier.startswith("."):
            yield config.base_dir / specifier

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def resolve(self, importing_file: Union[str, Path], specifier: str) -> str:
        """Absolute path of the module *specifier* names, or *specifier*."""
        config = self.alias_config()
        if config is not None:
            for candidate in self._alias_candidates(config, specifier):
                found = self._find_file(str(candidate))
                if found is not None:
                    return found

        importing_dir = os.path.dirname(os.path.abspath(importing_file))
        found = self._find_file(os.path.normpath(os.path.join(importing_dir, specifier)))
        if found is not None:
            return found

        logger.debug("Unresolved import %r from %s", specifier, importing_file)
        return specifier

    def is_local(self, resolved: str) -> bool:
        """True when *resolved* is a real, non-excluded file."""
        return (
            os.path.isabs(resolved)
            and os.path.isfile(resolved)
            and not self.is_excluded(resolved)
        )

    def is_excluded(self, path: Union[str, Path]) -> bool:
        path = Path(os.path.abspath(path))
        try:
            parts = path.relative_to(self.project_root).parts
        except ValueError:
            parts = path.parts
        return any(part in self.excluded_dirs for part in parts)

    def collapse_duplicate_segments(self, path: str) -> str:
        """Rewrite ``.../src/src/...`` to ``.../src/...``."""
        sep = os.sep
        for name in self.source_dirs:
            doubled = f"{sep}{name}{sep}{name}{sep}"
            while doubled in path:
                path = path.replace(doubled, f"{sep}{name}{sep}")
        return path

    def _find_file(self, base: str) -> Optional[str]:
        base = os.path.normpath(base)
        fixed = self.collapse_duplicate_segments(base)
        bases = [fixed, base] if fixed != base else [base]

        for candidate_base in bases:
            for path in self._file_candidates(candidate_base):
                if os.path.isfile(path) and not self.is_excluded(path):
                    return os.path.abspath(path)
        return None

    def _file_candidates(self, base: str) -> Iterator[str]:
        yield base
        for ext in self.extensions:
            yield base + ext
        # ESM-style "./util.js" pointing at "./util.ts"
        stem, ext = os.path.splitext(base)
        if ext in (".js", ".jsx", ".mjs"):
            for alt in self.extensions:
                if alt != ext:
                    yield stem + alt
        for ext in self.extensions:
            yield os.path.join(base, "index" + ext)
