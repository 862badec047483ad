"""Map a unified diff to changed line numbers in the post-change file."""

from __future__ import annotations

import logging
import re
from typing import List, Optional, Tuple

from unidiff import PatchSet
from unidiff.errors import UnidiffParseError

logger = logging.getLogger(__name__)

HUNK_HEADER_RE = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@")

# Header given to bare hunks so PatchSet has a file to attach them to
_SYNTHETIC_FILE_HEADER = "--- a/source\n+++ b/source\n"


def parse_hunk_header(line: str) -> Optional[Tuple[int, int, int, int]]:
    """Return ``(old_start, old_count, new_start, new_count)`` or None.

    Omitted counts default to 1, as in ``@@ -3 +3 @@``.
    """
    match = HUNK_HEADER_RE.match(line)
    if match is None:
        return None
    old_start, old_count, new_start, new_count = match.groups()
    return (
        int(old_start),
        int(old_count) if old_count is not None else 1,
        int(new_start),
        int(new_count) if new_count is not None else 1,
    )


def parse_diff(diff_text: str) -> List[int]:
    """Return the 1-based post-change line number of every added line.

    The diff may cover several files or be a bare run of hunks.  Output is in
    encounter order.  Diffs unidiff refuses (hunk bodies that disagree with
    their header counts, stray ``@@`` lines) are read hunk by hunk instead:
    malformed headers are skipped and anything outside a hunk is ignored.
    """
    if not diff_text.strip():
        return []

    try:
        patch_set = PatchSet(_with_file_header(diff_text))
    except UnidiffParseError as exc:
        logger.debug("unidiff rejected diff (%s); counting hunk lines directly", exc)
        return _count_added_lines(diff_text)

    changed: List[int] = []
    for patched_file in patch_set:
        for hunk in patched_file:
            for line in hunk:
                if line.is_added and line.target_line_no is not None:
                    changed.append(line.target_line_no)
    return changed


def _with_file_header(diff_text: str) -> str:
    for line in diff_text.splitlines():
        if line.startswith(("+++ ", "diff --git")):
            return diff_text
        if line.startswith("@@"):
            break
    return _SYNTHETIC_FILE_HEADER + diff_text


def _count_added_lines(diff_text: str) -> List[int]:
    """Walk hunks using their header counts to know where each one ends."""
    changed: List[int] = []
    current_line = 0
    old_left = new_left = 0

    for line in diff_text.splitlines():
        if line.startswith("@@"):
            header = parse_hunk_header(line)
            if header is None:
                logger.debug("Skipping malformed hunk header: %r", line)
                continue
            _, old_left, new_start, new_left = header
            current_line = new_start - 1
            continue

        if old_left <= 0 and new_left <= 0:
            continue
        if line.startswith("\\"):
            continue
        if line.startswith("-"):
            old_left -= 1
        elif line.startswith("+"):
            current_line += 1
            new_left -= 1
            changed.append(current_line)
        else:
            # context; an empty line is context whose leading space was stripped
            current_line += 1
            old_left -= 1
            new_left -= 1

    return changed
