"""Unified diff parser with dual old/new line numbering."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Literal

from review_engine.models import DiffLine, DiffLineKind, FileDiff, FileStatus, Hunk

logger = logging.getLogger(__name__)

DIFF_GIT_PATTERN = re.compile(r"^diff --git a/(.+?) b/(.+)$")
HUNK_HEADER_PATTERN = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@")

DEV_NULL = "/dev/null"

METADATA_PREFIXES = (
    "index ",
    "new file",
    "deleted file",
    "old mode",
    "new mode",
    "similarity",
    "dissimilarity",
    "rename ",
    "copy ",
    "Binary files",
)

BODY_PREFIXES = ("+", "-", " ")


@dataclass
class _HunkState:
    old_start: int
    old_count: int
    new_start: int
    new_count: int
    header: str
    old_line: int = 0
    new_line: int = 0
    lines: list[DiffLine] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.old_line = self.old_start
        self.new_line = self.new_start

    @property
    def expects_body(self) -> bool:
        """True while the header's declared counts are not yet consumed."""
        return (
            self.old_line < self.old_start + self.old_count
            or self.new_line < self.new_start + self.new_count
        )

    def consume(self, raw_line: str) -> None:
        prefix = raw_line[0]
        text = raw_line[1:]
        if prefix == "+":
            self.lines.append(DiffLine(DiffLineKind.ADDED, None, self.new_line, text))
            self.new_line += 1
        elif prefix == "-":
            self.lines.append(
                DiffLine(DiffLineKind.REMOVED, self.old_line, None, text)
            )
            self.old_line += 1
        else:
            self.lines.append(
                DiffLine(DiffLineKind.CONTEXT, self.old_line, self.new_line, text)
            )
            self.old_line += 1
            self.new_line += 1

    def freeze(self) -> Hunk:
        return Hunk(
            old_start=self.old_start,
            old_count=self.old_count,
            new_start=self.new_start,
            new_count=self.new_count,
            lines=tuple(self.lines),
            header=self.header,
        )


@dataclass
class _FileState:
    path: str
    old_path: str | None = None
    status: FileStatus | None = None
    hunks: list[Hunk] = field(default_factory=list)
    hunk: _HunkState | None = None

    @property
    def in_body(self) -> bool:
        return self.hunk is not None and self.hunk.expects_body

    @property
    def has_content(self) -> bool:
        return bool(self.hunks) or self.hunk is not None

    def close_hunk(self) -> None:
        if self.hunk is not None:
            self.hunks.append(self.hunk.freeze())
            self.hunk = None

    def freeze(self) -> FileDiff:
        self.close_hunk()
        status = self.status or _infer_status(self.hunks)
        old_path = self.old_path
        if status not in (FileStatus.RENAMED, FileStatus.COPIED):
            old_path = None
        return FileDiff(
            path=self.path,
            status=status,
            old_path=old_path,
            hunks=tuple(self.hunks),
        )


def _infer_status(hunks: Sequence[Hunk]) -> FileStatus:
    """Infer status from hunk ranges when no metadata line declared it."""
    if hunks and all(h.old_start == 0 and h.old_count == 0 for h in hunks):
        return FileStatus.ADDED
    if hunks and all(h.new_start == 0 and h.new_count == 0 for h in hunks):
        return FileStatus.DELETED
    return FileStatus.MODIFIED


def _parse_hunk_header(raw_line: str) -> _HunkState | None:
    match = HUNK_HEADER_PATTERN.match(raw_line)
    if not match:
        return None
    old_count = match.group(2)
    new_count = match.group(4)
    return _HunkState(
        old_start=int(match.group(1)),
        old_count=int(old_count) if old_count else 1,
        new_start=int(match.group(3)),
        new_count=int(new_count) if new_count else 1,
        header=raw_line,
    )


def _header_path(raw_line: str) -> str:
    """Extract the path from a `--- ` or `+++ ` line.

    Strips the a/ or b/ prefix and any tab-separated timestamp.
    """
    path = raw_line[4:].split("\t", 1)[0].strip()
    if path.startswith(("a/", "b/")):
        path = path[2:]
    return path


def _split_lines(text: str) -> list[str]:
    """Split on newlines only, dropping one trailing carriage return per line."""
    return [line[:-1] if line.endswith("\r") else line for line in text.split("\n")]


def _apply_metadata(current: _FileState, raw_line: str) -> None:
    if raw_line.startswith("new file mode"):
        current.status = FileStatus.ADDED
    elif raw_line.startswith("deleted file mode"):
        current.status = FileStatus.DELETED
    elif raw_line.startswith("rename from "):
        current.status = FileStatus.RENAMED
        current.old_path = raw_line[len("rename from ") :]
    elif raw_line.startswith("rename to "):
        current.path = raw_line[len("rename to ") :]
    elif raw_line.startswith("copy from "):
        current.status = FileStatus.COPIED
        current.old_path = raw_line[len("copy from ") :]
    elif raw_line.startswith("copy to "):
        current.path = raw_line[len("copy to ") :]


def parse_diff(diff_text: str) -> list[FileDiff]:
    """Parse unified diff text into one FileDiff per touched file.

    Accepts `git diff` output (files introduced by `diff --git` headers) as
    well as plain unified diffs introduced by `---`/`+++` pairs. Files come
    back in the order they appear in the text. A file with no hunks (mode
    change, binary file) still produces a FileDiff with an empty hunk list.

    Malformed hunk headers are skipped together with their bodies; the rest
    of the text is still parsed.

    Args:
        diff_text: Unified diff text. May be empty.

    Returns:
        List of FileDiff objects, empty for empty input.
    """
    if not diff_text:
        return []

    files: list[FileDiff] = []
    current: _FileState | None = None
    # A bare `---` line opens a file whose name arrives with the `+++` line.
    awaiting_new_path = False

    for raw_line in _split_lines(diff_text):
        git_header = DIFF_GIT_PATTERN.match(raw_line)
        if git_header:
            if current is not None:
                files.append(current.freeze())
            current = _FileState(path=git_header.group(2))
            awaiting_new_path = False
            continue

        if not raw_line:
            continue

        # Skip "\ No newline at end of file"
        if raw_line.startswith("\\"):
            continue

        if current is not None and current.in_body and raw_line[0] in BODY_PREFIXES:
            current.hunk.consume(raw_line)
            continue

        if raw_line.startswith("@@"):
            hunk = _parse_hunk_header(raw_line)
            if current is None:
                logger.debug("Hunk header outside of any file: %r", raw_line)
                continue
            current.close_hunk()
            if hunk is None:
                logger.debug("Skipping malformed hunk header: %r", raw_line)
                continue
            current.hunk = hunk
            continue

        if raw_line.startswith("--- "):
            old_path = _header_path(raw_line)
            if current is None or current.has_content:
                if current is not None:
                    files.append(current.freeze())
                current = _FileState(path=old_path)
                awaiting_new_path = True
            if old_path == DEV_NULL and current.status is None:
                current.status = FileStatus.ADDED
            continue

        if raw_line.startswith("+++ "):
            if current is None:
                continue
            new_path = _header_path(raw_line)
            if new_path == DEV_NULL:
                if current.status is None:
                    current.status = FileStatus.DELETED
            elif awaiting_new_path:
                current.path = new_path
            awaiting_new_path = False
            continue

        if current is None:
            continue

        if current.hunk is None and raw_line.startswith(METADATA_PREFIXES):
            _apply_metadata(current, raw_line)
            continue

        # Lines past the declared counts are still accepted as body lines.
        if current.hunk is not None and raw_line[0] in BODY_PREFIXES:
            current.hunk.consume(raw_line)

    if current is not None:
        files.append(current.freeze())

    return files


def parse_hunk(hunk_text: str) -> Hunk | None:
    """Parse a single hunk given as its `@@` header followed by body lines.

    Returns:
        The Hunk, or None when the text is empty or the header is malformed.
    """
    if not hunk_text:
        return None

    raw_lines = _split_lines(hunk_text)
    state = _parse_hunk_header(raw_lines[0])
    if state is None:
        return None

    for raw_line in raw_lines[1:]:
        if raw_line and raw_line[0] in BODY_PREFIXES:
            state.consume(raw_line)
    return state.freeze()


def commentable_lines(diff_text: str) -> dict[str, set[int]]:
    """Get, per file, the NEW-file line numbers a review comment may target.

    Hosted review systems only accept comments on lines visible on the right
    side of the diff they render: added lines and context lines. Removed
    lines are excluded. Run this against the diff the hosting service itself
    renders, which may differ from the one driving the local file list.

    Args:
        diff_text: Unified diff text. May be empty.

    Returns:
        Mapping of file path to the set of commentable line numbers. Every
        file in the diff has an entry, possibly an empty set.
    """
    valid: dict[str, set[int]] = {}
    for file_diff in parse_diff(diff_text):
        lines = valid.setdefault(file_diff.path, set())
        for hunk in file_diff.hunks:
            lines.update(
                line.new_line for line in hunk.lines if line.new_line is not None
            )
    return valid


def find_hunk_for_line(hunks: Iterable[Hunk], line: int) -> Hunk | None:
    """Find the hunk whose NEW-side range contains the given line."""
    for hunk in hunks:
        if hunk.new_start <= line < hunk.new_start + hunk.new_count:
            return hunk
    return None


def new_to_old_line(hunk: Hunk, new_line: int) -> int | None:
    """Map a NEW-file line to its OLD-file line; None for added lines."""
    for diff_line in hunk.lines:
        if diff_line.new_line == new_line:
            return diff_line.old_line
    return None


def old_to_new_line(hunk: Hunk, old_line: int) -> int | None:
    """Map an OLD-file line to its NEW-file line; None for removed lines."""
    for diff_line in hunk.lines:
        if diff_line.old_line == old_line:
            return diff_line.new_line
    return None


def line_side(diff_line: DiffLine) -> Literal["LEFT", "RIGHT"]:
    """Review side a diff line is shown on: removed lines are LEFT."""
    if diff_line.kind is DiffLineKind.REMOVED:
        return "LEFT"
    return "RIGHT"


def diff_stats(files: Iterable[FileDiff]) -> tuple[int, int]:
    """Total (additions, deletions) across files."""
    additions = 0
    deletions = 0
    for file_diff in files:
        additions += file_diff.additions
        deletions += file_diff.deletions
    return additions, deletions
