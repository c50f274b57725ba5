"""Collect git file-status maps for provenance classification."""

from __future__ import annotations

import logging
import re
import subprocess
from dataclasses import dataclass, field

from review_engine.models import FileStatus

logger = logging.getLogger(__name__)

STATUS_LETTERS = {
    "A": FileStatus.ADDED,
    "M": FileStatus.MODIFIED,
    "D": FileStatus.DELETED,
    "R": FileStatus.RENAMED,
    "C": FileStatus.COPIED,
}

NAME_STATUS_PATTERN = re.compile(r"^([AMDRCTU])\d*\t(.+)$")


@dataclass
class ProvenanceInputs:
    """The three file-status maps the provenance classifier needs."""

    pushed: dict[str, FileStatus] = field(default_factory=dict)
    local_commits: dict[str, FileStatus] = field(default_factory=dict)
    uncommitted: dict[str, FileStatus] = field(default_factory=dict)


def parse_status_letter(status: str) -> FileStatus:
    """Map a git status letter (optionally followed by a score) to FileStatus."""
    if not status:
        return FileStatus.MODIFIED
    return STATUS_LETTERS.get(status[0], FileStatus.MODIFIED)


def parse_name_status(output: str) -> dict[str, FileStatus]:
    """Parse `git diff --name-status` output.

    Renames and copies (`R100<TAB>old<TAB>new`) are keyed by the new path.

    Args:
        output: Raw command output.

    Returns:
        Mapping of path to FileStatus.
    """
    files: dict[str, FileStatus] = {}
    for line in output.splitlines():
        match = NAME_STATUS_PATTERN.match(line)
        if not match:
            continue
        letter, paths = match.groups()
        path = paths.split("\t")[-1]
        files[path] = parse_status_letter(letter)
    return files


def parse_porcelain(output: str) -> dict[str, FileStatus]:
    """Parse `git status --porcelain` output.

    The staged status wins over the unstaged one; untracked files count as
    added, and renames (`R  old -> new`) are keyed by the new path.

    Args:
        output: Raw command output.

    Returns:
        Mapping of path to FileStatus.
    """
    files: dict[str, FileStatus] = {}
    for line in output.splitlines():
        if len(line) < 4:
            continue
        staged, unstaged = line[0], line[1]
        path = line[3:]
        if " -> " in path:
            path = path.split(" -> ", 1)[1]

        if "A" in (staged, unstaged) or staged == "?":
            status = FileStatus.ADDED
        elif "D" in (staged, unstaged):
            status = FileStatus.DELETED
        elif staged == "R":
            status = FileStatus.RENAMED
        else:
            status = FileStatus.MODIFIED
        files[path] = status
    return files


class GitRepository:
    """Runs git in a working tree and reports changed-file maps.

    Failed git commands are logged and produce empty results.
    """

    def __init__(self, root: str | None = None) -> None:
        """Initialize the repository wrapper.

        Args:
            root: Working tree directory. Defaults to the current directory.
        """
        self._root = root

    def _run(self, args: list[str]) -> str | None:
        result = subprocess.run(
            ["git", *args],
            cwd=self._root,
            capture_output=True,
            text=True,
            check=False,
        )
        if result.returncode != 0:
            logger.warning(
                "git %s failed (%d): %s",
                " ".join(args),
                result.returncode,
                result.stderr.strip(),
            )
            return None
        return result.stdout

    def rev_parse(self, ref: str) -> str | None:
        output = self._run(["rev-parse", ref])
        return output.strip() if output else None

    def merge_base(self, ref: str, other: str = "HEAD") -> str | None:
        """Best common ancestor of ref and other, or None if there is none."""
        output = self._run(["merge-base", ref, other])
        return output.strip() if output else None

    def diff_text(self, base: str, head: str | None = None) -> str:
        """Unified diff from base to head, or to the working tree if head is None."""
        args = ["diff", base]
        if head:
            args.append(head)
        return self._run(args) or ""

    def changed_files_between(
        self, ref1: str, ref2: str | None = None
    ) -> dict[str, FileStatus]:
        args = ["diff", "--name-status", ref1]
        if ref2:
            args.append(ref2)
        output = self._run(args)
        return parse_name_status(output) if output else {}

    def uncommitted_files(self) -> dict[str, FileStatus]:
        output = self._run(["status", "--porcelain", "--untracked-files=all"])
        return parse_porcelain(output) if output else {}

    def untracked_files(self) -> list[str]:
        """Untracked paths not covered by .gitignore."""
        output = self._run(["ls-files", "--others", "--exclude-standard"])
        return [path for path in output.split("\n") if path] if output else []

    def local_commit_changes(self, origin_head: str) -> dict[str, FileStatus]:
        """Files changed by commits on HEAD that are not on origin_head.

        Returns an empty mapping without diffing when HEAD and origin_head
        resolve to the same commit, or when either cannot be resolved.
        """
        origin_head_sha = self.rev_parse(origin_head)
        head_sha = self.rev_parse("HEAD")
        if not origin_head_sha or not head_sha or origin_head_sha == head_sha:
            return {}
        return self.changed_files_between(origin_head, "HEAD")

    def provenance_inputs(self, origin_base: str, origin_head: str) -> ProvenanceInputs:
        """Collect pushed, local-commit and uncommitted file maps.

        Args:
            origin_base: Remote base ref, e.g. "origin/main".
            origin_head: Remote tracking ref of the branch under review.
        """
        return ProvenanceInputs(
            pushed=self.changed_files_between(origin_base, origin_head),
            local_commits=self.local_commit_changes(origin_head),
            uncommitted=self.uncommitted_files(),
        )
