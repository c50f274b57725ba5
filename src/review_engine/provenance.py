"""Classify changed files by where their changes live: pushed, local or uncommitted."""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Iterable, Mapping
from typing import Any

from review_engine.models import FileDiff, Provenance, ReviewMode

logger = logging.getLogger(__name__)


def classify(
    files: Iterable[str],
    pushed: Mapping[str, Any],
    local_commits: Mapping[str, Any],
    uncommitted: Mapping[str, Any],
) -> dict[str, Provenance]:
    """Tag each file with its provenance.

    A file changed on the remote branch and also changed locally (in
    unpushed commits or in the working tree) is BOTH. Otherwise the single
    set containing it decides. A file in none of the sets is unexpected for
    a file taken from the overall diff; it is logged and treated as PUSHED
    so comments on it are still attempted.

    Args:
        files: Paths to classify.
        pushed: Files changed between the remote base and the remote head.
        local_commits: Files changed between the remote head and local HEAD.
            Must be empty when both resolve to the same commit.
        uncommitted: Files with staged or unstaged working-tree changes.

    Returns:
        Mapping of path to Provenance, one entry per input path.
    """
    result: dict[str, Provenance] = {}
    for path in files:
        in_pushed = path in pushed
        in_local = path in local_commits
        in_uncommitted = path in uncommitted

        if in_pushed and (in_local or in_uncommitted):
            result[path] = Provenance.BOTH
        elif in_pushed:
            result[path] = Provenance.PUSHED
        elif in_local:
            result[path] = Provenance.LOCAL
        elif in_uncommitted:
            result[path] = Provenance.UNCOMMITTED
        else:
            logger.warning(
                "No git status for %s in any provenance set, assuming pushed", path
            )
            result[path] = Provenance.PUSHED
    return result


def attach_provenance(
    files: Iterable[FileDiff], provenance: Mapping[str, Provenance]
) -> list[FileDiff]:
    """Return copies of the files with their provenance tag set."""
    return [
        dataclasses.replace(file_diff, provenance=provenance.get(file_diff.path))
        for file_diff in files
    ]


def should_restrict_to_hunks(mode: ReviewMode, provenance: Provenance | None) -> bool:
    """Whether comments on a file must stay inside its diff hunks.

    True when the file's comments will be sent to the hosted review, which
    rejects lines outside the hunks it renders.
    """
    if mode is ReviewMode.PR:
        return True
    if mode is ReviewMode.HYBRID:
        return provenance in (Provenance.PUSHED, Provenance.BOTH)
    return False
