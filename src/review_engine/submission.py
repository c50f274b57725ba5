"""Decide which pending comments a hosted review will accept."""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Mapping, Sequence

from review_engine.models import (
    Comment,
    Outcome,
    Provenance,
    ReviewEvent,
    SkipReason,
    SubmissionDecision,
)

LABEL_PREFIXES = {
    "issue": "**Issue:** ",
    "suggestion": "**Suggestion:** ",
    "praise": "**Praise:** ",
}

EVENT_LABELS = {
    ReviewEvent.APPROVE: "Approve",
    ReviewEvent.REQUEST_CHANGES: "Request Changes",
    ReviewEvent.COMMENT: "Comment",
}

SUBMITTABLE_PREVIEW_LENGTH = 50
SKIPPED_PREVIEW_LENGTH = 40


def compress_line_ranges(lines: Iterable[int]) -> list[str]:
    """Compress line numbers into inclusive range strings.

    Example: {1, 2, 3, 7, 9, 10} -> ["1-3", "7", "9-10"].
    """
    ranges: list[str] = []
    start: int | None = None
    end = 0
    for line in sorted(set(lines)):
        if start is not None and line == end + 1:
            end = line
            continue
        if start is not None:
            ranges.append(_format_range(start, end))
        start = end = line
    if start is not None:
        ranges.append(_format_range(start, end))
    return ranges


def _format_range(start: int, end: int) -> str:
    return str(start) if start == end else f"{start}-{end}"


def partition(
    pending: Iterable[Comment],
    file_provenance: Mapping[str, Provenance],
    commentable: Mapping[str, set[int]],
    diff_available: bool | None = None,
) -> list[SubmissionDecision]:
    """Split pending comments into submittable and skipped decisions.

    Rules, in order, for a comment anchored on a file line:
    1. file is LOCAL or UNCOMMITTED: skipped, the hosted diff cannot show it.
    2. line is commentable: submittable.
    3. file is in the diff but the line is not: skipped, with the valid
       line ranges of that file.
    4. file is not in the diff: skipped.
    5. no diff data at all: submittable, since nothing proves it invalid.
    Comments without a file or line are always submittable.

    Args:
        pending: Comments to decide on, in the order to report them.
        file_provenance: Provenance per path; missing paths are not local.
        commentable: Commentable lines per path, from commentable_lines().
        diff_available: Whether the diff behind `commentable` was non-empty.
            Defaults to whether `commentable` has any entry.

    Returns:
        One SubmissionDecision per pending comment, in input order.
    """
    if diff_available is None:
        diff_available = bool(commentable)

    decisions: list[SubmissionDecision] = []
    for comment in pending:
        file = comment.file
        line = comment.line
        if not file or line is None:
            decisions.append(SubmissionDecision(comment, Outcome.SUBMITTABLE))
            continue

        provenance = file_provenance.get(file)
        valid_lines = commentable.get(file)
        if provenance in (Provenance.LOCAL, Provenance.UNCOMMITTED):
            decisions.append(
                SubmissionDecision(
                    comment, Outcome.SKIPPED, SkipReason.LOCAL_OR_UNCOMMITTED_FILE
                )
            )
        elif valid_lines is not None and line in valid_lines:
            decisions.append(SubmissionDecision(comment, Outcome.SUBMITTABLE))
        elif valid_lines is not None:
            decisions.append(
                SubmissionDecision(
                    comment,
                    Outcome.SKIPPED,
                    SkipReason.LINE_NOT_IN_DIFF,
                    valid_line_ranges=compress_line_ranges(valid_lines),
                )
            )
        elif diff_available:
            decisions.append(
                SubmissionDecision(comment, Outcome.SKIPPED, SkipReason.FILE_NOT_IN_DIFF)
            )
        else:
            decisions.append(SubmissionDecision(comment, Outcome.SUBMITTABLE))
    return decisions


def skip_reason_counts(decisions: Iterable[SubmissionDecision]) -> dict[SkipReason, int]:
    return dict(
        Counter(decision.reason for decision in decisions if decision.reason is not None)
    )


def format_comment_body(comment: Comment) -> str:
    """Comment body as posted, prefixed by its label for labelled local comments."""
    label = getattr(comment, "label", "note")
    return LABEL_PREFIXES.get(label, "") + comment.body


def _preview(body: str, limit: int) -> str:
    preview = body.replace("\n", " ")
    if len(preview) > limit:
        preview = preview[: limit - 3] + "..."
    return preview


def _location(comment: Comment) -> str:
    if comment.file and comment.line is not None:
        return f"{comment.file}:{comment.line}"
    return "(conversation)"


def build_submission_summary(
    decisions: Sequence[SubmissionDecision],
    event: ReviewEvent,
    number: int,
    title: str,
) -> str:
    """Build the `#`-commented summary shown before a review is submitted.

    The reviewer writes the review body above it; every line starting
    with `#` is removed by strip_summary_comments() before submission.

    Args:
        decisions: Output of partition().
        event: Review event about to be submitted.
        number: Pull/merge request number.
        title: Pull/merge request title.

    Returns:
        Summary text, newline separated, starting with an empty line.
    """
    submittable = [d for d in decisions if d.is_submittable]
    skipped = [d for d in decisions if not d.is_submittable]

    lines = ["", f"# {EVENT_LABELS[event]} - PR #{number}: {title}", "#"]

    if submittable:
        lines.append(f"# {len(submittable)} comment(s) to submit:")
        for decision in submittable:
            comment = decision.comment
            label = getattr(comment, "label", "note")
            label_text = f"[{label}] " if label != "note" else ""
            preview = _preview(comment.body, SUBMITTABLE_PREVIEW_LENGTH)
            lines.append(f"#   {_location(comment)}  {label_text}{preview}")
    else:
        lines.append("# No comments to submit")

    if skipped:
        lines.append("#")
        lines.append(f"# {len(skipped)} comment(s) skipped:")
        for decision in skipped:
            comment = decision.comment
            detail = decision.reason.description
            if decision.valid_line_ranges:
                detail += f" (valid: {', '.join(decision.valid_line_ranges)})"
            preview = _preview(comment.body, SKIPPED_PREVIEW_LENGTH)
            lines.append(f"#   {_location(comment)}  {preview} ({detail})")

    if skipped and not submittable:
        lines.extend(
            [
                "#",
                "# NOTE: Only lines visible in the PR diff (changed lines plus",
                "# surrounding context) accept review comments. Comments on other",
                "# lines cannot be submitted as review comments.",
            ]
        )

    lines.extend(
        [
            "#",
            "# Lines starting with # are ignored.",
            "# Write your review summary above.",
        ]
    )
    return "\n".join(lines)


def strip_summary_comments(text: str) -> str:
    """Drop `#` lines and surrounding blank lines from an edited summary."""
    body_lines = [line for line in text.splitlines() if not line.startswith("#")]
    while body_lines and not body_lines[0].strip():
        body_lines.pop(0)
    while body_lines and not body_lines[-1].strip():
        body_lines.pop()
    return "\n".join(body_lines)
