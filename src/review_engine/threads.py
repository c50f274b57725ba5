"""Thread reconstruction and pure helpers over flat comment lists."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from review_engine.models import Comment, CommentKind, CommentStatus

logger = logging.getLogger(__name__)


def _thread_sort_key(comment: Comment) -> tuple[str, int]:
    # Unanchored comments sort first: no file is "" and no line is 0.
    return (comment.file or "", comment.line or 0)


def build_threads_with_stats(
    comments: Iterable[Comment],
) -> tuple[list[Comment], int]:
    """Attach replies to their root comments.

    Roots are comments without `in_reply_to_id`, keyed by their own id.
    Replies are grouped under the root they answer and sorted by
    `created_at` (stable, ties keep input order). Replies whose root is
    unknown are dropped. Input comments are never modified; the returned
    comments are copies.

    Args:
        comments: Flat comment records (local and fetched).

    Returns:
        Tuple of (root comments ordered by file then line, number of
        orphaned replies dropped).
    """
    roots: dict[str, Comment] = {}
    replies_by_root: dict[str, list[Comment]] = {}

    for comment in comments:
        if comment.in_reply_to_id is None:
            roots[comment.id] = comment
        else:
            replies_by_root.setdefault(comment.in_reply_to_id, []).append(comment)

    dropped = sum(
        len(replies)
        for root_id, replies in replies_by_root.items()
        if root_id not in roots
    )
    if dropped:
        logger.warning("Dropped %d orphaned replies with no matching root", dropped)

    threads: list[Comment] = []
    for root_id, root in roots.items():
        replies = sorted(
            replies_by_root.get(root_id, []), key=lambda reply: reply.created_at
        )
        threads.append(
            root.model_copy(
                update={
                    "replies": [
                        reply.model_copy(update={"replies": []}) for reply in replies
                    ]
                }
            )
        )

    threads.sort(key=_thread_sort_key)
    return threads, dropped


def build_threads(comments: Iterable[Comment]) -> list[Comment]:
    """Attach replies to roots and order threads by (file, line).

    See build_threads_with_stats for the details.
    """
    threads, _ = build_threads_with_stats(comments)
    return threads


def pending_comments(comments: Iterable[Comment]) -> list[Comment]:
    """Local comments still waiting to be submitted as review comments."""
    return [
        comment
        for comment in comments
        if comment.kind == CommentKind.LOCAL
        and comment.status == CommentStatus.PENDING
        and comment.in_reply_to_id is None
    ]


def comments_at_line(comments: Iterable[Comment], file: str, line: int) -> list[Comment]:
    """Comments anchored on a line: single-line matches and covering ranges."""
    result: list[Comment] = []
    for comment in comments:
        if comment.file != file:
            continue
        if comment.start_line is not None and comment.end_line is not None:
            if comment.start_line <= line <= comment.end_line:
                result.append(comment)
        elif comment.line == line:
            result.append(comment)
    return result


def thread_root(comments: Sequence[Comment], comment_id: str) -> Comment | None:
    """Walk reply links up to the root of the thread containing comment_id.

    Returns None when the comment, or any comment on the way up, is unknown.
    """
    by_id = {comment.id: comment for comment in comments}
    current = by_id.get(comment_id)
    seen: set[str] = set()
    while current is not None and current.in_reply_to_id is not None:
        if current.id in seen:
            logger.warning("Reply cycle detected at comment %s", current.id)
            return None
        seen.add(current.id)
        current = by_id.get(current.in_reply_to_id)
    return current


def count_replies(threads: Iterable[Comment], root_id: str) -> int:
    for thread in threads:
        if thread.id == root_id:
            return len(thread.replies)
    return 0


def mark_submitted(comments: Iterable[Comment], comment_ids: Iterable[str]) -> list[Comment]:
    """Return a new list with the given local comments marked as submitted."""
    submitted = set(comment_ids)
    return [
        comment.model_copy(update={"status": CommentStatus.SUBMITTED})
        if comment.id in submitted and comment.kind == CommentKind.LOCAL
        else comment
        for comment in comments
    ]
