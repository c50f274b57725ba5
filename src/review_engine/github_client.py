"""GitHub implementation of the ReviewHost protocol."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from github import Github, GithubException

from review_engine.models import (
    Comment,
    ConversationComment,
    ReviewComment,
    ReviewEvent,
    ReviewSummaryComment,
    SubmissionDecision,
)
from review_engine.platform_protocol import PullRequestContext, ReviewSubmissionError
from review_engine.submission import format_comment_body

logger = logging.getLogger(__name__)

REVIEW_COMMENT_CHUNK_SIZE = 30


def _timestamp(value: Any) -> str:
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value or "")


def _author(item: Any) -> str:
    return item.user.login if item.user else "unknown"


def _review_comment(item: Any) -> ReviewComment:
    """Convert a PyGithub PullRequestComment into a ReviewComment."""
    line = item.line or item.original_line
    in_reply_to_id = f"gh_review_{item.in_reply_to_id}" if item.in_reply_to_id else None
    return ReviewComment(
        id=f"gh_review_{item.id}",
        body=item.body or "",
        author=_author(item),
        created_at=_timestamp(item.created_at),
        updated_at=_timestamp(item.updated_at) or None,
        file=item.path,
        line=line,
        start_line=item.start_line,
        end_line=line,
        side=item.side,
        commit_id=item.commit_id,
        thread_id=str(item.in_reply_to_id or item.id),
        thread_root_id=in_reply_to_id,
        in_reply_to_id=in_reply_to_id,
        remote_id=item.id,
    )


class GitHubClient:
    """GitHub pull request client implementing the ReviewHost protocol.

    Uses PyGithub to fetch the diff and comments of a PR and to submit reviews.
    """

    def __init__(self, token: str, repo_name: str, pr_number: int) -> None:
        """Initialize GitHub client.

        Args:
            token: GitHub API token.
            repo_name: Repository full name (owner/repo).
            pr_number: Pull request number.
        """
        self._github = Github(token)
        self._repo = self._github.get_repo(repo_name)
        self._repo_name = repo_name
        self._pr = self._repo.get_pull(pr_number)

    def get_context(self) -> PullRequestContext:
        """Get the PR context information.

        Returns:
            PullRequestContext with PR metadata.
        """
        return PullRequestContext(
            number=self._pr.number,
            title=self._pr.title,
            description=self._pr.body or "",
            head_sha=self._pr.head.sha,
            repo_identifier=self._repo_name,
        )

    def get_diff_text(self) -> str:
        """Assemble the PR's unified diff from its per-file patches.

        Files GitHub sends without a patch (binary or too large) keep their
        `diff --git` header so they still appear in the diff, with no hunks,
        and are logged.

        Returns:
            Unified diff text with `diff --git` file headers.
        """
        lines: list[str] = []
        for file in self._pr.get_files():
            old_path = file.previous_filename or file.filename
            lines.append(f"diff --git a/{old_path} b/{file.filename}")
            if file.status == "added":
                lines.append("new file mode 100644")
            elif file.status == "removed":
                lines.append("deleted file mode 100644")
            elif file.status == "renamed":
                lines.append(f"rename from {old_path}")
                lines.append(f"rename to {file.filename}")
            elif file.status == "copied":
                lines.append(f"copy from {old_path}")
                lines.append(f"copy to {file.filename}")

            if file.patch:
                lines.append(
                    "--- /dev/null" if file.status == "added" else f"--- a/{old_path}"
                )
                lines.append(
                    "+++ /dev/null"
                    if file.status == "removed"
                    else f"+++ b/{file.filename}"
                )
                lines.append(file.patch)
            elif file.changes:
                logger.warning(
                    "No patch for %s (binary or too large), "
                    "none of its lines are commentable",
                    file.filename,
                )
        return "\n".join(lines)

    def get_comments(self) -> list[Comment]:
        """Fetch conversation comments, review summaries and review comments.

        Returns:
            Flat list of comment records; replies point at their root
            through `in_reply_to_id`.
        """
        comments: list[Comment] = []
        for item in self._pr.get_issue_comments():
            comments.append(
                ConversationComment(
                    id=f"gh_conv_{item.id}",
                    body=item.body or "",
                    author=_author(item),
                    created_at=_timestamp(item.created_at),
                    updated_at=_timestamp(item.updated_at) or None,
                    remote_id=item.id,
                )
            )

        for review in self._pr.get_reviews():
            # Only reviews with a body carry a summary worth showing
            if not review.body:
                continue
            comments.append(
                ReviewSummaryComment(
                    id=f"gh_summary_{review.id}",
                    body=review.body,
                    author=_author(review),
                    created_at=_timestamp(review.submitted_at),
                    review_state=review.state,
                    remote_id=review.id,
                )
            )

        comments.extend(_review_comment(item) for item in self._pr.get_review_comments())
        return comments

    def submit_review(
        self,
        decisions: list[SubmissionDecision],
        body: str,
        event: ReviewEvent = ReviewEvent.COMMENT,
    ) -> list[str]:
        """Submit submittable comments as a PR review.

        Anchored comments are posted in batches of 30 using create_review,
        falling back to individual create_review_comment calls on 422
        errors. The review body and event go with the last batch.
        Unanchored comments are posted as issue comments.

        Args:
            decisions: Partition output. Skipped decisions are ignored.
            body: Review body text. May be empty.
            event: Review event to submit.

        Returns:
            IDs of the local comments GitHub accepted.

        Raises:
            ReviewSubmissionError: If a GitHub call fails; carries the IDs
                accepted before the failure.
        """
        submitted: list[str] = []
        try:
            self._submit(decisions, body, event, submitted)
        except GithubException as error:
            raise ReviewSubmissionError(submitted, str(error)) from error
        return submitted

    def _submit(
        self,
        decisions: list[SubmissionDecision],
        body: str,
        event: ReviewEvent,
        submitted: list[str],
    ) -> None:
        submittable = [d.comment for d in decisions if d.is_submittable]
        anchored = [c for c in submittable if c.file and c.line is not None]
        unanchored = [c for c in submittable if not (c.file and c.line is not None)]

        for comment in unanchored:
            self._pr.create_issue_comment(body=format_comment_body(comment))
            submitted.append(comment.id)

        if not anchored and not body and event is ReviewEvent.COMMENT:
            return

        commits = self._pr.get_commits()
        last_commit = list(commits)[-1]

        chunks = self._chunk_comments(anchored, REVIEW_COMMENT_CHUNK_SIZE) or [[]]
        for index, chunk in enumerate(chunks):
            is_last = index == len(chunks) - 1
            review_kwargs: dict[str, Any] = {
                "commit": last_commit,
                "event": event.value if is_last else ReviewEvent.COMMENT.value,
                "comments": [self._to_github_comment(comment) for comment in chunk],
            }
            if is_last and body:
                review_kwargs["body"] = body

            try:
                self._pr.create_review(**review_kwargs)
                submitted.extend(comment.id for comment in chunk)
            except GithubException as error:
                if error.status == 422 and chunk:
                    logger.warning(
                        "Batch review failed with 422, falling back to individual comments"
                    )
                    submitted.extend(self._post_individual_comments(chunk, last_commit))
                    if is_last and (body or event is not ReviewEvent.COMMENT):
                        del review_kwargs["comments"]
                        self._pr.create_review(**review_kwargs)
                else:
                    raise

    def reply_to_comment(self, comment_id: int, body: str) -> ReviewComment:
        """Reply to a review comment thread.

        Args:
            comment_id: GitHub ID of the comment being answered.
            body: Reply text.

        Returns:
            The created reply as a ReviewComment.
        """
        reply = self._pr.create_review_comment_reply(comment_id, body)
        return _review_comment(reply)

    def _to_github_comment(self, comment: Comment) -> dict[str, Any]:
        github_comment: dict[str, Any] = {
            "path": comment.file,
            "body": format_comment_body(comment),
            "line": comment.line,
            "side": "RIGHT",
        }
        if comment.start_line is not None and comment.start_line < comment.line:
            github_comment["start_line"] = comment.start_line
            github_comment["start_side"] = "RIGHT"
        return github_comment

    def _chunk_comments(
        self,
        comments: list[Comment],
        chunk_size: int = REVIEW_COMMENT_CHUNK_SIZE,
    ) -> list[list[Comment]]:
        """Split comments into chunks of specified size.

        Args:
            comments: List of comments.
            chunk_size: Maximum comments per chunk.

        Returns:
            List of comment chunks.
        """
        return [
            comments[i : i + chunk_size] for i in range(0, len(comments), chunk_size)
        ]

    def _post_individual_comments(
        self, comments: list[Comment], commit: Any
    ) -> list[str]:
        """Post comments individually as fallback.

        Args:
            comments: Comments to post.
            commit: The commit object to attach comments to.

        Returns:
            IDs of the comments that were accepted.
        """
        accepted: list[str] = []
        for comment in comments:
            try:
                self._pr.create_review_comment(
                    commit=commit, **self._to_github_comment(comment)
                )
                accepted.append(comment.id)
            except GithubException as error:
                logger.warning(
                    "Skipping comment on %s line %s: %s",
                    comment.file,
                    comment.line,
                    error,
                )
        return accepted
