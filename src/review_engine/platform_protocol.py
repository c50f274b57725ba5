"""Platform-agnostic protocol for hosted code review integrations."""

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from review_engine.models import Comment, ReviewEvent, SubmissionDecision


class ReviewSubmissionError(Exception):
    """A host call failed part way through submitting a review.

    Attributes:
        submitted_ids: Local comment IDs the host accepted before the failure.
    """

    def __init__(self, submitted_ids: list[str], message: str) -> None:
        super().__init__(message)
        self.submitted_ids = submitted_ids


@dataclass
class PullRequestContext:
    """Context information for a hosted review (PR/MR)."""

    number: int
    """PR/MR number."""

    title: str
    """PR/MR title."""

    description: str
    """PR/MR body/description."""

    head_sha: str
    """Head commit SHA."""

    repo_identifier: str
    """GitHub: 'owner/repo', GitLab: project ID."""


@runtime_checkable
class ReviewHost(Protocol):
    """Protocol for the hosting service a review is submitted to.

    Implementations fetch raw diff text and comment records for the core
    and send back the comments the core decided are submittable.
    """

    def get_context(self) -> PullRequestContext:
        """Get the PR/MR context information.

        Returns:
            PullRequestContext with PR/MR metadata.
        """
        ...

    def get_diff_text(self) -> str:
        """Get the unified diff exactly as the host renders it.

        Returns:
            Diff text with `diff --git` file headers.
        """
        ...

    def get_comments(self) -> list[Comment]:
        """Get every comment on the PR/MR as flat records.

        Returns:
            Conversation comments, review summaries and review comments,
            with replies linked through `in_reply_to_id`.
        """
        ...

    def submit_review(
        self,
        decisions: list[SubmissionDecision],
        body: str,
        event: ReviewEvent = ReviewEvent.COMMENT,
    ) -> list[str]:
        """Submit the submittable decisions as a review.

        Args:
            decisions: Partition output. Skipped decisions are ignored.
            body: Review body text. May be empty.
            event: Review event to submit.

        Returns:
            IDs of the local comments the host accepted.

        Raises:
            ReviewSubmissionError: If a host call fails after some comments
                were already accepted.
        """
        ...
