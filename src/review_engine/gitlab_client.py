"""GitLab client implementing the ReviewHost protocol."""

import logging
from typing import Any

import gitlab
from gitlab.exceptions import GitlabCreateError, GitlabError

from review_engine.models import (
    Comment,
    ConversationComment,
    ReviewComment,
    ReviewEvent,
    SubmissionDecision,
)
from review_engine.platform_protocol import PullRequestContext, ReviewSubmissionError
from review_engine.submission import format_comment_body

logger = logging.getLogger(__name__)


def _note_to_comment(
    note: dict[str, Any], discussion_id: str, root_id: str | None
) -> Comment:
    """Convert one discussion note into a comment record."""
    author = (note.get("author") or {}).get("username", "unknown")
    common: dict[str, Any] = {
        "id": f"gl_note_{note['id']}",
        "body": note.get("body") or "",
        "author": author,
        "created_at": note.get("created_at") or "",
        "updated_at": note.get("updated_at"),
        "resolved": note.get("resolved"),
        "thread_root_id": root_id,
        "in_reply_to_id": root_id,
        "remote_id": note["id"],
    }
    position = note.get("position") or {}
    path = position.get("new_path") or position.get("old_path")
    if not path:
        return ConversationComment(**common)

    new_line = position.get("new_line")
    return ReviewComment(
        **common,
        file=path,
        line=new_line or position.get("old_line"),
        side="RIGHT" if new_line else "LEFT",
        commit_id=position.get("head_sha"),
        thread_id=discussion_id,
    )


class GitLabClient:
    """GitLab Merge Request client implementing the ReviewHost protocol.

    Uses python-gitlab to fetch MR diffs and discussions and to post reviews.
    """

    def __init__(
        self,
        token: str,
        project_id: int,
        mr_iid: int,
        gitlab_url: str = "https://gitlab.com",
    ) -> None:
        """Initialize GitLab client with project and MR references.

        Args:
            token: GitLab access token (private_token).
            project_id: GitLab project ID.
            mr_iid: Merge request internal ID.
            gitlab_url: GitLab instance URL. Defaults to https://gitlab.com.
        """
        self._gitlab = gitlab.Gitlab(gitlab_url, private_token=token)
        self._project = self._gitlab.projects.get(project_id)
        self._merge_request = self._project.mergerequests.get(mr_iid)
        self._project_id = project_id

    def get_context(self) -> PullRequestContext:
        """Get MR context information.

        Returns:
            PullRequestContext with MR metadata.
        """
        merge_request = self._merge_request
        return PullRequestContext(
            number=merge_request.iid,
            title=merge_request.title,
            description=merge_request.description or "",
            head_sha=merge_request.sha,
            repo_identifier=str(self._project_id),
        )

    def get_diff_text(self) -> str:
        """Assemble the MR's unified diff from mr.changes().

        GitLab returns each file's hunks without git headers, so the
        `diff --git` header and status lines are rebuilt from the change flags.

        Returns:
            Unified diff text with `diff --git` file headers.
        """
        lines: list[str] = []
        for change in self._merge_request.changes()["changes"]:
            old_path = change.get("old_path") or change["new_path"]
            new_path = change["new_path"]
            lines.append(f"diff --git a/{old_path} b/{new_path}")
            if change.get("new_file"):
                lines.append("new file mode 100644")
            elif change.get("deleted_file"):
                lines.append("deleted file mode 100644")
            elif change.get("renamed_file"):
                lines.append(f"rename from {old_path}")
                lines.append(f"rename to {new_path}")

            diff_text = change.get("diff", "")
            if diff_text:
                lines.append(
                    "--- /dev/null" if change.get("new_file") else f"--- a/{old_path}"
                )
                lines.append(
                    "+++ /dev/null" if change.get("deleted_file") else f"+++ b/{new_path}"
                )
                lines.append(diff_text.rstrip("\n"))
        return "\n".join(lines)

    def get_comments(self) -> list[Comment]:
        """Fetch MR discussions as flat comment records.

        The first note of a discussion is its root; later notes reply to it.
        System notes (label changes, pushes) are left out.

        Returns:
            Flat list of comment records.
        """
        comments: list[Comment] = []
        for discussion in self._merge_request.discussions.list(get_all=True):
            notes = [
                note
                for note in discussion.attributes.get("notes", [])
                if not note.get("system")
            ]
            if not notes:
                continue
            root = _note_to_comment(notes[0], discussion.id, None)
            comments.append(root)
            comments.extend(
                _note_to_comment(note, discussion.id, root.id) for note in notes[1:]
            )
        return comments

    def submit_review(
        self,
        decisions: list[SubmissionDecision],
        body: str,
        event: ReviewEvent = ReviewEvent.COMMENT,
    ) -> list[str]:
        """Post submittable comments as MR discussions and notes.

        Each anchored comment becomes an inline discussion positioned with
        diff_refs. If a GitlabCreateError occurs (e.g., line outside diff),
        the comment is skipped with a warning log. Unanchored comments and
        the body are posted as MR notes; APPROVE approves the MR.

        Args:
            decisions: Partition output. Skipped decisions are ignored.
            body: Review body text. May be empty.
            event: Review event to submit.

        Returns:
            IDs of the local comments GitLab accepted.

        Raises:
            ReviewSubmissionError: If a GitLab call other than an inline
                comment fails; carries the IDs accepted before the failure.
        """
        submitted: list[str] = []
        try:
            self._submit(decisions, body, event, submitted)
        except GitlabError as error:
            raise ReviewSubmissionError(submitted, str(error)) from error
        return submitted

    def _submit(
        self,
        decisions: list[SubmissionDecision],
        body: str,
        event: ReviewEvent,
        submitted: list[str],
    ) -> None:
        merge_request = self._merge_request
        diff_refs = merge_request.diff_refs

        for decision in decisions:
            if not decision.is_submittable:
                continue
            comment = decision.comment
            comment_body = format_comment_body(comment)
            if not comment.file or comment.line is None:
                merge_request.notes.create({"body": comment_body})
                submitted.append(comment.id)
                continue
            try:
                merge_request.discussions.create(
                    {
                        "body": comment_body,
                        "position": {
                            "base_sha": diff_refs["base_sha"],
                            "start_sha": diff_refs["start_sha"],
                            "head_sha": diff_refs["head_sha"],
                            "position_type": "text",
                            "new_path": comment.file,
                            "new_line": comment.line,
                        },
                    }
                )
                submitted.append(comment.id)
            except GitlabCreateError as error:
                logger.warning(
                    "Failed to create inline comment on %s:%s - %s",
                    comment.file,
                    comment.line,
                    error,
                )

        if body:
            merge_request.notes.create({"body": body})

        if event is ReviewEvent.APPROVE:
            merge_request.approve()
        elif event is ReviewEvent.REQUEST_CHANGES:
            logger.warning("GitLab has no request-changes review; posted as comments")
