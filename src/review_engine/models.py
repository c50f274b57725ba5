"""Shared data model: diff structures, comment records and submission decisions."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter


class DiffLineKind(str, Enum):
    CONTEXT = "context"
    ADDED = "added"
    REMOVED = "removed"


class FileStatus(str, Enum):
    ADDED = "added"
    MODIFIED = "modified"
    DELETED = "deleted"
    RENAMED = "renamed"
    COPIED = "copied"


class Provenance(str, Enum):
    """Where a changed file's content currently lives."""

    PUSHED = "pushed"
    LOCAL = "local"
    UNCOMMITTED = "uncommitted"
    BOTH = "both"


class ReviewMode(str, Enum):
    LOCAL = "local"
    PR = "pr"
    HYBRID = "hybrid"


class CommentKind(str, Enum):
    LOCAL = "local"
    CONVERSATION = "conversation"
    REVIEW = "review"
    REVIEW_SUMMARY = "review_summary"


class CommentStatus(str, Enum):
    PENDING = "pending"
    SUBMITTED = "submitted"
    AI_PROCESSING = "ai_processing"
    AI_COMPLETE = "ai_complete"


class ReviewEvent(str, Enum):
    APPROVE = "APPROVE"
    REQUEST_CHANGES = "REQUEST_CHANGES"
    COMMENT = "COMMENT"


class Outcome(str, Enum):
    SUBMITTABLE = "submittable"
    SKIPPED = "skipped"


class SkipReason(str, Enum):
    """Why a pending comment cannot be attached to the hosted review."""

    LOCAL_OR_UNCOMMITTED_FILE = "LocalOrUncommittedFile"
    LINE_NOT_IN_DIFF = "LineNotInDiff"
    FILE_NOT_IN_DIFF = "FileNotInDiff"

    @property
    def description(self) -> str:
        return _SKIP_REASON_DESCRIPTIONS[self]


_SKIP_REASON_DESCRIPTIONS = {
    SkipReason.LOCAL_OR_UNCOMMITTED_FILE: "local/uncommitted file",
    SkipReason.LINE_NOT_IN_DIFF: "line not in PR diff",
    SkipReason.FILE_NOT_IN_DIFF: "file not in PR diff",
}


@dataclass(frozen=True)
class DiffLine:
    """A single body line of a hunk.

    Attributes:
        kind: Context, added or removed.
        old_line: Line number in the OLD file. None for added lines.
        new_line: Line number in the NEW file. None for removed lines.
        text: Line content without the diff prefix (+, -, space).
    """

    kind: DiffLineKind
    old_line: int | None
    new_line: int | None
    text: str


@dataclass(frozen=True)
class Hunk:
    """One `@@ ... @@` block with its parsed body lines."""

    old_start: int
    old_count: int
    new_start: int
    new_count: int
    lines: tuple[DiffLine, ...] = ()
    header: str = ""


@dataclass(frozen=True)
class FileDiff:
    """Every change the diff makes to one file.

    Attributes:
        path: Path in the NEW tree (the rename target for renames).
        old_path: Path in the OLD tree, set only for renames and copies.
        status: How the file changed.
        hunks: Hunks in the order they appear in the diff.
        provenance: Attached after classification, None until then.
    """

    path: str
    status: FileStatus = FileStatus.MODIFIED
    old_path: str | None = None
    hunks: tuple[Hunk, ...] = ()
    provenance: Provenance | None = None

    @property
    def additions(self) -> int:
        return sum(
            1
            for hunk in self.hunks
            for line in hunk.lines
            if line.kind is DiffLineKind.ADDED
        )

    @property
    def deletions(self) -> int:
        return sum(
            1
            for hunk in self.hunks
            for line in hunk.lines
            if line.kind is DiffLineKind.REMOVED
        )


class CommentBase(BaseModel):
    """Fields shared by every comment kind."""

    id: str
    author: str = "you"
    body: str = ""
    created_at: str = ""
    """ISO-8601 timestamp; sorts chronologically as a string."""
    updated_at: str | None = None
    status: CommentStatus = CommentStatus.SUBMITTED
    resolved: bool | None = None
    thread_root_id: str | None = None
    in_reply_to_id: str | None = None
    remote_id: int | None = None
    """Identifier on the hosting service, once the comment exists there."""
    replies: list[Comment] = Field(default_factory=list)

    @property
    def is_reply(self) -> bool:
        return self.in_reply_to_id is not None


class _Unanchored(CommentBase):
    """Comments on the review as a whole, never on a file line."""

    @property
    def file(self) -> str | None:
        return None

    @property
    def line(self) -> int | None:
        return None

    @property
    def start_line(self) -> int | None:
        return None

    @property
    def end_line(self) -> int | None:
        return None


class LocalComment(CommentBase):
    """A comment authored locally, waiting to be submitted."""

    kind: Literal["local"] = "local"
    status: CommentStatus = CommentStatus.PENDING
    file: str | None = None
    line: int | None = None
    start_line: int | None = None
    end_line: int | None = None
    label: Literal["note", "issue", "suggestion", "praise"] = "note"


class ReviewComment(CommentBase):
    """A code comment fetched from the hosted review."""

    kind: Literal["review"] = "review"
    file: str
    line: int | None = None
    start_line: int | None = None
    end_line: int | None = None
    side: Literal["LEFT", "RIGHT"] | None = None
    commit_id: str | None = None
    thread_id: str | None = None


class ConversationComment(_Unanchored):
    kind: Literal["conversation"] = "conversation"


class ReviewSummaryComment(_Unanchored):
    kind: Literal["review_summary"] = "review_summary"
    review_state: str | None = None


Comment = Annotated[
    Union[LocalComment, ReviewComment, ConversationComment, ReviewSummaryComment],
    Field(discriminator="kind"),
]

for _model in (
    CommentBase,
    _Unanchored,
    LocalComment,
    ReviewComment,
    ConversationComment,
    ReviewSummaryComment,
):
    _model.model_rebuild()

COMMENT_LIST_ADAPTER: TypeAdapter[list[Comment]] = TypeAdapter(list[Comment])


@dataclass
class SubmissionDecision:
    """Whether one pending comment can be sent to the hosted review."""

    comment: Comment
    outcome: Outcome
    reason: SkipReason | None = None
    valid_line_ranges: list[str] | None = field(default=None)

    @property
    def is_submittable(self) -> bool:
        return self.outcome is Outcome.SUBMITTABLE
