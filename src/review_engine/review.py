"""Submission orchestrator with GitHub/GitLab auto-detection."""

import json
import logging
import os
import sys
from pathlib import Path

from review_engine.diff_parser import commentable_lines, parse_diff
from review_engine.git_status import GitRepository
from review_engine.github_client import GitHubClient
from review_engine.gitlab_client import GitLabClient
from review_engine.models import COMMENT_LIST_ADAPTER, Comment, Provenance, ReviewEvent
from review_engine.platform_protocol import ReviewHost, ReviewSubmissionError
from review_engine.provenance import classify
from review_engine.submission import build_submission_summary, partition, skip_reason_counts
from review_engine.threads import mark_submitted, pending_comments

DEFAULT_COMMENTS_PATH = ".review/comments.json"


def load_comments(path: str) -> list[Comment]:
    """Load flat comment records from a JSON file.

    Args:
        path: Path to the comments file.

    Returns:
        Validated comment records, empty if the file does not exist.
    """
    if not os.path.exists(path):
        return []
    with open(path, "r") as file:
        return COMMENT_LIST_ADAPTER.validate_python(json.load(file))


def save_comments(path: str, comments: list[Comment]) -> None:
    """Write flat comment records back to a JSON file."""
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as file:
        file.write(COMMENT_LIST_ADAPTER.dump_json(comments, indent=2).decode("utf-8"))


def create_host() -> ReviewHost:
    """Auto-detect the hosting service and create the appropriate client.

    Priority order:
    1. PR_NUMBER with GITHUB_TOKEN (GitHub pull request)
    2. CI_MERGE_REQUEST_IID with GITLAB_TOKEN (GitLab merge request)

    Returns:
        Host client implementing the ReviewHost protocol.

    Raises:
        SystemExit: If no supported host is configured.
    """
    pr_number_str = os.environ.get("PR_NUMBER", "").strip()
    if pr_number_str and pr_number_str != "0":
        repo_name = os.environ.get("REPO_NAME") or os.environ.get(
            "GITHUB_REPOSITORY", ""
        )
        if not repo_name:
            print("ERROR: REPO_NAME or GITHUB_REPOSITORY must be set with PR_NUMBER.")
            sys.exit(1)
        try:
            return GitHubClient(
                token=os.environ["GITHUB_TOKEN"],
                repo_name=repo_name,
                pr_number=int(pr_number_str),
            )
        except Exception as e:
            print(f"ERROR: Failed to fetch PR #{pr_number_str} from {repo_name}: {e}")
            sys.exit(1)

    if os.environ.get("CI_MERGE_REQUEST_IID"):
        return GitLabClient(
            token=os.environ["GITLAB_TOKEN"],
            project_id=int(os.environ["CI_PROJECT_ID"]),
            mr_iid=int(os.environ["CI_MERGE_REQUEST_IID"]),
            gitlab_url=os.environ.get("CI_SERVER_URL", "https://gitlab.com"),
        )

    print("ERROR: Could not detect host. Set PR_NUMBER or CI_MERGE_REQUEST_IID.")
    sys.exit(1)


def collect_provenance(
    repository: GitRepository, origin_base: str, origin_head: str
) -> dict[str, Provenance]:
    """Classify the files of the combined local+remote diff.

    Args:
        repository: Working tree to inspect.
        origin_base: Remote base ref, e.g. "origin/main".
        origin_head: Remote tracking ref of the branch under review.

    Returns:
        Provenance per path of the working-tree diff against the merge base
        of origin_base and HEAD, plus untracked files.
    """
    diff_base = repository.merge_base(origin_base, "HEAD")
    if not diff_base:
        print(f"WARNING: Could not find merge-base, using {origin_base}")
        diff_base = origin_base

    local_files = parse_diff(repository.diff_text(diff_base))
    paths = [file_diff.path for file_diff in local_files]
    seen = set(paths)
    for path in repository.untracked_files():
        if path not in seen:
            paths.append(path)
            seen.add(path)

    inputs = repository.provenance_inputs(origin_base, origin_head)
    return classify(paths, inputs.pushed, inputs.local_commits, inputs.uncommitted)


def fetch_diff_text(host: ReviewHost) -> str:
    """Fetch the host's diff, degrading to empty text on failure."""
    try:
        return host.get_diff_text()
    except Exception as error:
        print(f"WARNING: Could not fetch the review diff, submitting unchecked: {error}")
        return ""


def main() -> None:
    """Run the review submission pipeline.

    Pipeline steps:
    1. Auto-detect host and create client
    2. Load pending local comments
    3. Fetch the diff the host renders and compute commentable lines
    4. Classify file provenance when origin refs are configured
    5. Partition pending comments and print the summary
    6. Submit the review and mark accepted comments as submitted
    """
    logging.basicConfig(
        level=os.environ.get("REVIEW_LOG_LEVEL", "WARNING").upper(),
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
    )

    event_name = os.environ.get("REVIEW_EVENT", ReviewEvent.COMMENT.value).upper()
    try:
        event = ReviewEvent(event_name)
    except ValueError:
        print(f"ERROR: Unknown REVIEW_EVENT {event_name!r}.")
        sys.exit(1)

    comments_path = os.environ.get("REVIEW_COMMENTS_PATH", DEFAULT_COMMENTS_PATH)
    comments = load_comments(comments_path)
    pending = pending_comments(comments)
    body = os.environ.get("REVIEW_BODY", "")

    if not pending and not body and event is ReviewEvent.COMMENT:
        print("No pending comments to submit.")
        sys.exit(0)

    host = create_host()
    context = host.get_context()

    diff_text = fetch_diff_text(host)
    commentable = commentable_lines(diff_text)

    file_provenance: dict[str, Provenance] = {}
    origin_base = os.environ.get("REVIEW_ORIGIN_BASE")
    origin_head = os.environ.get("REVIEW_ORIGIN_HEAD")
    if origin_base and origin_head:
        file_provenance = collect_provenance(GitRepository(), origin_base, origin_head)

    decisions = partition(
        pending, file_provenance, commentable, diff_available=bool(diff_text)
    )
    print(build_submission_summary(decisions, event, context.number, context.title))

    counts = skip_reason_counts(decisions)
    if counts:
        parts = [f"{count} {reason.description}" for reason, count in counts.items()]
        print(f"WARNING: Skipped: {', '.join(parts)}")

    has_submittable = any(decision.is_submittable for decision in decisions)
    if not has_submittable and not body and event is ReviewEvent.COMMENT:
        print("WARNING: No submittable comments, all skipped.")
        sys.exit(0)

    try:
        submitted_ids = host.submit_review(decisions, body, event)
    except ReviewSubmissionError as error:
        save_comments(comments_path, mark_submitted(comments, error.submitted_ids))
        print(
            f"ERROR: Failed to submit review after {len(error.submitted_ids)} "
            f"comment(s) were posted: {error}"
        )
        sys.exit(1)
    except Exception as error:
        print(f"ERROR: Failed to submit review: {error}")
        sys.exit(1)

    save_comments(comments_path, mark_submitted(comments, submitted_ids))
    print(f"Review submitted with {len(submitted_ids)} comment(s).")


if __name__ == "__main__":
    main()
