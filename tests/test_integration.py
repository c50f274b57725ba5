"""End-to-end integration tests for the dual-host submission pipeline."""

import json
import os
from unittest.mock import MagicMock, patch

import pytest
import gitlab.exceptions

from review_engine.models import CommentStatus
from review_engine.review import load_comments, main


SAMPLE_PATCH = (
    "@@ -1,3 +1,5 @@\n context\n+added_line_1\n+added_line_2\n context\n context"
)


@pytest.fixture
def comments_path(tmp_path):
    """Comments file with one valid and one out-of-diff pending comment."""
    path = tmp_path / "comments.json"
    path.write_text(
        json.dumps(
            [
                {
                    "id": "local_1",
                    "kind": "local",
                    "file": "src/main.py",
                    "line": 2,
                    "label": "issue",
                    "body": "Consider a more descriptive name.",
                },
                {
                    "id": "local_2",
                    "kind": "local",
                    "file": "src/main.py",
                    "line": 80,
                    "body": "Out of range.",
                },
            ]
        )
    )
    return str(path)


class TestGithubEndToEnd:
    """Full GitHub pipeline: comments file -> PR diff -> create_review."""

    @patch("review_engine.github_client.Github")
    def test_github_end_to_end(self, mock_github_cls, comments_path):
        mock_repo = MagicMock()
        mock_pr = MagicMock()
        mock_github_cls.return_value.get_repo.return_value = mock_repo
        mock_repo.get_pull.return_value = mock_pr
        mock_pr.number = 42
        mock_pr.title = "Rename things"
        mock_pr.body = ""
        mock_pr.head.sha = "abc123"

        mock_file = MagicMock()
        mock_file.filename = "src/main.py"
        mock_file.status = "modified"
        mock_file.previous_filename = None
        mock_file.patch = SAMPLE_PATCH
        mock_pr.get_files.return_value = [mock_file]

        last_commit = MagicMock()
        mock_pr.get_commits.return_value = [last_commit]

        env = {
            "PR_NUMBER": "42",
            "REPO_NAME": "owner/repo",
            "GITHUB_TOKEN": "mock",
            "REVIEW_COMMENTS_PATH": comments_path,
        }
        with patch.dict(os.environ, env, clear=True):
            main()

        mock_pr.create_review.assert_called_once()
        call_kwargs = mock_pr.create_review.call_args.kwargs
        review_comments = call_kwargs["comments"]
        assert len(review_comments) == 1
        assert review_comments[0]["line"] == 2
        assert review_comments[0]["side"] == "RIGHT"
        assert review_comments[0]["body"].startswith("**Issue:**")
        assert "position" not in review_comments[0]

        statuses = {c.id: c.status for c in load_comments(comments_path)}
        assert statuses == {
            "local_1": CommentStatus.SUBMITTED,
            "local_2": CommentStatus.PENDING,
        }


class TestGitlabEndToEnd:
    """Full GitLab pipeline: comments file -> MR changes -> discussions.create."""

    @patch("review_engine.gitlab_client.gitlab.Gitlab")
    def test_gitlab_end_to_end(self, mock_gitlab_cls, comments_path):
        mock_gl = MagicMock()
        mock_gitlab_cls.return_value = mock_gl

        mock_project = MagicMock()
        mock_gl.projects.get.return_value = mock_project

        mock_mr = MagicMock()
        mock_project.mergerequests.get.return_value = mock_mr
        mock_mr.iid = 42
        mock_mr.title = "Fix auth bug"
        mock_mr.description = "Token refresh fix"
        mock_mr.sha = "head_sha_abc"
        mock_mr.diff_refs = {
            "base_sha": "base000",
            "start_sha": "start111",
            "head_sha": "head_sha_abc",
        }
        mock_mr.changes.return_value = {
            "changes": [
                {
                    "old_path": "src/main.py",
                    "new_path": "src/main.py",
                    "diff": SAMPLE_PATCH,
                },
            ]
        }

        env = {
            "CI_MERGE_REQUEST_IID": "42",
            "CI_PROJECT_ID": "1",
            "GITLAB_TOKEN": "mock",
            "REVIEW_COMMENTS_PATH": comments_path,
            "REVIEW_BODY": "Two small things.",
        }
        with patch.dict(os.environ, env, clear=True):
            main()

        mock_mr.discussions.create.assert_called_once()
        disc_arg = mock_mr.discussions.create.call_args[0][0]
        position = disc_arg["position"]
        assert position["base_sha"] == "base000"
        assert position["start_sha"] == "start111"
        assert position["head_sha"] == "head_sha_abc"
        assert position["position_type"] == "text"
        assert position["new_path"] == "src/main.py"
        assert position["new_line"] == 2

        mock_mr.notes.create.assert_called_once()
        assert mock_mr.notes.create.call_args[0][0]["body"] == "Two small things."

    @patch("review_engine.gitlab_client.gitlab.Gitlab")
    def test_gitlab_rejected_comment_stays_pending(self, mock_gitlab_cls, comments_path):
        mock_mr = MagicMock()
        mock_gitlab_cls.return_value.projects.get.return_value.mergerequests.get.return_value = (
            mock_mr
        )
        mock_mr.iid = 42
        mock_mr.title = "Fix bug"
        mock_mr.description = ""
        mock_mr.sha = "sha123"
        mock_mr.diff_refs = {"base_sha": "b", "start_sha": "s", "head_sha": "h"}
        mock_mr.changes.return_value = {
            "changes": [{"new_path": "src/main.py", "diff": SAMPLE_PATCH}]
        }
        mock_mr.discussions.create.side_effect = gitlab.exceptions.GitlabCreateError(
            "400 line_code invalid"
        )

        env = {
            "CI_MERGE_REQUEST_IID": "42",
            "CI_PROJECT_ID": "1",
            "GITLAB_TOKEN": "mock",
            "REVIEW_COMMENTS_PATH": comments_path,
        }
        with patch.dict(os.environ, env, clear=True):
            main()

        assert all(
            c.status is CommentStatus.PENDING for c in load_comments(comments_path)
        )


class TestNoHostDetectedExits:
    """Pending comments but no host env vars -> sys.exit(1)."""

    def test_no_host_detected_exits(self, comments_path):
        env = {"REVIEW_COMMENTS_PATH": comments_path}
        with patch.dict(os.environ, env, clear=True):
            with pytest.raises(SystemExit) as exc_info:
                main()
            assert exc_info.value.code == 1
