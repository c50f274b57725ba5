"""Tests for git_status module."""

import subprocess
from unittest.mock import patch

import pytest

from review_engine.git_status import (
    GitRepository,
    parse_name_status,
    parse_porcelain,
    parse_status_letter,
)
from review_engine.models import FileStatus


def _completed(stdout: str = "", returncode: int = 0) -> subprocess.CompletedProcess:
    return subprocess.CompletedProcess(
        args=["git"], returncode=returncode, stdout=stdout, stderr="fatal: boom"
    )


class TestParsers:
    """Tests for the git output parsers."""

    @pytest.mark.parametrize(
        "letter, expected",
        [
            ("A", FileStatus.ADDED),
            ("M", FileStatus.MODIFIED),
            ("D", FileStatus.DELETED),
            ("R100", FileStatus.RENAMED),
            ("C75", FileStatus.COPIED),
            ("T", FileStatus.MODIFIED),
            ("", FileStatus.MODIFIED),
        ],
    )
    def test_parse_status_letter(self, letter, expected):
        """Letters map to FileStatus, unknown ones to modified."""
        assert parse_status_letter(letter) is expected

    def test_parse_name_status(self):
        """Renames are keyed by their new path."""
        output = "M\tsrc/app.py\nA\tdocs/new.md\nD\told.txt\nR097\tlib/a.py\tlib/b.py\n"

        assert parse_name_status(output) == {
            "src/app.py": FileStatus.MODIFIED,
            "docs/new.md": FileStatus.ADDED,
            "old.txt": FileStatus.DELETED,
            "lib/b.py": FileStatus.RENAMED,
        }

    def test_parse_porcelain(self):
        """Staged status wins and untracked files count as added."""
        output = (
            " M src/app.py\n"
            "M  staged.py\n"
            "A  added.py\n"
            " D removed.py\n"
            "R  old.py -> new.py\n"
            "?? scratch.txt\n"
        )

        assert parse_porcelain(output) == {
            "src/app.py": FileStatus.MODIFIED,
            "staged.py": FileStatus.MODIFIED,
            "added.py": FileStatus.ADDED,
            "removed.py": FileStatus.DELETED,
            "new.py": FileStatus.RENAMED,
            "scratch.txt": FileStatus.ADDED,
        }


class TestGitRepository:
    """Tests for GitRepository against a mocked subprocess.run."""

    @patch("review_engine.git_status.subprocess.run")
    def test_local_commits_short_circuit_on_same_revision(self, mock_run):
        """Equal HEAD and origin head never trigger a diff call."""
        mock_run.side_effect = [_completed("abc123\n"), _completed("abc123\n")]

        result = GitRepository("/repo").local_commit_changes("origin/feature")

        assert result == {}
        assert mock_run.call_count == 2
        assert mock_run.call_args_list[0].args[0] == ["git", "rev-parse", "origin/feature"]
        assert mock_run.call_args_list[1].args[0] == ["git", "rev-parse", "HEAD"]

    @patch("review_engine.git_status.subprocess.run")
    def test_local_commits_diffed_when_ahead(self, mock_run):
        """Different revisions diff origin head against HEAD."""
        mock_run.side_effect = [
            _completed("abc123\n"),
            _completed("def456\n"),
            _completed("M\tsrc/app.py\n"),
        ]

        result = GitRepository("/repo").local_commit_changes("origin/feature")

        assert result == {"src/app.py": FileStatus.MODIFIED}
        assert mock_run.call_args_list[2].args[0] == [
            "git",
            "diff",
            "--name-status",
            "origin/feature",
            "HEAD",
        ]
        assert mock_run.call_args_list[2].kwargs["cwd"] == "/repo"

    @patch("review_engine.git_status.subprocess.run")
    def test_failed_command_gives_empty_result(self, mock_run, caplog):
        """A failing git command is logged and yields nothing."""
        mock_run.return_value = _completed(returncode=128)

        repository = GitRepository()

        assert repository.uncommitted_files() == {}
        assert repository.changed_files_between("origin/main") == {}
        assert repository.diff_text("origin/main") == ""
        assert "fatal: boom" in caplog.text

    @patch("review_engine.git_status.subprocess.run")
    def test_provenance_inputs(self, mock_run):
        """Collects pushed, local-commit and uncommitted maps."""
        mock_run.side_effect = [
            _completed("M\tpushed.py\n"),
            _completed("same\n"),
            _completed("same\n"),
            _completed(" M dirty.py\n"),
        ]

        inputs = GitRepository().provenance_inputs("origin/main", "origin/feature")

        assert inputs.pushed == {"pushed.py": FileStatus.MODIFIED}
        assert inputs.local_commits == {}
        assert inputs.uncommitted == {"dirty.py": FileStatus.MODIFIED}

    @patch("review_engine.git_status.subprocess.run")
    def test_merge_base(self, mock_run):
        """merge_base returns the common ancestor, or None when git fails."""
        mock_run.side_effect = [_completed("mb123\n"), _completed(returncode=1)]
        repository = GitRepository()

        assert repository.merge_base("origin/main") == "mb123"
        assert repository.merge_base("origin/gone") is None
        assert mock_run.call_args_list[0].args[0] == [
            "git",
            "merge-base",
            "origin/main",
            "HEAD",
        ]

    @patch("review_engine.git_status.subprocess.run")
    def test_untracked_files(self, mock_run):
        """Untracked paths come from ls-files, honouring .gitignore."""
        mock_run.return_value = _completed("new.py\ndocs/draft.md\n")

        assert GitRepository().untracked_files() == ["new.py", "docs/draft.md"]
        assert mock_run.call_args.args[0] == [
            "git",
            "ls-files",
            "--others",
            "--exclude-standard",
        ]
