"""Shared test fixtures for review_engine."""

import pytest

from review_engine.models import LocalComment


@pytest.fixture
def sample_git_diff() -> str:
    """git diff touching five files: modified, added, deleted, renamed, mode-only."""
    return (
        "diff --git a/src/app.py b/src/app.py\n"
        "index 83db48f..bf269f4 100644\n"
        "--- a/src/app.py\n"
        "+++ b/src/app.py\n"
        "@@ -10,4 +10,5 @@ def main():\n"
        " context_a\n"
        "-removed_b\n"
        "+added_b\n"
        "+added_c\n"
        " context_d\n"
        " context_e\n"
        "@@ -30,3 +31,3 @@\n"
        " ctx_30\n"
        "-old_31\n"
        "+new_32\n"
        " ctx_32\n"
        "diff --git a/docs/new.md b/docs/new.md\n"
        "new file mode 100644\n"
        "index 0000000..3b18e51\n"
        "--- /dev/null\n"
        "+++ b/docs/new.md\n"
        "@@ -0,0 +1,2 @@\n"
        "+# Title\n"
        "+body\n"
        "diff --git a/old.txt b/old.txt\n"
        "deleted file mode 100644\n"
        "index 3b18e51..0000000\n"
        "--- a/old.txt\n"
        "+++ /dev/null\n"
        "@@ -1,2 +0,0 @@\n"
        "-gone 1\n"
        "-gone 2\n"
        "diff --git a/lib/before.py b/lib/after.py\n"
        "similarity index 90%\n"
        "rename from lib/before.py\n"
        "rename to lib/after.py\n"
        "index 1111111..2222222 100644\n"
        "--- a/lib/before.py\n"
        "+++ b/lib/after.py\n"
        "@@ -1,2 +1,2 @@\n"
        " keep\n"
        "-old\n"
        "+new\n"
        "diff --git a/bin/run.sh b/bin/run.sh\n"
        "old mode 100644\n"
        "new mode 100755\n"
    )


@pytest.fixture
def sample_added_file_diff() -> str:
    """Plain unified diff creating new.txt, without a diff --git header."""
    return "--- /dev/null\n+++ b/new.txt\n@@ -0,0 +1,3 @@\n+one\n+two\n+three\n"


@pytest.fixture
def make_local_comment():
    """Factory for pending local comments."""

    def _make(
        comment_id: str = "local_1",
        file: str | None = "a.go",
        line: int | None = 10,
        body: str = "Consider renaming this.",
        **extra,
    ) -> LocalComment:
        return LocalComment(id=comment_id, file=file, line=line, body=body, **extra)

    return _make
