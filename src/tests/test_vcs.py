"""Tests for the git-backed version store."""

from datetime import datetime
from unittest.mock import patch

import pytest

from conftest import TOP_V1, TOP_V2, commit_file, git, requires_git
from manualwiki.core.errors import NoChanges, NotFound, Unavailable
from manualwiki.core.models import Revision
from manualwiki.core.vcs import (
    GitVersionStore,
    MissingVersionStore,
    REVISION_ID_PATTERN,
    author_email,
    open_version_store,
    parse_log,
)

TOP = "manuals/entries/top.md"


# ============================================================
# Helpers
# ============================================================


class TestAuthorEmail:
    def test_empty_name(self):
        assert author_email("") == "manual@local"

    def test_simple_name(self):
        assert author_email("Alice") == "alice@manual.local"

    def test_spaces_become_dots(self):
        assert author_email("Alice Smith") == "alice.smith@manual.local"

    def test_at_sign_dropped(self):
        assert author_email("bob@corp") == "bobcorp@manual.local"

    def test_non_ascii_only(self):
        assert author_email("編集者") == "editor@manual.local"

    def test_dots_trimmed(self):
        assert author_email(" -Eve- ") == "eve@manual.local"


class TestParseLog:
    def test_parses_records(self):
        output = (
            "abc\x1fAlice\x1f2024-01-02T03:04:05+09:00\x1fFirst line\n\nbody\n\x1e\n"
            "def\x1fBob\x1f2024-01-01T00:00:00+00:00\x1f\n\x1e\n"
        )
        revisions = parse_log(output)
        assert [r.id for r in revisions] == ["abc", "def"]
        assert revisions[0].author == "Alice"
        assert revisions[0].summary == "First line"
        assert revisions[0].timestamp.utcoffset().total_seconds() == 9 * 3600
        assert revisions[1].summary == "update"

    def test_empty_output(self):
        assert parse_log("") == []


class TestRevisionSummary:
    def test_first_line(self):
        revision = Revision(id="a", timestamp=datetime(2024, 1, 1), message="Fix\n\nDetails")
        assert revision.summary == "Fix"

    def test_empty_message(self):
        revision = Revision(id="a", timestamp=datetime(2024, 1, 1), message="")
        assert revision.summary == "update"


# ============================================================
# Missing store
# ============================================================


class TestMissingVersionStore:
    def test_not_available(self):
        assert MissingVersionStore().available is False

    def test_lookups_raise_unavailable(self):
        store = MissingVersionStore()
        with pytest.raises(Unavailable):
            store.get_revision("abcdef")
        with pytest.raises(Unavailable):
            store.commit_file(TOP, "a", "m")

    def test_log_is_empty(self):
        assert MissingVersionStore().log(TOP, 30) == []
        assert MissingVersionStore().head() is None


# ============================================================
# Git store
# ============================================================


@requires_git
class TestGitVersionStore:
    def test_empty_repository(self, git_project):
        store = GitVersionStore(git_project)
        assert store.head() is None
        assert store.log(TOP, 30) == []

    def test_get_revision_and_read_file(self, git_project):
        sha = commit_file(
            git_project,
            TOP,
            TOP_V1,
            "Initial manual",
            GIT_AUTHOR_DATE="2024-03-01T10:00:00+00:00",
        )
        store = GitVersionStore(git_project)
        revision = store.get_revision(sha)
        assert revision.id == sha
        assert revision.author == "Test User"
        assert revision.summary == "Initial manual"
        assert revision.timestamp.year == 2024
        assert store.read_file(revision, TOP) == TOP_V1.encode()

    def test_abbreviated_id(self, git_project):
        sha = commit_file(git_project, TOP, TOP_V1, "v1")
        store = GitVersionStore(git_project)
        assert store.get_revision(sha[:8]).id == sha

    def test_upper_case_id(self, git_project):
        sha = commit_file(git_project, TOP, TOP_V1, "v1")
        store = GitVersionStore(git_project)
        assert store.get_revision(sha[:10].upper()).id == sha

    def test_sha256_length_ids_accepted(self):
        assert REVISION_ID_PATTERN.match("ab" * 32)
        assert not REVISION_ID_PATTERN.match("ab" * 32 + "a")

    def test_unknown_id(self, git_project):
        commit_file(git_project, TOP, TOP_V1, "v1")
        store = GitVersionStore(git_project)
        with pytest.raises(NotFound):
            store.get_revision("0" * 40)

    def test_malformed_id(self, git_project):
        store = GitVersionStore(git_project)
        for bad in ["", "xyz", "HEAD", "abc", "a" * 65, "master"]:
            with pytest.raises(NotFound):
                store.get_revision(bad)

    def test_path_absent_at_revision(self, git_project):
        sha = commit_file(git_project, "README.md", "readme\n", "readme")
        store = GitVersionStore(git_project)
        with pytest.raises(NotFound):
            store.read_file(store.get_revision(sha), TOP)

    def test_log_most_recent_first(self, git_project):
        commit_file(git_project, TOP, TOP_V1, "v1")
        commit_file(git_project, "other.md", "x\n", "unrelated")
        commit_file(git_project, TOP, TOP_V2, "v2")
        store = GitVersionStore(git_project)
        assert [r.summary for r in store.log(TOP, 30)] == ["v2", "v1"]

    def test_log_limit(self, git_project):
        for i in range(5):
            commit_file(git_project, TOP, f"# v{i}\n", f"v{i}")
        store = GitVersionStore(git_project)
        assert [r.summary for r in store.log(TOP, 2)] == ["v4", "v3"]

    def test_store_below_repository_root(self, git_project):
        sha = commit_file(git_project, "site/manuals/entries/top.md", TOP_V1, "nested")
        store = GitVersionStore(git_project / "site")
        revision = store.get_revision(sha)
        assert store.read_file(revision, TOP) == TOP_V1.encode()
        assert [r.id for r in store.log(TOP, 30)] == [sha]

    def test_commit_file(self, git_project):
        commit_file(git_project, TOP, TOP_V1, "v1")
        (git_project / TOP).write_text(TOP_V2, encoding="utf-8")
        store = GitVersionStore(git_project)
        sha = store.commit_file(TOP, "Alice Smith", "Change item")
        revision = store.get_revision(sha)
        assert revision.author == "Alice Smith"
        assert revision.summary == "Change item"
        assert git(git_project, "log", "-1", "--format=%ae") == "alice.smith@manual.local"
        assert store.read_file(revision, TOP) == TOP_V2.encode()

    def test_commit_without_changes(self, git_project):
        commit_file(git_project, TOP, TOP_V1, "v1")
        store = GitVersionStore(git_project)
        with pytest.raises(NoChanges):
            store.commit_file(TOP, "Alice", "nothing")


# ============================================================
# open_version_store
# ============================================================


class TestOpenVersionStore:
    def test_git_missing(self, tmp_path):
        with patch("manualwiki.core.vcs.shutil.which", return_value=None):
            store = open_version_store(tmp_path)
        assert store.available is False

    @requires_git
    def test_existing_repository(self, git_project):
        store = open_version_store(git_project)
        assert store.available is True

    @requires_git
    def test_initialises_repository(self, tmp_path):
        with patch.dict("os.environ", {"GIT_CEILING_DIRECTORIES": str(tmp_path.parent)}):
            store = open_version_store(tmp_path)
        assert store.available is True
        assert (tmp_path / ".git").exists()

    @requires_git
    def test_no_init(self, tmp_path):
        with patch.dict("os.environ", {"GIT_CEILING_DIRECTORIES": str(tmp_path.parent)}):
            store = open_version_store(tmp_path, init=False)
        assert store.available is False
