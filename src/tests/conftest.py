"""Shared fixtures: a manual project on disk and real git repositories."""

import os
import shutil
import subprocess
from pathlib import Path

import pytest

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")

INDEX_YAML = """\
title: Team Manual
description: Procedures for the team
categories:
  - id: basics
    title: Basics
    pages:
      - slug: top
        title: Top
        file: entries/top.md
      - slug: desk
        title: Desk
        children:
          - slug: desk-phone
            title: Desk phone
            file: entries/desk/phone.md
  - id: empty
    title: Empty
    pages: []
"""

TOP_V1 = "# Team Manual\n\n- one\n- two\n"
TOP_V2 = "# Team Manual\n\n- one\n- three\n"


def git(repo: Path, *args: str, **env: str) -> str:
    """Run git in ``repo`` with a fixed identity and return stdout."""
    environment = {
        **os.environ,
        "GIT_AUTHOR_NAME": "Test User",
        "GIT_AUTHOR_EMAIL": "test@example.com",
        "GIT_COMMITTER_NAME": "Test User",
        "GIT_COMMITTER_EMAIL": "test@example.com",
        **env,
    }
    result = subprocess.run(
        ["git", *args],
        cwd=repo,
        check=True,
        capture_output=True,
        text=True,
        env=environment,
    )
    return result.stdout.strip()


def commit_file(repo: Path, rel_path: str, content: str, message: str, **env: str) -> str:
    """Write a file, commit it, and return the commit sha."""
    path = repo / rel_path
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    git(repo, "add", rel_path)
    git(repo, "commit", "--no-verify", "--allow-empty-message", "-m", message, **env)
    return git(repo, "rev-parse", "HEAD")


@pytest.fixture
def project(tmp_path) -> Path:
    """Project root holding ``manuals/index.yaml`` and a few entries."""
    manuals = tmp_path / "manuals"
    (manuals / "entries" / "desk").mkdir(parents=True)
    (manuals / "index.yaml").write_text(INDEX_YAML, encoding="utf-8")
    (manuals / "entries" / "top.md").write_text(TOP_V1, encoding="utf-8")
    (manuals / "entries" / "desk.md").write_text("# Desk\n\nDesk rules.\n", encoding="utf-8")
    (manuals / "entries" / "desk" / "phone.md").write_text("Dial 0 first.\n", encoding="utf-8")
    return tmp_path


@pytest.fixture
def git_project(project) -> Path:
    """``project`` inside an initialised git repository with no commits."""
    git(project, "init")
    git(project, "config", "user.name", "Test User")
    git(project, "config", "user.email", "test@example.com")
    git(project, "config", "commit.gpgsign", "false")
    return project
