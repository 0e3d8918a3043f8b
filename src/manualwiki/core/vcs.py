"""Git-backed version store for manual pages.

The store is one of two variants: ``GitVersionStore`` when a repository is
usable, ``MissingVersionStore`` otherwise. Callers check ``store.available``
before asking for history; the missing variant raises ``Unavailable`` for
lookups and reports an empty log.

Git is driven through ``subprocess``. Paths given to the store are relative
to the store's working directory (the project root), which may sit below the
repository's top level.
"""

import logging
import os
import re
import shutil
import subprocess
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path

from manualwiki.core.errors import NoChanges, NotFound, Unavailable, VersionStoreError
from manualwiki.core.models import Revision

logger = logging.getLogger(__name__)

# Git command timeout in seconds
GIT_TIMEOUT = 10

REVISION_ID_PATTERN = re.compile(r"^[0-9a-fA-F]{4,64}$")

FIELD_SEP = "\x1f"
RECORD_SEP = "\x1e"
LOG_FORMAT = "%H%x1f%an%x1f%aI%x1f%B%x1e"


def author_email(name: str) -> str:
    """Derive a placeholder email address from an author name."""
    if not name:
        return "manual@local"
    chars = []
    for ch in name.lower():
        if "a" <= ch <= "z" or "0" <= ch <= "9":
            chars.append(ch)
        elif ch != "@":
            chars.append(".")
    local = "".join(chars).strip(".") or "editor"
    return f"{local}@manual.local"


def run_git(
    cwd: Path,
    *args: str,
    check: bool = True,
    binary: bool = False,
    env: dict[str, str] | None = None,
) -> subprocess.CompletedProcess:
    """Run a git command in ``cwd``.

    Raises:
        VersionStoreError: If git is missing, times out, or (with ``check``)
            exits non-zero.
    """
    command = ["git", "-c", "core.quotepath=off", *args]
    text_options = {} if binary else {"encoding": "utf-8", "errors": "replace"}
    try:
        result = subprocess.run(
            command,
            cwd=cwd,
            capture_output=True,
            timeout=GIT_TIMEOUT,
            env=env,
            **text_options,
        )
    except subprocess.TimeoutExpired as e:
        raise VersionStoreError(
            f"git {args[0]} timed out after {GIT_TIMEOUT} seconds"
        ) from e
    except FileNotFoundError as e:
        raise VersionStoreError("Git command not found. Please install git.") from e

    if check and result.returncode != 0:
        stderr = result.stderr
        if isinstance(stderr, bytes):
            stderr = stderr.decode("utf-8", errors="replace")
        raise VersionStoreError(f"git {args[0]} failed", git_output=stderr.strip())
    return result


def parse_log(output: str) -> list[Revision]:
    """Parse ``LOG_FORMAT`` records into revisions."""
    revisions = []
    for record in output.split(RECORD_SEP):
        record = record.strip("\n")
        if not record:
            continue
        sha, author, timestamp, message = record.split(FIELD_SEP, 3)
        revisions.append(
            Revision(
                id=sha,
                author=author,
                timestamp=datetime.fromisoformat(timestamp),
                message=message.strip(),
            )
        )
    return revisions


class VersionStore(ABC):
    """Read (and commit) interface over a commit-addressed history."""

    available: bool

    @abstractmethod
    def get_revision(self, revision_id: str) -> Revision:
        """Look up a commit. Raises NotFound for unknown identifiers."""
        ...

    @abstractmethod
    def read_file(self, revision: Revision, path: str) -> bytes:
        """Read a file as stored at ``revision``. Raises NotFound if absent."""
        ...

    @abstractmethod
    def log(self, path: str, limit: int) -> list[Revision]:
        """Commits touching ``path``, most recent first."""
        ...

    @abstractmethod
    def head(self) -> Revision | None:
        """Latest commit, or None when nothing has been committed."""
        ...

    @abstractmethod
    def commit_file(self, path: str, author: str, message: str) -> str:
        """Commit ``path`` and return the new commit id."""
        ...


class MissingVersionStore(VersionStore):
    """Stand-in used when no git repository is usable."""

    available = False

    def __init__(self, reason: str = "git repository not available"):
        self.reason = reason

    def get_revision(self, revision_id: str) -> Revision:
        raise Unavailable(self.reason)

    def read_file(self, revision: Revision, path: str) -> bytes:
        raise Unavailable(self.reason)

    def log(self, path: str, limit: int) -> list[Revision]:
        return []

    def head(self) -> Revision | None:
        return None

    def commit_file(self, path: str, author: str, message: str) -> str:
        raise Unavailable(self.reason)


class GitVersionStore(VersionStore):
    """Version store backed by a git working tree.

    Example:
        >>> store = GitVersionStore(Path("/srv/manual"))
        >>> revision = store.get_revision("3f2a9c1")
        >>> data = store.read_file(revision, "manuals/entries/top.md")
    """

    available = True

    def __init__(self, work_dir: Path):
        self.work_dir = Path(work_dir).resolve()

    def _git(self, *args: str, **kwargs) -> subprocess.CompletedProcess:
        return run_git(self.work_dir, *args, **kwargs)

    def _show(self, sha: str) -> Revision:
        result = self._git("show", "-s", f"--format={LOG_FORMAT}", sha)
        revisions = parse_log(result.stdout)
        if not revisions:
            raise NotFound(f"revision {sha} not found")
        return revisions[0]

    def get_revision(self, revision_id: str) -> Revision:
        revision_id = revision_id.strip().lower()
        if not REVISION_ID_PATTERN.match(revision_id):
            raise NotFound(f"malformed revision id: {revision_id!r}")
        result = self._git(
            "rev-parse", "--verify", "--quiet", f"{revision_id}^{{commit}}", check=False
        )
        if result.returncode != 0:
            raise NotFound(f"revision {revision_id} not found")
        return self._show(result.stdout.strip())

    def read_file(self, revision: Revision, path: str) -> bytes:
        object_name = f"{revision.id}:./{path}"
        result = self._git("cat-file", "blob", object_name, check=False, binary=True)
        if result.returncode != 0:
            raise NotFound(f"{path} does not exist at revision {revision.id}")
        return result.stdout

    def head(self) -> Revision | None:
        result = self._git("rev-parse", "--verify", "--quiet", "HEAD", check=False)
        if result.returncode != 0:
            return None
        return self._show(result.stdout.strip())

    def log(self, path: str, limit: int) -> list[Revision]:
        if self.head() is None:
            return []
        result = self._git(
            "log", f"--max-count={limit}", f"--format={LOG_FORMAT}", "--", path
        )
        return parse_log(result.stdout)

    def commit_file(self, path: str, author: str, message: str) -> str:
        try:
            self._git("add", "--", path)
        except VersionStoreError as e:
            logger.warning("Staging %s failed (%s), staging all changes", path, e.git_output)
            self._git("add", "--all")

        staged = self._git("diff", "--cached", "--quiet", check=False)
        if staged.returncode == 0:
            raise NoChanges("no changes to commit")

        email = author_email(author)
        env = {
            **os.environ,
            "GIT_AUTHOR_NAME": author,
            "GIT_AUTHOR_EMAIL": email,
            "GIT_COMMITTER_NAME": author,
            "GIT_COMMITTER_EMAIL": email,
        }
        self._git("commit", "--no-verify", "-m", message, env=env)
        sha = self._git("rev-parse", "HEAD").stdout.strip()
        logger.info("Committed %s as %s by %s", path, sha[:10], author)
        return sha


def open_version_store(root: Path, init: bool = True) -> VersionStore:
    """Open the git repository containing ``root``.

    Args:
        root: Project root; store paths are resolved relative to it.
        init: Initialise a repository at ``root`` when none exists.

    Returns:
        A GitVersionStore, or a MissingVersionStore when git is unusable.
    """
    if shutil.which("git") is None:
        logger.warning("git executable not found, history is disabled")
        return MissingVersionStore("git executable not found")

    try:
        result = run_git(root, "rev-parse", "--show-toplevel", check=False)
        if result.returncode == 0:
            logger.info("Using git repository at %s", result.stdout.strip())
            return GitVersionStore(root)
        if not init:
            return MissingVersionStore(f"no git repository at {root}")
        run_git(root, "init")
    except VersionStoreError as e:
        logger.warning("Cannot open git repository at %s: %s %s", root, e, e.git_output)
        return MissingVersionStore(str(e))

    logger.info("Initialized git repository at %s", root)
    return GitVersionStore(root)
