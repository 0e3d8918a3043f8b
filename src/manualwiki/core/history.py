"""Map a page and an optional revision to content bytes, and list history."""

import logging
from datetime import datetime
from pathlib import Path

from manualwiki.core.errors import NotFound, ReadFailure, Unavailable, VersionStoreError
from manualwiki.core.models import HistoryEntry
from manualwiki.core.vcs import VersionStore

logger = logging.getLogger(__name__)

WORKING_COPY_LABEL = "current"
HISTORY_LIMIT = 30


def _mtime(path: Path) -> datetime:
    return datetime.fromtimestamp(path.stat().st_mtime)


def read_working_copy(content_path: Path) -> tuple[bytes, datetime]:
    """Read a page's live file and its modification time."""
    try:
        data = content_path.read_bytes()
        return data, _mtime(content_path)
    except FileNotFoundError as e:
        raise NotFound(f"{content_path} does not exist") from e
    except OSError as e:
        raise ReadFailure(f"cannot read {content_path}: {e}") from e


def resolve_revision(
    content_path: Path,
    storage_path: str,
    revision_id: str | None,
    store: VersionStore,
) -> tuple[bytes, datetime]:
    """Return the bytes and timestamp of a page at a revision.

    Args:
        content_path: Live file of the page.
        storage_path: Path of the same file inside the version store.
        revision_id: Commit id; empty or None selects the working copy.
        store: Version store, possibly unavailable.

    Raises:
        NotFound: Missing file, unknown revision, or path absent at it.
        Unavailable: A revision was requested but there is no store.
        ReadFailure: The bytes could not be read.
    """
    revision_id = (revision_id or "").strip()
    if not revision_id:
        return read_working_copy(content_path)

    if not store.available:
        raise Unavailable("a git repository is required to view history")
    if not storage_path:
        raise NotFound("page has no storage path")

    try:
        revision = store.get_revision(revision_id)
        data = store.read_file(revision, storage_path)
    except VersionStoreError as e:
        raise ReadFailure(f"cannot read {storage_path}@{revision_id}: {e}") from e
    return data, revision.timestamp


def list_history(
    content_path: Path,
    storage_path: str,
    active_revision_id: str | None,
    store: VersionStore,
    limit: int = HISTORY_LIMIT,
) -> list[HistoryEntry]:
    """List a page's history, working copy first.

    Never fails: without a store, or when the git walk fails, only the
    working-copy entry is returned. At most ``HISTORY_LIMIT`` revisions are
    listed whatever ``limit`` asks for. An abbreviated or upper-case
    ``active_revision_id`` still marks its commit active.
    """
    active_revision_id = (active_revision_id or "").strip().lower()
    limit = min(limit, HISTORY_LIMIT)

    try:
        working_time = _mtime(content_path)
    except OSError:
        working_time = datetime.now()

    history = [
        HistoryEntry(
            label=WORKING_COPY_LABEL,
            link="/",
            timestamp=working_time,
            revision_id=None,
            active=not active_revision_id,
        )
    ]

    if not store.available:
        return history

    try:
        revisions = store.log(storage_path, limit)
    except VersionStoreError as e:
        logger.warning("Failed to walk history of %s: %s %s", storage_path, e, e.git_output)
        return history

    for revision in revisions[:limit]:
        history.append(
            HistoryEntry(
                label=revision.summary,
                link=f"/?commit={revision.id}",
                timestamp=revision.timestamp,
                revision_id=revision.id,
                active=bool(active_revision_id) and revision.id.startswith(active_revision_id),
            )
        )
    return history
