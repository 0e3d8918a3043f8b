"""Assemble rendered pages from raw content."""

from datetime import datetime
from pathlib import Path

from manualwiki.core.history import resolve_revision
from manualwiki.core.markdown import extract_title, render_markdown
from manualwiki.core.models import RenderedPage
from manualwiki.core.vcs import VersionStore

DEFAULT_TITLE = "Top Page"


def assemble_page(
    data: bytes, updated_at: datetime, fallback_title: str = DEFAULT_TITLE
) -> RenderedPage:
    """Render page bytes into a titled page.

    The title is the first level-1 heading, or ``fallback_title``.
    """
    content = render_markdown(data.decode("utf-8", errors="replace"))
    title = extract_title(content) or fallback_title or DEFAULT_TITLE
    return RenderedPage(title=title, content=content, updated_at=updated_at)


def load_page(
    content_path: Path,
    storage_path: str,
    revision_id: str | None,
    store: VersionStore,
) -> RenderedPage:
    """Resolve a page at a revision and render it."""
    data, updated_at = resolve_revision(content_path, storage_path, revision_id, store)
    return assemble_page(data, updated_at)
