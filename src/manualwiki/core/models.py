"""Data models for ManualWiki."""

from datetime import datetime
from typing import Literal

from markupsafe import Markup
from pydantic import BaseModel, ConfigDict, Field

TIME_FORMAT = "%Y-%m-%d %H:%M"

# Label used for commits whose message is empty
EMPTY_MESSAGE_LABEL = "update"


def format_time(dt: datetime) -> str:
    """Format a timestamp the way pages and history lists show it."""
    return dt.strftime(TIME_FORMAT)


class Revision(BaseModel):
    """A commit in the version store."""

    id: str
    author: str = ""
    timestamp: datetime
    message: str = ""

    @property
    def summary(self) -> str:
        """First line of the commit message."""
        return self.message.split("\n")[0].strip() or EMPTY_MESSAGE_LABEL


class HistoryEntry(BaseModel):
    """One row of a page's history list."""

    label: str
    link: str
    timestamp: datetime
    revision_id: str | None = None
    active: bool = False

    @property
    def display_time(self) -> str:
        return format_time(self.timestamp)


class RenderedPage(BaseModel):
    """A page rendered for display. Never persisted."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    title: str
    content: Markup
    updated_at: datetime

    @property
    def display_time(self) -> str:
        return format_time(self.updated_at)


class DiffLine(BaseModel):
    """A single physical line of a diff."""

    kind: Literal["equal", "insert", "delete"]
    text: str


class DiffResult(BaseModel):
    """Line-level diff between two blobs."""

    lines: list[DiffLine] = Field(default_factory=list)
    identical: bool = True

    def base_lines(self) -> list[str]:
        """Lines of the base blob, rebuilt from equal and delete lines."""
        return [line.text for line in self.lines if line.kind != "insert"]

    def compare_lines(self) -> list[str]:
        """Lines of the compare blob, rebuilt from equal and insert lines."""
        return [line.text for line in self.lines if line.kind != "delete"]


class PageMeta(BaseModel):
    """Where a page lives, as declared in the page index."""

    slug: str
    title: str
    content_file: str
    storage_path: str


class TocEntry(BaseModel):
    """Table of contents node."""

    title: str
    slug: str
    href: str
    children: list["TocEntry"] = Field(default_factory=list)


class TocSection(BaseModel):
    """Table of contents category."""

    title: str
    pages: list[TocEntry] = Field(default_factory=list)
