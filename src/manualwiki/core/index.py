"""Page index: slug -> file mapping and table of contents.

The index lives at ``manuals/index.yaml``::

    title: Team Manual
    categories:
      - id: basics
        title: Basics
        pages:
          - slug: top
            title: Top
            file: entries/top.md
            children:
              - slug: desk
                title: Desk
"""

import logging
import os
from pathlib import Path, PurePosixPath

import yaml
from pydantic import BaseModel, Field, ValidationError

from manualwiki.core.errors import ManualIndexError
from manualwiki.core.models import PageMeta, TocEntry, TocSection

logger = logging.getLogger(__name__)

INDEX_FILENAME = "index.yaml"
TOP_SLUG = "top"


class IndexPage(BaseModel):
    slug: str = ""
    title: str = ""
    file: str = ""
    children: list["IndexPage"] = Field(default_factory=list)


class IndexCategory(BaseModel):
    id: str = ""
    title: str = ""
    pages: list[IndexPage] = Field(default_factory=list)


class IndexFile(BaseModel):
    title: str = ""
    description: str = ""
    categories: list[IndexCategory] = Field(default_factory=list)


class ManualIndex(BaseModel):
    """Loaded page index."""

    title: str = ""
    description: str = ""
    pages: dict[str, PageMeta] = Field(default_factory=dict)
    toc: list[TocSection] = Field(default_factory=list)

    @property
    def top(self) -> PageMeta:
        """The front page (slug ``top``)."""
        try:
            return self.pages[TOP_SLUG]
        except KeyError:
            raise ManualIndexError(
                f"{INDEX_FILENAME} does not define the top page (slug: {TOP_SLUG})"
            ) from None


def page_link(slug: str) -> str:
    """URL of a page."""
    if slug == TOP_SLUG:
        return "/"
    return f"/pages/{slug}"


def storage_path_for(project_root: Path, manual_root: Path, content_file: str) -> str:
    """Path of a page file relative to the project root, with ``/`` separators."""
    absolute = manual_root / PurePosixPath(content_file)
    return Path(os.path.relpath(absolute, project_root)).as_posix()


def _convert_pages(
    pages: list[IndexPage],
    slug_map: dict[str, PageMeta],
    project_root: Path,
    manual_root: Path,
) -> list[TocEntry]:
    entries = []
    for page in pages:
        slug = page.slug.strip()
        if not slug:
            raise ManualIndexError(f"{INDEX_FILENAME} has a page without a slug")
        if slug in slug_map:
            raise ManualIndexError(f"slug {slug} is defined more than once")

        content_file = page.file.strip().replace("\\", "/") or f"entries/{slug}.md"
        absolute = manual_root / PurePosixPath(content_file)
        if not absolute.exists():
            logger.warning("Index references missing file %s", absolute)

        slug_map[slug] = PageMeta(
            slug=slug,
            title=page.title,
            content_file=content_file,
            storage_path=storage_path_for(project_root, manual_root, content_file),
        )
        children = _convert_pages(page.children, slug_map, project_root, manual_root)
        entries.append(
            TocEntry(title=page.title, slug=slug, href=page_link(slug), children=children)
        )
    return entries


def parse_manual_index(text: str, project_root: Path, manual_root: Path) -> ManualIndex:
    """Build a ManualIndex from index source text (YAML or JSON)."""
    try:
        raw = yaml.safe_load(text) or {}
        index_file = IndexFile.model_validate(raw)
    except (yaml.YAMLError, ValidationError) as e:
        raise ManualIndexError(f"invalid {INDEX_FILENAME}: {e}") from e

    slug_map: dict[str, PageMeta] = {}
    toc = []
    for category in index_file.categories:
        if not category.pages:
            continue
        entries = _convert_pages(category.pages, slug_map, project_root, manual_root)
        toc.append(TocSection(title=category.title, pages=entries))

    return ManualIndex(
        title=index_file.title,
        description=index_file.description,
        pages=slug_map,
        toc=toc,
    )


def load_manual_index(project_root: Path, manual_root: Path) -> ManualIndex:
    """Read and parse ``manual_root/index.yaml``."""
    index_path = manual_root / INDEX_FILENAME
    try:
        text = index_path.read_text(encoding="utf-8")
    except OSError as e:
        raise ManualIndexError(f"cannot read {index_path}: {e}") from e
    index = parse_manual_index(text, project_root, manual_root)
    logger.info("Loaded %d pages from %s", len(index.pages), index_path)
    return index
