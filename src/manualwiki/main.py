"""ManualWiki FastAPI application."""

import logging
import threading
from dataclasses import dataclass
from pathlib import Path, PurePosixPath

from fastapi import APIRouter, FastAPI, Form, HTTPException, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates

from manualwiki import config
from manualwiki.config import Settings, find_manual_root
from manualwiki.core.diff import diff_texts, render_diff
from manualwiki.core.errors import ManualError, NoChanges, NotFound, Unavailable
from manualwiki.core.history import list_history, read_working_copy, resolve_revision
from manualwiki.core.index import ManualIndex, load_manual_index
from manualwiki.core.models import HistoryEntry, PageMeta, format_time
from manualwiki.core.pages import load_page
from manualwiki.core.vcs import VersionStore, open_version_store

logger = logging.getLogger(__name__)

templates_path = Path(__file__).parent / "templates"
static_path = Path(__file__).parent / "static"

WORKING_COPY_TITLE = "Latest (working copy)"
EDIT_TITLE = "Edit top page"
DIFF_TITLE = "Diff view"

# Handlers are plain functions and run in the threadpool; saves go one at a time
save_lock = threading.Lock()


@dataclass(frozen=True)
class AppContext:
    """Everything a request handler needs, built once at startup."""

    settings: Settings
    project_root: Path
    manual_root: Path
    index: ManualIndex
    store: VersionStore

    @property
    def top(self) -> PageMeta:
        return self.index.top

    def content_path(self, meta: PageMeta) -> Path:
        """Absolute path of a page's live file."""
        return self.manual_root / PurePosixPath(meta.content_file)


def build_context(settings: Settings) -> AppContext:
    """Locate the manual, load its index and open the version store."""
    manual_root = (settings.manual_root or find_manual_root()).resolve()
    project_root = manual_root.parent
    index = load_manual_index(project_root, manual_root)
    top = index.top
    logger.info("Serving %s from %s", top.content_file, manual_root)
    store = open_version_store(project_root, init=settings.init_repository)
    return AppContext(
        settings=settings,
        project_root=project_root,
        manual_root=manual_root,
        index=index,
        store=store,
    )


router = APIRouter()


def get_app_context(request: Request) -> AppContext:
    return request.app.state.context


def render_view(request: Request, mode: str, status_code: int = 200, **view) -> HTMLResponse:
    """Render ``page.html`` with the common site context."""
    ctx = get_app_context(request)
    templates: Jinja2Templates = request.app.state.templates
    context = {
        "mode": mode,
        "site_title": ctx.settings.site_title,
        "toc": ctx.index.toc,
        "flash": None,
        **view,
    }
    return templates.TemplateResponse(
        request, "page.html", context, status_code=status_code
    )


def flash(kind: str, message: str) -> dict[str, str]:
    return {"type": kind, "message": message}


def history_for(ctx: AppContext, active_revision_id: str = "") -> list[HistoryEntry]:
    top = ctx.top
    return list_history(
        ctx.content_path(top),
        top.storage_path,
        active_revision_id,
        ctx.store,
        limit=ctx.settings.history_limit,
    )


@router.get("/", response_class=HTMLResponse)
def view_manual(request: Request, commit: str = "", saved: str = ""):
    """Top page, optionally at a historical revision."""
    ctx = get_app_context(request)
    commit = commit.strip()
    top = ctx.top

    try:
        page = load_page(ctx.content_path(top), top.storage_path, commit, ctx.store)
    except NotFound:
        raise HTTPException(status_code=404, detail="The requested revision was not found")
    except Unavailable:
        raise HTTPException(
            status_code=503, detail="A git repository is required to view history"
        )
    except ManualError:
        logger.exception("Failed to load the manual at %r", commit)
        raise HTTPException(status_code=500, detail="Failed to load the manual")

    return render_view(
        request,
        "view",
        page_title=page.title,
        content=page.content,
        updated_at=page.display_time,
        history=history_for(ctx, commit),
        can_edit=True,
        flash=flash("success", "Saved the manual and recorded it in history.")
        if saved == "1"
        else None,
    )


@router.get("/pages/{slug}", response_class=HTMLResponse)
def view_page(request: Request, slug: str):
    """Any other page from the index, working copy only."""
    ctx = get_app_context(request)
    slug = slug.strip("/")
    if slug == "top":
        return RedirectResponse(url="/", status_code=303)

    meta = ctx.index.pages.get(slug)
    if meta is None:
        raise HTTPException(status_code=404, detail="Page not found")

    try:
        page = load_page(ctx.content_path(meta), meta.storage_path, "", ctx.store)
    except NotFound:
        raise HTTPException(status_code=404, detail="Page not found")
    except ManualError:
        logger.exception("Failed to load page %s", slug)
        raise HTTPException(status_code=500, detail="Failed to load the page")

    return render_view(
        request,
        "page",
        page_title=meta.title or page.title,
        content=page.content,
        updated_at=page.display_time,
    )


@router.get("/edit", response_class=HTMLResponse)
def edit_form(request: Request):
    """Edit form for the top page."""
    ctx = get_app_context(request)
    try:
        data, _ = read_working_copy(ctx.content_path(ctx.top))
    except ManualError:
        logger.exception("Failed to read the manual for editing")
        raise HTTPException(status_code=500, detail="Failed to read the manual")

    return render_view(
        request,
        "edit",
        page_title=EDIT_TITLE,
        history=history_for(ctx),
        edit_content=data.decode("utf-8", errors="replace"),
        edit_author=ctx.settings.default_author,
        edit_message="",
    )


@router.post("/edit", response_class=HTMLResponse)
def save_manual(
    request: Request,
    content: str = Form(""),
    author: str = Form(""),
    message: str = Form(""),
):
    """Write the top page and commit it."""
    ctx = get_app_context(request)
    content = content.rstrip("\r\n")
    author = author.strip()
    message = message.strip()

    def edit_error(note: str) -> HTMLResponse:
        return render_view(
            request,
            "edit",
            page_title=EDIT_TITLE,
            history=history_for(ctx),
            edit_content=content,
            edit_author=author,
            edit_message=message,
            flash=flash("error", note),
        )

    if not content:
        return edit_error("The content is empty and cannot be saved.")

    author = author or ctx.settings.default_author
    message = message or ctx.settings.default_message

    path = ctx.content_path(ctx.top)
    with save_lock:
        note = write_and_commit(ctx, path, content, author, message)
    if note:
        return edit_error(note)
    return RedirectResponse(url="/?saved=1", status_code=303)


def write_and_commit(
    ctx: AppContext, path: Path, content: str, author: str, message: str
) -> str | None:
    """Write the top page and commit it. Returns an error note on failure."""
    try:
        path.write_bytes((content + "\n").encode("utf-8"))
    except OSError:
        logger.exception("Failed to write %s", path)
        return "Failed to save the file."

    try:
        ctx.store.commit_file(ctx.top.storage_path, author, message)
    except Unavailable:
        logger.warning("Saved %s without history: no git repository", path)
        return (
            "Git is not set up, so the change was not recorded in history. "
            "Run `git init` and try again."
        )
    except NoChanges:
        return "Nothing changed, so no history entry was added."
    except ManualError:
        logger.exception("Failed to commit %s", path)
        return "Failed to record the change in history. Check the git setup."
    return None


@router.get("/diff", response_class=HTMLResponse)
def view_diff(request: Request, commit: str = ""):
    """Diff between a revision (default: latest commit) and the working copy."""
    ctx = get_app_context(request)
    commit = commit.strip()
    if not ctx.store.available:
        raise HTTPException(status_code=503, detail="A git repository is required to show diffs")

    top = ctx.top
    content_path = ctx.content_path(top)

    try:
        if commit:
            revision = ctx.store.get_revision(commit)
            base_label = f"{revision.summary} ({format_time(revision.timestamp)})"
            diff_title = "Selected revision vs latest"
        else:
            revision = ctx.store.head()
            if revision is None:
                return render_view(
                    request,
                    "diff",
                    page_title=DIFF_TITLE,
                    history=history_for(ctx),
                    diff_title="No diff yet",
                    diff_base_label="No commits yet",
                    diff_compare_label=WORKING_COPY_TITLE,
                    diff_html="",
                    diff_is_empty=True,
                    flash=flash("error", "Nothing has been saved to history yet, so there is no diff."),
                )
            base_label = f"Latest commit ({format_time(revision.timestamp)})"
            diff_title = "Latest commit vs working copy"

        base, _ = resolve_revision(content_path, top.storage_path, revision.id, ctx.store)
        compare, _ = resolve_revision(content_path, top.storage_path, "", ctx.store)
    except NotFound:
        raise HTTPException(status_code=404, detail="The requested revision was not found")
    except ManualError:
        logger.exception("Failed to prepare diff for %r", commit)
        raise HTTPException(status_code=500, detail="Failed to read history")

    result = diff_texts(base, compare)
    return render_view(
        request,
        "diff",
        page_title=DIFF_TITLE,
        history=history_for(ctx, commit),
        diff_title=diff_title,
        diff_base_label=base_label,
        diff_compare_label=WORKING_COPY_TITLE,
        diff_html=render_diff(result),
        diff_is_empty=result.identical,
    )


def create_app(context: AppContext | None = None) -> FastAPI:
    """Build the application around an AppContext.

    Without a context, one is built from the environment settings.
    """
    if context is None:
        context = build_context(config.settings)

    app = FastAPI(title=context.settings.site_title, debug=context.settings.debug)
    app.state.context = context
    app.state.templates = Jinja2Templates(directory=str(templates_path))
    app.mount("/static", StaticFiles(directory=str(static_path)), name="static")
    app.include_router(router)
    return app
