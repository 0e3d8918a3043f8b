"""Command-line entry point: page scaffolding and the development server."""

import logging
from pathlib import Path, PurePosixPath
from typing import Optional

import typer

from manualwiki.config import MANUAL_DIRNAME, settings

app = typer.Typer(
    name="manualwiki",
    help="Versioned team manual served from Markdown files.",
    add_completion=False,
    no_args_is_help=True,
)

logger = logging.getLogger(__name__)

PAGE_TEMPLATE = """# {title}

Write the {title} content here. Add procedures and checklists as needed.
"""


def page_path(slug: str, rel_path: Optional[str] = None) -> PurePosixPath:
    """Path of a new page relative to the project root."""
    if rel_path:
        return PurePosixPath(MANUAL_DIRNAME) / rel_path.removeprefix(f"{MANUAL_DIRNAME}/")
    return PurePosixPath(MANUAL_DIRNAME, "entries", f"{slug}.md")


@app.command("new-page")
def new_page(
    slug: str = typer.Argument(..., help="Page slug, e.g. desk-overview"),
    title: str = typer.Argument(..., help="Page title"),
    rel_path: Optional[str] = typer.Argument(
        None, help="File under manuals/, e.g. entries/desk/overview.md"
    ),
    root: Path = typer.Option(Path("."), "--root", help="Project root"),
) -> None:
    """Create a new manual page from the page template."""
    relative = page_path(slug, rel_path)
    path = root / relative
    if path.exists():
        typer.echo(f"Error: {relative} already exists.", err=True)
        raise typer.Exit(code=1)

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(PAGE_TEMPLATE.format(title=title), encoding="utf-8")

    typer.echo(f"Created {relative}")
    typer.echo(f"- slug : {slug}")
    typer.echo(f"- title: {title}")
    typer.echo("")
    typer.echo("Next steps:")
    typer.echo(f'1. Add slug "{slug}" to {MANUAL_DIRNAME}/index.yaml to place it in the table of contents.')
    typer.echo("2. Restart the server and check the page in the browser.")


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, help="Bind address"),
    port: Optional[int] = typer.Option(None, help="Port"),
) -> None:
    """Serve the manual over HTTP."""
    import uvicorn

    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    host = host or settings.host
    port = port or settings.port
    logger.info("Serving the manual at http://%s:%d/", host, port)
    uvicorn.run("manualwiki.main:create_app", factory=True, host=host, port=port)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
