"""Application configuration."""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from manualwiki.core.errors import ManualRootNotFound

MANUAL_DIRNAME = "manuals"
TOP_ENTRY = Path("entries") / "top.md"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    manual_root: Path | None = None
    site_title: str = "Team Manual"
    debug: bool = False
    host: str = "127.0.0.1"
    port: int = 8080
    history_limit: int = 30
    default_author: str = "Manual Editor"
    default_message: str = "Update manual"
    init_repository: bool = True

    model_config = SettingsConfigDict(
        env_prefix="MANUALWIKI_",
        env_file=".env",
        env_file_encoding="utf-8",
    )


def find_manual_root(start: Path | None = None) -> Path:
    """Walk up from ``start`` to the directory holding ``manuals/entries/top.md``.

    Returns:
        The ``manuals`` directory.

    Raises:
        ManualRootNotFound: If no ancestor contains one.
    """
    start = (start or Path.cwd()).resolve()
    for directory in (start, *start.parents):
        candidate = directory / MANUAL_DIRNAME
        if (candidate / TOP_ENTRY).exists():
            return candidate
    raise ManualRootNotFound(f"no {MANUAL_DIRNAME} directory found above {start}")


settings = Settings()
