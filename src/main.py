"""Main entry point for the kanban terminal client.

With an API URL configured the board talks to the REST server; otherwise
items are kept in a local JSON file.
"""
from pathlib import Path
from typing import Optional
import asyncio
import logging
import sys

import click

from authority import Authority
from board import Board
from cli import CLI, parse_id
from config import Settings
from promotion import ROLLBACK_MODES
from remote import HttpAuthority
from storage import FileAuthority

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str, log_file: Optional[Path] = None) -> None:
    handler: logging.Handler
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(log_file)
    else:
        handler = logging.StreamHandler(sys.stderr)
    logging.basicConfig(level=getattr(logging, level.upper(), logging.WARNING), format=LOG_FORMAT, handlers=[handler], force=True)


def build_authority(settings: Settings) -> Authority:
    if settings.api_url:
        project_id = parse_id(settings.project_id) if settings.project_id else None
        return HttpAuthority(settings.api_url, token=settings.token, project_id=project_id, timeout=settings.timeout)
    return FileAuthority(settings.data_file)


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.option("--api-url", default=None, help="REST API base URL (e.g. http://localhost:3001/api). Env: KANBAN_API_URL")
@click.option("--token", default=None, help="Bearer token for the API. Env: KANBAN_TOKEN")
@click.option("--project", "project_id", default=None, help="Only show items of this project. Env: KANBAN_PROJECT_ID")
@click.option("--data-file", type=click.Path(dir_okay=False, path_type=Path), default=None,
              help="Local JSON store used when no API URL is set. Env: KANBAN_DATA_FILE")
@click.option("--log-level", type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False), default=None)
@click.option("--log-file", type=click.Path(dir_okay=False, path_type=Path), default=None)
@click.option("--alt-screen/--no-alt-screen", default=None, help="Use the terminal's alternate screen. Env: KANBAN_ALT_SCREEN")
@click.option("--promotion-rollback", type=click.Choice(ROLLBACK_MODES), default=None,
              help="On a failed star, revert only the flag (partial) or the order too (full).")
@click.option("--list", "list_only", is_flag=True, help="Print the board once and exit.")
def main(api_url, token, project_id, data_file, log_level, log_file, alt_screen, promotion_rollback, list_only):
    """Terminal kanban board with instant, optimistic reordering."""
    settings = Settings.load()
    overrides = {
        "api_url": api_url, "token": token, "project_id": project_id, "data_file": data_file,
        "log_level": log_level, "log_file": log_file, "alt_screen": alt_screen,
        "promotion_rollback": promotion_rollback,
    }
    for key, value in overrides.items():
        if value is not None:
            setattr(settings, key, value)
    if settings.promotion_rollback not in ROLLBACK_MODES:
        raise click.BadParameter(f"must be one of {ROLLBACK_MODES}", param_hint="KANBAN_PROMOTION_ROLLBACK")
    configure_logging(settings.log_level, settings.log_file)

    board = Board(build_authority(settings), rollback=settings.promotion_rollback)
    if list_only:
        if not asyncio.run(_load_and_close(board)):
            raise click.ClickException("Could not load items.")
        board.display()
        return
    cli = CLI(board, alt_screen=settings.alt_screen)
    board.resyncer.on_unauthorized = cli.logout
    cli.run()


async def _load_and_close(board: Board) -> bool:
    try:
        return await board.load()
    finally:
        await board.close()


if __name__ == "__main__":
    main()
