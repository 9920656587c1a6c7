"""Tests for REPL command handling and the click entry point."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

from click.testing import CliRunner

from board import Board
from cli import CLI, parse_id, parse_target
from config import Settings, read_dotenv, truthy
from conftest import FakeAuthority, make_items, order
from main import main


def _run_commands(authority: FakeAuthority, *lines: str) -> CLI:
    async def scenario():
        cli = CLI(Board(authority), alt_screen=False)
        await cli.board.load()
        for line in lines:
            await cli.handle_command(line)
        await cli.board.wait_idle()
        return cli

    return asyncio.run(scenario())


def _authority() -> FakeAuthority:
    return FakeAuthority(make_items("new", [1, 2]) + make_items("working", [3, 4, 5]))


def test_parse_helpers():
    assert parse_id("12") == 12
    assert parse_id("12.") == 12
    assert parse_id("abc") == "abc"
    assert parse_target("w") == "working"
    assert parse_target("Complete") == "complete"
    assert parse_target("4") == 4


def test_mv_onto_bucket_and_onto_item():
    authority = _authority()
    cli = _run_commands(authority, "mv 1 c", "mv 5 3")
    assert order(cli.board, "complete") == [1]
    assert order(cli.board, "working") == [5, 3, 4]
    assert authority.server_order("working") == [5, 3, 4]


def test_stepwise_drag_commits_on_drop():
    authority = _authority()
    cli = _run_commands(authority, "drag 3", "over 2", "over 5", "drop")
    assert order(cli.board, "working") == [4, 3, 5]
    assert order(cli.board, "new") == [1, 2]
    assert not cli.board.drag.active


def test_drag_commands_validate_state():
    cli = _run_commands(_authority(), "over 2", "drop", "drag 99")
    assert cli.messages == [
        "Nothing is being dragged. Start with 'drag <id>'.",
        "Nothing is being dragged.",
        "Item 99 not found.",
    ]


def test_add_with_bucket_prefix_and_star():
    authority = _authority()
    cli = _run_commands(authority, "add w:fix the login", "add plain title", "star 4")
    working = cli.board.columns()["working"]
    assert working[-1].title == "fix the login"
    assert cli.board.columns()["new"][-1].title == "plain title"
    assert order(cli.board, "working")[0] == 4
    assert cli.board.get(4).important


def test_edit_rm_and_unknown():
    authority = _authority()
    cli = _run_commands(authority, "edit 1 better name", "rm 2", "frobnicate")
    assert cli.board.get(1).title == "better name"
    assert 2 not in cli.board.store
    assert cli.messages == ["Unknown command. Type 'help' for instructions."]


def test_sync_failure_is_reported():
    authority = _authority()

    async def scenario():
        cli = CLI(Board(authority), alt_screen=False)
        await cli.board.load()
        authority.fail("fetch_items")
        await cli.handle_command("sync")
        return cli

    assert asyncio.run(scenario()).messages == ["Sync failed; showing last known state."]


def test_list_prints_board_from_data_file(tmp_path: Path):
    data = tmp_path / "items.json"
    data.write_text(json.dumps({"next_id": 3, "items": [
        {"id": 1, "title": "first", "status": "new", "position": 0, "important": True},
        {"id": 2, "title": "second", "status": "complete", "position": 0},
    ]}))
    result = CliRunner().invoke(main, ["--list", "--data-file", str(data)], env={"KANBAN_API_URL": ""})
    assert result.exit_code == 0, result.output
    assert "WORKING" in result.output
    assert "★1. first" in result.output
    assert "2. second" in result.output


def test_list_reports_unreadable_store(tmp_path: Path):
    data = tmp_path / "items.json"
    data.write_text("{broken")
    result = CliRunner().invoke(main, ["--list", "--data-file", str(data)], env={"KANBAN_API_URL": ""})
    assert result.exit_code != 0
    assert "Could not load items." in result.output


def test_settings_priority_env_over_dotenv():
    settings = Settings.load(
        environ={"KANBAN_API_URL": "http://env/api", "KANBAN_ALT_SCREEN": "off"},
        dotenv={"KANBAN_API_URL": "http://dotenv/api", "KANBAN_TIMEOUT": "2.5", "KANBAN_PROMOTION_ROLLBACK": "FULL"},
    )
    assert settings.api_url == "http://env/api"
    assert settings.timeout == 2.5
    assert settings.alt_screen is False
    assert settings.promotion_rollback == "full"
    assert settings.log_level == "WARNING"


def test_read_dotenv_skips_comments(tmp_path: Path):
    env = tmp_path / ".env"
    env.write_text("# palette\nKANBAN_NEW=#112233\n\nKANBAN_TOKEN='abc'\nnot a pair\n")
    assert read_dotenv(env) == {"KANBAN_NEW": "#112233", "KANBAN_TOKEN": "abc"}
    assert read_dotenv(tmp_path / "missing") == {}


def test_truthy():
    assert truthy(None) is True
    assert truthy(None, False) is False
    assert truthy("off") is False
    assert truthy("1") is True
