from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from category_tree import cli
from category_tree.repositories.categories import sql_store_factory
from category_tree.services.categories import CategoryService


@pytest.fixture
def cli_service(
    session_factory: async_sessionmaker[AsyncSession], monkeypatch: pytest.MonkeyPatch
) -> CategoryService:
    service = CategoryService(sql_store_factory(session_factory))
    monkeypatch.setattr(cli, "_build_service", lambda: service)
    return service


def test_parser_defaults() -> None:
    parser = cli._build_parser()
    args = parser.parse_args(["import-categories", "--input", "tree.csv"])
    assert args.command == "import-categories"
    assert args.scope == "global"
    assert args.encoding == "utf-8"

    with pytest.raises(SystemExit):
        parser.parse_args(["import-categories", "--input", "tree.csv", "--scope", "sideways"])


def test_unknown_command_is_not_handled() -> None:
    assert cli._run_cli_command(argparse.Namespace(command=None)) is False


def test_import_and_search_commands(
    cli_service: CategoryService, tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    source = tmp_path / "tree.csv"
    source.write_text("1,Garden,Tools\n2,Garden,Seeds\n", encoding="utf-8")

    handled = cli._run_cli_command(
        argparse.Namespace(command="import-categories", input=str(source), scope="global", encoding="utf-8")
    )
    assert handled is True
    assert "3 created, 1 reused" in capsys.readouterr().out

    cli._run_cli_command(argparse.Namespace(command="search", query="garden"))
    out = capsys.readouterr().out
    assert "Garden" in out
    assert "parent=-" in out

    cli._run_cli_command(argparse.Namespace(command="search", query="nothing"))
    assert "No categories found" in capsys.readouterr().out

    tools = asyncio.run(cli_service.find_by_name("tools"))
    garden = asyncio.run(cli_service.find_by_name("garden"))
    assert tools.parent_category_id == garden.id


def test_main_exits_non_zero_on_unreadable_source(
    cli_service: CategoryService,
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    monkeypatch.setattr(cli, "configure_logging", lambda json_logs=False: None)
    monkeypatch.setattr(sys, "argv", ["category-tree", "import-categories", "--input", str(tmp_path / "nope.csv")])

    with pytest.raises(SystemExit) as excinfo:
        cli.main()
    assert excinfo.value.code == 1
    assert "importsource" in capsys.readouterr().err


def test_main_prints_help_without_command(monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    monkeypatch.setattr(cli, "configure_logging", lambda json_logs=False: None)
    monkeypatch.setattr(sys, "argv", ["category-tree"])
    cli.main()
    assert "import-categories" in capsys.readouterr().out
