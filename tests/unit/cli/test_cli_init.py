"""Tests for notespace init and the top-level app options."""

from __future__ import annotations

import pytest
import yaml
from typer.testing import CliRunner

from notespace.cli.main import app
from notespace.db.repository import Repository
from notespace.services import open_db

runner = CliRunner()


def _out(result) -> str:
    """CLI output with rich line wrapping undone."""
    return " ".join(result.output.split())

pytestmark = pytest.mark.usefixtures("cli_workspace")


def test_init_creates_workspace(tmp_path):
    result = runner.invoke(app, ["init", str(tmp_path)])

    assert result.exit_code == 0, result.output
    assert (tmp_path / "notespace.db").exists()
    cfg = yaml.safe_load((tmp_path / "notespace.yaml").read_text(encoding="utf-8"))
    assert "embedding" in cfg
    assert "notespace.db" in (tmp_path / ".gitignore").read_text(encoding="utf-8")
    assert "Workspace initialized" in _out(result)


def test_init_defaults_to_cwd(cli_workspace):
    result = runner.invoke(app, ["init"])
    assert result.exit_code == 0, result.output
    assert (cli_workspace / "notespace.db").exists()


def test_init_is_rerunnable(tmp_path):
    runner.invoke(app, ["init", str(tmp_path)])
    (tmp_path / "notespace.yaml").write_text("retrieval:\n  limit: 9\n", encoding="utf-8")

    result = runner.invoke(app, ["init", str(tmp_path)])

    assert result.exit_code == 0, result.output
    assert "already exists" in _out(result)
    assert "limit: 9" in (tmp_path / "notespace.yaml").read_text(encoding="utf-8")
    gitignore = (tmp_path / ".gitignore").read_text(encoding="utf-8")
    assert gitignore.count("notespace.db\n") == 1


def test_init_keeps_existing_gitignore_lines(tmp_path):
    (tmp_path / ".gitignore").write_text("*.pyc\n", encoding="utf-8")
    runner.invoke(app, ["init", str(tmp_path)])
    lines = (tmp_path / ".gitignore").read_text(encoding="utf-8").splitlines()
    assert lines[0] == "*.pyc"
    assert "notespace.db-wal" in lines


def test_init_with_space(tmp_path):
    result = runner.invoke(app, ["init", str(tmp_path), "--space", "Research", "--user", "user-1"])

    assert result.exit_code == 0, result.output
    conn = open_db(tmp_path / "notespace.db")
    try:
        spaces = Repository(conn).list_spaces()
    finally:
        conn.close()
    assert [(s.name, s.user_id) for s in spaces] == [("Research", "user-1")]


def test_version_flag():
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert result.output.startswith("notespace ")


def test_version_command():
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert "notespace" in _out(result)


def test_invalid_config_exits_1(cli_workspace):
    (cli_workspace / "notespace.yaml").write_text("retrieval:\n  limit: 0\n", encoding="utf-8")
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 1
    assert "Invalid configuration" in _out(result)
