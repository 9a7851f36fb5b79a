"""Tests for the command-line interface."""

import json

import pytest
from typer.testing import CliRunner

from penbridge import cli
from penbridge.config import Settings

runner = CliRunner()


@pytest.fixture
def cli_settings(tmp_path, monkeypatch):
    """Point the CLI at a throwaway SQLite database."""
    test_settings = Settings(
        database_url_override=f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}"
    )
    monkeypatch.setattr(cli, "settings", test_settings)
    result = runner.invoke(cli.app, ["init-db"])
    assert result.exit_code == 0, result.output
    return test_settings


@pytest.fixture
def stroke_file(tmp_path, three_line_strokes):
    path = tmp_path / "strokes.json"
    cli.dump_strokes(path, three_line_strokes)
    return path


@pytest.fixture
def recognition_file(tmp_path, recognition_response):
    path = tmp_path / "recognition.json"
    path.write_text(json.dumps(recognition_response))
    return path


class TestSettings:
    """Tests for database URL selection."""

    def test_override_wins(self):
        assert Settings(database_url_override="sqlite+aiosqlite:///x.db").database_url == (
            "sqlite+aiosqlite:///x.db"
        )

    def test_postgres_default(self):
        url = Settings(database_url_override=None, postgres_host="db").database_url
        assert url.startswith("postgresql+asyncpg://")
        assert "@db:5432/" in url


class TestStrokeFiles:
    """Loading and dumping stroke collections."""

    def test_round_trip(self, stroke_file, three_line_strokes):
        loaded = cli.load_strokes(stroke_file)

        assert [s.id for s in loaded] == [s.id for s in three_line_strokes]
        assert loaded[0].page == three_line_strokes[0].page

    def test_plain_list(self, tmp_path, three_line_strokes):
        path = tmp_path / "list.json"
        path.write_text(json.dumps([s.model_dump(mode="json") for s in three_line_strokes]))

        assert len(cli.load_strokes(path)) == 9


class TestCommands:
    """End-to-end command runs."""

    def test_reconcile_then_resave(self, cli_settings, stroke_file, recognition_file):
        args = ["reconcile", str(stroke_file), str(recognition_file), "--book", "3017", "--page", "42"]

        first = runner.invoke(cli.app, args)
        assert first.exit_code == 0, first.output
        assert "created=3" in first.output
        assert all(s.block_uuid for s in cli.load_strokes(stroke_file))

        second = runner.invoke(cli.app, args)
        assert second.exit_code == 0, second.output
        assert "skipped=3" in second.output
        assert "created=0" in second.output

    def test_bad_recognition_exits(self, cli_settings, stroke_file, tmp_path):
        bad = tmp_path / "bad.json"
        bad.write_text(json.dumps(["not", "a", "mapping"]))

        result = runner.invoke(
            cli.app, ["reconcile", str(stroke_file), str(bad), "--book", "3017", "--page", "42"]
        )

        assert result.exit_code == 1

    def test_empty_recognition_leaves_blocks(
        self, cli_settings, stroke_file, recognition_file, tmp_path
    ):
        """No lines for a page with ink is a failure, not a page of orphans."""
        page_args = ["--book", "3017", "--page", "42"]
        runner.invoke(cli.app, ["reconcile", str(stroke_file), str(recognition_file), *page_args])
        empty = tmp_path / "empty.json"
        empty.write_text(json.dumps({"label": ""}))

        result = runner.invoke(
            cli.app,
            ["reconcile", str(stroke_file), str(empty), *page_args, "--retire-orphans"],
            input="y\n",
        )

        assert result.exit_code == 1
        assert "Orphaned blocks" not in result.output
        listed = runner.invoke(cli.app, ["blocks", *page_args])
        assert "Meeting notes" in listed.output
        assert "Buy milk" in listed.output

    def test_changes(self, cli_settings, stroke_file, recognition_file):
        pending = runner.invoke(cli.app, ["changes", str(stroke_file)])
        assert pending.exit_code == 0, pending.output
        assert "+9 / -0" in pending.output

        runner.invoke(
            cli.app,
            ["reconcile", str(stroke_file), str(recognition_file), "--book", "3017", "--page", "42"],
        )

        clean = runner.invoke(cli.app, ["changes", str(stroke_file)])
        assert "No pending changes" in clean.output

    def test_blocks(self, cli_settings, stroke_file, recognition_file):
        runner.invoke(
            cli.app,
            ["reconcile", str(stroke_file), str(recognition_file), "--book", "3017", "--page", "42"],
        )

        result = runner.invoke(cli.app, ["blocks", "--book", "3017", "--page", "42"])

        assert result.exit_code == 0, result.output
        assert "Meeting notes" in result.output
        assert "Buy milk" in result.output
