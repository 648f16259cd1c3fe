"""Tests for the command-line interface."""

import json
import pytest
from unittest.mock import patch

from conftest import comment_event, pr_event


@pytest.fixture
def no_llm(monkeypatch, tmp_path):
    for key in ("GROQ_API_KEY", "OPENAI_API_KEY", "ANTHROPIC_API_KEY", "DB_PATH"):
        monkeypatch.delenv(key, raising=False)
    with patch("decision_memory.cli.load_dotenv"), \
         patch("decision_memory.common.config.CONFIG_PATH", tmp_path / "missing.json"):
        yield


@pytest.fixture
def export_file(tmp_path):
    path = tmp_path / "events.jsonl"
    events = [
        pr_event("pr-1", 7, "Switch to PostgreSQL", "We decided on PostgreSQL because of JSON support."),
        comment_event("cm-1", 7, "Let's go with PostgreSQL 16", hours=1),
    ]
    path.write_text("\n".join(e.model_dump_json() for e in events) + "\n")
    return path


class TestParser:
    def test_extract_options(self):
        from decision_memory.cli import build_parser
        args = build_parser().parse_args(["--db", "x.db", "extract", "acme", "api", "--min-confidence", "0.5"])
        assert args.command == "extract"
        assert args.db == "x.db"
        assert (args.owner, args.repo) == ("acme", "api")
        assert args.min_confidence == 0.5

    def test_command_required(self):
        from decision_memory.cli import build_parser
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


class TestCommands:
    def test_full_run(self, no_llm, tmp_path, export_file, capsys):
        from decision_memory.cli import main
        db = str(tmp_path / "events.db")

        assert main(["--db", db, "load", str(export_file)]) == 0
        assert "Stored 2 new events" in capsys.readouterr().out

        assert main(["--db", db, "load", str(export_file)]) == 0
        assert "Stored 0 new events" in capsys.readouterr().out

        assert main(["--db", db, "normalize", "acme", "api"]) == 0
        assert "Normalized 2/2 events (0 failed)" in capsys.readouterr().out

        assert main(["--db", db, "extract", "acme", "api"]) == 0
        assert "Extracted 2 decisions, skipped 0" in capsys.readouterr().out

        assert main(["--db", db, "explain", "acme", "api", "PostgreSQL"]) == 0
        explanation = json.loads(capsys.readouterr().out)
        assert explanation["subject"] == "PostgreSQL"
        assert explanation["evidence"]["decision_count"] == 2

        assert main(["--db", db, "search", "postgresql", "--repo", "acme/api"]) == 0
        hits = json.loads(capsys.readouterr().out)
        assert len(hits) == 2

        assert main(["--db", db, "status"]) == 0
        status = json.loads(capsys.readouterr().out)
        assert status["events"]["total"] == 2
        assert status["llm"]["available"] is False

    def test_json_array_export(self, no_llm, tmp_path, capsys):
        from decision_memory.cli import main
        path = tmp_path / "events.json"
        event = pr_event("pr-1", 7, "Title", "Body")
        path.write_text(json.dumps([json.loads(event.model_dump_json())]))

        assert main(["--db", str(tmp_path / "events.db"), "load", str(path)]) == 0
        assert "Stored 1 new events" in capsys.readouterr().out

    def test_failure_returns_one(self, no_llm, tmp_path, caplog):
        import logging
        from decision_memory.cli import main
        with caplog.at_level(logging.ERROR, logger="decision_memory.cli"):
            code = main(["--db", str(tmp_path / "events.db"), "load", str(tmp_path / "missing.jsonl")])
        assert code == 1
        assert "load failed" in caplog.text

    def test_serve_runs_server(self, no_llm, tmp_path):
        from decision_memory.cli import main
        with patch("decision_memory.server.run_server") as run_server:
            assert main(["--db", str(tmp_path / "events.db"), "serve"]) == 0
        config = run_server.call_args.args[0]
        assert config.storage.db_path == str(tmp_path / "events.db")
