"""
Unit tests for the command line interface.
"""

import asyncio
import logging

import json_log_formatter
import pytest

from firepouch.config import FirepouchConfig, ObservabilityConfig, StoreConfig
from firepouch.remote.memory import InMemoryRemote
from firepouch.service import Firepouch
from firepouch.tools.cli import build_parser, main, setup_logging


class TestCli:
    """Tests for argument parsing and exit codes."""

    @pytest.fixture(autouse=True)
    def clean_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("FIREPOUCH_ROOT_DIR", str(tmp_path))
        monkeypatch.setenv("LOG_FORMAT", "text")
        for name in ("GOOGLE_CLOUD_PROJECT", "FIRESTORE_PROJECT_ID", "FIREPOUCH_BATCH_SIZE"):
            monkeypatch.delenv(name, raising=False)
        yield
        logging.getLogger().handlers = []

    def test_parse_backup_options(self):
        args = build_parser().parse_args(
            ["backup", "--name", "n", "--collections", "a,b", "--batch-size", "10", "--archive"]
        )

        assert args.command == "backup"
        assert args.collections == "a,b"
        assert args.batch_size == 10
        assert args.archive == ""

    def test_restore_requires_one_source(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["restore", "--name", "a", "--s3-key", "b"])

    def test_pack_and_unpack(self, tmp_path, capsys):
        source = tmp_path / "store"
        source.mkdir()
        (source / "file.txt").write_text("data")

        assert main(["pack", str(source), "--output", str(tmp_path / "out.zip")]) == 0
        assert main(["unpack", str(tmp_path / "out.zip"), "--output", str(tmp_path / "x")]) == 0
        assert (tmp_path / "x" / "file.txt").read_text() == "data"

    def test_backup_without_remote_fails(self, capsys):
        assert main(["backup", "--name", "nightly"]) == 1
        assert "backup failed" in capsys.readouterr().err

    def test_dump_needs_no_remote(self, tmp_path, capsys):
        config = FirepouchConfig(store=StoreConfig(root_dir=str(tmp_path)))
        remote = InMemoryRemote({"users": {"a": {"n": 1}}})
        asyncio.run(Firepouch(remote=remote, config=config).create_backup(name="nightly"))

        assert main(["dump", "--name", "nightly"]) == 0
        assert (tmp_path / "nightly" / "nightly.json").is_file()

    def test_invalid_configuration_fails(self, monkeypatch, capsys):
        monkeypatch.setenv("FIREPOUCH_BATCH_SIZE", "-5")

        assert main(["pack", "anything"]) == 1
        assert "Invalid configuration" in capsys.readouterr().err

    def test_json_logging(self):
        setup_logging(FirepouchConfig(observability=ObservabilityConfig(log_format="json")))

        handler = logging.getLogger().handlers[0]
        assert isinstance(handler.formatter, json_log_formatter.JSONFormatter)
