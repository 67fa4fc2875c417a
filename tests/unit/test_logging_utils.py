"""Tests for logging utilities."""
import argparse
import io
import logging
import sys

import pytest

import similar_artists.logging_utils as logging_utils
from similar_artists.logging_utils import (
    RunSummary,
    add_logging_args,
    configure_logging,
    format_count,
    format_duration,
    new_run_id,
    resolve_log_level,
    stage_timer,
    truncate_list,
)


@pytest.fixture(autouse=True)
def reset_logging():
    """Drop the handlers configure_logging installs so tests stay independent."""
    def _reset():
        root = logging.getLogger()
        for handler in root.handlers[:]:
            if getattr(handler, logging_utils._HANDLER_TAG, False):
                root.removeHandler(handler)
                handler.close()
        logging_utils._logging_configured = False
        logging_utils.set_run_id(None)

    _reset()
    yield
    _reset()


def _tagged_handlers():
    return [h for h in logging.getLogger().handlers if getattr(h, logging_utils._HANDLER_TAG, False)]


class TestConfigureLogging:
    """Tests for configure_logging function."""

    def test_idempotent_without_force(self):
        configure_logging(level='INFO', force=True)
        count = len(_tagged_handlers())

        configure_logging(level='DEBUG')

        assert len(_tagged_handlers()) == count

    def test_force_replaces_handlers(self, tmp_path):
        configure_logging(level='INFO', force=True)
        configure_logging(level='INFO', log_file=str(tmp_path / "run.log"), force=True)

        assert len(_tagged_handlers()) == 2

    def test_file_output_carries_run_id(self, tmp_path):
        log_file = tmp_path / "logs" / "run.log"
        configure_logging(level='INFO', log_file=str(log_file), force=True, run_id="abc123", console=False)

        logging.getLogger("similar_artists.test").info("hello file")
        for handler in _tagged_handlers():
            handler.flush()

        text = log_file.read_text(encoding='utf-8')
        assert "hello file" in text
        assert "run_id=abc123" in text

    def test_console_omits_run_id_unless_asked(self, monkeypatch):
        buf = io.StringIO()
        monkeypatch.setattr(sys, "stdout", buf)
        configure_logging(level='INFO', force=True, run_id="abc123")
        logging.getLogger("similar_artists.test").info("hello")
        assert "run_id=abc123" not in buf.getvalue()

        buf = io.StringIO()
        monkeypatch.setattr(sys, "stdout", buf)
        configure_logging(level='INFO', force=True, run_id="abc123", show_run_id=True)
        logging.getLogger("similar_artists.test").info("hello")
        assert "run_id=abc123" in buf.getvalue()

    def test_env_level_override(self, monkeypatch):
        monkeypatch.setenv('LOG_LEVEL', 'warning')
        configure_logging(level='DEBUG', force=True)

        console = [h for h in _tagged_handlers() if isinstance(h, logging.StreamHandler)]
        assert console[0].level == logging.WARNING

    def test_new_run_id(self):
        run_id = new_run_id()
        assert len(run_id) == 8
        assert run_id != new_run_id()


class TestStageTimer:
    def test_logs_completion(self, caplog):
        logger = logging.getLogger("similar_artists.test")
        with caplog.at_level(logging.INFO, logger="similar_artists.test"):
            with stage_timer("Discovery", logger):
                pass
        assert any(r.message.startswith("Discovery done in") for r in caplog.records)

    def test_logs_abort_when_stage_raises(self, caplog):
        logger = logging.getLogger("similar_artists.test")
        with caplog.at_level(logging.INFO, logger="similar_artists.test"):
            with pytest.raises(RuntimeError):
                with stage_timer("Matching", logger):
                    raise RuntimeError("boom")
        warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert len(warnings) == 1
        assert warnings[0].message.startswith("Matching aborted after")
        assert not any("done in" in r.message for r in caplog.records)


class TestFormatting:
    @pytest.mark.parametrize("seconds,expected", [
        (0.25, "250ms"),
        (4.2, "4.2s"),
        (185, "3m 5s"),
    ])
    def test_format_duration(self, seconds, expected):
        assert format_duration(seconds) == expected

    def test_format_count(self):
        assert format_count(1, "track") == "1 track"
        assert format_count(1200, "track") == "1,200 tracks"
        assert format_count(2, "match", "matches") == "2 matches"

    def test_truncate_list(self):
        assert truncate_list([]) == "(none)"
        assert truncate_list(["Yes", "Genesis"]) == "Yes, Genesis"
        assert truncate_list(["a", "b", "c", "d", "e"], max_items=2) == "a, b (+3 more)"


class TestLoggingArgs:
    @pytest.mark.parametrize("argv,expected", [
        ([], 'INFO'),
        (['--debug'], 'DEBUG'),
        (['--quiet'], 'WARNING'),
        (['--log-level', 'ERROR'], 'ERROR'),
        (['--debug', '--quiet'], 'DEBUG'),
    ])
    def test_resolve_log_level(self, argv, expected):
        parser = argparse.ArgumentParser()
        add_logging_args(parser)
        assert resolve_log_level(parser.parse_args(argv)) == expected

    def test_log_file_and_run_id_flags(self):
        parser = argparse.ArgumentParser()
        add_logging_args(parser)
        args = parser.parse_args(['--log-file', 'out.log', '--show-run-id'])
        assert args.log_file == 'out.log'
        assert args.show_run_id is True


class TestRunSummary:
    def test_metrics(self):
        summary = RunSummary("Run")
        summary.increment("provider_failures")
        summary.increment("provider_failures", 2)
        summary.add("matched_tracks", 12)

        assert summary.get("provider_failures") == 3
        assert summary.get("missing") == 0
        assert summary.as_dict() == {"provider_failures": 3, "matched_tracks": 12}

    def test_log_lists_metrics(self, caplog):
        logger = logging.getLogger("similar_artists.test")
        summary = RunSummary("Similar artists run", logger)
        summary.add("matched_tracks", 12)
        summary.add("ratio", 0.5)

        with caplog.at_level(logging.INFO, logger="similar_artists.test"):
            summary.log()

        messages = [r.message for r in caplog.records]
        assert "Similar artists run summary" in messages
        assert "  matched tracks: 12" in messages
        assert "  ratio: 0.50" in messages
        assert any(m.startswith("  elapsed: ") for m in messages)

    def test_header_names_the_run(self):
        logging_utils.set_run_id("abc123")
        assert RunSummary("Similar artists run").lines()[0] == "Similar artists run summary (run abc123)"
