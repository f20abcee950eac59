"""
Unit tests for run.py -- CLI parsing, config overrides and exit codes.
"""

from unittest.mock import AsyncMock, patch

import pytest

from config import Config
import run


class TestParseArgs:
    def test_defaults_are_none(self):
        args = run.parse_args([])
        assert args.url is None
        assert args.pull_interval_ms is None
        assert args.win is None
        assert args.json_log is None

    def test_flags(self):
        args = run.parse_args(["--url", "ws://x", "--pull-interval-ms", "250", "--win", "3"])
        assert args.url == "ws://x"
        assert args.pull_interval_ms == 250
        assert args.win == 3


class TestApplyOverrides:
    def test_no_flags_returns_same_config(self):
        cfg = Config(_env_file=None)
        assert run.apply_overrides(cfg, run.parse_args([])) is cfg

    def test_flags_override_config(self):
        cfg = Config(ws_url="ws://env", pull_interval_ms=1000)
        out = run.apply_overrides(cfg, run.parse_args(["--url", "ws://cli", "--log-level", "DEBUG"]))
        assert out.ws_url == "ws://cli"
        assert out.pull_interval_ms == 1000
        assert out.log_level == "DEBUG"

    def test_invalid_override_is_validated(self):
        from pydantic import ValidationError
        cfg = Config()
        with pytest.raises(ValidationError):
            run.apply_overrides(cfg, run.parse_args(["--pull-interval-ms", "0"]))


class TestMain:
    def test_invalid_config_exits_failure(self):
        assert run.main(["--pull-interval-ms", "-5"]) == 2

    def test_invalid_log_level_exits_failure(self):
        assert run.main(["--log-level", "chatty"]) == 2

    @patch("run.setup_logging", return_value="logs/run_test.log")
    @patch("run.run_client", new_callable=AsyncMock)
    def test_returns_client_exit_code(self, mock_run_client, mock_setup):
        mock_run_client.return_value = 1
        assert run.main(["--url", "ws://localhost:1"]) == 1
        cfg = mock_run_client.call_args.args[0]
        assert cfg.ws_url == "ws://localhost:1"

    @patch("run.setup_logging", return_value="logs/run_test.log")
    @patch("run.run_client", new_callable=AsyncMock)
    def test_win_flag_accepted_and_inert(self, mock_run_client, mock_setup):
        mock_run_client.return_value = 0
        assert run.main(["--win", "42"]) == 0
        assert mock_run_client.call_args.args[0].win == 42
