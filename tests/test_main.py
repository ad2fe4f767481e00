"""Tests for push_relay.main entry point."""

from __future__ import annotations

from unittest.mock import patch

import pytest


def test_main_calls_uvicorn_run() -> None:
    """Verify that main() delegates to uvicorn.run with expected args."""
    with patch("push_relay.main.uvicorn.run") as mock_run:
        from push_relay.main import main

        main()
        mock_run.assert_called_once()
        call_kwargs = mock_run.call_args
        assert call_kwargs[0][0] == "push_relay.api.app:create_app"
        assert call_kwargs[1]["factory"] is True
        assert call_kwargs[1]["port"] == 4701
        assert call_kwargs[1]["log_level"] == "info"


def test_debug_forces_debug_log_level(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PUSHRELAY_DEBUG", "true")
    monkeypatch.setenv("PUSHRELAY_SERVER__LOG_LEVEL", "warning")
    with patch("push_relay.main.uvicorn.run") as mock_run:
        from push_relay.main import main

        main()
        assert mock_run.call_args[1]["log_level"] == "debug"
