from unittest.mock import MagicMock, patch

import pytest

from sqlagent import cli
from sqlagent.core.config import settings


def test_build_parser_defaults() -> None:
    args = cli.build_parser().parse_args([])
    assert args.host == settings.HOST
    assert args.port == settings.PORT
    assert args.log_level == settings.LOG_LEVEL


def test_build_parser_rejects_unknown_level() -> None:
    with pytest.raises(SystemExit):
        cli.build_parser().parse_args(["--log-level", "chatty"])


@patch("sqlagent.cli.setup_logging")
@patch("sqlagent.cli.uvicorn.run")
def test_main_runs_uvicorn(
    mock_run: MagicMock, mock_setup: MagicMock, monkeypatch: pytest.MonkeyPatch
) -> None:
    for name in ("HOST", "PORT", "LOG_LEVEL"):
        monkeypatch.setattr(settings, name, getattr(settings, name))

    cli.main(["--host", "0.0.0.0", "--port", "8080", "--log-level", "debug"])

    mock_setup.assert_called_once_with("DEBUG")
    mock_run.assert_called_once_with(
        "sqlagent.main:app", host="0.0.0.0", port=8080, log_level="debug"
    )
    assert settings.PORT == 8080
