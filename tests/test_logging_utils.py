from __future__ import annotations

import logging
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

from magento_admin_mcp import logging_utils


def _settings(log_file: str | None, level: str = "INFO") -> SimpleNamespace:
    return SimpleNamespace(
        logging=SimpleNamespace(level=level, file=log_file),
    )


@patch("magento_admin_mcp.logging_utils.load_settings")
@patch("magento_admin_mcp.logging_utils.logging.basicConfig")
def test_configure_logging_stream_only(
    mock_basic_config: MagicMock,
    mock_load_settings: MagicMock,
) -> None:
    mock_load_settings.return_value = _settings(None)

    logging_utils.configure_logging()

    kwargs = mock_basic_config.call_args.kwargs
    assert kwargs["force"] is True
    assert kwargs["level"] == logging.INFO
    assert len(kwargs["handlers"]) == 1
    handler = kwargs["handlers"][0]
    assert isinstance(handler, logging.StreamHandler)
    assert handler.formatter._fmt == "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


@patch("magento_admin_mcp.logging_utils.load_settings")
@patch("magento_admin_mcp.logging_utils.logging.basicConfig")
def test_configure_logging_adds_file_handler(
    mock_basic_config: MagicMock,
    mock_load_settings: MagicMock,
    tmp_path: Path,
) -> None:
    log_file = tmp_path / "logs" / "server.log"
    mock_load_settings.return_value = _settings(str(log_file), level="debug")

    logging_utils.configure_logging()

    kwargs = mock_basic_config.call_args.kwargs
    assert kwargs["level"] == logging.DEBUG
    assert len(kwargs["handlers"]) == 2
    assert log_file.parent.is_dir()
    for handler in kwargs["handlers"]:
        handler.close()


@patch("magento_admin_mcp.logging_utils.load_settings")
@patch("magento_admin_mcp.logging_utils.logging.FileHandler", side_effect=OSError("permission denied"))
@patch("magento_admin_mcp.logging_utils._logger")
def test_configure_logging_file_handler_error(
    mock_logger: MagicMock,
    _mock_file_handler: MagicMock,
    mock_load_settings: MagicMock,
    tmp_path: Path,
) -> None:
    mock_load_settings.return_value = _settings(str(tmp_path / "app.log"))

    with patch("magento_admin_mcp.logging_utils.logging.basicConfig"):
        logging_utils.configure_logging()

    mock_logger.warning.assert_called_once()


@patch("magento_admin_mcp.logging_utils.load_settings")
@patch("magento_admin_mcp.logging_utils.logging.basicConfig")
def test_httpx_logger_is_quieted(
    _mock_basic_config: MagicMock,
    mock_load_settings: MagicMock,
) -> None:
    mock_load_settings.return_value = _settings(None)
    logging_utils.configure_logging()
    assert logging.getLogger("httpx").level == logging.WARNING


def test_get_logger_auto_configures(monkeypatch) -> None:
    monkeypatch.setattr(logging_utils, "_logging_configured", False)

    calls = {"count": 0}

    def fake_configure() -> None:
        calls["count"] += 1
        monkeypatch.setattr(logging_utils, "_logging_configured", True)

    monkeypatch.setattr(logging_utils, "configure_logging", fake_configure)

    logger = logging_utils.get_logger("test.logger")
    assert logger.name == "test.logger"
    logging_utils.get_logger("test.other")
    assert calls["count"] == 1
