import logging

from zx_scr_converter import config
from zx_scr_converter.config import Settings, configure_logging


def test_settings_from_env(monkeypatch) -> None:
    monkeypatch.setenv("ZXSCR_PALETTE", "pulsar")
    monkeypatch.setenv("ZXSCR_DISTANCE", "RGB")
    monkeypatch.setenv("ZXSCR_DITHER", "Atkinson")
    monkeypatch.setenv("ZXSCR_LOG_LEVEL", "debug")
    settings = Settings.from_env()
    assert settings.palette == "pulsar"
    assert settings.distance == "rgb"
    assert settings.dither == "atkinson"
    assert settings.log_level == "DEBUG"


def test_settings_defaults(monkeypatch) -> None:
    for name in ("ZXSCR_PALETTE", "ZXSCR_DISTANCE", "ZXSCR_DITHER", "ZXSCR_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    settings = Settings.from_env()
    assert settings == Settings(palette="default", distance="lab", dither="floyd-steinberg", log_level="WARNING")


def test_configure_logging_returns_package_logger() -> None:
    logger = configure_logging("INFO")
    assert isinstance(logger, logging.Logger)
    assert logger.name == "zx_scr_converter"


def test_module_documents_environment() -> None:
    assert "ZXSCR_" in config.__doc__
