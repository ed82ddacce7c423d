import logging
import pathlib

from pprofhub.utils.config import get_settings
from pprofhub.utils.logger import PACKAGE_LOGGER, get_logger


def test_component_loggers_share_package_handlers():
    api = get_logger("API")
    cli = get_logger("PprofCli")
    package = logging.getLogger(PACKAGE_LOGGER)

    assert api.name == "pprofhub.API"
    assert api.parent is package and cli.parent is package
    assert api.handlers == [] and cli.handlers == []
    assert len(package.handlers) == 2

    # repeated lookups do not stack handlers
    get_logger("API")
    assert len(package.handlers) == 2


def test_component_messages_reach_package_log_file():
    get_logger("Storage").info("created profile 42")
    for handler in logging.getLogger(PACKAGE_LOGGER).handlers:
        handler.flush()

    log_file = pathlib.Path(get_settings().log_dir) / "pprofhub.log"
    lines = log_file.read_text(encoding="utf-8").splitlines()
    assert any("INFO pprofhub.Storage - created profile 42" in line for line in lines)
