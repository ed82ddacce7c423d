import logging, pathlib, sys
from .config import get_settings

PACKAGE_LOGGER = "pprofhub"
_FORMAT = "%(asctime)s %(levelname)s %(name)s - %(message)s"


def _configure_package_logger() -> logging.Logger:
    """Attach the shared file and stdout handlers to the package logger, once."""
    root = logging.getLogger(PACKAGE_LOGGER)
    if root.handlers:
        return root
    settings = get_settings()
    log_dir = pathlib.Path(settings.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    root.setLevel(settings.log_level.upper())
    fmt = logging.Formatter(_FORMAT)
    for handler in (logging.FileHandler(log_dir / f"{PACKAGE_LOGGER}.log", encoding="utf-8"),
                    logging.StreamHandler(sys.stdout)):
        handler.setFormatter(fmt)
        root.addHandler(handler)
    return root


def get_logger(name: str) -> logging.Logger:
    """Component logger, e.g. get_logger("API") -> `pprofhub.API`."""
    _configure_package_logger()
    return logging.getLogger(f"{PACKAGE_LOGGER}.{name}")
