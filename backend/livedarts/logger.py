import logging
from pathlib import Path

_LOGGERS = {}
_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def get_logger(name: str) -> logging.Logger:
    """
    Create or retrieve a named logger.

    Parameters:
    - name: logger namespace (e.g. scoring.game, sync.synchronizer)

    Level and optional log file come from Settings (LIVEDARTS_LOG_LEVEL,
    LIVEDARTS_LOG_FILE).
    """
    if name in _LOGGERS:
        return _LOGGERS[name]

    from livedarts.config import get_settings

    settings = get_settings()
    logger = logging.getLogger(f"livedarts.{name}")
    logger.setLevel(settings.log_level)

    formatter = logging.Formatter(_FORMAT)

    console = logging.StreamHandler()
    console.setFormatter(formatter)
    logger.addHandler(console)

    if settings.log_file:
        path = Path(settings.log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.propagate = False
    _LOGGERS[name] = logger

    return logger
