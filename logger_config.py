import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOGGER_NAME = "image_host"
LOG_FILENAME = "image_host.log"


def setup_logger(log_dir: Path = Path("logs"), level: str = "INFO") -> logging.Logger:
    """Attach console and file handlers; a call with a new directory or level replaces them."""
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)

    log_dir = Path(log_dir)
    log_file = (log_dir / LOG_FILENAME).resolve()
    console_level = getattr(logging, level.upper(), logging.INFO)

    if _configured_for(logger, log_file, console_level):
        return logger

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()

    log_dir.mkdir(parents=True, exist_ok=True)

    # Create formatters
    file_formatter = logging.Formatter(
        '%(asctime)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s'
    )
    console_formatter = logging.Formatter(
        '%(asctime)s - %(levelname)s - %(message)s'
    )

    # File handler (for detailed logging)
    file_handler = RotatingFileHandler(log_file, maxBytes=5 * 1024 * 1024, backupCount=3)
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(file_formatter)

    # Console handler (for basic logging)
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(console_formatter)

    logger.addHandler(file_handler)
    logger.addHandler(console_handler)

    return logger


def _configured_for(logger: logging.Logger, log_file: Path, console_level: int) -> bool:
    file_handlers = [h for h in logger.handlers if isinstance(h, RotatingFileHandler)]
    console_handlers = [
        h for h in logger.handlers
        if isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler)
    ]
    return (
        len(file_handlers) == 1
        and Path(file_handlers[0].baseFilename).resolve() == log_file
        and len(console_handlers) == 1
        and console_handlers[0].level == console_level
    )


def get_logger() -> logging.Logger:
    """Logger used by modules that are imported before setup_logger runs."""
    return logging.getLogger(LOGGER_NAME)
