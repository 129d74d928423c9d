import logging
import sys
from datetime import datetime
from pathlib import Path

from league_arc.config import Config

PACKAGE_LOGGER = 'league_arc'


def _configure_package_logger() -> logging.Logger:
    """Attach console and dated file handlers to the package logger once"""
    root = logging.getLogger(PACKAGE_LOGGER)
    if root.handlers:
        return root

    log_level = logging.DEBUG if Config.DEBUG else logging.INFO
    root.setLevel(log_level)
    # Module loggers propagate here; stop again before the root logger
    root.propagate = False

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    # Console output goes to stderr so CLI tables on stdout stay clean
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    root.addHandler(console_handler)

    log_dir = Path(Config.LOG_DIR)
    log_dir.mkdir(parents=True, exist_ok=True)

    file_handler = logging.FileHandler(
        log_dir / f'league_arc_{datetime.now().strftime("%Y%m%d")}.log',
        encoding='utf-8'
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(formatter)
    root.addHandler(file_handler)

    return root


def setup_logger(name: str) -> logging.Logger:
    """
    Logger for a module of the package.

    Handlers live on the ``league_arc`` logger only, so every module logger
    (including plain ``logging.getLogger(__name__)`` ones) emits each record
    exactly once no matter how often this is called.
    """
    _configure_package_logger()
    return logging.getLogger(name)
