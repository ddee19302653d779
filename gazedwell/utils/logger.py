"""
Logging for the gaze dwell pipeline

Everything logs under the ``gazedwell`` logger tree (modules use
``logging.getLogger(__name__)``). The server and the replay CLI configure the
root of that tree once from the ``logging`` config section.
"""

import logging
import sys
from pathlib import Path
from datetime import datetime
from typing import Any, Dict, Optional


ROOT_LOGGER = "gazedwell"

FILE_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s'
FILE_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'
CONSOLE_FORMAT = '%(levelname)s: %(message)s'


def _log_path(log_dir: Optional[str], log_file: Optional[str]) -> Path:
    directory = Path(log_dir) if log_dir else Path("logs")
    directory.mkdir(parents=True, exist_ok=True)
    if not log_file:
        log_file = f"{ROOT_LOGGER}_{datetime.now():%Y%m%d}.log"
    return directory / log_file


def setup_logger(
    name: str = ROOT_LOGGER,
    log_level: str = "INFO",
    log_dir: Optional[str] = None,
    log_file: Optional[str] = None,
    console_output: bool = True
) -> logging.Logger:
    """
    (Re)configure a logger's handlers.

    Console output goes to stdout at INFO and above. A DEBUG file handler is
    added only when ``log_dir`` or ``log_file`` is given; a bare ``log_file``
    lands in ``logs/``. Handlers from a previous call are closed first, so
    reconfiguring never leaks open log files.

    Args:
        name: Logger name (child loggers such as ``gazedwell.tracking`` inherit it)
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL (case-insensitive)
        log_dir: Directory for log files
        log_file: Log file name (default: 'gazedwell_YYYYMMDD.log')
        console_output: Whether to log to the console
    """
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    if console_output:
        console = logging.StreamHandler(sys.stdout)
        console.setLevel(logging.INFO)
        console.setFormatter(logging.Formatter(CONSOLE_FORMAT))
        logger.addHandler(console)

    if log_dir or log_file:
        path = _log_path(log_dir, log_file)
        file_handler = logging.FileHandler(path, mode='a', encoding='utf-8')
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=FILE_DATE_FORMAT))
        logger.addHandler(file_handler)
        logger.info(f"Logging to file: {path}")

    return logger


def configure_logging(log_cfg: Optional[Dict[str, Any]] = None,
                      default_log_dir: Optional[str] = None) -> logging.Logger:
    """
    Set up the ``gazedwell`` logger from the ``logging`` config section

    Keys: ``level``, ``log_directory``, ``log_file``, ``console``. File
    logging is off unless a directory or file is given (``default_log_dir``
    applies when the section names neither).
    """
    log_cfg = log_cfg or {}
    return setup_logger(
        name=ROOT_LOGGER,
        log_level=str(log_cfg.get('level', 'INFO')),
        log_dir=log_cfg.get('log_directory', default_log_dir),
        log_file=log_cfg.get('log_file', None),
        console_output=bool(log_cfg.get('console', True)),
    )
