"""
logging_config.py

Centralized logging configuration for the solana_deploy_finder project.
"""

import logging
import logging.config
from pathlib import Path
from datetime import datetime
from rich.console import Console

# Console logs share stderr with error messages; stdout carries the result.
STDERR_CONSOLE = Console(stderr=True, soft_wrap=True)


def setup_logging(
    console_log_level: str | int = 'WARNING',
    file_log_level: str | int = 'DEBUG',
    log_dir: Path | str | None = None
) -> Path | None:
    """
    Configures logging for the entire application.

    Console output goes through rich's RichHandler on stderr so stdout stays
    reserved for the resolved timestamp. A rotating file log is only written
    when log_dir is given.

    Returns:
        The log file path, or None when file logging is disabled.
    """
    if isinstance(console_log_level, int):
        console_log_level = logging.getLevelName(console_log_level)
    if isinstance(file_log_level, int):
        file_log_level = logging.getLevelName(file_log_level)

    handlers = {
        'console': {
            'class': 'rich.logging.RichHandler',
            'level': console_log_level.upper(),
            'formatter': 'console_formatter',
            'console': 'ext://solana_deploy_finder.auto_config.logging_config.STDERR_CONSOLE',
            'show_path': False,
        },
    }
    root_handlers = ['console']

    log_filename = None
    if log_dir is not None:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
        log_filename = log_path / f"solana_deploy_finder_{timestamp}.log"
        handlers['file'] = {
            'class': 'logging.handlers.RotatingFileHandler',
            'level': file_log_level.upper(),
            'formatter': 'file_formatter',
            'filename': log_filename,
            'maxBytes': 10*1024*1024,
            'backupCount': 5,
            'encoding': 'utf-8',
        }
        root_handlers.append('file')

    LOGGING_CONFIG = {
        'version': 1,
        'disable_existing_loggers': False,
        'formatters': {
            'file_formatter': {
                'format': '%(asctime)s - %(name)s - %(levelname)s - %(module)s.%(funcName)s:%(lineno)d - %(message)s',
            },
            'console_formatter': {
                'format': '%(message)s',
            },
        },
        'handlers': handlers,
        'root': {
            'level': 'DEBUG',  # Let all messages pass to handlers
            'handlers': root_handlers,
        },
    }

    logging.config.dictConfig(LOGGING_CONFIG)
    if log_filename:
        logging.getLogger(__name__).info(f"Logging configured. Log file at: {log_filename}")
    return log_filename


def verbosity_to_level(verbosity: int, default: int = logging.WARNING) -> int:
    """Map a repeated -v count onto a console log level."""
    if verbosity >= 2:
        return logging.DEBUG
    if verbosity == 1:
        return min(default, logging.INFO)
    return default
