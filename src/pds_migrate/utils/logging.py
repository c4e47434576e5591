"""Logging utilities for PDS Migration Tool."""

import re
import sys
from pathlib import Path
from typing import Optional

from loguru import logger

# Access, refresh and service tokens are JWTs; never write them to a sink.
_JWT_PATTERN = re.compile(r'eyJ[\w-]+\.[\w-]+\.[\w-]+')


def _redact_tokens(record) -> None:
    record['message'] = _JWT_PATTERN.sub('[redacted]', record['message'])


def setup_logging(
    level: str = 'INFO',
    log_file: Optional[str] = None,
    log_format: Optional[str] = None,
) -> None:
    """Setup logging configuration using loguru.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional log file path
        log_format: Optional custom log format
    """
    # Remove default handler
    logger.remove()
    logger.configure(patcher=_redact_tokens, extra={'component': 'pds-migrate'})

    if log_format is None:
        log_format = (
            '<green>{time:YYYY-MM-DD HH:mm:ss}</green> | '
            '<level>{level: <8}</level> | '
            '<cyan>{extra[component]}</cyan> | '
            '<level>{message}</level>'
        )

    logger.add(
        sys.stderr,
        format=log_format,
        level=level,
        colorize=True,
        backtrace=True,
        diagnose=False,
    )

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_format = (
            '{time:YYYY-MM-DD HH:mm:ss} | '
            '{level: <8} | '
            '{extra[component]} | '
            '{name}:{function}:{line} | '
            '{message}'
        )

        logger.add(
            log_file,
            format=file_format,
            level=level,
            rotation='10 MB',
            retention='30 days',
            compression='gz',
            backtrace=True,
            diagnose=False,
        )

    logger.debug(f'Logging initialized with level: {level}')
    if log_file:
        logger.info(f'Log file: {log_file}')


def get_logger(component: str):
    """Get a logger bound to a component name.

    Args:
        component: Component name shown in log lines

    Returns:
        Logger instance
    """
    return logger.bind(component=component)
