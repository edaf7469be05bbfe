"""
Logger Module
Centralized logging using Loguru
"""

import sys
from pathlib import Path
from loguru import logger as _logger


def setup_logger(
    level: str = "INFO",
    log_file: str = "./logs/engine.log",
    max_size: int = 10,
    backup_count: int = 5,
    console: bool = True,
    colorize: bool = True
) -> None:
    """Setup logger with file and console handlers"""

    # Remove default handler
    _logger.remove()
    _logger.configure(extra={"component": "engine"})

    # Create logs directory if not exists
    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    # Console handler
    if console:
        _logger.add(
            sys.stdout,
            level=level,
            format="<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | <magenta>{extra[component]}</magenta> | <cyan>{module}</cyan>:<cyan>{function}</cyan> | <level>{message}</level>",
            colorize=colorize
        )

    # File handler with rotation
    _logger.add(
        log_file,
        level=level,
        format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {extra[component]} | {module}:{function} | {message}",
        rotation=f"{max_size} MB",
        retention=backup_count,
        encoding="utf-8"
    )


def get_logger(component: str):
    """Logger bound to a component name"""
    return _logger.bind(component=component)


# Export logger instance
_logger.configure(extra={"component": "engine"})
logger = _logger
