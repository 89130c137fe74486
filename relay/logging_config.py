"""Loguru-based logging configuration.

Provides:
- Colorized console output
- A rotated log file for the gateway
- Intercept handler for standard logging compatibility (uvicorn, httpx)

Level and directory come from RelaySettings (RELAY_LOG_LEVEL, RELAY_LOG_DIR).
"""

import logging
import sys
from pathlib import Path

from loguru import logger

# Track if logging has been configured to avoid duplicate setup
_logging_configured = False


def setup_logging(level: str = "INFO", log_dir: str | Path = "logs") -> None:
    """Configure Loguru logging.

    Sets up:
    - Console output (stderr) with colorized format
    - relay.log file, rotated at 10 MB and retained for 7 days
    """
    global _logging_configured
    if _logging_configured:
        return
    _logging_configured = True

    level = level.upper()
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    # Remove default handler
    logger.remove()

    logger.add(
        sys.stderr,
        level=level,
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
            "<level>{message}</level>"
        ),
        colorize=True,
    )

    logger.add(
        log_path / "relay.log",
        level=level,
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
        rotation="10 MB",
        retention="7 days",
    )


class InterceptHandler(logging.Handler):
    """Intercept standard logging and redirect to Loguru.

    Lets third-party libraries (and the error handlers) that use standard
    logging go through the Loguru sinks.
    """

    def emit(self, record: logging.LogRecord) -> None:
        """Emit a log record by forwarding to Loguru."""
        # Get corresponding Loguru level
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = str(record.levelno)

        # Find caller from where the logged message originated
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def intercept_standard_logging() -> None:
    """Redirect all standard logging to Loguru."""
    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)

    # Suppress noisy third-party loggers
    for name in ["httpx", "httpcore", "uvicorn.access"]:
        logging.getLogger(name).setLevel(logging.WARNING)
