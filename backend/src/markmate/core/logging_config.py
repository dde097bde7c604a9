"""
Structured Logging Configuration
Loguru sinks plus stdlib interception
"""
import sys
import logging
from pathlib import Path
from typing import Optional

from loguru import logger

from .config import Settings

PLAIN_FORMAT = "{time} | {level} | {name}:{function}:{line} | {message}"
COLOR_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)


class InterceptHandler(logging.Handler):
    """Intercept standard logging and redirect to Loguru"""

    def emit(self, record: logging.LogRecord) -> None:
        # Get corresponding Loguru level
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find caller
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


def configure_logging(settings: Settings, sink: Optional[object] = None) -> None:
    """Configure Loguru logging for the worker process"""

    # Remove default logger
    logger.remove()

    json_logs = settings.LOG_JSON_FORMAT and settings.ENVIRONMENT == "production"
    logger.add(
        sink or sys.stdout,
        format=PLAIN_FORMAT if json_logs else COLOR_FORMAT,
        level=settings.LOG_LEVEL,
        serialize=json_logs,
        colorize=not json_logs,
    )

    if settings.LOG_FILE_ENABLED:
        log_dir = Path(settings.LOG_DIR)
        log_dir.mkdir(parents=True, exist_ok=True)
        logger.add(
            str(log_dir / "worker_{time:YYYY-MM-DD}.log"),
            rotation="00:00",  # Rotate daily
            retention="30 days",
            level=settings.LOG_LEVEL,
            format=PLAIN_FORMAT,
            serialize=settings.LOG_JSON_FORMAT,
        )

    # Intercept standard logging
    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)

    for logger_name in ["sqlalchemy.engine", "redis", "selenium"]:
        logging.getLogger(logger_name).handlers = [InterceptHandler()]
    logging.getLogger("selenium").setLevel(logging.WARNING)

    logger.info(f"Logging configured: level={settings.LOG_LEVEL}, json={json_logs}")
