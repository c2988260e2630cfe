"""Structured logging configuration for the todo service."""

import logging
import logging.handlers
import sys
import time

from ..config import Settings


class ColoredFormatter(logging.Formatter):
    """Custom formatter with color support for console output."""

    # ANSI color codes
    COLORS = {
        'DEBUG': '\033[36m',      # Cyan
        'INFO': '\033[32m',       # Green
        'WARNING': '\033[33m',    # Yellow
        'ERROR': '\033[31m',      # Red
        'CRITICAL': '\033[35m',   # Magenta
        'RESET': '\033[0m'        # Reset
    }

    def format(self, record):
        """Format log record with colors for console output."""
        levelname = record.levelname
        if levelname in self.COLORS:
            record.levelname = f"{self.COLORS[levelname]}{levelname}{self.COLORS['RESET']}"

        try:
            return super().format(record)
        finally:
            # Other handlers share the record
            record.levelname = levelname


def setup_logging(settings: Settings) -> None:
    """Setup structured logging for the application.

    Args:
        settings: Application settings containing logging configuration
    """
    level = getattr(logging, settings.log_level.upper())

    # Configure root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Clear any existing handlers
    root_logger.handlers.clear()

    # Console handler with colors
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)

    console_formatter = ColoredFormatter(
        fmt='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    console_handler.setFormatter(console_formatter)
    root_logger.addHandler(console_handler)

    if settings.log_to_file:
        log_dir = settings.log_dir
        log_dir.mkdir(parents=True, exist_ok=True)

        file_formatter = logging.Formatter(
            fmt='%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

        # File handler for all logs
        file_handler = logging.handlers.RotatingFileHandler(
            filename=log_dir / "app.log",
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5,
            encoding='utf-8'
        )
        file_handler.setLevel(logging.DEBUG)  # Always log everything to file
        file_handler.setFormatter(file_formatter)
        root_logger.addHandler(file_handler)

        # Error file handler for errors and above
        error_handler = logging.handlers.RotatingFileHandler(
            filename=log_dir / "error.log",
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5,
            encoding='utf-8'
        )
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(file_formatter)
        root_logger.addHandler(error_handler)

    # Configure specific loggers
    configure_module_loggers(settings)

    logger = logging.getLogger(__name__)
    logger.info(f"Logging configured with level: {settings.log_level.upper()}")
    if settings.log_to_file:
        logger.info(f"Log files will be written to: {settings.log_dir.absolute()}")


def configure_module_loggers(settings: Settings) -> None:
    """Configure logging levels for specific modules.

    Args:
        settings: Application settings
    """
    level = getattr(logging, settings.log_level.upper())

    # Application modules
    app_loggers = [
        'todo_service.main',
        'todo_service.routes',
        'todo_service.services',
        'todo_service.utils',
    ]

    for logger_name in app_loggers:
        logging.getLogger(logger_name).setLevel(level)

    # Third-party library loggers
    third_party_loggers = {
        'uvicorn': logging.INFO,
        'uvicorn.access': logging.WARNING,
        'fastapi': logging.INFO,
        'httpx': logging.WARNING,
    }

    for logger_name, third_party_level in third_party_loggers.items():
        logging.getLogger(logger_name).setLevel(third_party_level)

    # Suppress overly verbose loggers in production
    if settings.environment == "production":
        for logger_name in ['uvicorn.access', 'httpx']:
            logging.getLogger(logger_name).setLevel(logging.ERROR)


def configure_request_logging():
    """Configure request/response logging for FastAPI."""
    from fastapi import Request

    async def log_requests(request: Request, call_next):
        """Middleware to log HTTP requests and responses."""
        logger = logging.getLogger("todo_service.middleware.requests")

        start_time = time.time()
        logger.info(
            f"Request started: {request.method} {request.url} "
            f"from {request.client.host if request.client else 'unknown'}"
        )

        response = await call_next(request)

        process_time = time.time() - start_time
        logger.info(
            f"Request completed: {request.method} {request.url} "
            f"-> {response.status_code} in {process_time:.3f}s"
        )

        return response

    return log_requests


def log_startup_info(settings: Settings):
    """Log application startup information.

    Args:
        settings: Application settings
    """
    logger = logging.getLogger("todo_service.startup")

    logger.info("=" * 60)
    logger.info("Todo Service Starting")
    logger.info("=" * 60)
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"Log Level: {settings.log_level.upper()}")
    logger.info(f"Storage Backend: {settings.storage_backend}")
    if settings.storage_backend == "file":
        logger.info(f"Storage File: {settings.storage_path}")
    logger.info(f"Storage Key: {settings.storage_key}")
    logger.info(f"Priorities: {', '.join(settings.priorities)}")
    logger.info(f"Categories: {', '.join(settings.categories) if settings.categories else 'free-form'}")
    logger.info("=" * 60)


def log_shutdown_info():
    """Log application shutdown information."""
    logger = logging.getLogger("todo_service.shutdown")

    logger.info("=" * 60)
    logger.info("Todo Service Shutting Down")
    logger.info("=" * 60)


# Context manager for timing operations
class TimedOperation:
    """Context manager for timing operations."""

    def __init__(self, operation_name: str, logger_name: str = __name__):
        """Initialize timed operation.

        Args:
            operation_name: Name of the operation
            logger_name: Logger name to use
        """
        self.operation_name = operation_name
        self.logger = logging.getLogger(logger_name)
        self.start_time = None

    def __enter__(self):
        """Start timing."""
        self.start_time = time.time()
        self.logger.debug(f"Starting operation: {self.operation_name}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """End timing and log result."""
        duration = time.time() - self.start_time

        if exc_type is None:
            self.logger.debug(f"Operation completed: {self.operation_name} in {duration:.3f}s")
        else:
            self.logger.error(f"Operation failed: {self.operation_name} after {duration:.3f}s")


__all__ = [
    'setup_logging',
    'configure_request_logging',
    'log_startup_info',
    'log_shutdown_info',
    'TimedOperation',
]
