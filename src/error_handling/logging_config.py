"""
Centralized logging configuration for the booking flow engine.

This module configures loguru for structured logging with different
levels and formats for development vs production.
"""
import sys
from pathlib import Path
from typing import Optional
from loguru import logger


def configure_logging(
    log_level: str = "INFO",
    log_to_file: bool = True,
    log_dir: str = "logs",
    rotation: str = "100 MB",
    retention: str = "30 days",
    format_type: str = "detailed"
) -> None:
    """
    Configure loguru logging for the application.

    Args:
        log_level: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_to_file: Whether to log to files in addition to console
        log_dir: Directory for log files
        rotation: When to rotate log files (e.g., "100 MB", "1 day")
        retention: How long to keep old log files
        format_type: Format style ("simple", "detailed", "json")
    """
    logger.remove()

    if format_type == "simple":
        format_string = "<level>{level: <8}</level> | <level>{message}</level>"
    elif format_type == "json":
        format_string = "{message}"
    else:  # detailed
        format_string = (
            "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
            "<level>{message}</level>"
        )

    logger.add(
        sys.stderr,
        format=format_string,
        level=log_level,
        colorize=format_type != "json",
        serialize=format_type == "json",
        backtrace=True,
        diagnose=False
    )

    if log_to_file:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)

        logger.add(
            log_path / "booking_flow_{time:YYYY-MM-DD}.log",
            format=format_string,
            level=log_level,
            rotation=rotation,
            retention=retention,
            compression="zip",
            backtrace=True,
            diagnose=False
        )

        logger.add(
            log_path / "errors_{time:YYYY-MM-DD}.log",
            format=format_string,
            level="ERROR",
            rotation=rotation,
            retention=retention,
            compression="zip",
            backtrace=True,
            diagnose=False
        )

        # Audit trail of completed and failed bookings
        logger.add(
            log_path / "bookings_{time:YYYY-MM-DD}.log",
            format=format_string,
            level="INFO",
            rotation="1 day",
            retention="1 year",
            compression="zip",
            filter=lambda record: "BOOKING" in record["extra"].get("category", "")
        )

    logger.info(
        f"Logging configured: level={log_level}, "
        f"file_logging={log_to_file}, "
        f"format={format_type}"
    )


def log_booking_event(
    event_type: str,
    session_id: Optional[str] = None,
    event_id: Optional[str] = None,
    details: Optional[dict] = None
) -> None:
    """
    Log a booking outcome for the audit trail.

    Args:
        event_type: Type of event (e.g., "CONFIRMED", "FAILED")
        session_id: Flow session identifier
        event_id: Provider event identifier, when the booking succeeded
        details: Additional event details
    """
    details = details or {}

    logger.bind(category="BOOKING").info(
        f"BOOKING {event_type} | "
        f"session={session_id} | "
        f"event_id={event_id} | "
        f"details={details}"
    )


def log_flow_event(
    event_type: str,
    session_id: Optional[str] = None,
    phase: Optional[str] = None,
    details: Optional[dict] = None
) -> None:
    """
    Log a flow lifecycle event.

    Args:
        event_type: Type of event (e.g., "STARTED", "PHASE_CHANGE", "ABANDONED")
        session_id: Flow session identifier
        phase: Session phase at the time of the event
        details: Additional event details
    """
    details = details or {}

    logger.bind(category="FLOW").info(
        f"FLOW {event_type} | "
        f"session={session_id} | "
        f"phase={phase} | "
        f"details={details}"
    )


class LogContext:
    """
    Context manager for adding context to all logs within a block.

    Example:
        with LogContext(session_id="flow_123", phase="form"):
            logger.info("Processing step click")
    """

    def __init__(self, **context):
        self.context = context
        self.token = None

    def __enter__(self):
        self.token = logger.contextualize(**self.context)
        self.token.__enter__()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.token:
            self.token.__exit__(exc_type, exc_val, exc_tb)


def init_logging(environment: str = "development", log_level: Optional[str] = None) -> None:
    """
    Initialize logging with environment-specific settings.

    Args:
        environment: Environment name ("development", "production", "test")
        log_level: Overrides the profile's minimum level when given
    """
    if environment == "production":
        configure_logging(
            log_level=log_level or "INFO",
            log_to_file=True,
            format_type="json",
            rotation="100 MB",
            retention="90 days"
        )
    elif environment == "test":
        configure_logging(
            log_level=log_level or "WARNING",
            log_to_file=False,
            format_type="simple"
        )
    else:  # development
        configure_logging(
            log_level=log_level or "DEBUG",
            log_to_file=True,
            format_type="detailed",
            rotation="50 MB",
            retention="7 days"
        )

    logger.info(f"Logging initialized for {environment} environment")
