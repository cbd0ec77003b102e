"""
Comprehensive logging system using structlog.
Provides structured logging with different output formats and levels.
"""

import logging
import sys
from pathlib import Path
from typing import Optional, Union
import structlog
from structlog.stdlib import LoggerFactory


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "json",
    log_file: Optional[Union[str, Path]] = None,
    debug: bool = False
) -> None:
    """
    Set up structured logging with configurable output formats.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Output format (json or console)
        log_file: Optional log file path
        debug: Enable debug mode for more verbose logging
    """

    # Configure standard library logging
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
    )

    # Configure structlog processors
    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if debug:
        processors.append(structlog.processors.CallsiteParameterAdder())

    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    # Set up file logging if specified
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path)
        file_handler.setLevel(getattr(logging, log_level.upper()))
        file_handler.setFormatter(logging.Formatter('%(message)s'))

        logging.getLogger().addHandler(file_handler)

    logger = structlog.get_logger(__name__)
    logger.info(
        "Logging system initialized",
        level=log_level,
        format=log_format,
        file=str(log_file) if log_file else None,
        debug=debug
    )


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)


class AuditLogger:
    """
    Records catalog mutations and refused mutations with bound context.
    """

    def __init__(self, name: str = "catalog.audit"):
        self.logger = structlog.get_logger(name)
        self.context = {}

    def bind_context(self, **kwargs) -> 'AuditLogger':
        """
        Bind context variables to the logger.

        Args:
            **kwargs: Context variables to bind

        Returns:
            Self for method chaining
        """
        self.context.update(kwargs)
        return self

    def clear_context(self) -> 'AuditLogger':
        """Clear all context variables."""
        self.context.clear()
        return self

    def log_book_created(self, book_id: str, user_id: str, title: str) -> None:
        self.logger.info("Book created", book_id=book_id, user_id=user_id, title=title, **self.context)

    def log_book_updated(self, book_id: str, user_id: str) -> None:
        self.logger.info("Book updated", book_id=book_id, user_id=user_id, **self.context)

    def log_book_deleted(self, book_id: str, user_id: str, reviews_removed: int) -> None:
        """Log a book removal together with the size of its review cascade."""
        self.logger.info(
            "Book deleted",
            book_id=book_id,
            user_id=user_id,
            reviews_removed=reviews_removed,
            **self.context
        )

    def log_review_created(self, review_id: str, book_id: str, user_id: str, rating: int) -> None:
        self.logger.info(
            "Review created",
            review_id=review_id,
            book_id=book_id,
            user_id=user_id,
            rating=rating,
            **self.context
        )

    def log_review_updated(self, review_id: str, user_id: str) -> None:
        self.logger.info("Review updated", review_id=review_id, user_id=user_id, **self.context)

    def log_review_deleted(self, review_id: str, user_id: str) -> None:
        self.logger.info("Review deleted", review_id=review_id, user_id=user_id, **self.context)

    def log_ownership_denied(self, resource: str, resource_id: str, user_id: str, action: str) -> None:
        """Log a mutation refused because the acting user is not the owner."""
        self.logger.warning(
            "Ownership check failed",
            resource=resource,
            resource_id=resource_id,
            user_id=user_id,
            action=action,
            **self.context
        )

    def log_duplicate_review(self, book_id: str, user_id: str) -> None:
        self.logger.warning("Duplicate review rejected", book_id=book_id, user_id=user_id, **self.context)
