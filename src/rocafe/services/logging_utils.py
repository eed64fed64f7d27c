"""Service layer logging utilities.

Provides structured logging functions for service operations, enabling
consistent log format and context across cost, recipe and backup services.

Usage:
    from rocafe.services.logging_utils import get_service_logger, log_operation

    logger = get_service_logger(__name__)

    log_operation(
        logger,
        operation="resolve_cost",
        outcome="success",
        recipe_id=45,
        total_cost="12.50",
    )
"""

import logging
from typing import Any


def get_service_logger(name: str) -> logging.Logger:
    """
    Get a logger configured for service operations.

    Args:
        name: Logger name (typically __name__ of the calling module)

    Returns:
        Logger under the 'rocafe.services' prefix.

    Example:
        >>> logger = get_service_logger(__name__)
        >>> logger.name
        'rocafe.services.cost_service'
    """
    if "." in name:
        name = name.split(".")[-1]
    return logging.getLogger(f"rocafe.services.{name}")


def log_operation(
    logger: logging.Logger,
    operation: str,
    outcome: str,
    level: int = logging.INFO,
    **context: Any,
) -> None:
    """
    Log a service operation with structured context.

    The context is passed via the 'extra' parameter for structured logging
    and also appended to the message so plain-text handlers show it.

    Args:
        logger: Logger instance to use
        operation: Operation name (e.g., "resolve_cost", "restore")
        outcome: Outcome description (e.g., "success", "circular_reference")
        level: Log level (default: INFO)
        **context: Additional context fields (entity IDs, paths, error details)
    """
    extra = {
        "operation": operation,
        "outcome": outcome,
        **context,
    }
    details = ", ".join(f"{key}={value}" for key, value in context.items())
    message = f"{operation}: {outcome}"
    if details:
        message = f"{message} ({details})"
    logger.log(level, message, extra=extra)
