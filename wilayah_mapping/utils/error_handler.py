"""
Error handling utilities for the wilayah mapping application.

This module provides retry mechanisms for store and file operations and
helpers for logging errors with their severity.
"""

import time
import logging
import functools
from typing import Callable, Any, Optional, List, Dict, Type, Union
from pathlib import Path

from ..exceptions import (
    FileAccessError, StoreUnavailableError, get_error_severity, is_recoverable_error
)


class RetryConfig:
    """Configuration for retry mechanisms."""

    def __init__(self, max_attempts: int = 3, base_delay: float = 1.0,
                 max_delay: float = 60.0, backoff_factor: float = 2.0,
                 retry_exceptions: Optional[List[Type[Exception]]] = None):
        """
        Initialize retry configuration.

        Args:
            max_attempts: Maximum number of retry attempts
            base_delay: Base delay between retries in seconds
            max_delay: Maximum delay between retries in seconds
            backoff_factor: Factor to multiply delay by for exponential backoff
            retry_exceptions: List of exception types to retry on
        """
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.backoff_factor = backoff_factor
        self.retry_exceptions = retry_exceptions or [
            StoreUnavailableError, ConnectionError, TimeoutError
        ]

    def delay_for(self, attempt: int) -> float:
        """Backoff delay before the attempt following ``attempt``."""
        return min(
            self.base_delay * (self.backoff_factor ** (attempt - 1)),
            self.max_delay
        )


def with_retry(retry_config: Optional[RetryConfig] = None,
               logger: Optional[logging.Logger] = None):
    """
    Decorator for adding retry functionality to functions.

    Args:
        retry_config: Configuration for retry behavior
        logger: Optional logger for retry messages

    Returns:
        Decorated function with retry capability
    """
    if retry_config is None:
        retry_config = RetryConfig()

    if logger is None:
        logger = logging.getLogger(__name__)

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            for attempt in range(1, retry_config.max_attempts + 1):
                try:
                    return func(*args, **kwargs)
                except Exception as e:
                    if not any(isinstance(e, exc_type) for exc_type in retry_config.retry_exceptions):
                        logger.debug(f"Exception {type(e).__name__} not in retry list, not retrying")
                        raise

                    if attempt == retry_config.max_attempts:
                        logger.error(f"Function {func.__name__} failed after {retry_config.max_attempts} attempts")
                        raise

                    delay = retry_config.delay_for(attempt)
                    logger.warning(
                        f"Function {func.__name__} failed (attempt {attempt}/{retry_config.max_attempts}): {e}. "
                        f"Retrying in {delay:.2f} seconds"
                    )
                    time.sleep(delay)

        return wrapper
    return decorator


def safe_file_operation(operation: Callable, file_path: Union[str, Path],
                        operation_name: str, retry_config: Optional[RetryConfig] = None,
                        logger: Optional[logging.Logger] = None) -> Any:
    """
    Safely perform file operations with retry and error handling.

    Args:
        operation: Function to perform the file operation
        file_path: Path to the file
        operation_name: Name of the operation for logging
        retry_config: Configuration for retry behavior
        logger: Optional logger instance

    Returns:
        Result of the file operation

    Raises:
        FileAccessError: If the operation fails after all retries
    """
    if logger is None:
        logger = logging.getLogger(__name__)

    if retry_config is None:
        retry_config = RetryConfig()

    file_path = Path(file_path)

    for attempt in range(1, retry_config.max_attempts + 1):
        try:
            logger.debug(f"Attempting {operation_name} on {file_path} (attempt {attempt})")
            return operation()

        except (FileNotFoundError, IsADirectoryError, PermissionError) as e:
            # Retrying will not make a missing file appear
            logger.error(f"{operation_name} failed for {file_path}: {e}")
            raise FileAccessError(
                f"Failed to {operation_name} file: {file_path}",
                file_path=str(file_path),
                operation=operation_name,
                original_error=e
            )

        except OSError as e:
            if attempt == retry_config.max_attempts:
                logger.error(f"{operation_name} failed after {retry_config.max_attempts} attempts: {e}")
                raise FileAccessError(
                    f"Failed to {operation_name} file after {retry_config.max_attempts} attempts",
                    file_path=str(file_path),
                    operation=operation_name,
                    original_error=e
                )

            delay = retry_config.delay_for(attempt)
            logger.warning(f"{operation_name} failed (attempt {attempt}): {e}. Retrying in {delay:.2f} seconds")
            time.sleep(delay)


def log_error_details(logger: logging.Logger, error: Exception,
                      context: Optional[Dict[str, Any]] = None):
    """
    Log detailed error information.

    Args:
        logger: Logger instance to use
        error: Exception to log
        context: Optional context information
    """
    error_details = {
        'error_type': type(error).__name__,
        'error_message': str(error),
        'severity': get_error_severity(error),
        'recoverable': is_recoverable_error(error)
    }

    if hasattr(error, 'to_dict'):
        error_details.update(error.to_dict())

    if context:
        error_details['context'] = context

    severity = error_details.get('severity', 'medium')
    if severity == 'critical':
        logger.critical(f"Critical error occurred: {error_details}")
    elif severity == 'high':
        logger.error(f"High severity error: {error_details}")
    elif severity == 'medium':
        logger.warning(f"Medium severity error: {error_details}")
    else:
        logger.info(f"Low severity error: {error_details}")
