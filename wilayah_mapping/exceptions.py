"""
Custom exception classes for the wilayah mapping application.

This module defines custom exception classes for the different failures that
can occur while deriving region codes, loading source files and talking to
the geometry store, together with helpers to classify them.
"""

from typing import Optional, List, Dict, Any


class WilayahMappingError(Exception):
    """Base exception class for all wilayah mapping errors."""

    def __init__(self, message: str, error_code: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None):
        """
        Initialize the base mapping error.

        Args:
            message: Human-readable error message
            error_code: Optional error code for programmatic handling
            context: Optional context information about the error
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.context = context or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            'error_type': self.__class__.__name__,
            'message': self.message,
            'error_code': self.error_code,
            'context': self.context
        }


class ValidationError(WilayahMappingError):
    """Exception raised for invalid input values (identifiers, levels, tags)."""

    def __init__(self, message: str, field_name: Optional[str] = None,
                 invalid_value: Any = None, validation_rules: Optional[List[str]] = None):
        """
        Initialize validation error.

        Args:
            message: Human-readable error message
            field_name: Name of the field that failed validation
            invalid_value: The invalid value that caused the error
            validation_rules: List of validation rules that were violated
        """
        context = {
            'field_name': field_name,
            'invalid_value': str(invalid_value) if invalid_value is not None else None,
            'validation_rules': validation_rules or []
        }
        super().__init__(message, error_code='VALIDATION_ERROR', context=context)
        self.field_name = field_name
        self.invalid_value = invalid_value
        self.validation_rules = validation_rules or []


class ConfigurationError(WilayahMappingError):
    """Exception raised for configuration errors."""

    def __init__(self, message: str, config_key: Optional[str] = None,
                 config_value: Any = None, valid_values: Optional[List[Any]] = None):
        """
        Initialize configuration error.

        Args:
            message: Human-readable error message
            config_key: Configuration key that has invalid value
            config_value: Invalid configuration value
            valid_values: List of valid values for the configuration key
        """
        context = {
            'config_key': config_key,
            'config_value': str(config_value) if config_value is not None else None,
            'valid_values': [str(v) for v in valid_values] if valid_values else None
        }
        super().__init__(message, error_code='CONFIGURATION_ERROR', context=context)
        self.config_key = config_key
        self.config_value = config_value
        self.valid_values = valid_values or []


class DataLoadError(WilayahMappingError):
    """Exception raised when a boundary source file cannot be parsed."""

    def __init__(self, message: str, file_path: Optional[str] = None,
                 original_error: Optional[Exception] = None):
        """
        Initialize data load error.

        Args:
            message: Human-readable error message
            file_path: Path to the file that caused the error
            original_error: Original exception that caused this error
        """
        context = {
            'file_path': file_path,
            'original_error': str(original_error) if original_error else None,
            'original_error_type': type(original_error).__name__ if original_error else None
        }
        super().__init__(message, error_code='DATA_LOAD_ERROR', context=context)
        self.file_path = file_path
        self.original_error = original_error


class FileAccessError(WilayahMappingError):
    """Exception raised for file access and I/O errors."""

    def __init__(self, message: str, file_path: str, operation: str,
                 original_error: Optional[Exception] = None):
        """
        Initialize file access error.

        Args:
            message: Human-readable error message
            file_path: Path to the file that caused the error
            operation: Type of operation that failed (read, write, etc.)
            original_error: Original exception that caused this error
        """
        context = {
            'file_path': file_path,
            'operation': operation,
            'original_error': str(original_error) if original_error else None,
            'original_error_type': type(original_error).__name__ if original_error else None
        }
        super().__init__(message, error_code='FILE_ACCESS_ERROR', context=context)
        self.file_path = file_path
        self.operation = operation
        self.original_error = original_error


class DerivationError(WilayahMappingError):
    """Exception raised when a raw feature lacks a property its level requires."""

    def __init__(self, message: str, level: Optional[int] = None,
                 missing_fields: Optional[List[str]] = None,
                 feature_index: Optional[int] = None):
        """
        Initialize derivation error.

        Args:
            message: Human-readable error message
            level: Declared hierarchy level of the feature
            missing_fields: Raw property keys that were absent or blank
            feature_index: Position of the feature inside its batch
        """
        context = {
            'level': level,
            'missing_fields': missing_fields or [],
            'feature_index': feature_index
        }
        super().__init__(message, error_code='DERIVATION_ERROR', context=context)
        self.level = level
        self.missing_fields = missing_fields or []
        self.feature_index = feature_index


class MalformedGeometryError(WilayahMappingError):
    """Exception raised for geometry that is missing, unparsable or not polygonal."""

    def __init__(self, message: str, identifier: Optional[str] = None,
                 geometry_type: Optional[str] = None,
                 original_error: Optional[Exception] = None):
        context = {
            'identifier': identifier,
            'geometry_type': geometry_type,
            'original_error': str(original_error) if original_error else None
        }
        super().__init__(message, error_code='MALFORMED_GEOMETRY', context=context)
        self.identifier = identifier
        self.geometry_type = geometry_type
        self.original_error = original_error


class StoreError(WilayahMappingError):
    """Base class for geometry store failures."""

    def __init__(self, message: str, backend: Optional[str] = None,
                 operation: Optional[str] = None,
                 original_error: Optional[Exception] = None,
                 error_code: str = 'STORE_ERROR'):
        """
        Initialize store error.

        Args:
            message: Human-readable error message
            backend: Name of the store backend (postgres, supabase, memory)
            operation: Store operation that failed
            original_error: Original driver exception
            error_code: Error code for programmatic handling
        """
        context = {
            'backend': backend,
            'operation': operation,
            'original_error': str(original_error) if original_error else None,
            'original_error_type': type(original_error).__name__ if original_error else None
        }
        super().__init__(message, error_code=error_code, context=context)
        self.backend = backend
        self.operation = operation
        self.original_error = original_error


class StoreUnavailableError(StoreError):
    """Exception raised when the backing store cannot be reached."""

    def __init__(self, message: str, backend: Optional[str] = None,
                 operation: Optional[str] = None,
                 original_error: Optional[Exception] = None):
        super().__init__(message, backend=backend, operation=operation,
                         original_error=original_error, error_code='STORE_UNAVAILABLE')


class StoreQueryError(StoreError):
    """Exception raised when the store is reachable but rejects an operation."""

    def __init__(self, message: str, backend: Optional[str] = None,
                 operation: Optional[str] = None,
                 original_error: Optional[Exception] = None):
        super().__init__(message, backend=backend, operation=operation,
                         original_error=original_error, error_code='STORE_QUERY_ERROR')


class SeedFailure(WilayahMappingError):
    """Exception raised when bootstrap seeding of the top level fails."""

    def __init__(self, message: str, seed_file: Optional[str] = None,
                 processed_count: Optional[int] = None,
                 original_error: Optional[Exception] = None):
        """
        Initialize seed failure.

        Args:
            message: Human-readable error message
            seed_file: Path of the designated top-level source file
            processed_count: Number of regions written before the failure
            original_error: Original exception that caused this error
        """
        context = {
            'seed_file': seed_file,
            'processed_count': processed_count,
            'original_error': str(original_error) if original_error else None,
            'original_error_type': type(original_error).__name__ if original_error else None
        }
        super().__init__(message, error_code='SEED_FAILURE', context=context)
        self.seed_file = seed_file
        self.processed_count = processed_count
        self.original_error = original_error


def create_derivation_error(level: int, missing_fields: List[str],
                            feature_index: Optional[int] = None) -> DerivationError:
    """
    Create a standardized derivation error.

    Args:
        level: Declared hierarchy level of the feature
        missing_fields: Raw property keys that were absent or blank
        feature_index: Optional position of the feature inside its batch

    Returns:
        DerivationError instance
    """
    where = f" (feature #{feature_index})" if feature_index is not None else ""
    message = (
        f"Cannot derive level {level} code{where}: "
        f"missing {', '.join(missing_fields) if missing_fields else 'required properties'}"
    )
    return DerivationError(
        message=message,
        level=level,
        missing_fields=missing_fields,
        feature_index=feature_index
    )


def is_recoverable_error(error: Exception) -> bool:
    """
    Determine if an error is recoverable.

    Args:
        error: Exception to check

    Returns:
        True if the error is potentially recoverable, False otherwise
    """
    # Per-feature and per-region problems are contained by skipping
    if isinstance(error, (DerivationError, MalformedGeometryError, ValidationError)):
        return True

    # A flapping connection can come back
    if isinstance(error, (StoreUnavailableError, FileAccessError)):
        return True

    if isinstance(error, (ConfigurationError, SeedFailure)):
        return False

    return True


def get_error_severity(error: Exception) -> str:
    """
    Get the severity level of an error.

    Args:
        error: Exception to evaluate

    Returns:
        Severity level string (low, medium, high, critical)
    """
    if isinstance(error, ConfigurationError):
        return 'critical'
    elif isinstance(error, (StoreUnavailableError, SeedFailure)):
        return 'high'
    elif isinstance(error, (DataLoadError, FileAccessError, StoreQueryError)):
        return 'high'
    elif isinstance(error, MalformedGeometryError):
        return 'medium'
    elif isinstance(error, (DerivationError, ValidationError)):
        return 'low'
    else:
        return 'medium'
