"""Utility modules for mlwizard."""

from mlwizard.utils.validation import (
    ValidationError,
    validate_api_token,
    validate_file_path,
    validate_positive_int,
    validate_positive_number,
    validate_test_size,
    validate_url,
)

__all__ = [
    "ValidationError",
    "validate_api_token",
    "validate_file_path",
    "validate_positive_int",
    "validate_positive_number",
    "validate_test_size",
    "validate_url",
]
