"""Input validation utilities for mlwizard."""

import re
from pathlib import Path

from mlwizard.error_handling import ValidationError

__all__ = [
    "ValidationError",
    "validate_api_token",
    "validate_file_path",
    "validate_positive_int",
    "validate_positive_number",
    "validate_test_size",
    "validate_url",
]

TEST_SIZE_MIN = 0.1
TEST_SIZE_MAX = 0.5


def validate_file_path(path: str, must_exist: bool = False) -> Path:
    """Validate a file path.

    Args:
        path: The file path to validate
        must_exist: Whether the file must exist

    Returns:
        Resolved Path object

    Raises:
        ValidationError: If the path is invalid or doesn't exist when required
    """
    if not path:
        raise ValidationError("File path cannot be empty")

    try:
        path_obj = Path(path).expanduser().resolve()
    except (OSError, RuntimeError) as e:
        raise ValidationError(f"Invalid file path '{path}': {e}") from e

    if must_exist and not path_obj.is_file():
        raise ValidationError(f"File not found: {path}")

    return path_obj


def validate_api_token(token: str) -> str:
    """Validate a bearer token.

    Args:
        token: The token to validate

    Returns:
        Stripped token

    Raises:
        ValidationError: If the token is invalid
    """
    if not token:
        raise ValidationError("API token cannot be empty")

    token = token.strip()

    if not token:
        raise ValidationError("API token cannot be only whitespace")

    if token.lower().startswith("bearer "):
        raise ValidationError("API token should not include the 'Bearer ' prefix")

    if any(ch.isspace() for ch in token):
        raise ValidationError("API token cannot contain whitespace")

    return token


def validate_url(url: str) -> str:
    """Validate a URL.

    Args:
        url: The URL to validate

    Returns:
        Validated URL without a trailing slash

    Raises:
        ValidationError: If the URL is invalid
    """
    if not url:
        raise ValidationError("URL cannot be empty")

    url = url.strip()

    if not url:
        raise ValidationError("URL cannot be only whitespace")

    # Check for protocol
    if not (url.startswith("http://") or url.startswith("https://")):
        raise ValidationError(
            f"Invalid URL '{url}': must start with http:// or https://"
        )

    if not re.match(r"^https?://[^\s/$.?#].[^\s]*$", url, re.IGNORECASE):
        raise ValidationError(f"Invalid URL format: {url}")

    return url.rstrip("/")


def validate_positive_number(value, name: str) -> float:
    """Validate that a value is a number greater than zero.

    Raises:
        ValidationError: If the value is not a positive number
    """
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be a number, got {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"{name} must be a number, got {value!r}") from e
    if number <= 0:
        raise ValidationError(f"{name} must be greater than zero, got {value}")
    return number


def validate_positive_int(value, name: str) -> int:
    """Validate a whole number greater than zero.

    Raises:
        ValidationError: If the value is not a positive integer
    """
    number = validate_positive_number(value, name)
    if number != int(number):
        raise ValidationError(f"{name} must be a whole number, got {value}")
    return int(number)


def validate_test_size(test_size: float) -> float:
    """Validate the held-out test split fraction.

    Raises:
        ValidationError: If the fraction is outside [0.1, 0.5]
    """
    if isinstance(test_size, bool) or not isinstance(test_size, (int, float)):
        raise ValidationError(f"Test size must be a number, got {test_size!r}")
    if not (TEST_SIZE_MIN <= test_size <= TEST_SIZE_MAX):
        raise ValidationError(
            f"Test size {test_size} is out of range. "
            f"Must be between {TEST_SIZE_MIN} and {TEST_SIZE_MAX}"
        )
    return float(test_size)
