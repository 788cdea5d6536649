"""
Input validation and sanitization utilities.
Validates payloads arriving over the participant transport.
"""

import re
from typing import Optional

from shared_utils.error_handler import ValidationError


class InputValidator:
    """Utility class for input validation."""

    SESSION_ID_PATTERN: re.Pattern = re.compile(r"^[A-Za-z0-9_.:\-]{1,128}$")

    @staticmethod
    def validate_non_empty_string(value: str, field_name: str) -> str:
        """Validate non-empty string.

        Args:
            value: String to validate
            field_name: Name of field for error messages

        Returns:
            Validated string, stripped

        Raises:
            ValidationError: If validation fails
        """
        if not isinstance(value, str):
            raise ValidationError(f"{field_name} must be a string")

        if not value or not value.strip():
            raise ValidationError(f"{field_name} cannot be empty")

        return value.strip()

    @staticmethod
    def validate_optional_string(value: Optional[str], field_name: str) -> Optional[str]:
        """Validate a string field that may be absent.

        Returns:
            None when absent, otherwise the stripped string (possibly empty)

        Raises:
            ValidationError: If a value is present but not a string
        """
        if value is None:
            return None
        if not isinstance(value, str):
            raise ValidationError(
                f"{field_name} must be a string",
                context={"field": field_name, "type": type(value).__name__},
            )
        return value.strip()

    @staticmethod
    def validate_positive_int(value: int, field_name: str, allow_zero: bool = False) -> int:
        """Validate positive integer.

        Args:
            value: Integer to validate
            field_name: Name of field for error messages
            allow_zero: Whether zero is valid

        Returns:
            Validated integer

        Raises:
            ValidationError: If validation fails
        """
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValidationError(f"{field_name} must be an integer")

        min_val = 0 if allow_zero else 1
        if value < min_val:
            raise ValidationError(f"{field_name} must be >= {min_val}")

        return value

    @staticmethod
    def validate_session_id(value: str) -> str:
        """Validate an opaque session identifier.

        Args:
            value: Session id supplied by the transport

        Returns:
            Validated session id

        Raises:
            ValidationError: If the id is not a string of 1-128 safe characters
        """
        if not isinstance(value, str) or not InputValidator.SESSION_ID_PATTERN.match(value):
            raise ValidationError("Invalid session id format", context={"session_id": str(value)[:128]})

        return value
