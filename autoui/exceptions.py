"""
Custom exception classes for the auto-UI library.

Hooks and renderers never raise to their callers; these exceptions are
reserved for library boundaries such as loading schema files, building
field definitions from untrusted dicts, or exporting to an unknown format.
"""

import logging
from typing import Optional, Dict, Any, List
from pathlib import Path

logger = logging.getLogger(__name__)


class AutoUIError(Exception):
    """
    Base exception for auto-UI errors.

    Attributes:
        message: Error message
        context: Additional context information
        recovery_suggestions: List of suggested recovery actions
    """

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None,
                 recovery_suggestions: Optional[List[str]] = None):
        self.message = message
        self.context = context or {}
        self.recovery_suggestions = recovery_suggestions or []
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message

    def get_full_details(self) -> Dict[str, Any]:
        """Get complete error details including context and suggestions."""
        return {
            'error_type': self.__class__.__name__,
            'message': self.message,
            'context': self.context,
            'recovery_suggestions': self.recovery_suggestions
        }


class SchemaLoadError(AutoUIError):
    """
    Raised when a schema file cannot be read or parsed.

    This includes missing files, YAML/JSON syntax errors and unsupported
    file extensions.
    """

    def __init__(self, schema_path: Path, original_error: Exception,
                 message: Optional[str] = None):
        self.schema_path = schema_path
        self.original_error = original_error

        if message is None:
            message = f"Failed to load schema from {schema_path}: {str(original_error)}"

        context = {
            'schema_path': str(schema_path),
            'original_error_type': type(original_error).__name__,
            'original_error_message': str(original_error)
        }

        recovery_suggestions = [
            "Check that the schema file exists and is readable",
            "Verify YAML or JSON syntax is correct",
            "Use a .yaml, .yml or .json extension"
        ]

        super().__init__(message, context, recovery_suggestions)


class InvalidSchemaError(AutoUIError):
    """Raised when a parsed schema does not describe a valid set of fields."""

    def __init__(self, errors: List[str], source: Optional[str] = None):
        self.errors = errors

        where = f" in {source}" if source else ""
        message = f"Invalid schema{where}: {'; '.join(errors)}"

        super().__init__(
            message,
            context={'source': source, 'errors': errors},
            recovery_suggestions=[
                "Every field needs a unique name",
                "Validation rules must use a known rule type"
            ]
        )


class InvalidFieldDefinitionError(AutoUIError):
    """Raised when a single field definition cannot be built."""

    def __init__(self, field_name: str, reason: str):
        self.field_name = field_name
        self.reason = reason
        super().__init__(
            f"Invalid field definition '{field_name}': {reason}",
            context={'field_name': field_name, 'reason': reason}
        )


class UnsupportedFormatError(AutoUIError):
    """Raised when exporting or importing with a format that has no codec."""

    def __init__(self, format_name: str, supported: List[str]):
        self.format_name = format_name
        self.supported = supported
        super().__init__(
            f"Unsupported format '{format_name}'",
            context={'format': format_name, 'supported': supported},
            recovery_suggestions=[f"Use one of: {', '.join(supported)}"]
        )
