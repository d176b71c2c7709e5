"""
Row validation for imported entity records.

A record is rejected when a required field is missing or an identifier
field contains anything other than letters, digits, underscores or
hyphens. Every failed check is reported, not just the first one.
"""

import re
from typing import Any, Dict, List, Optional, Tuple

from .entities import EntitySchema


# Preset regex patterns used by the import validators
PRESET_PATTERNS = {
    "identifier": r"^[A-Za-z0-9_-]+$",
}


# Human-readable descriptions for each preset
PRESET_DESCRIPTIONS = {
    "identifier": "Identifier (letters, digits, underscores and hyphens)",
}


def get_preset_pattern(preset_name: str) -> Optional[str]:
    """
    Get the regex pattern for a preset validator.

    Args:
        preset_name: Name of the preset validator

    Returns:
        Regex pattern string or None if preset not found
    """
    return PRESET_PATTERNS.get(preset_name)


def validate_with_preset(
    value: Any,
    preset_name: str,
    allow_null: bool = True
) -> Tuple[bool, Optional[str]]:
    """
    Validate a value against a preset pattern.

    Args:
        value: Value to validate
        preset_name: Name of the preset validator
        allow_null: Whether to allow null/empty values

    Returns:
        Tuple of (is_valid, error_message)
    """
    if _is_blank(value):
        if allow_null:
            return True, None
        return False, "Value is required"

    pattern = get_preset_pattern(preset_name)
    if pattern is None:
        return False, f"Unknown preset validator: {preset_name}"

    str_val = str(value)
    if not re.match(pattern, str_val):
        description = PRESET_DESCRIPTIONS.get(preset_name)
        return False, f"Value '{str_val}' does not match {description or preset_name} format"
    return True, None


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def validate_record(schema: EntitySchema, record: Dict[str, Any]) -> List[str]:
    """
    Check a mapped record against its schema.

    Returns:
        Human-readable failures, e.g. ["Missing subscription ID",
        "Invalid customer ID format"]. Empty when the record is valid.
    """
    errors: List[str] = []
    checked = set()

    for field_name, label in schema.required_fields.items():
        checked.add(field_name)
        value = record.get(field_name)
        if _is_blank(value):
            errors.append(f"Missing {label}")
            continue
        if field_name in schema.identifier_fields:
            is_valid, _ = validate_with_preset(value, "identifier", allow_null=False)
            if not is_valid:
                errors.append(f"Invalid {label} format")

    for field_name in schema.identifier_fields:
        if field_name in checked:
            continue
        is_valid, _ = validate_with_preset(record.get(field_name), "identifier")
        if not is_valid:
            errors.append(f"Invalid {field_name.replace('_', ' ')} format")

    return errors
