"""
Roost Validation Module
Input checks for titles and entry fields
"""

import re
from typing import Dict, Tuple

from . import config

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")


def validate_title(title: str, kind: str = "entry") -> Tuple[bool, str]:
    """
    Check a group or entry title

    Returns:
        (is_valid, validation_message)
    """
    if not title or not title.strip():
        return False, f"The {kind} title cannot be empty"

    if title in (".", ".."):
        return False, f'"{title}" cannot be used as a title'

    if _CONTROL_CHARS.search(title):
        return False, "Titles cannot contain control characters"

    if len(title) > config.MAX_TITLE_LENGTH:
        return False, "Title exceeds maximum length"

    return True, "Title accepted"


def validate_url(url: str) -> bool:
    """
    Validate URL format

    Returns:
        True if URL is empty or looks like a URL
    """
    if not url:
        return True

    url_pattern = re.compile(
        r'^([a-zA-Z][a-zA-Z0-9+.\-]*://)?'  # Optional scheme
        r'([a-zA-Z0-9]([a-zA-Z0-9\-]{0,61}[a-zA-Z0-9])?\.)*'  # Subdomains
        r'[a-zA-Z0-9]([a-zA-Z0-9\-]{0,61}[a-zA-Z0-9])?'  # Host
        r'(:\d+)?'  # Optional port
        r'(/\S*)?$'  # Path
    )

    return bool(url_pattern.match(url))


def validate_input_length(field: str, value: str, max_length: int = config.MAX_FIELD_LENGTH) -> bool:
    """
    Validate field length constraints

    Returns:
        True if length is within limits
    """
    if value is None:
        return True
    return len(value) <= max_length


def validate_entry_fields(fields: Dict[str, str]) -> Tuple[bool, str]:
    """
    Validate entry data before it reaches the store

    Returns:
        (is_valid, validation_message)
    """
    if "title" in fields:
        ok, message = validate_title(fields["title"])
        if not ok:
            return False, message

    for name in ("username", "password", "url"):
        if not validate_input_length(name, fields.get(name)):
            return False, f"{name.capitalize()} exceeds maximum length"

    if not validate_input_length("notes", fields.get("notes"), config.MAX_NOTES_LENGTH):
        return False, "Notes exceed maximum length"

    return True, "Entry validation passed"
