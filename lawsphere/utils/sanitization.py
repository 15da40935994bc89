import html
import re
from typing import Optional

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")


def validate_and_sanitize_input(value: Optional[str], max_length: int = 500) -> str:
    """
    Validate and sanitize user input by removing potentially harmful content.

    Args:
        value: Input string to validate
        max_length: Maximum allowed length

    Returns:
        Sanitized string ("" for missing or blank input)

    Raises:
        ValueError: If input is too long
    """
    if not value:
        return ""

    value = str(value).strip()

    if len(value) > max_length:
        raise ValueError(f"Input exceeds maximum length of {max_length} characters")

    value = html.escape(value, quote=True)

    return _CONTROL_CHARS.sub("", value)


def escape_like(value: str, escape_char: str = "\\") -> str:
    """Escape LIKE wildcards so the value only matches itself"""
    return (
        value.replace(escape_char, escape_char * 2)
        .replace("%", f"{escape_char}%")
        .replace("_", f"{escape_char}_")
    )


def stored_text_pattern(term: str) -> str:
    """
    Build a case-insensitive substring LIKE pattern for text that was saved
    through validate_and_sanitize_input (HTML-escaped, control chars removed).
    """
    term = _CONTROL_CHARS.sub("", html.escape(term.strip(), quote=True))
    return f"%{escape_like(term.lower())}%"
