"""Free-text cleanup for operator-entered fields."""

from typing import Optional

import bleach


def sanitize_text(text: Optional[str], max_length: Optional[int] = None) -> str:
    """
    Sanitize user input text to prevent XSS and injection attacks.

    Args:
        text: Raw input text
        max_length: Optional maximum length to enforce

    Returns:
        Sanitized text safe for storage and display
    """
    if not text:
        return ""

    text = str(text).strip()

    # Strip every HTML tag, keep the text content
    text = bleach.clean(text, tags=[], strip=True)

    if max_length and len(text) > max_length:
        text = text[:max_length]

    return text


def sanitize_optional(text: Optional[str], max_length: Optional[int] = None) -> Optional[str]:
    """Like sanitize_text but maps empty input to None."""
    cleaned = sanitize_text(text, max_length)
    return cleaned or None
