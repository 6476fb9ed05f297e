"""Command matching helpers for chat text."""

from typing import Optional


def either_trim_equal(text: str, *keywords: str) -> bool:
    """Return True when ``text`` equals one of ``keywords`` after trimming whitespace."""
    stripped = (text or "").strip()
    return any(stripped == keyword for keyword in keywords)


def either_cut_prefix(text: str, *prefixes: str) -> Optional[str]:
    """Return the remainder of ``text`` after the first matching prefix, else None.

    Example:
        >>> either_cut_prefix("/system you are a poet", "/system ", "role play ")
        'you are a poet'
    """
    text = text or ""
    for prefix in prefixes:
        if text.startswith(prefix):
            return text[len(prefix):].strip()
    return None


def is_command(text: str) -> bool:
    """True for slash commands and the bare keywords of the menu commands."""
    text = (text or "").strip()
    if text.startswith("/"):
        return True
    if either_trim_equal(text, "picture", "vision", "roles", "help", "balance", "clear"):
        return True
    return either_cut_prefix(text, "ai mode", "role play ") is not None
