"""Input integrity checks: applied to every command before it is parsed."""
import logging

logger = logging.getLogger(__name__)

# Bounds the text the substitution scan walks (it is quadratic in nested
# openers) and stays far below ARG_MAX on every POSIX host.
MAX_COMMAND_LEN = 8192


def validate_command(text: str) -> tuple[bool, str]:
    """
    Validate raw command text before any parsing happens.

    Returns (True, "") on success or (False, reason) on rejection.
    """
    if not text or not text.strip():
        return False, "Empty command."

    try:
        text.encode("utf-8")
    except UnicodeEncodeError as exc:
        return False, f"Non-UTF-8 content: {exc}"

    if "\x00" in text:
        return False, "Command contains a NUL byte."

    if len(text) > MAX_COMMAND_LEN:
        return False, f"Command too long ({len(text)} chars; limit {MAX_COMMAND_LEN})."

    return True, ""
