"""Filename utilities for ASCII normalization and sanitization."""

import re
from pathlib import Path

from unidecode import unidecode

from .logging import get_logger

logger = get_logger(__name__)


def normalize_to_ascii(text: str) -> str:
    """Convert Unicode text to ASCII equivalents.

    Args:
        text: The text to normalize

    Returns:
        ASCII-normalized text
    """
    if not text:
        return ""

    ascii_text = unidecode(text)

    # Remove any remaining non-ASCII characters
    ascii_text = re.sub(r"[^\x00-\x7F]+", "", ascii_text)

    logger.trace(  # type: ignore[attr-defined]
        f"ASCII normalization result: '{text}' -> '{ascii_text}'"
    )
    return ascii_text


def sanitize_filename(filename: str, max_length: int = 100) -> str:
    """Sanitize a filename for filesystem compatibility.

    Args:
        filename: The filename to sanitize
        max_length: Maximum length for the filename

    Returns:
        Sanitized filename
    """
    if not filename:
        return "untitled"

    original_filename = filename

    sanitized = re.sub(r"\s+", " ", filename.strip())

    # Remove control characters
    sanitized = re.sub(r"[\x00-\x1f\x7f-\x9f]", "", sanitized)

    # Replace filesystem-problematic characters
    sanitized = re.sub(r'[<>:"/\\|?*]', "_", sanitized)

    sanitized = sanitized.strip(". ")

    if not sanitized or sanitized == "." or sanitized == "..":
        logger.debug(
            f"Filename '{original_filename}' sanitized to 'untitled' (invalid result)"
        )
        sanitized = "untitled"

    # Truncate if too long, preserving extension
    if len(sanitized) > max_length:
        path = Path(sanitized)
        name = path.stem
        suffix = path.suffix

        available_length = max_length - len(suffix)
        if available_length > 0:
            sanitized = f"{name[:available_length].rstrip()}{suffix}"
        else:
            sanitized = sanitized[:max_length]
        logger.debug(
            f"Filename truncated to fit max_length: '{original_filename}' -> "
            f"'{sanitized}'"
        )

    if sanitized != original_filename:
        logger.debug(f"Filename sanitized: '{original_filename}' -> '{sanitized}'")

    return sanitized


def normalize_filename(
    label: str, extension: str = ".mkv", max_length: int = 100
) -> str:
    """Normalize a disc label to a filesystem-safe ASCII filename.

    DVD volume labels are usually upper case with underscores
    (``THE_MOVIE_WS``); underscores become spaces before sanitizing.

    Args:
        label: The disc label or other display name
        extension: Extension appended when the result has none
        max_length: Maximum length for the filename

    Returns:
        Normalized filename
    """
    if not label or not label.strip():
        logger.debug(f"Empty label provided, using default filename 'dvd{extension}'")
        return f"dvd{extension}"

    ascii_label = normalize_to_ascii(label).replace("_", " ")

    sanitized = sanitize_filename(ascii_label, max_length - len(extension))

    if not sanitized.lower().endswith(extension.lower()):
        sanitized += extension

    logger.debug(f"Normalized filename: '{label}' -> '{sanitized}'")
    return sanitized
