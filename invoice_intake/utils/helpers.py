"""
Small shared helpers: filesystem, time and formatting.
"""

from datetime import datetime, timezone
from pathlib import Path
from typing import Union


def ensure_directory(path: Union[str, Path]) -> Path:
    """Create ``path`` (and parents) if needed and return it as a Path."""
    directory = Path(path)
    directory.mkdir(parents=True, exist_ok=True)
    return directory


def get_file_extension(filename: Union[str, Path]) -> str:
    """
    Lowercase extension with its dot, or '' when there is none.

    Example:
        >>> get_file_extension("Facture Mars.PDF")
        '.pdf'
    """
    return Path(filename).suffix.lower()


def utcnow() -> datetime:
    """
    Current UTC time without tzinfo.

    Every persisted timestamp (job availability, leases, record
    updates) is naive UTC, so comparisons never mix offsets.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def clamp(value: int, lower: int, upper: int) -> int:
    return max(lower, min(upper, value))


def format_file_size(size_bytes: int) -> str:
    """
    Byte count for log lines.

    Example:
        >>> format_file_size(1536)
        '1.5 KB'
    """
    size = float(size_bytes)
    for unit in ('B', 'KB', 'MB', 'GB'):
        if size < 1024:
            return f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} TB"
