"""Utility functions for storage operations."""

import re
from pathlib import Path

from ..config import settings

# Documents written by beatcut
ALLOWED_EXTENSIONS = {
    '.xml', '.fcpxml', '.edl',  # Exports
    '.json',                    # EDL snapshots and analysis results
}

# Filename sanitization regex
UNSAFE_CHARS = re.compile(r'[^\w\s\-.]')
MULTIPLE_DOTS = re.compile(r'\.{2,}')
LEADING_DOTS = re.compile(r'^\.+')


def validate_file_path(path: str) -> bool:
    """Prevent directory traversal attacks.

    Args:
        path: File path to validate

    Returns:
        True if path is safe, False otherwise
    """
    p = Path(path)

    # Check for path traversal attempts
    if '..' in p.parts:
        return False

    # Check for absolute paths
    if p.is_absolute():
        return False

    path_str = str(p)
    if any(pattern in path_str for pattern in ['../', '..\\', '~/', '~\\']):
        return False

    return True


def validate_file_type(file_path: str) -> bool:
    """Only interchange documents and JSON may be stored."""
    return Path(file_path).suffix.lower() in ALLOWED_EXTENSIONS


def validate_file_size(size: int) -> bool:
    return 0 <= size <= settings.max_export_size


def sanitize_filename(filename: str) -> str:
    """Make a filename safe for storage.

    Args:
        filename: Original filename (for example a project name plus extension)

    Returns:
        Sanitized filename
    """
    filename = Path(filename).name
    filename = UNSAFE_CHARS.sub('_', filename)
    filename = MULTIPLE_DOTS.sub('.', filename)
    filename = LEADING_DOTS.sub('', filename)
    filename = re.sub(r'\s+', '_', filename.strip())

    if not filename or filename.startswith('.'):
        filename = f"unnamed{filename}"

    # Limit length, keeping the extension
    if len(filename) > 255:
        stem, suffix = Path(filename).stem, Path(filename).suffix
        filename = stem[:255 - len(suffix)] + suffix

    return filename

