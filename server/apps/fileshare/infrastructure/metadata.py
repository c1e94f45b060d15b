"""Metadata extraction utilities for uploaded files."""

import hashlib
import mimetypes
from pathlib import PurePosixPath
from typing import Any, BinaryIO, Final

from django.core.exceptions import ValidationError

_CHUNK_SIZE: Final = 8192  # 8KB chunks for checksum calculation
_BYTES_STEP: Final = 1024
_BYTE_UNITS: Final = ('Bytes', 'KB', 'MB', 'GB', 'TB')


def detect_mime_type(filename: str, declared_type: str = '') -> str:
    """Detect MIME type for an upload.

    Prefers the type declared by the client, falls back to a guess
    from the filename extension.

    Args:
        filename: Filename with extension.
        declared_type: MIME type sent along with the upload, if any.

    Returns:
        MIME type string (e.g., 'image/jpeg', 'application/pdf').
        Returns 'application/octet-stream' if type cannot be determined.
    """
    if declared_type:
        return declared_type
    mime_type, _ = mimetypes.guess_type(filename)
    if mime_type is None:
        return 'application/octet-stream'
    return mime_type


def calculate_checksum(file_obj: BinaryIO) -> str:
    """Calculate SHA256 checksum of file.

    Reads file in chunks to handle large files efficiently.
    Resets file pointer to beginning after calculation.

    Args:
        file_obj: File-like object to checksum.

    Returns:
        Hex-encoded SHA256 hash string.
    """
    sha256_hash = hashlib.sha256()

    file_obj.seek(0)
    for chunk in iter(lambda: file_obj.read(_CHUNK_SIZE), b''):
        sha256_hash.update(chunk)
    file_obj.seek(0)

    return sha256_hash.hexdigest()


def get_file_size(file_obj: Any) -> int:
    """Get file size from file object.

    Args:
        file_obj: File-like object (Django File or plain binary stream).

    Returns:
        File size in bytes.
    """
    if hasattr(file_obj, 'size'):
        return file_obj.size
    file_obj.seek(0)
    file_size = len(file_obj.read())
    file_obj.seek(0)
    return file_size


def clean_filename(filename: str) -> str:
    """Strip directory components from a client supplied filename.

    Args:
        filename: Name as sent by the client.

    Returns:
        Bare filename.

    Raises:
        ValidationError: If nothing usable remains.
    """
    name = PurePosixPath(filename.replace('\\', '/')).name.strip()
    if not name or name in {'.', '..'}:
        raise ValidationError('Filename cannot be empty')
    return name


def build_storage_path(user_id: int, filename: str) -> str:
    """Build the blob destination for a user's upload.

    Every blob lives under the owner's ID so buckets stay partitioned
    per user: ``{user_id}/{filename}``.

    Args:
        user_id: Owner's user ID.
        filename: Filename as sent by the client.

    Returns:
        Storage path hint for the blob store.

    Raises:
        ValidationError: If the filename is empty.
    """
    return f'{user_id}/{clean_filename(filename)}'


def format_bytes(size_bytes: int) -> str:
    """Format bytes in human-readable format.

    Args:
        size_bytes: Size in bytes.

    Returns:
        Formatted size string (e.g., '1.5 MB', '234 Bytes').
    """
    if size_bytes <= 0:
        return '0 Bytes'

    size = float(size_bytes)
    unit_index = 0
    while size >= _BYTES_STEP and unit_index < len(_BYTE_UNITS) - 1:
        size /= _BYTES_STEP
        unit_index += 1

    if unit_index == 0:
        return f'{size_bytes} Bytes'
    return f'{size:.2f}'.rstrip('0').rstrip('.') + f' {_BYTE_UNITS[unit_index]}'
