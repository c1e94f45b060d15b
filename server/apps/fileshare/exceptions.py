"""Exceptions for fileshare app.

Missing records are reported with Django's ``Model.DoesNotExist``
(``FileRecord.DoesNotExist``, ``UserProfile.DoesNotExist``), everything
else the presentation layer needs to tell apart lives here.
"""

from datetime import datetime
from uuid import UUID


class FileShareError(Exception):
    """Base class for fileshare domain errors."""


class QuotaExceededError(FileShareError):
    """Raised when upload would exceed user's storage quota."""

    def __init__(
        self,
        total_storage: int,
        used_storage: int,
        required_bytes: int,
    ) -> None:
        """Initialize QuotaExceededError.

        Args:
            total_storage: Total quota limit in bytes.
            used_storage: Currently used bytes.
            required_bytes: Bytes needed for the operation.
        """
        self.total_storage = total_storage
        self.used_storage = used_storage
        self.required_bytes = required_bytes

        available = max(0, total_storage - used_storage)
        super().__init__(
            f'Quota exceeded: need {required_bytes} bytes, '
            f'only {available} bytes available '
            f'(quota: {total_storage}, used: {used_storage})',
        )


class NotFileOwnerError(FileShareError):
    """Raised when a non-owner calls an owner-only operation."""

    def __init__(self, file_id: UUID, caller_id: object) -> None:
        """Initialize NotFileOwnerError.

        Args:
            file_id: File the caller tried to act on.
            caller_id: Primary key of the calling user.
        """
        self.file_id = file_id
        self.caller_id = caller_id
        super().__init__(
            f'User {caller_id} is not the owner of file {file_id}',
        )


class UpstreamTransferError(FileShareError):
    """Raised when the blob store rejects or fails a transfer."""

    def __init__(self, destination: str) -> None:
        """Initialize UpstreamTransferError.

        Args:
            destination: Storage path the transfer was aimed at.
        """
        self.destination = destination
        super().__init__(f'Blob transfer failed: {destination}')


class InvalidCredentialError(FileShareError):
    """Raised when the supplied file password does not match."""

    def __init__(self, file_id: UUID) -> None:
        """Initialize InvalidCredentialError.

        Args:
            file_id: Password-protected file.
        """
        self.file_id = file_id
        super().__init__(f'Invalid password for file {file_id}')


class FileNotPublicError(FileShareError):
    """Raised when a public path targets a private file."""

    def __init__(self, file_id: UUID) -> None:
        """Initialize FileNotPublicError.

        Args:
            file_id: Requested file.
        """
        self.file_id = file_id
        super().__init__(f'File {file_id} is not shared publicly')


class ShareExpiredError(FileShareError):
    """Raised when a public link is past its expiration time."""

    def __init__(self, file_id: UUID, expires_at: datetime) -> None:
        """Initialize ShareExpiredError.

        Args:
            file_id: Requested file.
            expires_at: When the public link expired.
        """
        self.file_id = file_id
        self.expires_at = expires_at
        super().__init__(
            f'Public link for file {file_id} expired at {expires_at}',
        )


class OrphanedBlobError(FileShareError):
    """Blob uploaded but its metadata record could not be stored.

    Not raised to end users: it is logged at warning level so operators
    can reconcile the bucket.
    """

    def __init__(self, provider_id: str) -> None:
        """Initialize OrphanedBlobError.

        Args:
            provider_id: Storage key of the orphaned blob.
        """
        self.provider_id = provider_id
        super().__init__(f'Orphaned blob in storage: {provider_id}')
