"""Database models for fileshare app."""

import enum
import uuid
from datetime import datetime
from typing import Final, final

from typing_extensions import override

from django.conf import settings
from django.db import models
from django.utils import timezone

from server.apps.fileshare.infrastructure.storage import BlobReference

# Constants for field max lengths
_NAME_MAX_LENGTH: Final = 255
_MIME_TYPE_MAX_LENGTH: Final = 255
_CHECKSUM_MAX_LENGTH: Final = 64  # SHA256 hex length
_PASSWORD_HASH_MAX_LENGTH: Final = 64  # SHA256 hex length
_URL_MAX_LENGTH: Final = 2048  # presigned URLs carry long query strings
_PROVIDER_ID_MAX_LENGTH: Final = 1024
_DISPLAY_NAME_MAX_LENGTH: Final = 150

# Default quota: 1 GiB in bytes
DEFAULT_TOTAL_STORAGE: Final = 1024 * 1024 * 1024


def _default_total_storage() -> int:
    return getattr(
        settings,
        'FILESHARE_DEFAULT_TOTAL_STORAGE',
        DEFAULT_TOTAL_STORAGE,
    )


@final
class UserProfile(models.Model):
    """Storage profile of a user.

    Tracks the user's fixed storage limit and current usage. Only the
    quota ledger (``logic/quota_operations.py``) mutates ``used_storage``.

    Created once at signup, never hard-deleted by the app.
    """

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='storage_profile',
        primary_key=True,
    )

    email = models.EmailField(blank=True, default='')

    display_name = models.CharField(
        max_length=_DISPLAY_NAME_MAX_LENGTH,
        blank=True,
        default='',
    )

    total_storage = models.BigIntegerField(
        default=_default_total_storage,
        help_text='Storage quota limit in bytes',
    )

    used_storage = models.BigIntegerField(
        default=0,
        help_text='Currently used storage in bytes',
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        """Model metadata."""

        verbose_name = 'User Profile'  # type: ignore[mutable-override]
        verbose_name_plural = 'User Profiles'  # type: ignore[mutable-override]

        constraints = [
            models.CheckConstraint(
                condition=models.Q(total_storage__gte=0),
                name='total_storage_non_negative',
            ),
            models.CheckConstraint(
                condition=models.Q(used_storage__gte=0),
                name='used_storage_non_negative',
            ),
            models.CheckConstraint(
                condition=models.Q(used_storage__lte=models.F('total_storage')),
                name='used_storage_within_total',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.user.username}: {self.used_storage}/{self.total_storage}'

    def has_space_for(self, size_bytes: int) -> bool:
        """Check if there's enough space for the given size.

        Args:
            size_bytes: Size to check in bytes.

        Returns:
            True if there's enough space, False otherwise.
        """
        return self.used_storage + size_bytes <= self.total_storage

    def available_bytes(self) -> int:
        """Get available storage space.

        Returns:
            Available bytes (never negative).
        """
        available = self.total_storage - self.used_storage
        return max(0, available)

    def percent_used(self) -> int:
        """Get rounded percentage of quota in use."""
        if self.total_storage == 0:
            return 0
        return round(self.used_storage / self.total_storage * 100)


class ShareStatus(enum.StrEnum):
    """Share state of a file, derived from its visibility fields."""

    PRIVATE = 'private'
    PUBLIC_OPEN = 'public_open'
    PUBLIC_PROTECTED = 'public_protected'
    EXPIRED = 'expired'


class FileRecordQuerySet(models.QuerySet['FileRecord']):
    """Queries shared by the registry, sharing and the reaper."""

    def expired(self, now: datetime | None = None) -> 'FileRecordQuerySet':
        """Public records whose link expiration has passed."""
        return self.filter(
            is_public=True,
            expires_at__isnull=False,
            expires_at__lte=now or timezone.now(),
        )

    def exclude_expired(
        self,
        now: datetime | None = None,
    ) -> 'FileRecordQuerySet':
        """Everything that may still be served."""
        return self.exclude(
            is_public=True,
            expires_at__isnull=False,
            expires_at__lte=now or timezone.now(),
        )

    def shared_with_email(self, email: str) -> 'FileRecordQuerySet':
        """Records with a named grant for ``email``."""
        return self.filter(shares__email__iexact=email).distinct()


@final
class FileRecord(models.Model):
    """Uploaded file stored in S3-compatible storage.

    The record holds the blob reference plus the sharing state:
    visibility (``is_public``), time (``expires_at``) and secret
    (``password_hash``). Named grants live in :class:`FileShare`.

    The primary key is an opaque UUID, public links address files by it.
    """

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
    )

    # Owner relationship, never reassigned
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='file_records',
        db_index=True,
    )

    name = models.CharField(max_length=_NAME_MAX_LENGTH)

    size_bytes = models.BigIntegerField(
        help_text='File size in bytes',
    )

    mime_type = models.CharField(max_length=_MIME_TYPE_MAX_LENGTH)

    checksum_sha256 = models.CharField(
        max_length=_CHECKSUM_MAX_LENGTH,
        help_text='SHA256 hash for integrity verification',
        db_index=True,
    )

    # Blob store reference
    url = models.CharField(max_length=_URL_MAX_LENGTH)
    secure_url = models.CharField(max_length=_URL_MAX_LENGTH)
    provider_id = models.CharField(
        max_length=_PROVIDER_ID_MAX_LENGTH,
        help_text='Storage key: {user_id}/file.ext',
    )

    # Sharing state
    is_public = models.BooleanField(default=False)
    is_password_protected = models.BooleanField(default=False)
    password_hash = models.CharField(
        max_length=_PASSWORD_HASH_MAX_LENGTH,
        blank=True,
        default='',
    )
    expires_at = models.DateTimeField(null=True, blank=True)

    # Timestamps
    uploaded_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = FileRecordQuerySet.as_manager()

    class Meta:
        """Model metadata."""

        verbose_name = 'File Record'  # type: ignore[mutable-override]
        verbose_name_plural = 'File Records'  # type: ignore[mutable-override]
        ordering = ['-uploaded_at']

        indexes = [
            # Owner listing, newest first
            models.Index(
                fields=['owner', '-uploaded_at'],
                name='fileshare_owner_recent_idx',
            ),
            # Expiry sweep
            models.Index(
                fields=['is_public', 'expires_at'],
                name='fileshare_public_expiry_idx',
            ),
        ]

        constraints = [
            # Hash present if and only if the file is protected
            models.CheckConstraint(
                condition=(
                    models.Q(is_password_protected=True)
                    & ~models.Q(password_hash='')
                ) | (
                    models.Q(is_password_protected=False)
                    & models.Q(password_hash='')
                ),
                name='fileshare_password_hash_iff_protected',
            ),
            models.CheckConstraint(
                condition=models.Q(size_bytes__gte=0),
                name='fileshare_size_non_negative',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.owner.username}:{self.name}'

    def is_expired(self, now: datetime | None = None) -> bool:
        """Check whether the public link has expired.

        Args:
            now: Reference time, defaults to the current time.

        Returns:
            True for public records whose ``expires_at`` is not after now.
        """
        if not self.is_public or self.expires_at is None:
            return False
        return self.expires_at <= (now or timezone.now())

    def share_status(self, now: datetime | None = None) -> ShareStatus:
        """Derive the share state of the file.

        Args:
            now: Reference time, defaults to the current time.

        Returns:
            Current :class:`ShareStatus`.
        """
        if self.is_expired(now):
            return ShareStatus.EXPIRED
        if not self.is_public:
            return ShareStatus.PRIVATE
        if self.is_password_protected:
            return ShareStatus.PUBLIC_PROTECTED
        return ShareStatus.PUBLIC_OPEN

    @property
    def shared_with(self) -> set[str]:
        """Emails holding a named grant on this file."""
        return set(self.shares.values_list('email', flat=True))

    @property
    def blob_reference(self) -> BlobReference:
        """Blob store reference of the file content."""
        return BlobReference(
            url=self.url,
            secure_url=self.secure_url,
            provider_id=self.provider_id,
            byte_size=self.size_bytes,
        )


@final
class FileShare(models.Model):
    """Named grant: a file shared with a single email address."""

    file = models.ForeignKey(
        FileRecord,
        on_delete=models.CASCADE,
        related_name='shares',
    )

    email = models.EmailField(db_index=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        """Model metadata."""

        verbose_name = 'File Share'  # type: ignore[mutable-override]
        verbose_name_plural = 'File Shares'  # type: ignore[mutable-override]
        ordering = ['created_at']

        constraints = [
            # Sharing twice with the same email is a no-op
            models.UniqueConstraint(
                fields=['file', 'email'],
                name='fileshare_file_email_unique',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.file_id}->{self.email}'
