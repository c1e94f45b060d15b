"""Business logic for sharing and public access control.

A file's public exposure is gated on three independent dimensions:
visibility (``is_public``), time (``expires_at``) and secret
(``password_hash``). Every unauthenticated path must go through
:func:`resolve_public_access`; the download reference is only released
by :func:`open_public_file` after the password check.

Concurrent ``generate_link`` calls on one file are last-write-wins,
except for the password: it is set once by a conditional update and is
immutable afterwards.
"""

import enum
import logging
from datetime import datetime
from typing import Any, Final, Literal
from uuid import UUID

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import validate_email
from django.db.models import QuerySet
from django.utils import timezone

from server.apps.fileshare.exceptions import (
    FileNotPublicError,
    InvalidCredentialError,
    ShareExpiredError,
)
from server.apps.fileshare.infrastructure.credentials import (
    hash_password,
    verify_password,
)
from server.apps.fileshare.infrastructure.storage import BlobReference
from server.apps.fileshare.logic.file_operations import (
    clean_password,
    compute_expires_at,
    ensure_owner,
    get_file,
)
from server.apps.fileshare.models import FileRecord, FileShare

# User type for Django's dynamic user model
_User = Any

_DEFAULT_PUBLIC_BASE_URL: Final = 'http://localhost:8000'

logger = logging.getLogger(__name__)


class _Unset(enum.Enum):
    UNSET = enum.auto()


#: Marker for "leave the expiration as it is" in :func:`generate_link`.
UNSET: Final = _Unset.UNSET


def build_public_link(file_id: UUID | str) -> str:
    """Build the public URL of a file.

    The link only carries the opaque file ID, never a secret.

    Args:
        file_id: File UUID.

    Returns:
        Absolute URL of the form ``{base}/files/{file_id}``.
    """
    base_url = getattr(
        settings,
        'FILESHARE_PUBLIC_BASE_URL',
        _DEFAULT_PUBLIC_BASE_URL,
    )
    return f'{base_url.rstrip("/")}/files/{file_id}'


def share_with_user(
    file_id: UUID | str,
    caller: _User,
    email: str,
) -> FileRecord:
    """Grant access to a file to a single email address.

    Emails are stored lower-cased, so sharing again with an email that
    already has a grant, in any letter case, is a no-op.

    Args:
        file_id: File to share.
        caller: Authenticated calling user, must own the file.
        email: Recipient email address.

    Returns:
        The shared FileRecord.

    Raises:
        ValidationError: If the email is missing or malformed.
        FileRecord.DoesNotExist: If file not found.
        NotFileOwnerError: If caller does not own the file.
    """
    email = (email or '').strip()
    if not email:
        raise ValidationError('Email cannot be empty')
    validate_email(email)
    email = email.lower()

    file_record = get_file(file_id)
    ensure_owner(file_record, caller)

    _, created = FileShare.objects.get_or_create(
        file=file_record,
        email=email,
    )
    if created:
        logger.info('File %s shared with %s', file_record.pk, email)
    else:
        logger.debug('File %s already shared with %s', file_record.pk, email)
    return file_record


def list_files_shared_with(
    email: str,
    now: datetime | None = None,
) -> QuerySet[FileRecord]:
    """List files that were shared with an email address.

    Args:
        email: Recipient email address.
        now: Reference time, defaults to the current time.

    Returns:
        QuerySet of FileRecord objects, newest first.
    """
    return FileRecord.objects.shared_with_email(
        email.strip(),
    ).exclude_expired(now).order_by('-uploaded_at')


def generate_link(
    file_id: UUID | str,
    caller: _User,
    *,
    expires_in_hours: float | None | Literal[_Unset.UNSET] = UNSET,
    password: str | None = None,
) -> str:
    """Make a file public and return its link.

    Expiration handling:
        - positive number: expire ``expires_in_hours`` from now,
          replacing any previous expiration;
        - ``None``: remove the expiration entirely;
        - ``UNSET`` (argument omitted): keep the current expiration.

    A password protects the link only if the file is not protected yet.
    Once set, the password can not be changed and later passwords are
    ignored.

    Args:
        file_id: File to publish.
        caller: Authenticated calling user, must own the file.
        expires_in_hours: Link lifetime, see above.
        password: Optional password for the link.

    Returns:
        Public link of the file.

    Raises:
        ValidationError: If the lifetime or password is invalid.
        FileRecord.DoesNotExist: If file not found.
        NotFileOwnerError: If caller does not own the file.
    """
    # Validation happens before any I/O
    clean_password(password)
    changes: dict[str, Any] = {'is_public': True}
    if expires_in_hours is None:
        changes['expires_at'] = None
    elif expires_in_hours is not UNSET:
        changes['expires_at'] = compute_expires_at(expires_in_hours)

    file_record = get_file(file_id)
    ensure_owner(file_record, caller)

    now = timezone.now()
    protected = 0
    if password:
        # Publish and protect in one statement, the file is never open
        protected = FileRecord.objects.filter(
            pk=file_record.pk,
            is_password_protected=False,
        ).update(
            is_password_protected=True,
            password_hash=hash_password(password),
            updated_at=now,
            **changes,
        )
        if protected:
            logger.info('Password protection set on file %s', file_record.pk)
        else:
            logger.info(
                'File %s already password protected, password ignored',
                file_record.pk,
            )

    if not protected:
        FileRecord.objects.filter(pk=file_record.pk).update(
            updated_at=now,
            **changes,
        )

    logger.info(
        'Public link generated for file %s (expires_at: %s)',
        file_record.pk,
        changes.get('expires_at', 'unchanged'),
    )
    return build_public_link(file_record.pk)


def revoke_link(file_id: UUID | str, caller: _User) -> FileRecord:
    """Take a file back to private.

    Clears the expiration as well. Password protection stays in place
    because it is immutable once set.

    Args:
        file_id: File to unpublish.
        caller: Authenticated calling user, must own the file.

    Returns:
        Updated FileRecord.

    Raises:
        FileRecord.DoesNotExist: If file not found.
        NotFileOwnerError: If caller does not own the file.
    """
    file_record = get_file(file_id)
    ensure_owner(file_record, caller)

    file_record.is_public = False
    file_record.expires_at = None
    file_record.save(update_fields=['is_public', 'expires_at', 'updated_at'])

    logger.info('Public link revoked for file %s', file_record.pk)
    return file_record


def verify_file_password(file_id: UUID | str, password: str) -> bool:
    """Check a viewer supplied password for a file.

    Files without password protection are open: any password passes.

    Args:
        file_id: Requested file.
        password: Password supplied by the viewer.

    Returns:
        True if access may be granted.

    Raises:
        FileRecord.DoesNotExist: If file not found.
    """
    file_record = get_file(file_id)
    return _password_matches(file_record, password)


def resolve_public_access(
    file_id: UUID | str,
    now: datetime | None = None,
) -> FileRecord:
    """Gate for every unauthenticated access to a file.

    Returns the record only; callers still have to check the password
    of protected files before handing out the content.

    Args:
        file_id: Requested file.
        now: Reference time, defaults to the current time.

    Returns:
        FileRecord that may be shown publicly.

    Raises:
        FileRecord.DoesNotExist: If file not found.
        FileNotPublicError: If the file is private.
        ShareExpiredError: If the link expired.
    """
    file_record = get_file(file_id)

    if not file_record.is_public:
        raise FileNotPublicError(file_record.pk)

    if file_record.is_expired(now):
        logger.info('Attempted access to expired file: %s', file_record.pk)
        raise ShareExpiredError(file_record.pk, file_record.expires_at)

    return file_record


def open_public_file(
    file_id: UUID | str,
    password: str | None = None,
    now: datetime | None = None,
) -> BlobReference:
    """Release the download reference of a publicly shared file.

    Args:
        file_id: Requested file.
        password: Password supplied by the viewer, if any.
        now: Reference time, defaults to the current time.

    Returns:
        Blob reference to download the content from.

    Raises:
        FileRecord.DoesNotExist: If file not found.
        FileNotPublicError: If the file is private.
        ShareExpiredError: If the link expired.
        InvalidCredentialError: If the password is missing or wrong.
    """
    file_record = resolve_public_access(file_id, now)

    if not _password_matches(file_record, password or ''):
        logger.info('Rejected password for file %s', file_record.pk)
        raise InvalidCredentialError(file_record.pk)

    return file_record.blob_reference


def _password_matches(file_record: FileRecord, password: str) -> bool:
    if not file_record.is_password_protected:
        return True
    return verify_password(password, file_record.password_hash)
