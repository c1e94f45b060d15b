"""Business logic for the file registry."""

import logging
import math
import numbers
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any, BinaryIO, final
from uuid import UUID

from django.core.exceptions import ValidationError
from django.core.files.storage import default_storage
from django.db.models import QuerySet
from django.utils import timezone

from server.apps.fileshare.exceptions import (
    NotFileOwnerError,
    OrphanedBlobError,
)
from server.apps.fileshare.infrastructure.credentials import hash_password
from server.apps.fileshare.infrastructure.metadata import (
    build_storage_path,
    calculate_checksum,
    clean_filename,
    detect_mime_type,
    get_file_size,
)
from server.apps.fileshare.logic.quota_operations import (
    release_storage,
    reserve_storage,
)
from server.apps.fileshare.models import FileRecord

if TYPE_CHECKING:
    from server.apps.fileshare.infrastructure.storage import (
        BlobReference,
        BlobStorage,
    )

# User type for Django's dynamic user model
_User = Any

logger = logging.getLogger(__name__)


@final
@dataclass(frozen=True)
class BatchItemResult:
    """Outcome of one item of a batch upload or delete."""

    key: str
    file_record: FileRecord | None = None
    error: Exception | None = None

    @property
    def succeeded(self) -> bool:
        """Whether the item went through."""
        return self.error is None


def _get_storage() -> 'BlobStorage':
    """Get the configured default storage backend.

    Returns:
        BlobStorage instance with proper S3 configuration.
    """
    return default_storage  # type: ignore[return-value]


def compute_expires_at(
    expires_in_hours: float,
    now: datetime | None = None,
) -> datetime:
    """Turn a link lifetime in hours into an absolute expiry time.

    Args:
        expires_in_hours: Positive number of hours.
        now: Reference time, defaults to the current time.

    Returns:
        Expiration timestamp.

    Raises:
        ValidationError: If the lifetime is not a positive finite number.
    """
    if (
        isinstance(expires_in_hours, bool)
        or not isinstance(expires_in_hours, numbers.Real)
        or not math.isfinite(expires_in_hours)
        or expires_in_hours <= 0
    ):
        raise ValidationError(
            'Expiration must be a positive number of hours',
        )
    try:
        return (now or timezone.now()) + timedelta(
            hours=float(expires_in_hours),
        )
    except OverflowError as error:
        raise ValidationError(
            'Expiration is too far in the future',
        ) from error


def clean_password(password: str | None) -> str | None:
    """Reject empty share passwords.

    Args:
        password: Password option, ``None`` when not requested.

    Returns:
        The password unchanged.

    Raises:
        ValidationError: If a password was requested but is empty.
    """
    if password is not None and not password:
        raise ValidationError('Password cannot be empty')
    return password


def ensure_owner(file_record: FileRecord, caller: _User) -> None:
    """Allow only the file owner through.

    Args:
        file_record: File being acted on.
        caller: Authenticated calling user.

    Raises:
        NotFileOwnerError: If caller does not own the file.
    """
    if file_record.owner_id != caller.pk:
        logger.warning(
            'User %s denied owner-only access to file %s',
            caller.pk,
            file_record.pk,
        )
        raise NotFileOwnerError(file_record.pk, caller.pk)


def get_file(file_id: UUID | str) -> FileRecord:
    """Get a file record by its ID.

    Args:
        file_id: File UUID, as object or string.

    Returns:
        FileRecord instance.

    Raises:
        FileRecord.DoesNotExist: If file not found or the ID is malformed.
    """
    try:
        pk = file_id if isinstance(file_id, UUID) else UUID(str(file_id))
    except ValueError as error:
        raise FileRecord.DoesNotExist(
            f'Malformed file ID: {file_id!r}',
        ) from error
    return FileRecord.objects.get(pk=pk)


def create_file_record(  # noqa: WPS211
    owner: _User,
    name: str,
    size_bytes: int,
    mime_type: str,
    checksum: str,
    blob: 'BlobReference',
    expires_at: datetime | None = None,
    password_hash: str = '',
) -> FileRecord:
    """Persist the record of a successfully uploaded blob.

    Must only be called after quota was reserved and the blob upload
    succeeded.

    Args:
        owner: Owner of the file.
        name: Display name of the file.
        size_bytes: File size in bytes.
        mime_type: MIME type of the content.
        checksum: SHA256 hex digest of the content.
        blob: Reference returned by the blob store.
        expires_at: Optional link expiration.
        password_hash: Optional digest for a protected link.

    Returns:
        Created FileRecord instance.
    """
    file_record = FileRecord.objects.create(
        owner=owner,
        name=name,
        size_bytes=size_bytes,
        mime_type=mime_type,
        checksum_sha256=checksum,
        url=blob.url,
        secure_url=blob.secure_url,
        provider_id=blob.provider_id,
        expires_at=expires_at,
        is_password_protected=bool(password_hash),
        password_hash=password_hash,
    )
    logger.info(
        'File record created: %s (ID: %s)',
        blob.provider_id,
        file_record.pk,
    )
    return file_record


def upload_file(  # noqa: WPS211
    user: _User,
    file_obj: BinaryIO | Any,
    filename: str,
    *,
    mime_type: str = '',
    expires_in_hours: float | None = None,
    password: str | None = None,
) -> FileRecord:
    """Upload a file to storage and register it.

    Order: validate input, reserve quota, upload blob, create record.
    The reservation is released again when the upload or the record
    insert fails. A blob whose record could not be stored is left in the
    bucket and reported as orphaned, it is not rolled back.

    Args:
        user: Owner of the file.
        file_obj: File-like object to upload.
        filename: Name of the file as sent by the client.
        mime_type: MIME type declared by the client, guessed if empty.
        expires_in_hours: Optional link lifetime applied at upload.
        password: Optional link password applied at upload.

    Returns:
        Created FileRecord instance.

    Raises:
        ValidationError: If filename or options are invalid.
        QuotaExceededError: If upload would exceed quota.
        UserProfile.DoesNotExist: If the user has no profile.
        UpstreamTransferError: If the blob store rejects the upload.
    """
    # Validation happens before any I/O
    name = clean_filename(filename)
    storage_path = build_storage_path(user.id, name)
    clean_password(password)
    expires_at = None
    if expires_in_hours is not None:
        expires_at = compute_expires_at(expires_in_hours)

    logger.info('Calculating metadata for file: %s', storage_path)
    file_size = get_file_size(file_obj)
    checksum = calculate_checksum(file_obj)
    detected_type = detect_mime_type(name, mime_type)
    password_hash = hash_password(password) if password else ''

    # Step 1: Reserve quota
    reserve_storage(user, file_size)

    # Step 2: Upload to storage
    # Any abort after the reservation, interrupts included, releases it
    try:
        blob = _get_storage().upload_blob(storage_path, file_obj, file_size)
    except BaseException:
        logger.exception('Failed to upload file to storage: %s', storage_path)
        release_storage(user, file_size)
        raise

    # Step 3: Create the record
    try:
        return create_file_record(
            owner=user,
            name=name,
            size_bytes=file_size,
            mime_type=detected_type,
            checksum=checksum,
            blob=blob,
            expires_at=expires_at,
            password_hash=password_hash,
        )
    except BaseException:
        logger.warning(
            '%s',
            OrphanedBlobError(blob.provider_id),
            exc_info=True,
        )
        release_storage(user, file_size)
        raise


def list_user_files(
    user: _User,
    now: datetime | None = None,
) -> QuerySet[FileRecord]:
    """List a user's files, newest first.

    Expired public files are left out, they are waiting for the
    expiry sweep.

    Args:
        user: Owner of files.
        now: Reference time, defaults to the current time.

    Returns:
        QuerySet of FileRecord objects.
    """
    return FileRecord.objects.filter(
        owner=user,
    ).exclude_expired(now).order_by('-uploaded_at')


def delete_file(file_id: UUID | str, caller: _User) -> None:
    """Delete a file record and give its quota back.

    Storage deletion is handled by the post_delete signal handler in
    signals.py and never blocks the metadata delete.

    Args:
        file_id: ID of file to delete.
        caller: Authenticated calling user.

    Raises:
        FileRecord.DoesNotExist: If file doesn't exist (or was removed
            concurrently).
        NotFileOwnerError: If caller does not own the file.
    """
    file_record = get_file(file_id)
    ensure_owner(file_record, caller)

    owner = file_record.owner
    size_bytes = file_record.size_bytes
    logger.info(
        'Deleting file: ID=%s, blob=%s',
        file_record.pk,
        file_record.provider_id,
    )

    _, deleted_per_model = file_record.delete()
    if not deleted_per_model.get(FileRecord._meta.label):
        # Another request removed it between our read and delete
        raise FileRecord.DoesNotExist(f'File already deleted: {file_id}')

    release_storage(owner, size_bytes)
    logger.info('File record deleted: ID=%s', file_id)


def upload_files(
    user: _User,
    uploads: Iterable[tuple[str, BinaryIO | Any]],
    *,
    expires_in_hours: float | None = None,
    password: str | None = None,
) -> list[BatchItemResult]:
    """Upload several files, each independently of the others.

    Args:
        user: Owner of the files.
        uploads: Pairs of (filename, file-like object).
        expires_in_hours: Optional link lifetime applied to every file.
        password: Optional link password applied to every file.

    Returns:
        One result per upload, in input order.
    """
    results = []
    for filename, file_obj in uploads:
        try:
            file_record = upload_file(
                user,
                file_obj,
                filename,
                expires_in_hours=expires_in_hours,
                password=password,
            )
        except Exception as exc:
            logger.exception('Failed to upload file in batch: %s', filename)
            results.append(BatchItemResult(key=filename, error=exc))
        else:
            results.append(
                BatchItemResult(key=filename, file_record=file_record),
            )
    return results


def delete_files(
    file_ids: Iterable[UUID | str],
    caller: _User,
) -> list[BatchItemResult]:
    """Delete several files, each independently of the others.

    Args:
        file_ids: IDs of files to delete.
        caller: Authenticated calling user.

    Returns:
        One result per file ID, in input order.
    """
    results = []
    for file_id in file_ids:
        try:
            delete_file(file_id, caller)
        except Exception as exc:
            logger.exception('Failed to delete file in batch: %s', file_id)
            results.append(BatchItemResult(key=str(file_id), error=exc))
        else:
            results.append(BatchItemResult(key=str(file_id)))
    return results
