"""Business logic for the storage quota ledger.

Quota and file records live in separate rows and are never updated in
one transaction: a reservation is taken before the blob upload and
released again if the upload or the record insert fails. The two stay
eventually, not atomically, consistent.
"""

import logging
from typing import Any

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import F, Sum  # noqa: WPS347
from django.utils import timezone

from server.apps.fileshare.exceptions import QuotaExceededError
from server.apps.fileshare.infrastructure.metadata import format_bytes
from server.apps.fileshare.models import FileRecord, UserProfile

# User type for Django's dynamic user model
_User = Any

# Field name constants to avoid string literal over-use
_USED_STORAGE_FIELD = 'used_storage'  # noqa: WPS226
_UPDATED_AT_FIELD = 'updated_at'

logger = logging.getLogger(__name__)


def create_user_profile(
    user: _User,
    display_name: str = '',
    total_storage: int | None = None,
) -> UserProfile:
    """Create the storage profile for a freshly signed up user.

    Calling it again for the same user returns the existing profile.

    Args:
        user: Newly registered user.
        display_name: Name shown in the UI.
        total_storage: Quota in bytes, defaults to the configured quota.

    Returns:
        UserProfile instance for the user.
    """
    defaults: dict[str, Any] = {
        'email': user.email,
        'display_name': display_name,
    }
    if total_storage is not None:
        defaults['total_storage'] = total_storage

    profile, created = UserProfile.objects.get_or_create(
        user=user,
        defaults=defaults,
    )
    if created:
        logger.info(
            'Created storage profile for user %s: %d bytes',
            user.username,
            profile.total_storage,
        )
    return profile


def get_profile(user: _User) -> UserProfile:
    """Get the storage profile of a user.

    Args:
        user: Profile owner.

    Returns:
        UserProfile instance.

    Raises:
        UserProfile.DoesNotExist: If the user never signed up.
    """
    return UserProfile.objects.get(user=user)


def reserve_storage(user: _User, size_bytes: int) -> None:
    """Reserve quota for an upload before any bytes are transferred.

    The check and the increment are one conditional UPDATE, so the
    reservation fails closed: when ``used + size > total`` no row
    matches and nothing is written.

    Args:
        user: Uploading user.
        size_bytes: Size of the upload in bytes.

    Raises:
        ValidationError: If ``size_bytes`` is negative.
        QuotaExceededError: If upload would exceed quota.
        UserProfile.DoesNotExist: If the user has no profile.
    """
    if size_bytes < 0:
        raise ValidationError('Upload size cannot be negative')

    reserved = UserProfile.objects.filter(
        user=user,
        used_storage__lte=F('total_storage') - size_bytes,
    ).update(
        used_storage=F(_USED_STORAGE_FIELD) + size_bytes,
        updated_at=timezone.now(),
    )
    if reserved:
        logger.debug(
            'Reserved %d bytes for user %s',
            size_bytes,
            user.username,
        )
        return

    profile = get_profile(user)
    logger.warning(
        'Quota exceeded for user %s: need %d, have %d available',
        user.username,
        size_bytes,
        profile.available_bytes(),
    )
    raise QuotaExceededError(
        total_storage=profile.total_storage,
        used_storage=profile.used_storage,
        required_bytes=size_bytes,
    )


def release_storage(user: _User, size_bytes: int) -> None:
    """Give quota back after a delete or an aborted upload.

    Prevents negative values by clamping to 0. Releasing more than the
    recorded usage points at a ledger bug and is logged as a warning.

    Args:
        user: User to release quota for.
        size_bytes: Bytes to subtract from usage.
    """
    with transaction.atomic():
        try:
            profile = UserProfile.objects.select_for_update().get(user=user)
        except UserProfile.DoesNotExist:
            logger.warning(
                'No storage profile for user %s, skipping release',
                user.username,
            )
            return

        if size_bytes > profile.used_storage:
            logger.warning(
                'Release of %d bytes exceeds recorded usage %d '
                'for user %s, clamping to 0',
                size_bytes,
                profile.used_storage,
                user.username,
            )

        new_usage = max(0, profile.used_storage - size_bytes)
        profile.used_storage = new_usage
        profile.save(update_fields=[_USED_STORAGE_FIELD, _UPDATED_AT_FIELD])

    logger.debug(
        'Released %d bytes for user %s (new: %d)',
        size_bytes,
        user.username,
        new_usage,
    )


def recalculate_usage(user: _User) -> int:
    """Recalculate user's storage usage from stored file records.

    Useful for fixing drift left behind by failed uploads or deletes.
    The result is clamped to the quota so the profile stays valid.

    Args:
        user: User to recalculate usage for.

    Returns:
        New usage in bytes.

    Raises:
        UserProfile.DoesNotExist: If the user has no profile.
    """
    total = FileRecord.objects.filter(owner=user).aggregate(
        total=Sum('size_bytes'),
    )['total'] or 0

    with transaction.atomic():
        profile = UserProfile.objects.select_for_update().get(user=user)
        old_usage = profile.used_storage
        if total > profile.total_storage:
            logger.warning(
                'Stored files of user %s (%d bytes) exceed quota %d',
                user.username,
                total,
                profile.total_storage,
            )
        new_usage = min(total, profile.total_storage)
        profile.used_storage = new_usage
        profile.save(update_fields=[_USED_STORAGE_FIELD, _UPDATED_AT_FIELD])

    logger.info(
        'Recalculated usage for user %s: %d -> %d bytes',
        user.username,
        old_usage,
        new_usage,
    )

    return new_usage


def get_storage_summary(user: _User) -> dict[str, str | int]:
    """Summarize a user's storage for display.

    Args:
        user: Profile owner.

    Returns:
        Dictionary with human-readable ``total``, ``used`` and
        ``available`` sizes and an integer ``percent_used``.

    Raises:
        UserProfile.DoesNotExist: If the user has no profile.
    """
    profile = get_profile(user)
    return {
        'total': format_bytes(profile.total_storage),
        'used': format_bytes(profile.used_storage),
        'available': format_bytes(profile.available_bytes()),
        'percent_used': profile.percent_used(),
    }
