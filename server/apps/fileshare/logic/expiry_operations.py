"""Business logic for the expiry sweep of public links.

The sweep is a plain function; whatever scheduler runs it (cron calling
the ``cleanup_expired_files`` command, a periodic task) only has to call
it at least as often as the staleness it is willing to accept.
"""

import logging
from datetime import datetime

from django.conf import settings
from django.db.models import QuerySet
from django.utils import timezone

from server.apps.fileshare.logic.file_operations import delete_file
from server.apps.fileshare.models import FileRecord

logger = logging.getLogger(__name__)


def find_expired_files(
    now: datetime | None = None,
    batch_size: int | None = None,
) -> QuerySet[FileRecord]:
    """Find public files whose link expired, oldest expiry first.

    Args:
        now: Reference time, defaults to the current time.
        batch_size: Optional maximum number of files.

    Returns:
        QuerySet of expired FileRecord objects.
    """
    expired = FileRecord.objects.expired(now).select_related(
        'owner',
    ).order_by('expires_at')
    if batch_size is not None:
        return expired[:batch_size]
    return expired


def sweep_expired_files(
    now: datetime | None = None,
    batch_size: int | None = None,
) -> int:
    """Delete every public file whose link expired.

    Each file is deleted with its owner's authority. A file that is
    already gone (removed by a concurrent sweep or its owner) counts as
    handled, any other failure is logged and does not stop the sweep.

    Args:
        now: Reference time, defaults to the current time.
        batch_size: Maximum files per sweep, defaults to
            ``FILESHARE_SWEEP_BATCH_SIZE``.

    Returns:
        Number of files this sweep removed.
    """
    now = now or timezone.now()
    if batch_size is None:
        batch_size = getattr(settings, 'FILESHARE_SWEEP_BATCH_SIZE', None)

    removed = 0
    failed = 0
    for file_record in list(find_expired_files(now, batch_size)):
        try:
            delete_file(file_record.pk, file_record.owner)
        except FileRecord.DoesNotExist:
            logger.debug(
                'Expired file already deleted: %s',
                file_record.pk,
            )
        except Exception:
            logger.exception(
                'Failed to delete expired file: %s',
                file_record.pk,
            )
            failed += 1
        else:
            removed += 1
            logger.info(
                'Auto-deleted expired file: %s (ID: %s)',
                file_record.name,
                file_record.pk,
            )

    logger.info(
        'Expiry sweep finished: %d removed, %d failed',
        removed,
        failed,
    )
    return removed
