"""Signal handlers for fileshare app."""

import logging

from django.core.files.storage import default_storage
from django.db import transaction
from django.db.models.signals import post_delete
from django.dispatch import receiver

from server.apps.fileshare.models import FileRecord

logger = logging.getLogger(__name__)


@receiver(post_delete, sender=FileRecord)
def delete_blob_from_storage(
    sender: type[FileRecord],
    instance: FileRecord,
    **kwargs: object,
) -> None:
    """Delete the blob once its FileRecord delete is committed.

    Runs for owner deletes, expiry sweeps, admin and cascades alike.
    A rolled back delete keeps its blob. Blob deletion is best-effort:
    the record is already gone and quota release must not depend on the
    blob store being reachable.

    Args:
        sender: The FileRecord model class.
        instance: The FileRecord instance being deleted.
        **kwargs: Additional signal arguments.
    """
    provider_id = instance.provider_id
    if not provider_id:
        return

    transaction.on_commit(lambda: _delete_blob(provider_id))


def _delete_blob(provider_id: str) -> None:
    logger.info(
        'Deleting blob from storage after record delete: %s',
        provider_id,
    )

    try:
        if default_storage.exists(provider_id):
            default_storage.delete(provider_id)
            logger.info('Blob deleted from storage: %s', provider_id)
        else:
            logger.warning(
                'Blob not found in storage (already deleted?): %s',
                provider_id,
            )
    except Exception:
        # Orphaned blob can be cleaned up by a reconciliation job
        logger.exception(
            'Failed to delete blob from storage (orphaned): %s',
            provider_id,
        )
