"""Blob storage backend for S3-compatible storage."""

import logging
from dataclasses import dataclass
from typing import Any, final
from urllib.parse import urlsplit, urlunsplit

from storages.backends.s3 import S3Storage
from typing_extensions import override

from server.apps.fileshare.exceptions import UpstreamTransferError

logger = logging.getLogger(__name__)


@final
@dataclass(frozen=True)
class BlobReference:
    """Where an uploaded blob lives in the blob store."""

    url: str
    secure_url: str
    provider_id: str
    byte_size: int


def _to_https(url: str) -> str:
    """Force the https scheme on absolute URLs."""
    parts = urlsplit(url)
    if not parts.scheme:
        return url
    return urlunsplit(parts._replace(scheme='https'))


@final
class BlobStorage(S3Storage):
    """S3 storage backend for shared files.

    Extends django-storages S3Storage with:
    - ``upload_blob`` returning a :class:`BlobReference`
    - Transfer failures mapped to ``UpstreamTransferError``
    - Enhanced error logging
    """

    @override
    def save(  # noqa: WPS211
        self,
        name: str,
        content: Any,
        max_length: int | None = None,
    ) -> str:
        """Save file to S3 with error handling and logging.

        Args:
            name: Storage path for the file.
            content: File content (file-like object).
            max_length: Optional maximum length for the filename.

        Returns:
            Actual storage path used (may differ from name if conflicts).

        Raises:
            Exception: If S3 upload fails.
        """
        try:
            logger.info('Uploading file to storage: %s', name)
            saved_name = super().save(name, content, max_length)
            logger.info('Successfully uploaded file: %s', saved_name)
        except Exception:
            logger.exception('Failed to upload file to storage: %s', name)
            raise
        else:
            return saved_name

    @override
    def delete(self, name: str) -> None:
        """Delete file from S3 with error handling and logging.

        Args:
            name: Storage path of file to delete.

        Raises:
            Exception: If S3 delete fails.
        """
        try:
            logger.info('Deleting file from storage: %s', name)
            super().delete(name)
            logger.info('Successfully deleted file: %s', name)
        except Exception:
            logger.exception('Failed to delete file from storage: %s', name)
            raise

    def upload_blob(
        self,
        destination_hint: str,
        content: Any,
        byte_size: int,
    ) -> BlobReference:
        """Upload bytes and describe where they ended up.

        Args:
            destination_hint: Preferred storage path ({user_id}/file.ext).
                The backend may add a suffix to keep names unique.
            content: File-like object to upload.
            byte_size: Size of ``content`` in bytes.

        Returns:
            Reference to the stored blob.

        Raises:
            UpstreamTransferError: If the bucket rejects the upload.
        """
        try:
            saved_name = self.save(destination_hint, content)
            url = self.url(saved_name)
        except Exception as exc:
            raise UpstreamTransferError(destination_hint) from exc

        return BlobReference(
            url=url,
            secure_url=_to_https(url),
            provider_id=saved_name,
            byte_size=byte_size,
        )
