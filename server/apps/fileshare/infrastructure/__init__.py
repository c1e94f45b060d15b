"""Infrastructure layer for fileshare app.

This package contains integrations with external systems:
- Blob storage backend (S3/MinIO/R2)
- Metadata extraction (MIME type, checksum, size)
- Password digests for protected links

Keep infrastructure concerns separate from business logic.
"""
