"""Shared fixtures for fileshare app tests."""

from datetime import datetime

import boto3
import pytest
from django.contrib.auth import get_user_model
from django.core.files.base import ContentFile
from moto import mock_aws

from server.apps.fileshare.infrastructure.credentials import hash_password
from server.apps.fileshare.logic.quota_operations import create_user_profile
from server.apps.fileshare.models import FileRecord

User = get_user_model()

_MIB = 1024 * 1024


@pytest.fixture
def user(db):
    """Create test user.

    Returns:
        User instance for testing.
    """
    return User.objects.create_user(
        username='testuser',
        password='testpass123',
        email='test@example.com',
    )


@pytest.fixture
def other_user(db):
    """Create second test user for isolation tests.

    Returns:
        Second user instance.
    """
    return User.objects.create_user(
        username='otheruser',
        password='testpass123',
        email='other@example.com',
    )


@pytest.fixture
def profile(user):
    """Storage profile with a 10 MiB quota.

    Returns:
        UserProfile of ``user``.
    """
    return create_user_profile(user, total_storage=10 * _MIB)


@pytest.fixture
def other_profile(other_user):
    """Storage profile of the second user.

    Returns:
        UserProfile of ``other_user``.
    """
    return create_user_profile(other_user, total_storage=10 * _MIB)


@pytest.fixture
def mock_s3():
    """Mock S3 service with fileshare bucket.

    Yields:
        boto3 S3 resource with fileshare bucket created.
    """
    with mock_aws():
        conn = boto3.resource('s3', region_name='us-east-1')
        conn.create_bucket(Bucket='fileshare')
        yield conn


@pytest.fixture
def sample_file_content():
    """Sample file content for testing.

    Returns:
        ContentFile with test data.
    """
    return ContentFile(b'test file content', name='test.txt')


@pytest.fixture
def make_record(user):
    """Factory for file records that skip the blob store.

    Returns:
        Callable creating a FileRecord.
    """
    def factory(  # noqa: WPS430
        name: str = 'report.pdf',
        size_bytes: int = 100,
        owner=None,
        is_public: bool = False,
        expires_at: datetime | None = None,
        password: str | None = None,
    ) -> FileRecord:
        owner = owner or user
        return FileRecord.objects.create(
            owner=owner,
            name=name,
            size_bytes=size_bytes,
            mime_type='application/pdf',
            checksum_sha256='a' * 64,
            url=f'http://s3.local/fileshare/{owner.pk}/{name}',
            secure_url=f'https://s3.local/fileshare/{owner.pk}/{name}',
            provider_id=f'{owner.pk}/{name}',
            is_public=is_public,
            expires_at=expires_at,
            is_password_protected=bool(password),
            password_hash=hash_password(password) if password else '',
        )

    return factory
