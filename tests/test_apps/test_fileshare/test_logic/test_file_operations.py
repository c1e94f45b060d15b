"""Tests for file registry operations."""

import uuid
from datetime import timedelta
from io import BytesIO

import pytest
from django.core.exceptions import ValidationError
from django.core.files.base import ContentFile
from django.db import DatabaseError, transaction
from django.utils import timezone

from server.apps.fileshare.exceptions import (
    NotFileOwnerError,
    QuotaExceededError,
    UpstreamTransferError,
)
from server.apps.fileshare.infrastructure.credentials import verify_password
from server.apps.fileshare.logic import file_operations
from server.apps.fileshare.logic.file_operations import (
    compute_expires_at,
    delete_file,
    delete_files,
    get_file,
    list_user_files,
    upload_file,
    upload_files,
)
from server.apps.fileshare.logic.quota_operations import (
    create_user_profile,
    reserve_storage,
)
from server.apps.fileshare.models import FileRecord, UserProfile


def _used_storage(user) -> int:
    return UserProfile.objects.get(user=user).used_storage


@pytest.mark.django_db
class TestUploadFile:
    """Tests for upload_file."""

    def test_upload_success(self, user, profile, mock_s3, sample_file_content):
        """Test upload stores blob, record and usage."""
        record = upload_file(user, sample_file_content, 'test.txt')

        assert record.owner == user
        assert record.name == 'test.txt'
        assert record.size_bytes == 17
        assert record.mime_type == 'text/plain'
        assert len(record.checksum_sha256) == 64
        # Storage may add suffix for uniqueness (file_overwrite=False)
        assert record.provider_id.startswith(f'{user.id}/test')
        assert record.secure_url.startswith('https://')
        assert record.is_public is False
        assert record.expires_at is None
        assert _used_storage(user) == 17

        stored = mock_s3.Object('fileshare', record.provider_id).get()
        assert stored['Body'].read() == b'test file content'

    def test_upload_plain_stream(self, user, profile, mock_s3):
        """Test uploads from a plain binary stream."""
        record = upload_file(
            user,
            BytesIO(b'%PDF-1.4 data'),
            'report.pdf',
            mime_type='application/pdf',
        )

        assert record.size_bytes == 13
        assert record.mime_type == 'application/pdf'

    def test_upload_with_sharing_options(
        self,
        user,
        profile,
        mock_s3,
        sample_file_content,
    ):
        """Test expiration and password can be set at upload."""
        before = timezone.now()

        record = upload_file(
            user,
            sample_file_content,
            'test.txt',
            expires_in_hours=2,
            password='hunter2',
        )

        assert record.expires_at >= before + timedelta(hours=2)
        assert record.is_password_protected
        assert verify_password('hunter2', record.password_hash)

    def test_upload_over_quota(self, user, mock_s3):
        """Test quota is checked before any bytes are sent."""
        create_user_profile(user, total_storage=10)

        with pytest.raises(QuotaExceededError):
            upload_file(user, ContentFile(b'x' * 11, name='a.txt'), 'a.txt')

        assert FileRecord.objects.count() == 0
        assert list(mock_s3.Bucket('fileshare').objects.all()) == []
        assert _used_storage(user) == 0

    def test_upload_empty_filename(self, user, profile, mock_s3):
        """Test invalid names are rejected before reserving quota."""
        with pytest.raises(ValidationError):
            upload_file(user, ContentFile(b'data'), '')

        assert _used_storage(user) == 0

    def test_upload_invalid_expiration(
        self,
        user,
        profile,
        mock_s3,
        sample_file_content,
    ):
        """Test non positive lifetimes are rejected."""
        with pytest.raises(ValidationError):
            upload_file(
                user,
                sample_file_content,
                'test.txt',
                expires_in_hours=0,
            )

        assert _used_storage(user) == 0

    def test_upload_failure_releases_quota(
        self,
        user,
        profile,
        mock_s3,
        sample_file_content,
    ):
        """Test a rejected transfer gives the reservation back."""
        mock_s3.Bucket('fileshare').delete()

        with pytest.raises(UpstreamTransferError):
            upload_file(user, sample_file_content, 'test.txt')

        assert FileRecord.objects.count() == 0
        assert _used_storage(user) == 0

    def test_record_failure_reports_orphaned_blob(
        self,
        user,
        profile,
        mock_s3,
        sample_file_content,
        monkeypatch,
        caplog,
    ):
        """Test a failed insert releases quota and keeps the blob."""
        def failing_create(**kwargs):  # noqa: WPS430
            raise DatabaseError('insert failed')

        monkeypatch.setattr(
            file_operations,
            'create_file_record',
            failing_create,
        )

        with pytest.raises(DatabaseError):
            upload_file(user, sample_file_content, 'test.txt')

        assert _used_storage(user) == 0
        assert 'Orphaned blob in storage' in caplog.text
        assert len(list(mock_s3.Bucket('fileshare').objects.all())) == 1

    def test_interrupted_upload_releases_quota(
        self,
        user,
        profile,
        sample_file_content,
        monkeypatch,
    ):
        """Test a worker shutdown during transfer gives quota back."""
        class InterruptedStorage:  # noqa: WPS431
            def upload_blob(self, destination_hint, content, byte_size):
                raise SystemExit(1)

        monkeypatch.setattr(
            file_operations,
            '_get_storage',
            InterruptedStorage,
        )

        with pytest.raises(SystemExit):
            upload_file(user, sample_file_content, 'test.txt')

        assert FileRecord.objects.count() == 0
        assert _used_storage(user) == 0


@pytest.mark.django_db
class TestListUserFiles:
    """Tests for list_user_files."""

    def test_newest_first(self, user, make_record):
        """Test listing order by upload time."""
        now = timezone.now()
        older = make_record(name='older.txt')
        newer = make_record(name='newer.txt')
        FileRecord.objects.filter(pk=older.pk).update(
            uploaded_at=now - timedelta(hours=1),
        )
        FileRecord.objects.filter(pk=newer.pk).update(uploaded_at=now)

        assert list(list_user_files(user)) == [newer, older]

    def test_hides_expired_public_files(self, user, make_record):
        """Test expired links vanish before the sweep runs."""
        now = timezone.now()
        expired = make_record(
            name='expired.txt',
            is_public=True,
            expires_at=now - timedelta(seconds=1),
        )
        private_past = make_record(
            name='private.txt',
            expires_at=now - timedelta(seconds=1),
        )
        live = make_record(
            name='live.txt',
            is_public=True,
            expires_at=now + timedelta(hours=1),
        )

        listed = set(list_user_files(user, now))

        assert expired not in listed
        assert listed == {private_past, live}

    def test_user_isolation(self, user, other_user, make_record):
        """Test users only see their own files."""
        own = make_record(name='mine.txt')
        make_record(name='theirs.txt', owner=other_user)

        assert list(list_user_files(user)) == [own]


@pytest.mark.django_db
class TestDeleteFile:
    """Tests for delete_file."""

    def test_delete_releases_quota_and_blob(
        self,
        user,
        profile,
        mock_s3,
        sample_file_content,
        django_capture_on_commit_callbacks,
    ):
        """Test owner delete removes record, blob and usage."""
        record = upload_file(user, sample_file_content, 'test.txt')

        with django_capture_on_commit_callbacks(execute=True):
            delete_file(record.pk, user)

        assert not FileRecord.objects.filter(pk=record.pk).exists()
        assert _used_storage(user) == 0
        assert list(mock_s3.Bucket('fileshare').objects.all()) == []

    def test_rolled_back_delete_keeps_blob(
        self,
        user,
        profile,
        mock_s3,
        sample_file_content,
        django_capture_on_commit_callbacks,
    ):
        """Test the blob survives when the record delete is rolled back."""
        record = upload_file(user, sample_file_content, 'test.txt')

        with django_capture_on_commit_callbacks(execute=True) as callbacks:
            with pytest.raises(DatabaseError):
                with transaction.atomic():
                    record.delete()
                    raise DatabaseError('rolled back')

        assert callbacks == []
        assert FileRecord.objects.filter(pk=record.pk).exists()
        assert len(list(mock_s3.Bucket('fileshare').objects.all())) == 1

    def test_delete_by_string_id(self, user, profile, mock_s3, make_record):
        """Test IDs may be passed as strings."""
        reserve_storage(user, 100)
        record = make_record(size_bytes=100)

        delete_file(str(record.pk), user)

        assert not FileRecord.objects.filter(pk=record.pk).exists()
        assert _used_storage(user) == 0

    def test_delete_not_owner(
        self,
        user,
        other_user,
        profile,
        mock_s3,
        make_record,
    ):
        """Test non-owners can not delete."""
        reserve_storage(user, 100)
        record = make_record(size_bytes=100)

        with pytest.raises(NotFileOwnerError):
            delete_file(record.pk, other_user)

        assert FileRecord.objects.filter(pk=record.pk).exists()
        assert _used_storage(user) == 100

    def test_delete_not_found(self, user):
        """Test deleting non-existent file."""
        with pytest.raises(FileRecord.DoesNotExist):
            delete_file(uuid.uuid4(), user)

    def test_delete_malformed_id(self, user):
        """Test malformed IDs are reported as missing."""
        with pytest.raises(FileRecord.DoesNotExist):
            delete_file('not-a-uuid', user)

    def test_delete_twice(self, user, profile, mock_s3, make_record):
        """Test the second delete finds nothing and releases nothing."""
        reserve_storage(user, 300)
        record = make_record(size_bytes=100)
        delete_file(record.pk, user)

        with pytest.raises(FileRecord.DoesNotExist):
            delete_file(record.pk, user)

        assert _used_storage(user) == 200


@pytest.mark.django_db
class TestBatchOperations:
    """Tests for upload_files and delete_files."""

    def test_upload_files_isolates_failures(self, user, mock_s3):
        """Test one item over quota does not stop the others."""
        create_user_profile(user, total_storage=10)

        results = upload_files(user, [
            ('small.txt', ContentFile(b'12345')),
            ('big.txt', ContentFile(b'x' * 20)),
            ('tiny.txt', ContentFile(b'123')),
        ])

        assert [result.key for result in results] == [
            'small.txt',
            'big.txt',
            'tiny.txt',
        ]
        assert [result.succeeded for result in results] == [True, False, True]
        assert isinstance(results[1].error, QuotaExceededError)
        assert FileRecord.objects.filter(owner=user).count() == 2
        assert _used_storage(user) == 8

    def test_delete_files_isolates_failures(
        self,
        user,
        other_user,
        profile,
        mock_s3,
        make_record,
    ):
        """Test a foreign file does not stop the owner's deletes."""
        reserve_storage(user, 100)
        own = make_record(size_bytes=100)
        foreign = make_record(name='x.txt', owner=other_user)

        results = delete_files([own.pk, foreign.pk, uuid.uuid4()], user)

        assert [result.succeeded for result in results] == [True, False, False]
        assert isinstance(results[1].error, NotFileOwnerError)
        assert isinstance(results[2].error, FileRecord.DoesNotExist)
        assert not FileRecord.objects.filter(pk=own.pk).exists()
        assert FileRecord.objects.filter(pk=foreign.pk).exists()


@pytest.mark.parametrize('hours', [
    0,
    -1,
    float('nan'),
    float('inf'),
    True,
    1e8,
    1e13,
])
def test_compute_expires_at_rejects_invalid(hours):
    """Test only positive finite lifetimes are accepted."""
    with pytest.raises(ValidationError):
        compute_expires_at(hours)


def test_compute_expires_at_fractional_hours():
    """Test lifetimes may be fractions of an hour."""
    now = timezone.now()

    assert compute_expires_at(0.5, now) == now + timedelta(minutes=30)


@pytest.mark.django_db
def test_get_file_by_uuid(make_record):
    """Test lookup by UUID object and string."""
    record = make_record()

    assert get_file(record.pk) == record
    assert get_file(str(record.pk)) == record
