"""Tests for quota ledger operations."""

import pytest
from django.core.exceptions import ValidationError

from server.apps.fileshare.exceptions import QuotaExceededError
from server.apps.fileshare.logic.quota_operations import (
    create_user_profile,
    get_storage_summary,
    recalculate_usage,
    release_storage,
    reserve_storage,
)
from server.apps.fileshare.models import UserProfile


@pytest.mark.django_db
class TestCreateUserProfile:
    """Tests for create_user_profile."""

    def test_creates_default_profile(self, user):
        """Test signup profile gets 1 GiB and the user's email."""
        profile = create_user_profile(user, display_name='Test User')

        assert profile.total_storage == 1024 * 1024 * 1024
        assert profile.used_storage == 0
        assert profile.email == 'test@example.com'
        assert profile.display_name == 'Test User'

    def test_second_call_returns_existing(self, user):
        """Test creating twice keeps the first profile."""
        first = create_user_profile(user, total_storage=1000)
        second = create_user_profile(user, total_storage=5000)

        assert first.pk == second.pk
        assert second.total_storage == 1000
        assert UserProfile.objects.filter(user=user).count() == 1


@pytest.mark.django_db
class TestReserveStorage:
    """Tests for reserve_storage."""

    def test_reserve_within_quota(self, user):
        """Test reservation increments usage."""
        create_user_profile(user, total_storage=1000)

        reserve_storage(user, 600)

        assert UserProfile.objects.get(user=user).used_storage == 600

    def test_reserve_over_quota_fails_closed(self, user):
        """Test 600 used of 1000, another 500 is rejected untouched."""
        create_user_profile(user, total_storage=1000)
        reserve_storage(user, 600)

        with pytest.raises(QuotaExceededError) as exc_info:
            reserve_storage(user, 500)

        assert exc_info.value.total_storage == 1000
        assert exc_info.value.used_storage == 600
        assert exc_info.value.required_bytes == 500
        assert 'need 500 bytes, only 400 bytes available' in str(
            exc_info.value,
        )
        assert UserProfile.objects.get(user=user).used_storage == 600

    def test_reserve_exactly_remaining_space(self, user):
        """Test filling the quota to the byte is allowed."""
        create_user_profile(user, total_storage=1000)
        reserve_storage(user, 600)

        reserve_storage(user, 400)

        assert UserProfile.objects.get(user=user).used_storage == 1000

    def test_reserve_zero_bytes(self, user):
        """Test empty uploads reserve nothing."""
        create_user_profile(user, total_storage=1000)

        reserve_storage(user, 0)

        assert UserProfile.objects.get(user=user).used_storage == 0

    def test_reserve_negative_size(self, user):
        """Test negative sizes are rejected."""
        create_user_profile(user, total_storage=1000)

        with pytest.raises(ValidationError):
            reserve_storage(user, -1)

    def test_reserve_without_profile(self, user):
        """Test users without a profile can not reserve."""
        with pytest.raises(UserProfile.DoesNotExist):
            reserve_storage(user, 10)


@pytest.mark.django_db
class TestReleaseStorage:
    """Tests for release_storage."""

    def test_release_decrements_usage(self, user):
        """Test released bytes are given back."""
        create_user_profile(user, total_storage=1000)
        reserve_storage(user, 600)

        release_storage(user, 200)

        assert UserProfile.objects.get(user=user).used_storage == 400

    def test_release_clamps_to_zero(self, user, caplog):
        """Test over-release clamps and warns."""
        create_user_profile(user, total_storage=1000)
        reserve_storage(user, 100)

        release_storage(user, 250)

        assert UserProfile.objects.get(user=user).used_storage == 0
        assert 'exceeds recorded usage' in caplog.text

    def test_release_without_profile(self, user, caplog):
        """Test release for a user without profile is a logged no-op."""
        release_storage(user, 100)

        assert 'No storage profile' in caplog.text


@pytest.mark.django_db
class TestRecalculateUsage:
    """Tests for recalculate_usage."""

    def test_recalculate_from_records(self, profile, make_record):
        """Test drift is fixed from stored records."""
        make_record(name='a.txt', size_bytes=100)
        make_record(name='b.txt', size_bytes=250)
        UserProfile.objects.filter(pk=profile.pk).update(used_storage=9)

        new_usage = recalculate_usage(profile.user)

        assert new_usage == 350
        profile.refresh_from_db()
        assert profile.used_storage == 350

    def test_recalculate_clamps_to_quota(self, user, make_record):
        """Test usage never goes past the quota."""
        create_user_profile(user, total_storage=100)
        make_record(size_bytes=150)

        assert recalculate_usage(user) == 100


@pytest.mark.django_db
def test_get_storage_summary(user):
    """Test storage summary is human-readable."""
    create_user_profile(user, total_storage=2048)
    reserve_storage(user, 512)

    summary = get_storage_summary(user)

    assert summary == {
        'total': '2 KB',
        'used': '512 Bytes',
        'available': '1.5 KB',
        'percent_used': 25,
    }
