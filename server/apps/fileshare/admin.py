"""Django admin configuration for fileshare app."""

from django.contrib import admin
from django.db.models import QuerySet
from django.http import HttpRequest
from django.utils.html import format_html

from server.apps.fileshare.infrastructure.metadata import format_bytes
from server.apps.fileshare.models import FileRecord, FileShare, UserProfile


class FileShareInline(admin.TabularInline):  # type: ignore[type-arg]
    """Named grants shown on the file page."""

    model = FileShare
    extra = 0
    readonly_fields = ['created_at']


@admin.register(FileRecord)
class FileRecordAdmin(admin.ModelAdmin[FileRecord]):
    """Admin interface for FileRecord model."""

    list_display = [
        'name',
        'owner',
        'size_display',
        'mime_type',
        'share_status_display',
        'expires_at',
        'uploaded_at',
    ]

    list_filter = [
        'is_public',
        'is_password_protected',
        'mime_type',
        'uploaded_at',
    ]

    search_fields = [
        'name',
        'provider_id',
        'checksum_sha256',
    ]

    # Protection and ownership only change through the sharing logic
    readonly_fields = [
        'id',
        'owner',
        'size_bytes',
        'mime_type',
        'checksum_sha256',
        'url',
        'secure_url',
        'provider_id',
        'is_password_protected',
        'uploaded_at',
        'updated_at',
    ]

    exclude = ['password_hash']

    inlines = [FileShareInline]

    def size_display(self, obj: FileRecord) -> str:
        """Display file size in human-readable format.

        Args:
            obj: FileRecord instance.

        Returns:
            Formatted size string (e.g., '1.5 MB', '234 Bytes').
        """
        return format_bytes(obj.size_bytes)
    size_display.short_description = 'Size'  # type: ignore[attr-defined]

    def share_status_display(self, obj: FileRecord) -> str:
        """Display derived share status.

        Args:
            obj: FileRecord instance.

        Returns:
            Share status label.
        """
        return obj.share_status().value
    share_status_display.short_description = 'Sharing'  # type: ignore[attr-defined]

    def get_queryset(self, request: HttpRequest) -> QuerySet[FileRecord]:
        """Optimize queryset with select_related.

        Args:
            request: HTTP request.

        Returns:
            Optimized QuerySet.
        """
        return super().get_queryset(request).select_related('owner')


@admin.register(UserProfile)
class UserProfileAdmin(admin.ModelAdmin[UserProfile]):
    """Admin interface for UserProfile model."""

    list_display = [
        'user',
        'email',
        'quota_display',
        'used_display',
        'percentage_display',
        'status_display',
    ]

    search_fields = [
        'user__username',
        'email',
        'display_name',
    ]

    # Usage is owned by the quota ledger
    readonly_fields = [
        'user',
        'used_storage',
        'created_at',
        'updated_at',
    ]

    fieldsets = (
        ('User', {
            'fields': ('user', 'email', 'display_name'),
        }),
        ('Quota Settings', {
            'fields': ('total_storage',),
        }),
        ('Current Usage', {
            'fields': ('used_storage',),
        }),
        ('Timestamps', {
            'fields': ('created_at', 'updated_at'),
        }),
    )

    def quota_display(self, obj: UserProfile) -> str:
        """Display quota in human-readable format.

        Args:
            obj: UserProfile instance.

        Returns:
            Formatted quota string.
        """
        return format_bytes(obj.total_storage)
    quota_display.short_description = 'Quota'  # type: ignore[attr-defined]

    def used_display(self, obj: UserProfile) -> str:
        """Display used bytes in human-readable format.

        Args:
            obj: UserProfile instance.

        Returns:
            Formatted used bytes string.
        """
        return format_bytes(obj.used_storage)
    used_display.short_description = 'Used'  # type: ignore[attr-defined]

    def percentage_display(self, obj: UserProfile) -> str:
        """Display percentage of quota used.

        Args:
            obj: UserProfile instance.

        Returns:
            Percentage string.
        """
        return f'{obj.percent_used()}%'
    percentage_display.short_description = '%'  # type: ignore[attr-defined]

    def status_display(self, obj: UserProfile) -> str:
        """Display status indicator based on usage.

        Args:
            obj: UserProfile instance.

        Returns:
            HTML formatted status indicator.
        """
        percentage = obj.percent_used()

        if percentage >= 100:
            color = '#dc3545'  # Red - full
            status = 'Full'
        elif percentage >= 90:
            color = '#ffc107'  # Yellow - warning
            status = 'Warning'
        else:
            color = '#28a745'  # Green - ok
            status = 'OK'

        return format_html(
            '<span style="color: {color}; font-weight: bold;">'
            '{status}</span>',
            color=color,
            status=status,
        )
    status_display.short_description = 'Status'  # type: ignore[attr-defined]

    def get_queryset(self, request: HttpRequest) -> QuerySet[UserProfile]:
        """Optimize queryset with select_related.

        Args:
            request: HTTP request.

        Returns:
            Optimized QuerySet.
        """
        return super().get_queryset(request).select_related('user')
