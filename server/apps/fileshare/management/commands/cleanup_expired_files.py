"""Management command to delete files whose public link expired."""

import logging
from typing import Any

from django.conf import settings
from django.core.management.base import BaseCommand
from django.utils import timezone

from server.apps.fileshare.logic.expiry_operations import (
    find_expired_files,
    sweep_expired_files,
)

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    """Delete public files past their expiration (run hourly)."""

    help = 'Delete publicly shared files whose link has expired'

    def add_arguments(self, parser: Any) -> None:
        """Add command line arguments.

        Args:
            parser: Argument parser.
        """
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show what would be deleted without deleting',
        )
        parser.add_argument(
            '--batch-size',
            type=int,
            default=settings.FILESHARE_SWEEP_BATCH_SIZE,
            help=(
                'Max files to process '
                f'(default: {settings.FILESHARE_SWEEP_BATCH_SIZE})'
            ),
        )

    def handle(self, *args: Any, **options: Any) -> None:
        """Execute the cleanup command.

        Args:
            args: Positional arguments (unused).
            options: Command options.
        """
        batch_size = options['batch_size']
        now = timezone.now()

        self.stdout.write(f'Looking for public files expired before {now}')

        if options['dry_run']:
            expired = list(find_expired_files(now, batch_size))
            for file_record in expired:
                self.stdout.write(
                    f'Would delete: {file_record.name} '
                    f'(user: {file_record.owner.username}, '
                    f'expired: {file_record.expires_at})',
                )
            self.stdout.write(
                self.style.SUCCESS(
                    f'Would delete {len(expired)} expired files',
                ),
            )
            return

        removed = sweep_expired_files(now, batch_size)
        logger.info('cleanup_expired_files removed %d files', removed)
        self.stdout.write(
            self.style.SUCCESS(f'Deleted {removed} expired files'),
        )
