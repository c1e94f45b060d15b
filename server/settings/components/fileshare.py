"""File sharing settings."""

from server.settings.components import config

# Public links are built as {FILESHARE_PUBLIC_BASE_URL}/files/{file_id}
FILESHARE_PUBLIC_BASE_URL = config(
    'FILESHARE_PUBLIC_BASE_URL',
    default='http://localhost:8000',
)

# Quota for new users: 1 GiB
FILESHARE_DEFAULT_TOTAL_STORAGE = config(
    'FILESHARE_DEFAULT_TOTAL_STORAGE',
    cast=int,
    default=1024 * 1024 * 1024,
)

# Max expired files removed per sweep
FILESHARE_SWEEP_BATCH_SIZE = config(
    'FILESHARE_SWEEP_BATCH_SIZE',
    cast=int,
    default=1000,
)
