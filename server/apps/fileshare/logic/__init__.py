"""Business logic layer for fileshare app.

This package contains all business logic of the sharing core:
- Quota ledger (reserve / release storage)
- File registry (upload, list, delete)
- Sharing and public access control
- Expiry sweep for lapsed public links

All business logic should be implemented here, separate from
models (data layer) and infrastructure (external systems).
"""
