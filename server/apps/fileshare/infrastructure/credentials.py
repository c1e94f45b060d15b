"""One-way hashing for file share passwords.

Digests are unsalted SHA-256 hex strings. A salted, slow KDF keyed per
file would be stronger; the plain digest keeps compatibility with hashes
already stored on file records.
"""

import hashlib
import secrets

_ENCODING = 'utf-8'


def hash_password(plaintext: str | bytes) -> str:
    """Hash a share password.

    Args:
        plaintext: Password as text (UTF-8 encoded) or raw bytes.

    Returns:
        Hex-encoded SHA256 digest (64 characters).
    """
    if isinstance(plaintext, str):
        plaintext = plaintext.encode(_ENCODING)
    return hashlib.sha256(plaintext).hexdigest()


def verify_password(plaintext: str | bytes, digest: str) -> bool:
    """Check a password against a stored digest.

    Args:
        plaintext: Password supplied by the viewer.
        digest: Digest produced by :func:`hash_password`.

    Returns:
        True if the password hashes to ``digest``.
    """
    if not digest:
        return False
    return secrets.compare_digest(hash_password(plaintext), digest)
