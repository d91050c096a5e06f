"""Password hashing primitives built on bcrypt."""

from __future__ import annotations

import logging

import bcrypt

from identity_core.core.config import MIN_PASSWORD_HASH_WORK_FACTOR

LOGGER = logging.getLogger(__name__)

# bcrypt only reads the first 72 bytes of a password.
_BCRYPT_MAX_BYTES = 72


def _password_bytes(password: str) -> bytes:
    return password.encode("utf-8")[:_BCRYPT_MAX_BYTES]


class CredentialHasher:
    """One-way salted adaptive hashing of plaintext passwords.

    Hashes are self-describing (salt and cost are embedded), so a plaintext can
    only ever be checked against a hash; two hashes of the same plaintext never
    compare equal.
    """

    def __init__(self, work_factor: int = MIN_PASSWORD_HASH_WORK_FACTOR) -> None:
        if work_factor < MIN_PASSWORD_HASH_WORK_FACTOR:
            raise ValueError(
                f"work_factor must be at least {MIN_PASSWORD_HASH_WORK_FACTOR}"
            )
        self._work_factor = work_factor

    @property
    def work_factor(self) -> int:
        return self._work_factor

    def hash(self, password: str) -> str:
        """Hash password with a fresh salt at the configured cost."""
        salt = bcrypt.gensalt(rounds=self._work_factor)
        return bcrypt.hashpw(_password_bytes(password), salt).decode("utf-8")

    def verify(self, password: str, stored_hash: str) -> bool:
        """Check password against a stored hash; malformed input yields ``False``."""
        if not password or not stored_hash:
            return False
        try:
            return bcrypt.checkpw(_password_bytes(password), stored_hash.encode("utf-8"))
        except (ValueError, TypeError):
            LOGGER.warning("Rejected malformed credential hash during verification")
            return False

