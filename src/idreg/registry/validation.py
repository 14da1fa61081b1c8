"""Input validation shared by registration, updates and recovery.

Each check returns the ``ErrorCode`` to report, or ``None`` when the input is
acceptable.
"""

from __future__ import annotations

from collections.abc import Sequence

from idreg.registry.domain import (
    BIOMETRIC_LENGTH,
    HASH_LENGTH,
    MAX_NAME_LENGTH,
    MAX_RECOVERY_CONTACTS,
    MIN_NAME_LENGTH,
    MIN_RECOVERY_CONTACTS,
    PUBLIC_KEY_LENGTH,
)
from idreg.registry.errors import ErrorCode


def check_hash(identity_hash: bytes) -> ErrorCode | None:
    if len(identity_hash) != HASH_LENGTH:
        return ErrorCode.INVALID_HASH
    return None


def check_public_key(public_key: bytes) -> ErrorCode | None:
    if len(public_key) != PUBLIC_KEY_LENGTH:
        return ErrorCode.INVALID_PUBLIC_KEY
    return None


def check_name(name: str) -> ErrorCode | None:
    """Names are counted in characters, not encoded bytes."""
    if not MIN_NAME_LENGTH <= len(name) <= MAX_NAME_LENGTH:
        return ErrorCode.INVALID_NAME
    return None


def check_biometric(biometric_hash: bytes) -> ErrorCode | None:
    if len(biometric_hash) != BIOMETRIC_LENGTH:
        return ErrorCode.INVALID_BIOMETRIC
    return None


def check_recovery_contacts(contacts: Sequence[str]) -> ErrorCode | None:
    """Between two and five contacts, no principal listed twice."""
    if not MIN_RECOVERY_CONTACTS <= len(contacts) <= MAX_RECOVERY_CONTACTS:
        return ErrorCode.INVALID_RECOVERY_CONTACTS
    if len(set(contacts)) != len(contacts):
        return ErrorCode.INVALID_RECOVERY_CONTACTS
    return None


def check_threshold(threshold: int, contacts: Sequence[str]) -> ErrorCode | None:
    if not 1 <= threshold <= len(contacts):
        return ErrorCode.INVALID_APPROVAL_COUNT
    return None


def first_error(*checks: ErrorCode | None) -> ErrorCode | None:
    """Return the first failing check, preserving the order given."""
    for code in checks:
        if code is not None:
            return code
    return None
