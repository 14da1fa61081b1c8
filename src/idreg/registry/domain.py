"""Immutable domain values for identity records.

Every transition builds a new value with ``model_copy(update=...)``; nothing
in the registry mutates an ``Identity`` in place.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict

Principal = str

HASH_LENGTH = 32
PUBLIC_KEY_LENGTH = 33
BIOMETRIC_LENGTH = 32
MIN_NAME_LENGTH = 1
MAX_NAME_LENGTH = 100
MIN_RECOVERY_CONTACTS = 2
MAX_RECOVERY_CONTACTS = 5


class RecoveryState(str, Enum):
    ACTIVE = "active"
    RECOVERY_PENDING = "recovery_pending"


class Identity(BaseModel):
    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: int
    identity_hash: bytes
    public_key: bytes
    name: str
    biometric_hash: bytes
    timestamp: int
    owner: Principal
    status: bool = True
    recovery_contacts: tuple[Principal, ...]
    recovery_threshold: int
    recovery_state: RecoveryState = RecoveryState.ACTIVE
    approvals: tuple[Principal, ...] = ()


class IdentityUpdateLog(BaseModel):
    model_config = ConfigDict(frozen=True, from_attributes=True)

    update_name: str
    update_timestamp: int
    updater: Principal
