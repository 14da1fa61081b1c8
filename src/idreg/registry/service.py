"""Identity registry: admission control, ownership checks and record commits.

Every mutating operation follows the same shape: load (and lock) the rows it
touches, check every precondition, build the new immutable value, write the
changed fields back and commit once.  A failed precondition rolls the session
back and returns an ``Err``; nothing is written.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Sequence
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from idreg.core.audit import record_event
from idreg.core.models import IdentityRecord, IdentityUpdateRecord, RegistryState
from idreg.registry import recovery
from idreg.registry.domain import Identity, IdentityUpdateLog, Principal, RecoveryState
from idreg.registry.errors import Err, ErrorCode, Ok, Result
from idreg.registry.validation import (
    check_biometric,
    check_hash,
    check_name,
    check_public_key,
    check_recovery_contacts,
    check_threshold,
    first_error,
)
from idreg.settings import settings
from idreg.util.logging import get_logger

logger = get_logger(__name__)

STATE_ROW_ID = 1

# Ids are stored in a signed 64-bit column.
MAX_STORED_ID = 2**63 - 1

Transition = Callable[[Identity], Result[Identity]]
EventDetails = Callable[[Identity, Identity], dict[str, Any]]


def unix_now() -> int:
    """Default clock: whole seconds since the epoch."""
    return int(time.time())


def _storable_id(identity_id: int) -> bool:
    """Ids outside the column range can never have a record."""
    return 0 <= identity_id <= MAX_STORED_ID


class Registry:
    """Owns the identity map, the hash index, the id counter and the
    authority gate.

    Parameters
    ----------
    db:
        Session the registry reads and commits through.
    clock:
        Zero-argument callable returning the current time as an unsigned int.
    max_identities:
        Capacity ceiling; defaults to ``settings.MAX_IDENTITIES``.
    burn_address:
        Principal that can never be configured as the authority.
    """

    def __init__(
        self,
        db: Session,
        clock: Callable[[], int] = unix_now,
        max_identities: int | None = None,
        burn_address: str | None = None,
    ) -> None:
        self.db = db
        self.clock = clock
        self.max_identities = (
            settings.MAX_IDENTITIES if max_identities is None else max_identities
        )
        self.burn_address = settings.BURN_ADDRESS if burn_address is None else burn_address

    # ------------------------------------------------------------------
    # Registry-wide configuration
    # ------------------------------------------------------------------

    def set_authority(self, caller: Principal, principal: Principal) -> Result[Principal]:
        """Configure the authority gate.  Write-once."""
        if not principal or principal == self.burn_address:
            return self._reject("set-authority", caller, ErrorCode.INVALID_AUTHORITY)

        state = self._state(for_update=True)
        if state.authority is not None:
            return self._reject("set-authority", caller, ErrorCode.AUTHORITY_ALREADY_CONFIGURED)

        state.authority = principal
        record_event(
            self.db, caller, "authority-set", "registry", STATE_ROW_ID,
            {"authority": principal},
        )
        self._commit()
        logger.info("authority-set: %s", principal)
        return Ok(principal)

    def get_authority(self) -> Principal | None:
        state = self._peek_state()
        return state.authority if state is not None else None

    def get_identity_count(self) -> int:
        state = self._peek_state()
        return state.next_id if state is not None else 0

    # ------------------------------------------------------------------
    # Registration and updates
    # ------------------------------------------------------------------

    def register_identity(
        self,
        caller: Principal,
        identity_hash: bytes,
        public_key: bytes,
        name: str,
        biometric_hash: bytes,
        recovery_contacts: Sequence[Principal],
        recovery_threshold: int,
    ) -> Result[int]:
        """Admit a new identity and return its id.

        Preconditions are checked in a fixed order and the first failure is
        reported: capacity, hash, public key, name, biometric, contacts,
        threshold, duplicate hash, authority.
        """
        contacts = tuple(recovery_contacts)
        state = self._state(for_update=True)

        error = first_error(
            ErrorCode.CAPACITY_EXCEEDED if state.next_id >= self.max_identities else None,
            check_hash(identity_hash),
            check_public_key(public_key),
            check_name(name),
            check_biometric(biometric_hash),
            check_recovery_contacts(contacts),
            check_threshold(recovery_threshold, contacts),
        )
        if error is None and self._find_by_hash(identity_hash) is not None:
            error = ErrorCode.DUPLICATE_IDENTITY
        if error is None and state.authority is None:
            error = ErrorCode.AUTHORITY_NOT_CONFIGURED
        if error is not None:
            return self._reject("register-identity", caller, error)

        identity_id = state.next_id
        record = IdentityRecord(
            id=identity_id,
            identity_hash=bytes(identity_hash),
            public_key=bytes(public_key),
            name=name,
            biometric_hash=bytes(biometric_hash),
            timestamp=self.clock(),
            owner=caller,
            status=True,
            recovery_contacts=list(contacts),
            recovery_threshold=recovery_threshold,
            recovery_state=RecoveryState.ACTIVE.value,
            approvals=[],
        )
        self.db.add(record)
        state.next_id = identity_id + 1
        record_event(self.db, caller, "identity-registered", "identity", identity_id)

        try:
            self._commit()
        except IntegrityError:
            # Lost a race on the hash index against a concurrent registration.
            if self._find_by_hash(identity_hash) is None:
                raise
            return self._reject("register-identity", caller, ErrorCode.DUPLICATE_IDENTITY)

        logger.info("identity-registered: id=%s owner=%s", identity_id, caller)
        return Ok(identity_id)

    def update_identity(
        self, caller: Principal, identity_id: int, new_name: str
    ) -> Result[Identity]:
        """Rename a record (owner only) and overwrite its update-log slot."""
        record = self._load(identity_id)
        if record is None:
            return self._reject("update-identity", caller, ErrorCode.IDENTITY_NOT_FOUND, identity_id)
        if caller != record.owner:
            return self._reject("update-identity", caller, ErrorCode.NOT_AUTHORIZED, identity_id)
        error = check_name(new_name)
        if error is not None:
            return self._reject("update-identity", caller, error, identity_id)

        now = self.clock()
        updated = Identity.model_validate(record).model_copy(
            update={"name": new_name, "timestamp": now}
        )
        self._write(record, updated)

        log = record.last_update
        if log is None:
            log = IdentityUpdateRecord(identity_id=identity_id)
            self.db.add(log)
        log.update_name = new_name
        log.update_timestamp = now
        log.updater = caller

        record_event(
            self.db, caller, "identity-updated", "identity", identity_id, {"name": new_name}
        )
        self._commit()
        logger.info("identity-updated: id=%s", identity_id)
        return Ok(updated)

    # ------------------------------------------------------------------
    # Recovery
    # ------------------------------------------------------------------

    def initiate_recovery(self, caller: Principal, identity_id: int) -> Result[Identity]:
        return self._transition(
            "recovery-initiated",
            caller,
            identity_id,
            lambda identity: recovery.initiate(identity, caller),
        )

    def approve_recovery(self, caller: Principal, identity_id: int) -> Result[Identity]:
        return self._transition(
            "recovery-approved",
            caller,
            identity_id,
            lambda identity: recovery.approve(identity, caller),
            lambda before, after: {"approver": caller, "approvals": len(after.approvals)},
        )

    def complete_recovery(
        self, caller: Principal, identity_id: int, new_public_key: bytes
    ) -> Result[Identity]:
        now = self.clock()
        return self._transition(
            "recovery-completed",
            caller,
            identity_id,
            lambda identity: recovery.complete(identity, caller, new_public_key, now),
            lambda before, after: {"previous_owner": before.owner, "new_owner": after.owner},
        )

    # ------------------------------------------------------------------
    # Read-only lookups
    # ------------------------------------------------------------------

    def get_identity(self, identity_id: int) -> Identity | None:
        if not _storable_id(identity_id):
            return None
        record = (
            self.db.query(IdentityRecord).filter(IdentityRecord.id == identity_id).first()
        )
        return Identity.model_validate(record) if record is not None else None

    def get_identity_by_hash(self, identity_hash: bytes) -> Identity | None:
        record = self._find_by_hash(identity_hash)
        return Identity.model_validate(record) if record is not None else None

    def is_identity_registered(self, identity_hash: bytes) -> bool:
        return self._find_by_hash(identity_hash) is not None

    def get_identity_updates(self, identity_id: int) -> IdentityUpdateLog | None:
        if not _storable_id(identity_id):
            return None
        log = (
            self.db.query(IdentityUpdateRecord)
            .filter(IdentityUpdateRecord.identity_id == identity_id)
            .first()
        )
        return IdentityUpdateLog.model_validate(log) if log is not None else None

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _transition(
        self,
        event: str,
        caller: Principal,
        identity_id: int,
        transition: Transition,
        details: EventDetails | None = None,
    ) -> Result[Identity]:
        record = self._load(identity_id)
        if record is None:
            return self._reject(event, caller, ErrorCode.IDENTITY_NOT_FOUND, identity_id)

        current = Identity.model_validate(record)
        result = transition(current)
        if isinstance(result, Err):
            return self._reject(event, caller, result.code, identity_id)

        updated = result.value
        if updated == current:
            self.db.rollback()
            logger.debug("%s: id=%s caller=%s unchanged", event, identity_id, caller)
            return result

        self._write(record, updated)
        record_event(
            self.db,
            caller,
            event,
            "identity",
            identity_id,
            details(current, updated) if details is not None else None,
        )
        self._commit()
        logger.info("%s: id=%s caller=%s", event, identity_id, caller)
        return result

    def _load(self, identity_id: int) -> IdentityRecord | None:
        if not _storable_id(identity_id):
            return None
        return (
            self.db.query(IdentityRecord)
            .filter(IdentityRecord.id == identity_id)
            .with_for_update()
            .first()
        )

    def _find_by_hash(self, identity_hash: bytes) -> IdentityRecord | None:
        return (
            self.db.query(IdentityRecord)
            .filter(IdentityRecord.identity_hash == bytes(identity_hash))
            .first()
        )

    def _state(self, for_update: bool = False) -> RegistryState:
        query = self.db.query(RegistryState).filter(RegistryState.id == STATE_ROW_ID)
        if for_update:
            query = query.with_for_update()
        state = query.first()
        if state is None:
            state = RegistryState(id=STATE_ROW_ID, next_id=0, authority=None)
            self.db.add(state)
            self.db.flush()
        return state

    def _peek_state(self) -> RegistryState | None:
        return self.db.query(RegistryState).filter(RegistryState.id == STATE_ROW_ID).first()

    @staticmethod
    def _write(record: IdentityRecord, identity: Identity) -> None:
        """Copy the mutable fields of *identity* onto its row."""
        record.public_key = identity.public_key
        record.name = identity.name
        record.timestamp = identity.timestamp
        record.owner = identity.owner
        record.status = identity.status
        record.recovery_state = identity.recovery_state.value
        record.approvals = list(identity.approvals)

    def _commit(self) -> None:
        try:
            self.db.commit()
        except (IntegrityError, StaleDataError):
            self.db.rollback()
            logger.warning("commit rejected by the store; transaction rolled back")
            raise

    def _reject(
        self,
        operation: str,
        caller: Principal,
        code: ErrorCode,
        identity_id: int | None = None,
    ) -> Err:
        self.db.rollback()
        logger.debug(
            "%s rejected: %s (id=%s caller=%s)", operation, code.name, identity_id, caller
        )
        return Err(code)
