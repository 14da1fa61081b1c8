"""Social-recovery state machine for a single identity record.

States are ``active`` and ``recovery_pending``::

    active --initiate(owner)--> recovery_pending
    recovery_pending --approve(contact)--> recovery_pending
    recovery_pending --complete(anyone, threshold met)--> active

The functions here only see the record they are given.  Loading, locking and
committing the record is the registry's job.
"""

from __future__ import annotations

from idreg.registry.domain import Identity, Principal, RecoveryState
from idreg.registry.errors import Err, ErrorCode, Ok, Result
from idreg.registry.validation import check_public_key


def initiate(identity: Identity, caller: Principal) -> Result[Identity]:
    """Owner opens a recovery round with an empty approval set."""
    if caller != identity.owner:
        return Err(ErrorCode.NOT_AUTHORIZED)
    if identity.recovery_state is not RecoveryState.ACTIVE:
        return Err(ErrorCode.RECOVERY_ALREADY_INITIATED)
    return Ok(
        identity.model_copy(
            update={"recovery_state": RecoveryState.RECOVERY_PENDING, "approvals": ()}
        )
    )


def approve(identity: Identity, caller: Principal) -> Result[Identity]:
    """Record *caller*'s approval.

    Approvals have set semantics: a contact that already approved gets back
    the unchanged record, so the same contact can never count twice toward
    the threshold.
    """
    if identity.recovery_state is not RecoveryState.RECOVERY_PENDING:
        return Err(ErrorCode.RECOVERY_NOT_INITIATED)
    if caller not in identity.recovery_contacts:
        return Err(ErrorCode.NOT_AUTHORIZED)
    if caller in identity.approvals:
        return Ok(identity)

    approvals = identity.approvals + (caller,)
    if len(approvals) > len(identity.recovery_contacts):
        return Err(ErrorCode.INVALID_APPROVAL_COUNT)
    return Ok(identity.model_copy(update={"approvals": approvals}))


def complete(
    identity: Identity,
    caller: Principal,
    new_public_key: bytes,
    now: int,
) -> Result[Identity]:
    """Finish recovery: rotate the key and hand ownership to *caller*.

    Any principal may submit the completion once enough contacts approved;
    whoever submits it becomes the owner.
    """
    if identity.recovery_state is not RecoveryState.RECOVERY_PENDING:
        return Err(ErrorCode.RECOVERY_NOT_INITIATED)
    if len(identity.approvals) < identity.recovery_threshold:
        return Err(ErrorCode.INVALID_APPROVAL_COUNT)
    error = check_public_key(new_public_key)
    if error is not None:
        return Err(error)
    return Ok(
        identity.model_copy(
            update={
                "recovery_state": RecoveryState.ACTIVE,
                "approvals": (),
                "public_key": bytes(new_public_key),
                "owner": caller,
                "timestamp": now,
            }
        )
    )
