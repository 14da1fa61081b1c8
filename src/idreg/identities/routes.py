"""Identity registration, update and social-recovery endpoints."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status

from idreg.auth.dependencies import get_current_principal
from idreg.core.audit import list_events
from idreg.core.http import get_registry, unwrap
from idreg.core.models import AuditLog
from idreg.identities.schemas import (
    EventOut,
    IdentityCreate,
    IdentityNameUpdate,
    IdentityOut,
    IdentityUpdateLogOut,
    RecoveryCompletion,
    RegisteredOut,
    RegistrationOut,
)
from idreg.registry.domain import Identity
from idreg.registry.errors import ErrorCode
from idreg.registry.service import Registry

router = APIRouter(prefix="/api/v1/identities", tags=["identities"])


def _not_found() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail={"code": int(ErrorCode.IDENTITY_NOT_FOUND), "error": ErrorCode.IDENTITY_NOT_FOUND.name},
    )


def _out(identity: Identity) -> IdentityOut:
    return IdentityOut.model_validate(identity, from_attributes=True)


def _decode_hash(value: str) -> bytes:
    try:
        return bytes.fromhex(value.removeprefix("0x"))
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": int(ErrorCode.INVALID_HASH), "error": ErrorCode.INVALID_HASH.name},
        )


@router.post("/", response_model=RegistrationOut, status_code=status.HTTP_201_CREATED)
def register_identity(
    body: IdentityCreate,
    caller: str = Depends(get_current_principal),
    registry: Registry = Depends(get_registry),
) -> RegistrationOut:
    """Register a new identity owned by the caller."""
    identity_id = unwrap(
        registry.register_identity(
            caller,
            body.identity_hash,
            body.public_key,
            body.name,
            body.biometric_hash,
            body.recovery_contacts,
            body.recovery_threshold,
        )
    )
    return RegistrationOut(id=identity_id)


@router.get("/by-hash/{identity_hash}", response_model=IdentityOut)
def get_identity_by_hash(
    identity_hash: str,
    caller: str = Depends(get_current_principal),
    registry: Registry = Depends(get_registry),
) -> IdentityOut:
    """Resolve a content hash to its identity record."""
    identity = registry.get_identity_by_hash(_decode_hash(identity_hash))
    if identity is None:
        raise _not_found()
    return _out(identity)


@router.get("/registered/{identity_hash}", response_model=RegisteredOut)
def is_identity_registered(
    identity_hash: str,
    caller: str = Depends(get_current_principal),
    registry: Registry = Depends(get_registry),
) -> RegisteredOut:
    """Report whether a content hash is already registered."""
    decoded = _decode_hash(identity_hash)
    return RegisteredOut(
        identity_hash=decoded,
        registered=registry.is_identity_registered(decoded),
    )


@router.get("/{identity_id}", response_model=IdentityOut)
def get_identity(
    identity_id: Annotated[int, Path(ge=0)],
    caller: str = Depends(get_current_principal),
    registry: Registry = Depends(get_registry),
) -> IdentityOut:
    identity = registry.get_identity(identity_id)
    if identity is None:
        raise _not_found()
    return _out(identity)


@router.put("/{identity_id}", response_model=IdentityOut)
def update_identity(
    identity_id: Annotated[int, Path(ge=0)],
    body: IdentityNameUpdate,
    caller: str = Depends(get_current_principal),
    registry: Registry = Depends(get_registry),
) -> IdentityOut:
    """Rename an identity.  Only the current owner may do this."""
    return _out(unwrap(registry.update_identity(caller, identity_id, body.name)))


@router.get("/{identity_id}/updates", response_model=IdentityUpdateLogOut)
def get_identity_updates(
    identity_id: Annotated[int, Path(ge=0)],
    caller: str = Depends(get_current_principal),
    registry: Registry = Depends(get_registry),
) -> IdentityUpdateLogOut:
    """Return the most recent name update of an identity."""
    log = registry.get_identity_updates(identity_id)
    if log is None:
        raise _not_found()
    return IdentityUpdateLogOut.model_validate(log, from_attributes=True)


@router.get("/{identity_id}/events", response_model=list[EventOut])
def get_identity_events(
    identity_id: Annotated[int, Path(ge=0)],
    limit: int = Query(default=100, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
    caller: str = Depends(get_current_principal),
    registry: Registry = Depends(get_registry),
) -> list[AuditLog]:
    """Return the domain events recorded for an identity, oldest first."""
    if registry.get_identity(identity_id) is None:
        raise _not_found()
    return list_events(registry.db, "identity", identity_id, limit=limit, offset=offset)


# -- Recovery -----------------------------------------------------------------

@router.post("/{identity_id}/recovery", response_model=IdentityOut)
def initiate_recovery(
    identity_id: Annotated[int, Path(ge=0)],
    caller: str = Depends(get_current_principal),
    registry: Registry = Depends(get_registry),
) -> IdentityOut:
    """Open a recovery round (owner only)."""
    return _out(unwrap(registry.initiate_recovery(caller, identity_id)))


@router.post("/{identity_id}/recovery/approvals", response_model=IdentityOut)
def approve_recovery(
    identity_id: Annotated[int, Path(ge=0)],
    caller: str = Depends(get_current_principal),
    registry: Registry = Depends(get_registry),
) -> IdentityOut:
    """Approve a pending recovery (recovery contacts only)."""
    return _out(unwrap(registry.approve_recovery(caller, identity_id)))


@router.post("/{identity_id}/recovery/complete", response_model=IdentityOut)
def complete_recovery(
    identity_id: Annotated[int, Path(ge=0)],
    body: RecoveryCompletion,
    caller: str = Depends(get_current_principal),
    registry: Registry = Depends(get_registry),
) -> IdentityOut:
    """Complete a recovery once the approval threshold is met.

    The caller becomes the new owner and ``new_public_key`` replaces the
    record's key.
    """
    return _out(unwrap(registry.complete_recovery(caller, identity_id, body.new_public_key)))
