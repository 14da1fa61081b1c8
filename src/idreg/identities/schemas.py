"""Pydantic v2 schemas for identity endpoints.

Binary fields travel as hex strings (an optional ``0x`` prefix is accepted).
"""

from datetime import datetime
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, PlainSerializer

from idreg.registry.domain import RecoveryState


def _from_hex(value: Any) -> Any:
    if isinstance(value, str):
        try:
            return bytes.fromhex(value.removeprefix("0x"))
        except ValueError:
            raise ValueError("must be a hex-encoded string")
    return value


HexBytes = Annotated[
    bytes,
    BeforeValidator(_from_hex),
    PlainSerializer(lambda value: value.hex(), return_type=str),
]


class IdentityCreate(BaseModel):
    identity_hash: HexBytes
    public_key: HexBytes
    name: str
    biometric_hash: HexBytes
    recovery_contacts: list[str]
    recovery_threshold: int


class IdentityNameUpdate(BaseModel):
    name: str


class RecoveryCompletion(BaseModel):
    new_public_key: HexBytes


class RegistrationOut(BaseModel):
    id: int


class IdentityOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    identity_hash: HexBytes
    public_key: HexBytes
    name: str
    biometric_hash: HexBytes
    timestamp: int
    owner: str
    status: bool
    recovery_contacts: list[str]
    recovery_threshold: int
    recovery_state: RecoveryState
    approvals: list[str]


class IdentityUpdateLogOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    update_name: str
    update_timestamp: int
    updater: str


class RegisteredOut(BaseModel):
    identity_hash: HexBytes
    registered: bool


class EventOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    actor: str
    action: str
    details: dict | None
    created_at: datetime
