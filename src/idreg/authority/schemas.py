"""Pydantic v2 schemas for registry configuration endpoints."""

from pydantic import BaseModel


class AuthorityUpdate(BaseModel):
    principal: str


class RegistryOut(BaseModel):
    authority: str | None
    identity_count: int
    max_identities: int
