"""Error codes and the Ok/Err result type returned by registry operations."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Generic, TypeVar, Union

T = TypeVar("T")


class ErrorCategory:
    VALIDATION = "validation"
    AUTHORIZATION = "authorization"
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"
    SYSTEM = "system"


class ErrorCode(IntEnum):
    NOT_AUTHORIZED = 100
    DUPLICATE_IDENTITY = 101
    INVALID_HASH = 102
    INVALID_PUBLIC_KEY = 103
    INVALID_NAME = 104
    INVALID_BIOMETRIC = 105
    IDENTITY_NOT_FOUND = 107
    INVALID_RECOVERY_CONTACTS = 108
    RECOVERY_ALREADY_INITIATED = 109
    RECOVERY_NOT_INITIATED = 110
    INVALID_APPROVAL_COUNT = 111
    INVALID_AUTHORITY = 112
    AUTHORITY_ALREADY_CONFIGURED = 113
    AUTHORITY_NOT_CONFIGURED = 114
    CAPACITY_EXCEEDED = 115

    @property
    def category(self) -> str:
        return _CATEGORIES[self]


_CATEGORIES = {
    ErrorCode.INVALID_HASH: ErrorCategory.VALIDATION,
    ErrorCode.INVALID_PUBLIC_KEY: ErrorCategory.VALIDATION,
    ErrorCode.INVALID_NAME: ErrorCategory.VALIDATION,
    ErrorCode.INVALID_BIOMETRIC: ErrorCategory.VALIDATION,
    ErrorCode.INVALID_RECOVERY_CONTACTS: ErrorCategory.VALIDATION,
    ErrorCode.INVALID_APPROVAL_COUNT: ErrorCategory.VALIDATION,
    ErrorCode.INVALID_AUTHORITY: ErrorCategory.VALIDATION,
    ErrorCode.NOT_AUTHORIZED: ErrorCategory.AUTHORIZATION,
    ErrorCode.DUPLICATE_IDENTITY: ErrorCategory.CONFLICT,
    ErrorCode.RECOVERY_ALREADY_INITIATED: ErrorCategory.CONFLICT,
    ErrorCode.RECOVERY_NOT_INITIATED: ErrorCategory.CONFLICT,
    ErrorCode.AUTHORITY_ALREADY_CONFIGURED: ErrorCategory.CONFLICT,
    ErrorCode.IDENTITY_NOT_FOUND: ErrorCategory.NOT_FOUND,
    ErrorCode.CAPACITY_EXCEEDED: ErrorCategory.SYSTEM,
    ErrorCode.AUTHORITY_NOT_CONFIGURED: ErrorCategory.SYSTEM,
}


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    code: ErrorCode

    @property
    def ok(self) -> bool:
        return False


Result = Union[Ok[T], Err]
