"""Glue between registry results and FastAPI responses."""

from __future__ import annotations

from typing import TypeVar

from fastapi import Depends, HTTPException, status
from sqlalchemy.orm import Session

from idreg.core.db import get_db
from idreg.registry.errors import Err, ErrorCategory, Result
from idreg.registry.service import Registry

T = TypeVar("T")

_STATUS_BY_CATEGORY = {
    ErrorCategory.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorCategory.AUTHORIZATION: status.HTTP_403_FORBIDDEN,
    ErrorCategory.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorCategory.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCategory.SYSTEM: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def get_registry(db: Session = Depends(get_db)) -> Registry:
    """FastAPI dependency returning a registry bound to the request session."""
    return Registry(db)


def unwrap(result: Result[T]) -> T:
    """Return the value of an ``Ok`` or raise the matching ``HTTPException``."""
    if isinstance(result, Err):
        raise HTTPException(
            status_code=_STATUS_BY_CATEGORY[result.code.category],
            detail={"code": int(result.code), "error": result.code.name},
        )
    return result.value
