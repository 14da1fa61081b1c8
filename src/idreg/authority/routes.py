"""Registry-wide configuration endpoints (authority gate, capacity)."""

from fastapi import APIRouter, Depends

from idreg.auth.dependencies import get_current_principal
from idreg.authority.schemas import AuthorityUpdate, RegistryOut
from idreg.core.http import get_registry, unwrap
from idreg.registry.service import Registry

router = APIRouter(prefix="/api/v1/registry", tags=["registry"])


def _describe(registry: Registry) -> RegistryOut:
    return RegistryOut(
        authority=registry.get_authority(),
        identity_count=registry.get_identity_count(),
        max_identities=registry.max_identities,
    )


@router.get("", response_model=RegistryOut)
def get_registry_info(
    caller: str = Depends(get_current_principal),
    registry: Registry = Depends(get_registry),
) -> RegistryOut:
    """Return the configured authority and how full the registry is."""
    return _describe(registry)


@router.put("/authority", response_model=RegistryOut)
def set_authority(
    body: AuthorityUpdate,
    caller: str = Depends(get_current_principal),
    registry: Registry = Depends(get_registry),
) -> RegistryOut:
    """Configure the authority gate.

    This can only happen once; registrations are refused until it has.
    """
    unwrap(registry.set_authority(caller, body.principal))
    return _describe(registry)
