from fastapi import APIRouter

from genflows.api.deps import RegistryDep

router = APIRouter(prefix="/utils", tags=["utils"])


@router.get("/health-check/")
async def health_check(registry: RegistryDep) -> bool:
    """Healthy once the flow registry is built and serves at least one flow."""
    return bool(registry.names())
