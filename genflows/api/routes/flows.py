import logging
from typing import Any

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from genflows.api.deps import RegistryDep
from genflows.core.errors import FlowError

router = APIRouter()
logger = logging.getLogger(__name__)


class FlowRunRequest(BaseModel):
    data: Any = None


async def list_flows(registry: RegistryDep) -> list[dict[str, Any]]:
    return registry.describe()


@router.post("/{flow_name}")
async def run_flow(flow_name: str, body: FlowRunRequest, registry: RegistryDep):
    """Run a registered flow. Every failure is returned as `{"error": {...}}`, never a provider payload."""
    try:
        result = await registry.dispatch(flow_name, body.data)
    except FlowError as e:
        logger.warning("Flow %s failed: %s (%s)", flow_name, e.message, e.status)
        return JSONResponse(status_code=e.http_status, content=e.to_payload())
    except Exception:
        logger.exception("Unexpected error while running flow %s", flow_name)
        return JSONResponse(
            status_code=500,
            content={"error": {"status": "INTERNAL", "message": f"Flow '{flow_name}' failed unexpectedly."}},
        )
    return {"result": result}
