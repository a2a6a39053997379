from fastapi import APIRouter

from genflows.api.routes import flows, utils
from genflows.core.config import Settings


def build_api_router(settings: Settings) -> APIRouter:
    prefix = settings.FLOW_ROUTE_PREFIX.rstrip("/")

    api_router = APIRouter()
    api_router.include_router(utils.router, tags=["utils"])
    # With an empty prefix flows are served at bare "/<name>"; the listing stays at /flows.
    api_router.add_api_route(prefix or "/flows", flows.list_flows, methods=["GET"], tags=["flows"])
    api_router.include_router(flows.router, prefix=prefix, tags=["flows"])
    return api_router
