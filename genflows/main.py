import asyncio
import logging
import sys
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from genflows.api.main import build_api_router
from genflows.core.config import Settings, get_settings
from genflows.core.credentials import Credential, resolve_startup_credentials
from genflows.core.errors import CredentialError
from genflows.flows.base import FlowDependencies
from genflows.flows.llm_client import build_invoker
from genflows.flows.prompt_store import build_prompt_resolver
from genflows.flows.registry import FlowRegistry, build_registry

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT, force=True)


def build_flow_registry(settings: Settings, credentials: dict[str, Credential]) -> FlowRegistry:
    deps = FlowDependencies(
        invoker=build_invoker(settings, credentials),
        prompts=build_prompt_resolver(settings),
        settings=settings,
    )
    registry = build_registry(deps)
    logger.info("Registered flows: %s", ", ".join(registry.names()))
    return registry


def create_app(
    settings: Settings | None = None,
    *,
    credentials: dict[str, Credential] | None = None,
    registry: FlowRegistry | None = None,
) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if registry is not None:
            app.state.registry = registry
        else:
            app.state.registry = build_flow_registry(settings, credentials or {})
        yield

    app = FastAPI(title=settings.PROJECT_NAME, lifespan=lifespan)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = exc.errors()
        field = ".".join(str(part) for part in errors[0]["loc"]) if errors else "body"
        message = errors[0]["msg"] if errors else "Invalid request"
        return JSONResponse(
            status_code=422,
            content={"error": {"status": "INVALID_ARGUMENT", "message": message, "field": field}},
        )

    app.include_router(build_api_router(settings))
    return app


def run() -> None:
    """Resolve credentials, then serve every registered flow on PORT."""
    settings = get_settings()
    configure_logging(settings.LOG_LEVEL)

    logger.info("Resolving provider credentials...")
    try:
        credentials = asyncio.run(resolve_startup_credentials(settings))
    except CredentialError as e:
        logger.critical("Startup aborted: %s", e.message)
        sys.exit(1)

    app = create_app(settings, credentials=credentials)
    logger.info("Starting flow server on %s:%s", settings.HOST, settings.PORT)
    uvicorn.run(app, host=settings.HOST, port=settings.PORT, log_level=settings.LOG_LEVEL.lower())


if __name__ == "__main__":
    run()
