from typing import Annotated

from fastapi import Depends, Request

from genflows.flows.registry import FlowRegistry


def get_registry(request: Request) -> FlowRegistry:
    return request.app.state.registry


RegistryDep = Annotated[FlowRegistry, Depends(get_registry)]
