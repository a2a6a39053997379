import logging
import time
from collections.abc import Iterable
from types import MappingProxyType
from typing import Any

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from genflows.core.errors import NotFoundError, ValidationError
from genflows.flows.architect_flow import ArchitectFlow
from genflows.flows.base import BaseFlow, FlowDependencies
from genflows.flows.character_flow import CharacterGeneratorFlow
from genflows.flows.chat_flow import ChatFlow
from genflows.flows.hello_flow import HelloFlow
from genflows.flows.postprocess import OutputPolicy
from genflows.flows.research_flow import ResearchFlow

logger = logging.getLogger(__name__)

DEFAULT_FLOWS: tuple[type[BaseFlow], ...] = (
    HelloFlow,
    ArchitectFlow,
    CharacterGeneratorFlow,
    ResearchFlow,
    ChatFlow,
)


def _field_path(error: PydanticValidationError, root: str) -> str:
    errors = error.errors()
    if not errors:
        return root
    loc = [str(part) for part in errors[0].get("loc", ())]
    return ".".join(loc) or root


class _RegisteredFlow:
    __slots__ = ("flow", "input_adapter", "output_adapter")

    def __init__(self, flow: BaseFlow):
        self.flow = flow
        self.input_adapter = TypeAdapter(flow.input_shape)
        self.output_adapter = TypeAdapter(flow.output_shape)


class FlowRegistry:
    """Name -> flow mapping fixed at construction; the only place flows are looked up."""

    def __init__(self, flows: Iterable[BaseFlow]):
        registered: dict[str, _RegisteredFlow] = {}
        for flow in flows:
            if flow.name in registered:
                raise ValueError(f"Duplicate flow name '{flow.name}'")
            if flow.policy is OutputPolicy.LENIENT and not flow.has_fallback():
                raise ValueError(f"Flow '{flow.name}' is lenient but defines no fallback output")
            registered[flow.name] = _RegisteredFlow(flow)
        self._flows = MappingProxyType(registered)

    def names(self) -> list[str]:
        return list(self._flows)

    def get(self, name: str) -> BaseFlow:
        entry = self._flows.get(name)
        if entry is None:
            raise NotFoundError(f"Flow '{name}' not found")
        return entry.flow

    def describe(self) -> list[dict[str, Any]]:
        return [
            {
                "name": name,
                "policy": entry.flow.policy.value,
                "expect": entry.flow.expect,
                "model": entry.flow.model,
                "input_schema": entry.input_adapter.json_schema(),
                "output_schema": entry.output_adapter.json_schema(),
            }
            for name, entry in self._flows.items()
        ]

    async def dispatch(self, name: str, input_data: Any = None) -> Any:
        entry = self._flows.get(name)
        if entry is None:
            raise NotFoundError(f"Flow '{name}' not found")

        try:
            validated_input = entry.input_adapter.validate_python(input_data)
        except PydanticValidationError as e:
            field = _field_path(e, "input")
            raise ValidationError(
                f"Invalid input for flow '{name}' at '{field}': {e.errors()[0]['msg']}",
                field=field,
            ) from e

        logger.info("Dispatching flow %s", name)
        started = time.monotonic()
        output = await entry.flow.run(validated_input)

        try:
            # Model output is never coerced into shape; "15" is not an int here.
            validated_output = entry.output_adapter.validate_python(output, strict=True)
        except PydanticValidationError as e:
            field = _field_path(e, "output")
            logger.error("Flow %s produced output that does not match its shape: %s", name, e)
            raise ValidationError(
                f"Invalid output from flow '{name}' at '{field}': {e.errors()[0]['msg']}",
                field=field,
            ) from e

        logger.info("Flow %s finished in %.2fs", name, time.monotonic() - started)
        return entry.output_adapter.dump_python(validated_output, mode="json")


def build_registry(deps: FlowDependencies, flow_types: Iterable[type[BaseFlow]] = DEFAULT_FLOWS) -> FlowRegistry:
    return FlowRegistry(flow_type(deps) for flow_type in flow_types)
