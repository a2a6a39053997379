import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, ClassVar, Generic, TypeVar

from pydantic import TypeAdapter

from genflows.core.config import Settings
from genflows.flows.llm_client import ChatMessage, GenerationInvoker, GenerationOptions
from genflows.flows.postprocess import Expect, OutputPolicy, post_process
from genflows.flows.prompt_store import PromptResolver

InType = TypeVar("InType")
OutType = TypeVar("OutType")


@dataclass(frozen=True)
class FlowDependencies:
    """Clients shared read-only by every flow, built once at startup."""
    invoker: GenerationInvoker
    prompts: PromptResolver
    settings: Settings


class BaseFlow(ABC, Generic[InType, OutType]):
    """A named request handler with declared input and output shapes."""

    name: ClassVar[str]
    input_shape: ClassVar[Any]
    output_shape: ClassVar[Any]
    expect: ClassVar[Expect] = "text"
    policy: ClassVar[OutputPolicy] = OutputPolicy.STRICT

    def __init__(self, deps: FlowDependencies, model: str | None = None):
        self.deps = deps
        self.model = model or deps.settings.MODEL_DEFAULT

    @abstractmethod
    async def run(self, input_data: InType) -> OutType:
        """Run the flow on already-validated input."""
        pass

    def fallback_output(self, raw_text: str) -> Any:
        """Well-shaped value returned by lenient flows when the model output cannot be parsed."""
        raise NotImplementedError

    @classmethod
    def has_fallback(cls) -> bool:
        return cls.fallback_output is not BaseFlow.fallback_output

    def json_contract(self) -> str:
        schema_json = json.dumps(TypeAdapter(self.output_shape).json_schema())
        return (
            "CRITICAL: You must respond in ONLY valid JSON format matching the following JSON Schema. "
            "Do not include markdown code blocks (```json) or any conversational text around the JSON.\n\n"
            f"EXPECTED SCHEMA:\n{schema_json}"
        )

    async def generate(
        self,
        *,
        system_prompt: str | None = None,
        user_prompt: str | None = None,
        messages: list[ChatMessage] | None = None,
        options: GenerationOptions | None = None,
    ) -> Any:
        """Assemble the message list, call the provider once and post-process the text."""
        options = options or GenerationOptions()
        assembled: list[ChatMessage] = []
        if system_prompt is not None:
            # JSON mode is prompt-enforced; some providers reject response_format json_object.
            if self.expect == "json":
                system_prompt = f"{system_prompt.strip()}\n\n{self.json_contract()}"
            assembled.append(ChatMessage(role="system", content=system_prompt))
        assembled.extend(messages or [])

        result = await self.deps.invoker.invoke(
            self.model,
            assembled,
            options,
            prompt=user_prompt,
        )
        if self.expect == "json" and result.structured_output is not None:
            return result.structured_output
        return post_process(
            result.text,
            self.expect,
            policy=self.policy,
            fallback=self.fallback_output if self.policy is OutputPolicy.LENIENT else None,
        )
