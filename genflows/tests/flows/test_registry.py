import json

import pytest

from genflows.core.errors import InvalidModelOutputError, NotFoundError, ProviderNotConfiguredError, ValidationError
from genflows.flows.artifacts import HelloMessage
from genflows.flows.base import BaseFlow, FlowDependencies
from genflows.flows.hello_flow import HelloFlow
from genflows.flows.llm_client import GenerationInvoker, GenerationOptions
from genflows.flows.postprocess import OutputPolicy
from genflows.flows.prompt_store import DEFAULT_SYSTEM_PROMPT
from genflows.flows.registry import FlowRegistry, build_registry


class LenientWithoutFallback(BaseFlow[str, HelloMessage]):
    name = "brokenFlow"
    input_shape = str
    output_shape = HelloMessage
    expect = "json"
    policy = OutputPolicy.LENIENT

    async def run(self, input_data: str) -> HelloMessage:
        return HelloMessage(message=input_data)


class WrongOutputFlow(BaseFlow[str, HelloMessage]):
    name = "wrongOutputFlow"
    input_shape = str
    output_shape = HelloMessage

    async def run(self, input_data: str) -> dict:
        return {"msg": input_data}


class JsonModeFlow(BaseFlow[str, HelloMessage]):
    name = "jsonModeFlow"
    input_shape = str
    output_shape = HelloMessage
    expect = "json"

    async def run(self, input_data: str) -> dict:
        return await self.generate(
            system_prompt="Reply in JSON.",
            user_prompt=input_data,
            options=GenerationOptions(response_format="json"),
        )


def test_registry_lists_default_flows(registry):
    assert registry.names() == [
        "testFlow",
        "architectFlow",
        "characterGeneratorFlow",
        "researchFlow",
        "chatFlow",
    ]
    described = {entry["name"]: entry for entry in registry.describe()}
    assert described["architectFlow"]["policy"] == "strict"
    assert described["characterGeneratorFlow"]["policy"] == "lenient"
    assert "description" in described["characterGeneratorFlow"]["input_schema"]["properties"]


def test_registry_rejects_duplicate_names(flow_deps):
    with pytest.raises(ValueError):
        FlowRegistry([HelloFlow(flow_deps), HelloFlow(flow_deps)])


def test_registry_rejects_lenient_flow_without_fallback(flow_deps):
    with pytest.raises(ValueError):
        FlowRegistry([LenientWithoutFallback(flow_deps)])


@pytest.mark.asyncio
async def test_unknown_flow_is_not_found(registry):
    with pytest.raises(NotFoundError):
        await registry.dispatch("noSuchFlow", "x")
    with pytest.raises(NotFoundError):
        registry.get("noSuchFlow")


@pytest.mark.asyncio
async def test_hello_flow_needs_no_input(registry, completion_create):
    assert await registry.dispatch("testFlow") == {"message": "Hello World"}
    completion_create.assert_not_awaited()


@pytest.mark.asyncio
async def test_architect_flow_with_missing_prompt_returns_parsed_plan(registry, respond_with):
    create = respond_with('{"title":"x","steps":[]}')

    result = await registry.dispatch("architectFlow", "build a shed")

    assert result == {"title": "x", "steps": []}
    messages = create.call_args.kwargs["messages"]
    assert messages[0]["role"] == "system"
    assert messages[0]["content"].startswith(DEFAULT_SYSTEM_PROMPT)
    assert "EXPECTED SCHEMA" in messages[0]["content"]
    assert messages[1] == {"role": "user", "content": "build a shed"}
    assert create.call_args.kwargs["model"] == "gemini-2.5-flash"


@pytest.mark.asyncio
async def test_architect_flow_strips_fences_and_keeps_extra_keys(registry, respond_with):
    plan = {"title": "Shed", "steps": [{"title": "Foundation", "description": "Pour slab"}], "budget": 500}
    respond_with(f"```json\n{json.dumps(plan)}\n```")

    result = await registry.dispatch("architectFlow", "build a shed")

    assert result == plan


@pytest.mark.asyncio
async def test_architect_flow_is_strict_about_malformed_output(registry, respond_with):
    respond_with("I think you should start with a foundation.")

    with pytest.raises(InvalidModelOutputError) as exc_info:
        await registry.dispatch("architectFlow", "build a shed")

    assert exc_info.value.raw_text == "I think you should start with a foundation."


@pytest.mark.asyncio
async def test_architect_flow_rejects_non_string_input(registry, completion_create):
    with pytest.raises(ValidationError) as exc_info:
        await registry.dispatch("architectFlow", {"request": "build a shed"})

    assert exc_info.value.field == "input"
    completion_create.assert_not_awaited()


@pytest.mark.asyncio
async def test_architect_flow_output_shape_mismatch_names_field(registry, respond_with):
    respond_with('{"steps": []}')

    with pytest.raises(ValidationError) as exc_info:
        await registry.dispatch("architectFlow", "build a shed")

    assert exc_info.value.field == "title"


@pytest.mark.asyncio
async def test_character_flow_falls_back_on_malformed_output(registry, respond_with):
    respond_with("not json at all")

    result = await registry.dispatch("characterGeneratorFlow", {"description": "a grumpy dwarf"})

    assert result == {
        "name": "Unknown",
        "strength": 10,
        "intelligence": 10,
        "description": "not json at all",
    }


@pytest.mark.asyncio
async def test_character_flow_fills_description_placeholder(registry, respond_with, prompt_store):
    prompt_store.documents["characterGenerator"] = {"text": "Design {description}. Keep {tone}."}
    create = respond_with(
        '{"name": "Borin", "strength": 15, "intelligence": 8, "description": "Gruff miner."}'
    )

    result = await registry.dispatch("characterGeneratorFlow", {"description": "a grumpy dwarf"})

    assert result["name"] == "Borin"
    system = create.call_args.kwargs["messages"][0]["content"]
    assert system.startswith("Design a grumpy dwarf. Keep {tone}.")
    assert create.call_args.kwargs["model"] == "gpt-4o-mini"


@pytest.mark.asyncio
async def test_character_flow_missing_description_names_field(registry):
    with pytest.raises(ValidationError) as exc_info:
        await registry.dispatch("characterGeneratorFlow", {})

    assert exc_info.value.field == "description"


@pytest.mark.asyncio
async def test_flow_on_unconfigured_provider_is_not_found(flow_deps):
    deps = FlowDependencies(
        invoker=GenerationInvoker(
            {"googleai": flow_deps.invoker.providers["googleai"]},
            default_provider="googleai",
        ),
        prompts=flow_deps.prompts,
        settings=flow_deps.settings,
    )
    registry = build_registry(deps)

    with pytest.raises(ProviderNotConfiguredError):
        await registry.dispatch("characterGeneratorFlow", {"description": "a grumpy dwarf"})


@pytest.mark.asyncio
async def test_output_that_does_not_match_shape_is_rejected(flow_deps):
    registry = FlowRegistry([WrongOutputFlow(flow_deps)])

    with pytest.raises(ValidationError) as exc_info:
        await registry.dispatch("wrongOutputFlow", "hi")

    assert exc_info.value.field == "message"


@pytest.mark.asyncio
async def test_character_output_with_wrong_types_is_not_coerced(registry, respond_with):
    respond_with(
        '{"name": "Borin", "strength": "15", "intelligence": true, "description": "Gruff miner."}'
    )

    with pytest.raises(ValidationError) as exc_info:
        await registry.dispatch("characterGeneratorFlow", {"description": "a grumpy dwarf"})

    assert exc_info.value.field == "strength"


@pytest.mark.asyncio
async def test_architect_flow_rejects_non_finite_numbers(registry, respond_with):
    raw = '{"title": "x", "steps": [], "budget": Infinity}'
    respond_with(raw)

    with pytest.raises(InvalidModelOutputError) as exc_info:
        await registry.dispatch("architectFlow", "build a shed")

    assert exc_info.value.raw_text == raw


@pytest.mark.asyncio
async def test_json_mode_flow_uses_provider_parsed_output(flow_deps, respond_with):
    create = respond_with('{"message": "hi"}')
    registry = FlowRegistry([JsonModeFlow(flow_deps)])

    result = await registry.dispatch("jsonModeFlow", "say hi")

    assert result == {"message": "hi"}
    assert create.call_args.kwargs["response_format"] == {"type": "json_object"}
