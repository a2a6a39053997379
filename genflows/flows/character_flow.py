from typing import Any

from genflows.flows.artifacts import Character, CharacterRequest
from genflows.flows.base import BaseFlow, FlowDependencies
from genflows.flows.llm_client import GenerationOptions
from genflows.flows.postprocess import OutputPolicy
from genflows.flows.prompts.character import CHARACTER_PROMPT_ID


class CharacterGeneratorFlow(BaseFlow[CharacterRequest, Character]):
    """Generates a game character; falls back to a placeholder record when the output is not JSON."""

    name = "characterGeneratorFlow"
    input_shape = CharacterRequest
    output_shape = Character
    expect = "json"
    policy = OutputPolicy.LENIENT

    def __init__(self, deps: FlowDependencies, model: str | None = None):
        super().__init__(deps, model=model or deps.settings.MODEL_CHARACTER)

    def fallback_output(self, raw_text: str) -> Character:
        return Character(name="Unknown", strength=10, intelligence=10, description=raw_text)

    async def run(self, input_data: CharacterRequest) -> Any:
        system_prompt = await self.deps.prompts.resolve(
            CHARACTER_PROMPT_ID,
            {"description": input_data.description},
        )
        return await self.generate(
            system_prompt=system_prompt,
            user_prompt=f"Create a character based on: {input_data.description}",
            options=GenerationOptions(temperature=0.9),
        )
