from typing import Any

from genflows.flows.artifacts import ArchitectPlan
from genflows.flows.base import BaseFlow, FlowDependencies
from genflows.flows.postprocess import OutputPolicy
from genflows.flows.prompts.architect import ARCHITECT_PROMPT_ID


class ArchitectFlow(BaseFlow[str, ArchitectPlan]):
    """
    Turns a short build request into an ordered plan.
    Malformed model output is never guessed at: the flow fails with the raw text attached.
    """

    name = "architectFlow"
    input_shape = str
    output_shape = ArchitectPlan
    expect = "json"
    policy = OutputPolicy.STRICT

    def __init__(self, deps: FlowDependencies, model: str | None = None):
        super().__init__(deps, model=model or deps.settings.MODEL_ARCHITECT)

    async def run(self, input_data: str) -> Any:
        system_prompt = await self.deps.prompts.resolve(ARCHITECT_PROMPT_ID)
        return await self.generate(
            system_prompt=system_prompt,
            user_prompt=input_data,
        )
