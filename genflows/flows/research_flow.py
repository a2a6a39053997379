from genflows.flows.artifacts import ResearchAnswer, ResearchRequest
from genflows.flows.base import BaseFlow, FlowDependencies
from genflows.flows.llm_client import GenerationOptions
from genflows.flows.prompts.research import RESEARCH_PROMPT_ID


class ResearchFlow(BaseFlow[ResearchRequest, ResearchAnswer]):
    """Answers a question with web-search grounding on a search-capable provider."""

    name = "researchFlow"
    input_shape = ResearchRequest
    output_shape = ResearchAnswer

    def __init__(self, deps: FlowDependencies, model: str | None = None):
        super().__init__(deps, model=model or deps.settings.MODEL_RESEARCH)

    async def run(self, input_data: ResearchRequest) -> ResearchAnswer:
        system_prompt = await self.deps.prompts.resolve(
            RESEARCH_PROMPT_ID,
            {"topic": input_data.topic, "audience": input_data.audience},
        )
        text = await self.generate(
            system_prompt=system_prompt,
            user_prompt=input_data.topic,
            options=GenerationOptions(search_enabled=True, temperature=0.2),
        )
        return ResearchAnswer(answer=text.strip())
