from genflows.flows.artifacts import ChatReply, ChatRequest
from genflows.flows.base import BaseFlow, FlowDependencies
from genflows.flows.llm_client import ChatMessage, GenerationOptions
from genflows.flows.prompts.chat import CHAT_SYSTEM_PROMPT


class ChatFlow(BaseFlow[ChatRequest, ChatReply]):
    name = "chatFlow"
    input_shape = ChatRequest
    output_shape = ChatReply

    def __init__(self, deps: FlowDependencies, model: str | None = None):
        super().__init__(deps, model=model or deps.settings.MODEL_CHAT)

    async def run(self, input_data: ChatRequest) -> ChatReply:
        history = [ChatMessage(role=turn.role, content=turn.content) for turn in input_data.history]
        history.append(ChatMessage(role="user", content=input_data.message))
        text = await self.generate(
            system_prompt=CHAT_SYSTEM_PROMPT,
            messages=history,
            options=GenerationOptions(temperature=0.7, max_output_tokens=1024),
        )
        return ChatReply(reply=text.strip())
