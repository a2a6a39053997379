import httpx
import openai
import pytest

from genflows.core.errors import GenerationError


@pytest.mark.asyncio
async def test_research_flow_enables_search_and_fills_prompt(registry, respond_with, prompt_store):
    prompt_store.documents["researcher"] = {"text": "Research {topic} for {audience}."}
    create = respond_with("  Solar output peaks at noon.  ")

    result = await registry.dispatch("researchFlow", {"topic": "solar panels"})

    assert result == {"answer": "Solar output peaks at noon."}
    kwargs = create.call_args.kwargs
    assert kwargs["messages"][0] == {
        "role": "system",
        "content": "Research solar panels for a general audience.",
    }
    assert kwargs["messages"][1] == {"role": "user", "content": "solar panels"}
    assert kwargs["extra_body"] == {"tools": [{"google_search": {}}]}


@pytest.mark.asyncio
async def test_chat_flow_sends_history_as_message_list(registry, respond_with):
    create = respond_with("Paris.")

    result = await registry.dispatch(
        "chatFlow",
        {
            "message": "And its capital?",
            "history": [
                {"role": "user", "content": "Tell me about France."},
                {"role": "assistant", "content": "France is in Europe."},
            ],
        },
    )

    assert result == {"reply": "Paris."}
    messages = create.call_args.kwargs["messages"]
    assert [m["role"] for m in messages] == ["system", "user", "assistant", "user"]
    assert messages[-1]["content"] == "And its capital?"
    assert create.call_args.kwargs["max_tokens"] == 1024


@pytest.mark.asyncio
async def test_text_flow_does_not_strip_fences(registry, respond_with):
    respond_with("```python\nprint('hi')\n```")

    result = await registry.dispatch("chatFlow", {"message": "Show me hello world in Python"})

    assert result == {"reply": "```python\nprint('hi')\n```"}


@pytest.mark.asyncio
async def test_provider_failure_propagates_as_generation_error(registry, completion_create):
    completion_create.side_effect = openai.APIConnectionError(
        request=httpx.Request("POST", "https://example.invalid/v1/chat/completions")
    )

    with pytest.raises(GenerationError) as exc_info:
        await registry.dispatch("chatFlow", {"message": "hi"})

    assert exc_info.value.code == "unavailable"
    completion_create.assert_awaited_once()
