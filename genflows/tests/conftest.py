from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from genflows.core.config import Settings
from genflows.core.credentials import Credential
from genflows.flows.base import FlowDependencies
from genflows.flows.llm_client import build_invoker
from genflows.flows.prompt_store import InMemoryPromptStore, PromptResolver
from genflows.flows.registry import build_registry


def make_completion(content: str | None, finish_reason: str = "stop") -> MagicMock:
    """Mock object shaped like an OpenAI chat completion response."""
    mock_message = MagicMock()
    mock_message.content = content

    mock_choice = MagicMock()
    mock_choice.message = mock_message
    mock_choice.finish_reason = finish_reason

    mock_response = MagicMock()
    mock_response.choices = [mock_choice]
    return mock_response


def make_openai_client(create: AsyncMock) -> AsyncMock:
    mock_completions = MagicMock()
    mock_completions.create = create

    mock_chat = MagicMock()
    mock_chat.completions = mock_completions

    mock_client_instance = AsyncMock()
    mock_client_instance.chat = mock_chat
    return mock_client_instance


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        PROMPT_STORE="memory",
        GEMINI_API_KEY="",
        OPENAI_API_KEY="",
        GOOGLE_CLOUD_PROJECT=None,
        PROMPT_FETCH_BACKOFF_SECONDS=0,
        SECRET_FETCH_BACKOFF_SECONDS=0,
        MODEL_ARCHITECT="googleai/gemini-2.5-flash",
        MODEL_CHARACTER="openai/gpt-4o-mini",
    )


@pytest.fixture
def credentials() -> dict[str, Credential]:
    return {
        "googleai": Credential(name="googleai", value="gemini-key", source="environment"),
        "openai": Credential(name="openai", value="openai-key", source="environment"),
    }


@pytest.fixture
def completion_create() -> AsyncMock:
    return AsyncMock(return_value=make_completion("ok"))


@pytest.fixture
def prompt_store() -> InMemoryPromptStore:
    return InMemoryPromptStore()


@pytest.fixture
def flow_deps(settings, credentials, completion_create, prompt_store) -> FlowDependencies:
    with patch(
        "genflows.flows.llm_client.AsyncOpenAI",
        return_value=make_openai_client(completion_create),
    ):
        invoker = build_invoker(settings, credentials)
    prompts = PromptResolver(prompt_store, attempts=1, backoff_seconds=0)
    return FlowDependencies(invoker=invoker, prompts=prompts, settings=settings)


@pytest.fixture
def registry(flow_deps):
    return build_registry(flow_deps)


@pytest.fixture
def respond_with(completion_create):
    """Set the text the mocked provider returns for the next calls."""

    def _respond(content: str | None) -> AsyncMock:
        completion_create.return_value = make_completion(content)
        return completion_create

    return _respond
