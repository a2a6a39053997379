import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Literal

import openai
from google.auth import exceptions as auth_exceptions
from openai import AsyncOpenAI
from pydantic import BaseModel, Field, model_validator

from genflows.core.config import Settings
from genflows.core.credentials import Credential, refresh_access_token
from genflows.core.errors import GenerationError, ProviderNotConfiguredError
from genflows.flows.postprocess import parse_json

logger = logging.getLogger(__name__)


class ChatMessage(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str


class GenerationOptions(BaseModel):
    temperature: float | None = None
    max_output_tokens: int | None = Field(default=None, gt=0)
    search_enabled: bool = False
    response_format: Literal["text", "json"] | None = None


class GenerationRequest(BaseModel):
    """One call to a provider. A flattened `prompt` is sent as a trailing user message."""
    model: str
    messages: list[ChatMessage] = Field(default_factory=list)
    prompt: str | None = None
    options: GenerationOptions = Field(default_factory=GenerationOptions)

    @model_validator(mode="after")
    def _require_content(self) -> "GenerationRequest":
        if not self.messages and not self.prompt:
            raise ValueError("A generation request needs messages or a prompt")
        return self

    def resolved_messages(self) -> list[ChatMessage]:
        messages = list(self.messages)
        if self.prompt:
            messages.append(ChatMessage(role="user", content=self.prompt))
        return messages


class GenerationResult(BaseModel):
    text: str
    structured_output: Any | None = None
    model: str
    finish_reason: str | None = None


@dataclass(frozen=True)
class ProviderConfig:
    name: str
    api_key: str = field(repr=False)
    base_url: str | None = None
    # Vertex AI's OpenAI endpoint expects publisher-qualified names like "google/gemini-2.5-flash".
    model_prefix: str = ""
    # Extra request kwargs that turn on web search; None when the provider has no search support.
    search_kwargs: dict[str, Any] | None = None
    # Set for ambient credentials, whose access token expires and is refreshed before each call.
    google_credentials: Any = field(default=None, repr=False, compare=False)


class LLMClient:
    """Provider client speaking the OpenAI chat-completions API."""

    def __init__(self, config: ProviderConfig, *, timeout: float = 60.0):
        self.config = config
        self.timeout = timeout
        # Retries are the caller's decision; the SDK default would retry silently.
        self.client = AsyncOpenAI(
            base_url=config.base_url,
            api_key=config.api_key,
            max_retries=0,
            timeout=timeout,
        )

    async def _refresh_api_key(self) -> None:
        try:
            self.client.api_key = await refresh_access_token(self.config.google_credentials)
        except auth_exceptions.GoogleAuthError as e:
            logger.error("Could not refresh access token for %s: %s", self.config.name, e)
            raise GenerationError(
                f"Provider {self.config.name} credentials could not be refreshed.",
                code="permission_denied",
                provider=self.config.name,
            ) from e

    def _chat_completion_kwargs(self, model_name: str, options: GenerationOptions) -> dict:
        kwargs: dict[str, Any] = {}
        # GPT-5 family rejects non-default temperature values in some OpenAI endpoints.
        if options.temperature is not None and not model_name.lower().startswith("gpt-5"):
            kwargs["temperature"] = options.temperature
        if options.max_output_tokens is not None:
            kwargs["max_tokens"] = options.max_output_tokens
        if options.response_format == "json":
            kwargs["response_format"] = {"type": "json_object"}
        if options.search_enabled:
            if self.config.search_kwargs is None:
                raise GenerationError(
                    f"Provider {self.config.name} does not support search-enabled generation.",
                    code="invalid_request",
                    provider=self.config.name,
                )
            kwargs.update(self.config.search_kwargs)
        return kwargs

    async def generate(self, model_name: str, request: GenerationRequest) -> GenerationResult:
        qualified = f"{self.config.model_prefix}{model_name}"
        if self.config.google_credentials is not None:
            await self._refresh_api_key()
        kwargs = self._chat_completion_kwargs(model_name, request.options)
        messages = [message.model_dump() for message in request.resolved_messages()]

        logger.info("Issuing generation request to %s/%s...", self.config.name, model_name)
        started = time.monotonic()
        try:
            response = await asyncio.wait_for(
                self.client.chat.completions.create(
                    model=qualified,
                    messages=messages,
                    **kwargs,
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            logger.error("Generation request to %s timed out after %ss", qualified, self.timeout)
            raise GenerationError(
                f"Generation request to {request.model} timed out after {self.timeout}s.",
                code="timeout",
                provider=self.config.name,
            ) from e
        except openai.OpenAIError as e:
            raise _translate_provider_error(e, provider=self.config.name, model=request.model) from e

        if not getattr(response, "choices", None):
            logger.error("Received no choices from %s: %s", qualified, response)
            raise GenerationError(
                f"Provider {self.config.name} returned no output for {request.model}.",
                code="provider_error",
                provider=self.config.name,
            )

        choice = response.choices[0]
        text = choice.message.content or ""
        logger.info(
            "Received generation response from %s in %.2fs.",
            qualified,
            time.monotonic() - started,
        )

        structured_output = None
        if request.options.response_format == "json":
            try:
                structured_output = parse_json(text)
            except ValueError:
                structured_output = None

        return GenerationResult(
            text=text,
            structured_output=structured_output,
            model=request.model,
            finish_reason=getattr(choice, "finish_reason", None),
        )


def _translate_provider_error(error: openai.OpenAIError, *, provider: str, model: str) -> GenerationError:
    status = getattr(error, "status_code", None)
    if isinstance(error, openai.APITimeoutError):
        code = "timeout"
    elif isinstance(error, openai.APIConnectionError):
        code = "unavailable"
    elif isinstance(error, openai.RateLimitError):
        code = "rate_limit"
    elif isinstance(error, (openai.BadRequestError, openai.UnprocessableEntityError, openai.NotFoundError)):
        code = "invalid_request"
    elif isinstance(error, (openai.AuthenticationError, openai.PermissionDeniedError)):
        code = "permission_denied"
    else:
        code = "provider_error"

    logger.error("Provider %s failed for %s (%s, status=%s): %s", provider, model, code, status, error)
    return GenerationError(
        f"Generation with {model} failed ({code}).",
        code=code,
        provider=provider,
        provider_status=status,
    )


class GenerationInvoker:
    """Routes `<provider>/<model>` identifiers to the registered provider clients."""

    def __init__(self, providers: dict[str, LLMClient], *, default_provider: str):
        self.providers = dict(providers)
        self.default_provider = default_provider

    def split_model(self, model: str) -> tuple[str, str]:
        provider, sep, model_name = model.partition("/")
        if not sep:
            return self.default_provider, model
        return provider, model_name

    def client_for(self, model: str) -> tuple[LLMClient, str]:
        provider, model_name = self.split_model(model)
        client = self.providers.get(provider)
        if client is None:
            raise ProviderNotConfiguredError(
                f"Model '{model}' requires provider '{provider}', which is not configured.",
                provider=provider,
            )
        return client, model_name

    async def invoke(
        self,
        model: str,
        messages: list[ChatMessage] | None = None,
        options: GenerationOptions | None = None,
        *,
        prompt: str | None = None,
    ) -> GenerationResult:
        request = GenerationRequest(
            model=model,
            messages=messages or [],
            prompt=prompt,
            options=options or GenerationOptions(),
        )
        client, model_name = self.client_for(model)
        return await client.generate(model_name, request)


def vertex_openai_base_url(project: str, location: str) -> str:
    return (
        f"https://{location}-aiplatform.googleapis.com/v1/projects/{project}"
        f"/locations/{location}/endpoints/openapi"
    )


def provider_config_for(credential: Credential, settings: Settings) -> ProviderConfig:
    if credential.name == "googleai":
        google_search = {"extra_body": {"tools": [{"google_search": {}}]}}
        if credential.source == "ambient":
            return ProviderConfig(
                name="googleai",
                api_key=credential.value,
                base_url=vertex_openai_base_url(credential.project, settings.GOOGLE_CLOUD_LOCATION),
                model_prefix="google/",
                search_kwargs=google_search,
                google_credentials=credential.google_credentials,
            )
        return ProviderConfig(
            name="googleai",
            api_key=credential.value,
            base_url=settings.GEMINI_BASE_URL,
            search_kwargs=google_search,
        )
    if credential.name == "openai":
        return ProviderConfig(
            name="openai",
            api_key=credential.value,
            base_url=settings.OPENAI_BASE_URL,
            search_kwargs={"web_search_options": {}},
        )
    raise ValueError(f"No provider is defined for credential '{credential.name}'")


def build_invoker(settings: Settings, credentials: dict[str, Credential]) -> GenerationInvoker:
    providers: dict[str, LLMClient] = {}
    for name, credential in credentials.items():
        providers[name] = LLMClient(
            provider_config_for(credential, settings),
            timeout=settings.GENERATION_TIMEOUT_SECONDS,
        )
        logger.info("Registered provider %s (credential source: %s).", name, credential.source)

    for name in ("googleai", "openai"):
        if name not in providers:
            logger.warning("Provider %s is not registered; flows using it will be unavailable.", name)

    return GenerationInvoker(providers, default_provider=settings.DEFAULT_PROVIDER)
