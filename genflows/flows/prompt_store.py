import logging
import re
import time
from dataclasses import dataclass, field
from typing import Any, Mapping, Protocol

from google.auth import exceptions as auth_exceptions
from google.cloud import firestore

from genflows.core.config import Settings
from genflows.core.errors import PromptResolutionError
from genflows.core.retry import with_retries
from genflows.flows.prompts.architect import ARCHITECT_PROMPT_ID, ARCHITECT_SYSTEM_PROMPT
from genflows.flows.prompts.character import CHARACTER_PROMPT_ID, CHARACTER_SYSTEM_PROMPT
from genflows.flows.prompts.research import RESEARCH_PROMPT_ID, RESEARCH_SYSTEM_PROMPT

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = "You are a helpful assistant."

_PLACEHOLDER = re.compile(r"\{([^{}]+)\}")


def fill_placeholders(text: str, bindings: Mapping[str, Any] | None) -> str:
    """Replace every `{key}` token with its binding. Unknown tokens are left as they are."""
    if not bindings:
        return text

    def _replace(match: re.Match) -> str:
        key = match.group(1)
        if key in bindings:
            return str(bindings[key])
        return match.group(0)

    return _PLACEHOLDER.sub(_replace, text)


@dataclass(frozen=True)
class PromptTemplate:
    id: str
    raw_text: str

    @property
    def placeholders(self) -> set[str]:
        return set(_PLACEHOLDER.findall(self.raw_text))

    def render(self, bindings: Mapping[str, Any] | None = None) -> str:
        return fill_placeholders(self.raw_text, bindings)


class PromptStore(Protocol):
    async def get_document(self, prompt_id: str) -> dict[str, Any] | None: ...


class FirestorePromptStore:
    """Prompt documents stored as `<collection>/<prompt_id>` in Firestore."""

    def __init__(self, client: Any, collection: str = "prompts"):
        self.client = client
        self.collection = collection

    async def get_document(self, prompt_id: str) -> dict[str, Any] | None:
        snapshot = await self.client.collection(self.collection).document(prompt_id).get()
        if not snapshot.exists:
            return None
        return snapshot.to_dict()


@dataclass
class InMemoryPromptStore:
    documents: dict[str, dict[str, Any]] = field(default_factory=dict)

    async def get_document(self, prompt_id: str) -> dict[str, Any] | None:
        return self.documents.get(prompt_id)


class PromptResolver:
    """Looks up prompt text by id and degrades to a generic prompt when it is missing."""

    def __init__(
        self,
        store: PromptStore,
        *,
        text_field: str = "text",
        fallback: str = DEFAULT_SYSTEM_PROMPT,
        attempts: int = 2,
        backoff_seconds: float = 0.5,
        cache_ttl_seconds: float = 0.0,
    ):
        self.store = store
        self.text_field = text_field
        self.fallback = fallback
        self.attempts = attempts
        self.backoff_seconds = backoff_seconds
        self.cache_ttl_seconds = cache_ttl_seconds
        self._cache: dict[str, tuple[float, PromptTemplate]] = {}

    async def get_template(self, prompt_id: str) -> PromptTemplate | None:
        cached = self._cached(prompt_id)
        if cached is not None:
            return cached

        try:
            document = await with_retries(
                lambda: self.store.get_document(prompt_id),
                attempts=self.attempts,
                backoff_seconds=self.backoff_seconds,
                description=f"Prompt fetch for {prompt_id}",
            )
        except Exception as e:
            raise PromptResolutionError(
                f"Prompt store lookup failed for '{prompt_id}': {e}",
                prompt_id=prompt_id,
            ) from e

        text = (document or {}).get(self.text_field)
        if not isinstance(text, str) or not text.strip():
            return None

        template = PromptTemplate(id=prompt_id, raw_text=text)
        if self.cache_ttl_seconds > 0:
            self._cache[prompt_id] = (time.monotonic() + self.cache_ttl_seconds, template)
        return template

    async def resolve(self, prompt_id: str, bindings: Mapping[str, Any] | None = None) -> str:
        try:
            template = await self.get_template(prompt_id)
        except PromptResolutionError as e:
            logger.warning("%s Using fallback prompt.", e.message)
            return fill_placeholders(self.fallback, bindings)

        if template is None:
            logger.info("Prompt %s not found; using fallback prompt.", prompt_id)
            return fill_placeholders(self.fallback, bindings)

        missing = template.placeholders - set(bindings or {})
        if missing:
            logger.debug("Prompt %s left placeholders unresolved: %s", prompt_id, sorted(missing))
        return template.render(bindings)

    def _cached(self, prompt_id: str) -> PromptTemplate | None:
        entry = self._cache.get(prompt_id)
        if entry is None:
            return None
        expires_at, template = entry
        if time.monotonic() >= expires_at:
            self._cache.pop(prompt_id, None)
            return None
        return template


def local_prompt_documents(text_field: str = "text") -> dict[str, dict[str, Any]]:
    """Prompt documents used when running without Firestore."""
    return {
        ARCHITECT_PROMPT_ID: {text_field: ARCHITECT_SYSTEM_PROMPT.strip()},
        CHARACTER_PROMPT_ID: {text_field: CHARACTER_SYSTEM_PROMPT.strip()},
        RESEARCH_PROMPT_ID: {text_field: RESEARCH_SYSTEM_PROMPT.strip()},
    }


def build_prompt_resolver(settings: Settings, *, store: PromptStore | None = None) -> PromptResolver:
    if store is None:
        if settings.PROMPT_STORE == "firestore":
            try:
                client = firestore.AsyncClient(project=settings.GOOGLE_CLOUD_PROJECT)
                store = FirestorePromptStore(client, collection=settings.PROMPT_COLLECTION)
                logger.info("Using Firestore prompt store (collection %s).", settings.PROMPT_COLLECTION)
            except auth_exceptions.DefaultCredentialsError as e:
                logger.warning("Firestore unavailable (%s); every prompt will use the fallback.", e)
                store = InMemoryPromptStore()
        else:
            store = InMemoryPromptStore(local_prompt_documents(settings.PROMPT_TEXT_FIELD))
            logger.info("Using in-memory prompt store.")

    return PromptResolver(
        store,
        text_field=settings.PROMPT_TEXT_FIELD,
        attempts=settings.PROMPT_FETCH_ATTEMPTS,
        backoff_seconds=settings.PROMPT_FETCH_BACKOFF_SECONDS,
        cache_ttl_seconds=settings.PROMPT_CACHE_TTL_SECONDS,
    )
