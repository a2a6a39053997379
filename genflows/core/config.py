from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",
    )

    PROJECT_NAME: str = "genflows"
    ENVIRONMENT: Literal["local", "staging", "production"] = "local"
    LOG_LEVEL: str = "INFO"

    HOST: str = "0.0.0.0"
    PORT: int = 8080
    # Empty string mounts every flow at a bare "/<name>" path.
    FLOW_ROUTE_PREFIX: str = "/flows"

    GOOGLE_CLOUD_PROJECT: str | None = None
    GOOGLE_CLOUD_LOCATION: str = "australia-southeast1"

    GEMINI_API_KEY: str = ""
    GEMINI_SECRET_NAME: str = "gemini-api-key"
    GEMINI_BASE_URL: str = "https://generativelanguage.googleapis.com/v1beta/openai/"
    GEMINI_REQUIRED: bool = True

    OPENAI_API_KEY: str = ""
    OPENAI_SECRET_NAME: str = "openai-api-key"
    OPENAI_BASE_URL: str | None = None
    OPENAI_REQUIRED: bool = False

    # Model identifiers are "<provider>/<model>"; a bare model name uses the default provider.
    DEFAULT_PROVIDER: str = "googleai"
    MODEL_DEFAULT: str = "googleai/gemini-2.5-flash"
    MODEL_ARCHITECT: str = "googleai/gemini-2.5-flash"
    MODEL_CHARACTER: str = "openai/gpt-4o-mini"
    MODEL_RESEARCH: str = "googleai/gemini-2.5-flash"
    MODEL_CHAT: str = "googleai/gemini-2.5-flash"

    GENERATION_TIMEOUT_SECONDS: float = 60.0

    PROMPT_STORE: Literal["firestore", "memory"] = "firestore"
    PROMPT_COLLECTION: str = "prompts"
    PROMPT_TEXT_FIELD: str = "text"
    PROMPT_FETCH_ATTEMPTS: int = 2
    PROMPT_FETCH_BACKOFF_SECONDS: float = 0.5
    PROMPT_CACHE_TTL_SECONDS: float = 0.0

    SECRET_FETCH_ATTEMPTS: int = 2
    SECRET_FETCH_BACKOFF_SECONDS: float = 0.5


settings = Settings()


def get_settings() -> Settings:
    return settings
