import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Literal

import google.auth
from google.api_core import exceptions as gcp_exceptions
from google.auth import exceptions as auth_exceptions
from google.auth.transport.requests import Request
from google.cloud import secretmanager

from genflows.core.config import Settings
from genflows.core.errors import CredentialError
from genflows.core.retry import with_retries

logger = logging.getLogger(__name__)

CLOUD_PLATFORM_SCOPE = "https://www.googleapis.com/auth/cloud-platform"

CredentialSource = Literal["environment", "secretStore", "ambient"]


@dataclass(frozen=True)
class Credential:
    name: str
    value: str = field(repr=False)
    source: CredentialSource
    project: str | None = None
    # google.auth credentials behind an ambient token; used to refresh it after it expires.
    google_credentials: Any = field(default=None, repr=False, compare=False)


@dataclass(frozen=True)
class CredentialSpec:
    name: str
    env_value: str | None = None
    secret_name: str | None = None
    required: bool = True
    allow_ambient: bool = False


def secret_version_path(project: str, secret_name: str) -> str:
    return f"projects/{project}/secrets/{secret_name}/versions/latest"


class CredentialResolver:
    """Resolves credentials from the environment, then the secret store, then ambient credentials."""

    def __init__(
        self,
        *,
        project: str | None,
        secret_client: Any | None = None,
        attempts: int = 2,
        backoff_seconds: float = 0.5,
    ):
        self.project = project
        self.secret_client = secret_client
        self.attempts = attempts
        self.backoff_seconds = backoff_seconds

    async def resolve(self, spec: CredentialSpec) -> Credential | None:
        value = (spec.env_value or "").strip()
        if value:
            logger.info("Credential %s resolved from environment.", spec.name)
            return Credential(name=spec.name, value=value, source="environment", project=self.project)

        value = await self._from_secret_store(spec)
        if value:
            logger.info("Credential %s resolved from secret %s.", spec.name, spec.secret_name)
            return Credential(name=spec.name, value=value, source="secretStore", project=self.project)

        if spec.allow_ambient:
            ambient = await self._from_ambient(spec)
            if ambient:
                logger.info("Credential %s resolved from ambient default credentials.", spec.name)
                return ambient

        if spec.required:
            logger.error("Required credential %s could not be resolved from any source.", spec.name)
            raise CredentialError(
                f"Required credential '{spec.name}' is not available from the environment, "
                "the secret store, or ambient credentials.",
                credential=spec.name,
            )

        logger.warning("Optional credential %s is not available; continuing without it.", spec.name)
        return None

    async def _from_secret_store(self, spec: CredentialSpec) -> str | None:
        if not (spec.secret_name and self.project and self.secret_client):
            return None

        name = secret_version_path(self.project, spec.secret_name)

        async def _access() -> str:
            response = await self.secret_client.access_secret_version(request={"name": name})
            return response.payload.data.decode("UTF-8")

        try:
            value = await with_retries(
                _access,
                attempts=self.attempts,
                backoff_seconds=self.backoff_seconds,
                description=f"Secret fetch for {spec.name}",
                retry_on=(gcp_exceptions.ServerError, gcp_exceptions.TooManyRequests),
            )
        except gcp_exceptions.GoogleAPICallError as e:
            logger.warning("Secret %s for credential %s unavailable: %s", spec.secret_name, spec.name, e)
            return None
        return value.strip() or None

    async def _from_ambient(self, spec: CredentialSpec) -> Credential | None:
        try:
            credentials, project = await asyncio.to_thread(_refresh_default_credentials)
        except auth_exceptions.GoogleAuthError as e:
            logger.warning("Ambient credentials unavailable for %s: %s", spec.name, e)
            return None

        token = getattr(credentials, "token", None)
        project = self.project or project
        if not token or not project:
            logger.warning("Ambient credentials for %s carry no token or project.", spec.name)
            return None
        return Credential(
            name=spec.name,
            value=token,
            source="ambient",
            project=project,
            google_credentials=credentials,
        )


def _refresh_default_credentials():
    credentials, project = google.auth.default(scopes=[CLOUD_PLATFORM_SCOPE])
    credentials.refresh(Request())
    return credentials, project


async def refresh_access_token(credentials: Any) -> str:
    """Return a usable access token, refreshing the credentials first when they have expired."""
    if not credentials.valid:
        logger.info("Refreshing expired ambient access token.")
        await asyncio.to_thread(credentials.refresh, Request())
    return credentials.token


def startup_credential_specs(settings: Settings) -> list[CredentialSpec]:
    return [
        CredentialSpec(
            name="googleai",
            env_value=settings.GEMINI_API_KEY,
            secret_name=settings.GEMINI_SECRET_NAME,
            required=settings.GEMINI_REQUIRED,
            allow_ambient=True,
        ),
        CredentialSpec(
            name="openai",
            env_value=settings.OPENAI_API_KEY,
            secret_name=settings.OPENAI_SECRET_NAME,
            required=settings.OPENAI_REQUIRED,
        ),
    ]


def _create_secret_client(settings: Settings) -> Any | None:
    if not settings.GOOGLE_CLOUD_PROJECT:
        return None
    try:
        return secretmanager.SecretManagerServiceAsyncClient()
    except auth_exceptions.DefaultCredentialsError as e:
        logger.warning("Secret store client unavailable: %s", e)
        return None


async def resolve_startup_credentials(
    settings: Settings,
    *,
    secret_client: Any | None = None,
) -> dict[str, Credential]:
    """
    Resolve every provider credential once. Raises CredentialError when a required
    credential is missing; optional ones that are missing are simply left out.
    """
    client = secret_client if secret_client is not None else _create_secret_client(settings)
    resolver = CredentialResolver(
        project=settings.GOOGLE_CLOUD_PROJECT,
        secret_client=client,
        attempts=settings.SECRET_FETCH_ATTEMPTS,
        backoff_seconds=settings.SECRET_FETCH_BACKOFF_SECONDS,
    )

    resolved: dict[str, Credential] = {}
    for spec in startup_credential_specs(settings):
        credential = await resolver.resolve(spec)
        if credential is not None:
            resolved[spec.name] = credential
    return resolved
