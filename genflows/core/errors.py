class FlowError(Exception):
    """Base class for failures that are reported to the caller as a single error value."""

    status = "INTERNAL"
    http_status = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_payload(self) -> dict:
        return {"error": {"status": self.status, "message": self.message}}


class CredentialError(FlowError):
    status = "UNAUTHENTICATED"
    http_status = 500

    def __init__(self, message: str, *, credential: str):
        super().__init__(message)
        self.credential = credential


class PromptResolutionError(FlowError):
    """Raised inside the prompt resolver only; callers always receive fallback text instead."""

    def __init__(self, message: str, *, prompt_id: str):
        super().__init__(message)
        self.prompt_id = prompt_id


class GenerationError(FlowError):
    status = "UNAVAILABLE"
    http_status = 502

    def __init__(
        self,
        message: str,
        *,
        code: str = "provider_error",
        provider: str | None = None,
        provider_status: int | None = None,
    ):
        super().__init__(message)
        self.code = code
        self.provider = provider
        self.provider_status = provider_status
        if code == "timeout":
            self.status = "DEADLINE_EXCEEDED"
            self.http_status = 504
        elif code == "rate_limit":
            self.status = "RESOURCE_EXHAUSTED"


class InvalidModelOutputError(FlowError):
    status = "INVALID_MODEL_OUTPUT"
    http_status = 502

    def __init__(self, message: str, *, raw_text: str):
        super().__init__(message)
        self.raw_text = raw_text

    def to_payload(self) -> dict:
        payload = super().to_payload()
        payload["error"]["raw_text"] = self.raw_text
        return payload


class ValidationError(FlowError):
    status = "INVALID_ARGUMENT"
    http_status = 422

    def __init__(self, message: str, *, field: str):
        super().__init__(message)
        self.field = field

    def to_payload(self) -> dict:
        payload = super().to_payload()
        payload["error"]["field"] = self.field
        return payload


class NotFoundError(FlowError):
    status = "NOT_FOUND"
    http_status = 404


class ProviderNotConfiguredError(NotFoundError):
    """The requested model belongs to a provider whose credential was not available at startup."""

    def __init__(self, message: str, *, provider: str):
        super().__init__(message)
        self.provider = provider
