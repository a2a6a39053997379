import json
import logging
import re
from collections.abc import Callable
from enum import Enum
from typing import Any, Literal

from genflows.core.errors import InvalidModelOutputError

logger = logging.getLogger(__name__)

Expect = Literal["text", "json"]

_FENCED = re.compile(r"^```(?:[a-zA-Z0-9_-]+(?=[\s{\[]))?\s*([\s\S]*?)\s*```$")


class OutputPolicy(str, Enum):
    STRICT = "strict"
    LENIENT = "lenient"


def strip_code_fences(text: str) -> str:
    """Remove a single markdown fence wrapping the whole response, e.g. ```json ... ```."""
    if not text:
        return ""
    stripped = text.strip()
    fenced = _FENCED.match(stripped)
    if fenced:
        return fenced.group(1).strip()
    return stripped


def _reject_constant(name: str) -> Any:
    raise ValueError(f"{name} is not a valid JSON value")


def parse_json(text: str) -> Any:
    """Parse fenced or bare JSON. Raises ValueError on anything that is not standard JSON."""
    return json.loads(strip_code_fences(text), parse_constant=_reject_constant)


def post_process(
    raw_text: str,
    expect: Expect = "text",
    *,
    policy: OutputPolicy = OutputPolicy.STRICT,
    fallback: Callable[[str], Any] | None = None,
) -> Any:
    if expect == "text":
        return raw_text

    try:
        return parse_json(raw_text)
    except ValueError as e:
        if policy is OutputPolicy.LENIENT:
            if fallback is None:
                raise ValueError("Lenient output policy requires a fallback") from e
            logger.warning("Model output is not valid JSON (%s); using fallback value.", e)
            return fallback(raw_text)
        logger.error("Model output is not valid JSON: %s", e)
        raise InvalidModelOutputError(
            f"Model returned malformed JSON: {e}",
            raw_text=raw_text,
        ) from e
