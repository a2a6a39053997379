import logging

from genflows.flows.artifacts import HelloMessage
from genflows.flows.base import BaseFlow

logger = logging.getLogger(__name__)


class HelloFlow(BaseFlow[str | None, HelloMessage]):
    """Deployment smoke test; answers without calling a provider."""

    name = "testFlow"
    input_shape = str | None
    output_shape = HelloMessage

    async def run(self, input_data: str | None = None) -> HelloMessage:
        logger.info("testFlow was executed")
        return HelloMessage(message="Hello World")
