from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class HelloMessage(BaseModel):
    """Output of the deployment smoke-test flow."""
    message: str


class ArchitectStep(BaseModel):
    model_config = ConfigDict(extra="allow")

    title: str = Field(description="Short name of the step")
    description: str = Field(default="", description="What has to be done in this step")


class ArchitectPlan(BaseModel):
    """Plan produced by the architect flow. Extra keys from the model are kept."""
    model_config = ConfigDict(extra="allow")

    title: str = Field(description="Title of the plan")
    steps: list[ArchitectStep | str] = Field(description="Ordered steps to carry out the request")


class CharacterRequest(BaseModel):
    description: str = Field(..., min_length=1, description="Free-text description of the character")


class Character(BaseModel):
    name: str = Field(description="Character name")
    strength: int = Field(description="Strength score")
    intelligence: int = Field(description="Intelligence score")
    description: str = Field(description="Short character description")


class ResearchRequest(BaseModel):
    topic: str = Field(..., min_length=1)
    audience: str = "a general audience"


class ResearchAnswer(BaseModel):
    answer: str


class ChatTurn(BaseModel):
    role: Literal["user", "assistant"]
    content: str = Field(..., min_length=1)


class ChatRequest(BaseModel):
    message: str = Field(..., min_length=1)
    history: list[ChatTurn] = Field(default_factory=list)


class ChatReply(BaseModel):
    reply: str
