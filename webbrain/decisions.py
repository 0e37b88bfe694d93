"""Typed values exchanged between the LLM, the tools and the orchestrator.

The LLM answers every turn with a JSON object whose ``type`` field selects
one of two shapes:

* ``final``      — a user-ready answer (:class:`FinalDecision`)
* ``tool_call``  — a request to run a backend tool (:class:`ToolCallDecision`)

:data:`LlmDecision` is the discriminated union of both.  Nothing past the
response parser handles the raw JSON; consumers match on the model class.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator

Role = Literal["system", "user", "assistant"]


class ConversationTurn(BaseModel):
    """One entry of the transcript sent to the LLM."""

    role: Role
    content: str


class MaterialRef(BaseModel):
    """A graph node the answer points the learner to."""

    model_config = ConfigDict(populate_by_name=True)

    node_id: str = Field(..., alias="nodeId")
    name: str
    type: Literal["skill", "url"]

    @field_validator("type", mode="before")
    @classmethod
    def _lowercase_type(cls, value: Any) -> Any:
        # Graph labels are "Skill" / "URL"; models echo them back as-is.
        return value.lower() if isinstance(value, str) else value


class FinalDecision(BaseModel):
    """The LLM's user-ready answer; ends the turn."""

    model_config = ConfigDict(populate_by_name=True)

    type: Literal["final"] = "final"
    message: str = ""
    related_materials: list[MaterialRef] = Field(
        default_factory=list, alias="relatedMaterials",
    )
    suggested_actions: list[str] = Field(
        default_factory=list, alias="suggestedActions",
    )

    @field_validator("message", mode="before")
    @classmethod
    def _null_message(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("related_materials", "suggested_actions", mode="before")
    @classmethod
    def _null_list(cls, value: Any) -> Any:
        return [] if value is None else value

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


class ToolCallDecision(BaseModel):
    """The LLM asks the backend to run ``tool`` with ``args``."""

    type: Literal["tool_call"] = "tool_call"
    tool: str
    args: dict[str, Any] = Field(default_factory=dict)

    @field_validator("args", mode="before")
    @classmethod
    def _null_args(cls, value: Any) -> Any:
        return {} if value is None else value

    def to_json(self) -> str:
        """Serialise exactly the decision that triggered the tool."""
        return self.model_dump_json()


LlmDecision = Annotated[
    Union[FinalDecision, ToolCallDecision],
    Field(discriminator="type"),
]

llm_decision_adapter: TypeAdapter[FinalDecision | ToolCallDecision] = TypeAdapter(
    LlmDecision,
)


@dataclass(frozen=True)
class ToolExchange:
    """One executed tool round: the call the LLM made and what it returned."""

    call: ToolCallDecision
    output: dict[str, Any] = field(default_factory=dict)

    def output_json(self) -> str:
        return json.dumps(self.output, ensure_ascii=False, separators=(",", ":"))
