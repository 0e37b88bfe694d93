"""Pydantic schemas for the FastAPI endpoints.

JSON on the wire is camelCase (``sessionId``, ``relatedMaterials`` …);
Python attributes are snake_case.  Either spelling is accepted on input.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, StrictStr, field_validator

from webbrain.decisions import ConversationTurn, MaterialRef


class ChatRequest(BaseModel):
    """Incoming chat message from the frontend.

    Session continuity is the client's job: it sends back the whole
    ``conversationHistory`` on every request.
    """

    model_config = ConfigDict(populate_by_name=True)

    message: StrictStr = Field(..., description="The user's message")
    session_id: str | None = Field(None, alias="sessionId")
    conversation_history: list[ConversationTurn] = Field(
        default_factory=list, alias="conversationHistory",
    )
    custom_instructions: str | None = Field(None, alias="customInstructions")
    context: dict[str, Any] | None = Field(
        None, description="Client-side context; accepted but not used yet",
    )

    @field_validator("conversation_history", mode="before")
    @classmethod
    def _null_history(cls, value: Any) -> Any:
        return [] if value is None else value


class ConversationState(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(..., alias="sessionId")
    last_updated: str = Field(..., alias="lastUpdated")


class ChatResponse(BaseModel):
    """The assistant's answer for one turn."""

    model_config = ConfigDict(populate_by_name=True)

    message: str
    related_materials: list[MaterialRef] = Field(
        default_factory=list, alias="relatedMaterials",
    )
    suggested_actions: list[str] = Field(
        default_factory=list, alias="suggestedActions",
    )
    conversation_state: ConversationState = Field(..., alias="conversationState")


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    service: str = "webbrain-chatbot"
