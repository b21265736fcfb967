"""Shared message and result contracts for one review run."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class MessageRole(StrEnum):
    """Chat roles sent to the model endpoint."""

    SYSTEM = "system"
    USER = "user"


class PublishMode(StrEnum):
    """How a review is published to the pull request."""

    PUBLISH = "Publish"
    START_REVIEW = "StartReview"


class ChatMessage(BaseModel):
    """One role-tagged block of the prompt."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    role: MessageRole
    content: str

    def to_payload(self) -> dict[str, str]:
        """Return the chat-completions wire form."""
        return {"role": self.role.value, "content": self.content}


class ReviewResult(BaseModel):
    """Decoded review text plus its no-issues classification."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    text: str = Field(min_length=1)
    no_issues: bool
