"""
Pydantic models for request/response validation.

Payload keys are camelCase on the wire; the Python side uses snake_case.
"""

from typing import Annotated, Any, List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, PlainSerializer
from pydantic.alias_generators import to_camel
from datetime import datetime

from .utils import format_timestamp

# Stored times are UTC; SQLite hands them back naive
UtcDateTime = Annotated[datetime, PlainSerializer(format_timestamp, return_type=str, when_used="json-unless-none")]


class ApiModel(BaseModel):
    """Base model serializing field names as camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class HistoryMessage(ApiModel):
    """One entry of a chat history as sent by the client."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    role: Literal["user", "bot"] = Field(..., description="Who authored the message")
    content: str = Field(..., min_length=1, description="Message text")


class MessageResponse(ApiModel):
    """Stored chat message."""
    role: str = Field(..., description="Who authored the message")
    content: str = Field(..., description="Message text")
    timestamp: UtcDateTime = Field(..., description="Time the message was last saved")


class SaveChatRequest(ApiModel):
    """Request model for saving a chat.

    Parsed by the chat service after the user lookup. ``history`` is left
    untyped here and validated separately, so that malformed transcripts are
    reported as an invalid history rather than as a generic body error.
    """
    chat_id: Optional[str] = Field(default=None, description="Existing chat ID, generated if not provided")
    chat_name: Optional[str] = Field(default=None, description="Chat name, derived if not provided")
    history: Any = Field(default=None, description="Full chat transcript")


class SaveChatResponse(ApiModel):
    """Response model for a saved chat."""
    message: str = Field(default="Chat saved successfully", description="Success message")
    chat_id: str = Field(..., description="Resolved chat ID")


class ChatSummary(ApiModel):
    """Chat list entry."""
    chat_id: str = Field(..., description="Chat ID")
    chat_name: str = Field(..., description="Chat name")
    created_at: UtcDateTime = Field(..., description="Chat creation timestamp")


class ChatDetail(ChatSummary):
    """Full chat record including its history."""
    history: List[MessageResponse] = Field(default_factory=list, description="Chat transcript")


class ChatsListResponse(ApiModel):
    """Response model for listing chats."""
    message: str = Field(default="Chats retrieved successfully", description="Success message")
    chats: List[ChatSummary] = Field(..., description="Chats owned by the user")


class ChatResponse(ApiModel):
    """Response model for a single chat."""
    message: str = Field(default="Chat retrieved successfully", description="Success message")
    chat: ChatDetail = Field(..., description="Chat record")


class UserProfileResponse(ApiModel):
    """Response model for user profile."""
    user_id: str = Field(..., description="User ID")
    email: Optional[str] = Field(default=None, description="User email")
    first_name: Optional[str] = Field(default=None, description="User first name")
    last_name: Optional[str] = Field(default=None, description="User last name")
    full_name: str = Field(..., description="User full name")
    created_at: Optional[UtcDateTime] = Field(default=None, description="User creation timestamp")
    total_chats: int = Field(default=0, description="Total number of saved chats")
    total_messages: int = Field(default=0, description="Total number of messages across all chats")


class HealthResponse(ApiModel):
    """Response model for health check."""
    status: str = Field(..., description="Health status")
    message: str = Field(..., description="Status message")
    version: str = Field(..., description="Application version")
    timestamp: str = Field(..., description="Current timestamp")


class ErrorResponse(BaseModel):
    """Response model for errors."""
    message: str = Field(..., description="Error message")
    detail: Optional[str] = Field(default=None, description="Detailed error information")
    errors: Optional[List[Any]] = Field(default=None, description="Validation errors, if any")
