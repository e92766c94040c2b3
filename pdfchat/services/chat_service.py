"""
Chat service for listing, loading and saving a user's chat sessions.
"""

from typing import Any, Callable, List, Optional, Tuple
from datetime import datetime

from pydantic import TypeAdapter, ValidationError
from sqlalchemy.orm import Session as OrmSession

from ..config import settings
from ..exceptions import InvalidInputError, NotFoundError
from ..models import ChatDetail, ChatSummary, HistoryMessage, MessageResponse, SaveChatRequest
from ..models_db import Chat, User
from ..utils import (
    default_chat_name,
    generate_chat_id,
    handle_processing_error,
    log_processing_info,
    measure_time,
    utcnow,
)
from .db_repositories import ChatRepository, UserRepository
import logging

logger = logging.getLogger(__name__)

_history_adapter = TypeAdapter(List[HistoryMessage])


class ChatService:
    """Service for persisting named chat sessions of a user."""

    def __init__(self, clock: Callable[[], datetime] = utcnow,
                 chat_name_max_length: Optional[int] = None):
        """
        Initialize the chat service.

        Args:
            clock: Returns the current time; used for message timestamps,
                creation times and default chat names
            chat_name_max_length: Length derived chat names are cut to
        """
        self.clock = clock
        self.chat_name_max_length = chat_name_max_length or settings.chat_name_max_length
        self.users = UserRepository()
        self.chats = ChatRepository()

    def _require_user(self, db: OrmSession, user_id: str) -> User:
        user = self.users.get(db, user_id)
        if not user:
            raise NotFoundError("User not found")
        return user

    def validate_history(self, history: Any) -> List[HistoryMessage]:
        """
        Validate a client-supplied transcript.

        Args:
            history: Sequence of mappings with ``role`` and ``content``

        Returns:
            List of validated messages, in order

        Raises:
            InvalidInputError: If history is not a sequence, or any entry has
                a role other than user/bot or empty content
        """
        if isinstance(history, (str, bytes)) or history is None:
            raise InvalidInputError("Invalid history format")
        try:
            return _history_adapter.validate_python(history)
        except ValidationError as e:
            logger.warning(f"Rejected chat history: {e.error_count()} invalid field(s)")
            raise InvalidInputError("Invalid history format")

    def resolve_chat_name(self, chat_name: Optional[str], history: List[HistoryMessage],
                          saved_at: datetime) -> str:
        """Use the given name, else the first user question, else a timestamp."""
        if chat_name:
            return chat_name
        first_question = next((m.content for m in history if m.role == "user"), None)
        if first_question:
            return first_question[:self.chat_name_max_length]
        return default_chat_name(saved_at)

    def list_chats(self, db: OrmSession, user_id: str) -> List[ChatSummary]:
        self._require_user(db, user_id)
        return [
            ChatSummary(chat_id=c.chat_id, chat_name=c.chat_name, created_at=c.created_at)
            for c in self.chats.list_for_user(db, user_id)
        ]

    def get_chat(self, db: OrmSession, user_id: str, chat_id: str) -> ChatDetail:
        self._require_user(db, user_id)
        chat = self.chats.get_for_user(db, user_id, chat_id)
        if not chat:
            raise NotFoundError("Chat not found")
        return self._to_detail(chat)

    def save_chat_request(self, db: OrmSession, user_id: str, payload: Any) -> str:
        """
        Save a chat from a raw request body.

        The user lookup runs before the body is parsed, so a missing user is
        reported even when the body is malformed.

        Raises:
            NotFoundError: If the user record is absent
            InvalidInputError: If the body or its history is malformed
        """
        self._require_user(db, user_id)
        try:
            request = SaveChatRequest.model_validate({} if payload is None else payload)
        except ValidationError as e:
            logger.warning(f"Rejected chat save body: {e.error_count()} invalid field(s)")
            raise InvalidInputError("Invalid request body")
        return self.save_chat(
            db,
            user_id,
            request.history,
            chat_id=request.chat_id,
            chat_name=request.chat_name,
        )

    @measure_time
    def save_chat(self, db: OrmSession, user_id: str, history: Any,
                  chat_id: Optional[str] = None, chat_name: Optional[str] = None) -> str:
        """
        Create or update a chat keyed by chat ID.

        An existing chat gets its history replaced wholesale and its name
        updated; its creation time is kept. Otherwise a new chat is appended.

        Returns:
            The resolved chat ID
        """
        self._require_user(db, user_id)
        messages = self.validate_history(history)

        saved_at = self.clock()
        final_chat_id = chat_id or generate_chat_id()
        final_chat_name = self.resolve_chat_name(chat_name, messages, saved_at)

        try:
            chat = self.chats.get_for_user(db, user_id, final_chat_id)
            created = chat is None
            if created:
                self.chats.create(
                    db,
                    user_id=user_id,
                    chat_id=final_chat_id,
                    chat_name=final_chat_name,
                    history=messages,
                    saved_at=saved_at,
                )
            else:
                self.chats.replace_history(
                    db,
                    chat,
                    chat_name=final_chat_name,
                    history=messages,
                    saved_at=saved_at,
                )
            db.commit()
        except Exception as e:
            db.rollback()
            handle_processing_error("save_chat", e, {"user_id": user_id, "chat_id": final_chat_id})
            raise

        log_processing_info("Chat saved", {
            "user_id": user_id,
            "chat_id": final_chat_id,
            "created": created,
            "messages": len(messages),
        })
        return final_chat_id

    @staticmethod
    def _to_detail(chat: Chat) -> ChatDetail:
        return ChatDetail(
            chat_id=chat.chat_id,
            chat_name=chat.chat_name,
            created_at=chat.created_at,
            history=[
                MessageResponse(role=m.role, content=m.content, timestamp=m.timestamp)
                for m in chat.messages
            ],
        )

    def stats_for_user(self, db: OrmSession, user_id: str) -> Tuple[int, int]:
        """Return (chat count, message count) for a user."""
        total_chats = self.chats.count_for_user(db, user_id)
        total_messages = self.chats.count_messages_for_user(db, user_id)
        return total_chats, total_messages
