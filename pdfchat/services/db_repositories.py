from datetime import datetime
from typing import Optional, List, Sequence
from sqlalchemy.orm import Session
from sqlalchemy import select, func

from ..models_db import User, Chat, ChatMessage
from ..models import HistoryMessage


class UserRepository:
    def get(self, db: Session, user_id: str) -> Optional[User]:
        return db.get(User, user_id)

    def get_or_create(self, db: Session, user_id: str, **kwargs) -> User:
        user = db.get(User, user_id)
        if user:
            changed = False
            for field, value in kwargs.items():
                if value is not None and getattr(user, field) != value:
                    setattr(user, field, value)
                    changed = True
            if changed:
                db.commit()
                db.refresh(user)
            return user
        user = User(id=user_id, **kwargs)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user


class ChatRepository:
    def list_for_user(self, db: Session, user_id: str) -> List[Chat]:
        return db.scalars(select(Chat).where(Chat.user_id == user_id).order_by(Chat.id.asc())).all()

    def get_for_user(self, db: Session, user_id: str, chat_id: str) -> Optional[Chat]:
        return db.scalars(
            select(Chat).where(Chat.user_id == user_id, Chat.chat_id == chat_id)
        ).first()

    def create(self, db: Session, *, user_id: str, chat_id: str, chat_name: str,
               history: Sequence[HistoryMessage], saved_at: datetime) -> Chat:
        chat = Chat(
            user_id=user_id,
            chat_id=chat_id,
            chat_name=chat_name,
            created_at=saved_at,
            messages=self._build_messages(history, saved_at),
        )
        db.add(chat)
        return chat

    def replace_history(self, db: Session, chat: Chat, *, chat_name: str,
                        history: Sequence[HistoryMessage], saved_at: datetime) -> Chat:
        # delete-orphan cascade drops the previous messages on flush
        chat.messages = self._build_messages(history, saved_at)
        chat.chat_name = chat_name
        return chat

    def count_for_user(self, db: Session, user_id: str) -> int:
        return db.scalar(select(func.count(Chat.id)).where(Chat.user_id == user_id)) or 0

    def count_messages_for_user(self, db: Session, user_id: str) -> int:
        return db.scalar(
            select(func.count(ChatMessage.id)).join(Chat).where(Chat.user_id == user_id)
        ) or 0

    @staticmethod
    def _build_messages(history: Sequence[HistoryMessage], saved_at: datetime) -> List[ChatMessage]:
        return [
            ChatMessage(position=position, role=entry.role, content=entry.content, timestamp=saved_at)
            for position, entry in enumerate(history)
        ]
