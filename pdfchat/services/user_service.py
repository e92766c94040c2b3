"""
User record management for authenticated callers.
"""

import logging

from sqlalchemy.orm import Session as OrmSession

from ..auth import AuthenticatedUser
from ..exceptions import NotFoundError
from ..models import UserProfileResponse
from .chat_service import ChatService
from .db_repositories import UserRepository

logger = logging.getLogger(__name__)


class UserService:
    """Service for provisioning users and reporting their profile."""

    def __init__(self, chat_service: ChatService):
        self.chat_service = chat_service
        self.users = UserRepository()

    def ensure_user(self, db: OrmSession, current_user: AuthenticatedUser):
        """Get or create the store record for an authenticated user."""
        try:
            return self.users.get_or_create(
                db,
                current_user.user_id,
                email=current_user.email,
                first_name=current_user.first_name,
                last_name=current_user.last_name,
            )
        except Exception as e:
            db.rollback()
            logger.error(f"Failed to provision user {current_user.user_id}: {str(e)}")
            raise

    def get_user_profile(self, db: OrmSession, user_id: str) -> UserProfileResponse:
        user = self.users.get(db, user_id)
        if not user:
            raise NotFoundError("User not found")
        total_chats, total_messages = self.chat_service.stats_for_user(db, user_id)
        return UserProfileResponse(
            user_id=user.id,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            full_name=_full_name(user.first_name, user.last_name),
            created_at=user.created_at,
            total_chats=total_chats,
            total_messages=total_messages,
        )


def _full_name(first_name, last_name) -> str:
    if first_name and last_name:
        return f"{first_name} {last_name}"
    return first_name or last_name or "Unknown User"
