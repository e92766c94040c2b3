"""
Services package for the PDF Chat History Service.
"""

from .chat_service import ChatService
from .user_service import UserService

__all__ = [
    "ChatService",
    "UserService"
]
