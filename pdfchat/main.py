"""
FastAPI application for the PDF Chat History Service.
"""

from typing import Any
from fastapi import FastAPI, Depends, Body, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.orm import Session as OrmSession
import logging

from .config import settings, validate_required_settings
from .models import (
    SaveChatResponse, ChatsListResponse, ChatResponse,
    UserProfileResponse, HealthResponse, ErrorResponse
)
from .exceptions import ChatServiceError
from .services import ChatService, UserService
from .db import get_db, engine, Base
from .auth import get_current_user, AuthenticatedUser
from .utils import format_timestamp

# Configure logging
logging.basicConfig(level=logging.DEBUG if settings.debug else logging.INFO)
logger = logging.getLogger(__name__)

# Validate required settings on startup
try:
    validate_required_settings()
except ValueError as e:
    logger.error(f"Configuration validation failed: {e}")
    raise

# Initialize FastAPI app
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Persistence of named chat sessions for the PDF chat application",
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Initialize services
chat_service = ChatService()
user_service = UserService(chat_service)


@app.on_event("startup")
def on_startup_create_tables():
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables ensured.")


@app.exception_handler(ChatServiceError)
async def chat_service_exception_handler(request: Request, exc: ChatServiceError):
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(message=exc.message).model_dump(exclude_none=True)
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content=ErrorResponse(
            message="Invalid request body",
            errors=jsonable_encoder(exc.errors())
        ).model_dump(exclude_none=True)
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler."""
    logger.error(f"Unhandled exception on {request.method} {request.url.path}: {str(exc)}")
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            message="Server error",
            detail=str(exc) if settings.debug else None
        ).model_dump(exclude_none=True)
    )


@app.get("/", response_model=dict)
async def root():
    """Root endpoint."""
    return {
        "message": "PDF Chat History API is running",
        "version": settings.app_version,
        "timestamp": format_timestamp()
    }


@app.get("/health", response_model=HealthResponse)
def health_check(db: OrmSession = Depends(get_db)):
    """Report whether the database is reachable."""
    try:
        db.execute(text("SELECT 1"))
        status, message = "healthy", "Service health check completed"
    except Exception as e:
        logger.error(f"Health check failed: {str(e)}")
        status, message = "unhealthy", "Database unavailable"

    return HealthResponse(
        status=status,
        message=message,
        version=settings.app_version,
        timestamp=format_timestamp()
    )


# ============================================================================
# AUTHENTICATED USER ENDPOINTS
# ============================================================================

@app.get("/api/chats", response_model=ChatsListResponse)
def get_all_chats(current_user: AuthenticatedUser = Depends(get_current_user), db: OrmSession = Depends(get_db)):
    """List summaries of the user's chats in creation order."""
    chats = chat_service.list_chats(db, current_user.user_id)
    return ChatsListResponse(chats=chats)


@app.get("/api/chats/{chat_id}", response_model=ChatResponse)
def get_chat(
    chat_id: str,
    current_user: AuthenticatedUser = Depends(get_current_user),
    db: OrmSession = Depends(get_db)
):
    """Get a chat with its full history."""
    chat = chat_service.get_chat(db, current_user.user_id, chat_id)
    return ChatResponse(chat=chat)


@app.post("/api/chats/save", response_model=SaveChatResponse)
def save_chat(
    payload: Any = Body(None, description="Chat save payload: {chatId?, chatName?, history}"),
    current_user: AuthenticatedUser = Depends(get_current_user),
    db: OrmSession = Depends(get_db)
):
    """Create a chat, or replace the history of an existing one."""
    chat_id = chat_service.save_chat_request(db, current_user.user_id, payload)
    return SaveChatResponse(chat_id=chat_id)


@app.get("/api/user/profile", response_model=UserProfileResponse)
def get_user_profile(current_user: AuthenticatedUser = Depends(get_current_user), db: OrmSession = Depends(get_db)):
    """Get the user's profile, creating the user record on first access."""
    user_service.ensure_user(db, current_user)
    return user_service.get_user_profile(db, current_user.user_id)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "pdfchat.main:app",
        host="0.0.0.0",
        port=3000,
        reload=settings.debug
    )
