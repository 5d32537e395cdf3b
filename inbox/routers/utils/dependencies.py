from uuid import UUID

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from inbox.config import get_settings
from inbox.core.auth import InvalidTokenError, decode_user_id, extract_bearer
from inbox.core.hub import DeliveryHub
from inbox.db import get_db
from inbox.models.user import User
from inbox.services.message_service import MessageService


def get_current_user_id(request: Request) -> UUID:
    """FastAPI dependency resolving the caller from the bearer token."""
    token = extract_bearer(request.headers.get("Authorization"))
    try:
        return decode_user_id(token, get_settings())
    except InvalidTokenError:
        raise HTTPException(
            status_code=401,
            detail="Invalid or missing bearer token",
            headers={"WWW-Authenticate": "Bearer"},
        )


def get_user_by_id(
    user_id: UUID,
    db: Session = Depends(get_db),
) -> User:
    """FastAPI dependency to get a counterpart user by ID."""
    user = MessageService(db).get_user(user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return user


def get_hub(request: Request) -> DeliveryHub:
    return request.app.state.hub
