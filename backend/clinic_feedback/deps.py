from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from clinic_feedback.core.security import InvalidToken, read_token
from clinic_feedback.core.settings import settings
from clinic_feedback.db.session import get_db
from clinic_feedback.models.user import Role, User
from clinic_feedback.services.board import BoardSync
from clinic_feedback.services.messaging import InboundMessageHandler, MessagingClient, MessagingConfig
from clinic_feedback.services.patient_import.pipeline import ImportConfig


def token_secret() -> str:
    return settings.secret_key or settings.jwt_secret or "change-me"


def get_current_user(
    db: Session = Depends(get_db), authorization: str | None = Header(default=None)
) -> User:
    if not authorization or not authorization.lower().startswith("bearer "):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing bearer token")
    token = authorization.split(" ", 1)[1].strip()
    try:
        claims = read_token(token, secret=token_secret(), alg=settings.jwt_alg)
    except InvalidToken:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    user = db.scalar(select(User).where(User.id == claims.user_id))
    if not user or not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Inactive user")
    return user


def require_admin(user: User = Depends(get_current_user)) -> User:
    if user.role != Role.admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    return user


def get_import_config(request: Request) -> ImportConfig:
    return request.app.state.import_config


def get_board(request: Request) -> BoardSync:
    return request.app.state.board


def get_inbound_handler(request: Request) -> InboundMessageHandler:
    return request.app.state.inbound_handler


def get_messaging_config(request: Request) -> MessagingConfig:
    return request.app.state.messaging_config


def get_messaging_client(request: Request) -> MessagingClient:
    return request.app.state.messaging_client
