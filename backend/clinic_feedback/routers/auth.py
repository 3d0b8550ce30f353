from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from clinic_feedback.core.security import TokenClaims, issue_token
from clinic_feedback.core.settings import settings
from clinic_feedback.db.session import get_db
from clinic_feedback.deps import get_current_user, token_secret
from clinic_feedback.models.user import User
from clinic_feedback.schemas.auth import LoginRequest, Token
from clinic_feedback.schemas.user import UserOut
from clinic_feedback.services.users import authenticate

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=Token)
def login(payload: LoginRequest, db: Session = Depends(get_db)):
    user = authenticate(db, payload.login, payload.password)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    token = issue_token(
        TokenClaims(user_id=user.id, login=user.login, role=user.role.value),
        secret=token_secret(),
        alg=settings.jwt_alg,
        expires_minutes=settings.access_token_expire_minutes,
    )
    return Token(access_token=token, role=user.role.value)


@router.get("/me", response_model=UserOut)
def me(user: User = Depends(get_current_user)):
    return user
