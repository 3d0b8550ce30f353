from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt
from passlib.context import CryptContext

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


class InvalidToken(Exception):
    pass


@dataclass(frozen=True)
class TokenClaims:
    user_id: int
    login: str | None = None
    role: str | None = None


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def issue_token(claims: TokenClaims, *, secret: str, alg: str, expires_minutes: int) -> str:
    issued = datetime.now(timezone.utc)
    payload = {
        "sub": str(claims.user_id),
        "iat": int(issued.timestamp()),
        "exp": int((issued + timedelta(minutes=expires_minutes)).timestamp()),
    }
    if claims.login:
        payload["login"] = claims.login
    if claims.role:
        payload["role"] = claims.role
    return jwt.encode(payload, secret, algorithm=alg)


def read_token(token: str, *, secret: str, alg: str) -> TokenClaims:
    """Decode a bearer token; expired or tampered tokens raise InvalidToken."""
    try:
        payload = jwt.decode(token, secret, algorithms=[alg])
        user_id = int(payload["sub"])
    except (JWTError, KeyError, TypeError, ValueError) as exc:
        raise InvalidToken(str(exc)) from exc
    return TokenClaims(user_id=user_id, login=payload.get("login"), role=payload.get("role"))
