from datetime import datetime, timedelta, timezone
import logging

from jose import jwt, JWTError
from passlib.context import CryptContext

from .config import JWT_ALGORITHM, JWT_EXPIRES_MINUTES, PASSWORD_HASH_ROUNDS, SECRET_KEY

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=PASSWORD_HASH_ROUNDS)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except (ValueError, TypeError) as e:
        logger.error("Password verification error: %s", e)
        return False


def create_jwt(data: dict, expires_minutes: int = JWT_EXPIRES_MINUTES) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + timedelta(minutes=expires_minutes)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=JWT_ALGORITHM)


def decode_jwt(token: str) -> dict:
    """Return the verified claims; raises ``JWTError`` on a bad signature or expiry."""
    return jwt.decode(token, SECRET_KEY, algorithms=[JWT_ALGORITHM])


def generate_token(user) -> str:
    return create_jwt({"sub": str(user.id), "email": user.email, "role": user.role})


def as_utc(value: datetime) -> datetime:
    """Aware UTC datetime; naive values are taken to already be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


__all__ = ["JWTError", "as_utc", "create_jwt", "decode_jwt", "generate_token", "hash_password", "verify_password"]
