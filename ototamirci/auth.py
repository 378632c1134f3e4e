import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from .database import get_db
from .exceptions import AuthenticationError, NotFoundError
from .models import User, UserRole
from .utils import JWTError, decode_jwt

logger = logging.getLogger(__name__)

# Missing headers are reported through AuthenticationError, not FastAPI's 403
security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Identity:
    """The caller as encoded in the bearer token."""

    id: int
    email: str
    role: str

    @property
    def is_customer(self) -> bool:
        return self.role == UserRole.CUSTOMER.value

    @property
    def is_mechanic(self) -> bool:
        return self.role == UserRole.MECHANIC.value


def identity_from_token(token: str) -> Identity:
    try:
        payload = decode_jwt(token)
        user_id = payload.get("sub")
        if user_id is None:
            raise AuthenticationError("Invalid or expired token")
        return Identity(id=int(user_id), email=payload.get("email", ""), role=payload.get("role", ""))
    except (JWTError, ValueError) as e:
        logger.info("Rejected bearer token: %s", e)
        raise AuthenticationError("Invalid or expired token") from e


def get_current_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Identity:
    if not credentials or not credentials.credentials:
        raise AuthenticationError("Access token required")
    return identity_from_token(credentials.credentials)


def get_current_user(
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
) -> User:
    user = db.query(User).filter(User.id == identity.id).first()
    if not user:
        raise NotFoundError("User not found")
    return user
