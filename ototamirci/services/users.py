import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..exceptions import AuthenticationError, ConflictError, StoreError
from ..models import User, UserRole
from ..utils import hash_password, verify_password
from .shops import build_shop

logger = logging.getLogger(__name__)


def register_user(
    db: Session,
    name: str,
    email: str,
    password: str,
    role: str,
    phone: Optional[str] = None,
    phone_visible: bool = True,
    shop_name: Optional[str] = None,
    address: Optional[str] = None,
    latitude: Optional[float] = None,
    longitude: Optional[float] = None,
    categories=None,
    working_hours=None,
) -> User:
    """Create a user; a mechanic with complete shop details gets the shop in the same commit."""
    email = email.strip().lower()
    if db.query(User.id).filter(User.email == email).first():
        raise ConflictError("User with this email already exists")

    user = User(
        name=name,
        email=email,
        password_hash=hash_password(password),
        role=role,
        phone=phone,
        phone_visible=phone_visible,
    )
    db.add(user)

    wants_shop = role == UserRole.MECHANIC.value and all(
        value is not None and value != "" for value in (shop_name, address, latitude, longitude)
    )

    try:
        if wants_shop:
            db.flush()
            db.add(
                build_shop(
                    user.id,
                    categories,
                    name=shop_name,
                    latitude=latitude,
                    longitude=longitude,
                    address=address,
                    phone=phone,
                    working_hours=working_hours,
                )
            )
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.warning("Registration conflict for %s: %s", email, e.orig)
        raise ConflictError("User with this email already exists") from e
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Registration failed for %s", email)
        raise StoreError("Server error during registration") from e

    db.refresh(user)
    logger.info("Registered %s %s (id=%s)%s", role, email, user.id, " with shop" if wants_shop else "")
    return user


def authenticate(db: Session, email: str, password: str) -> User:
    user = db.query(User).filter(User.email == email.strip().lower()).first()
    if not user or not verify_password(password, user.password_hash):
        logger.info("Failed login for %s", email)
        raise AuthenticationError("Invalid credentials")
    return user


def update_profile(db: Session, user: User, **updates) -> User:
    for key in ("name", "phone", "avatar_url", "phone_visible"):
        value = updates.get(key)
        if value is not None:
            setattr(user, key, value)
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Profile update failed for user %s", user.id)
        raise StoreError() from e
    db.refresh(user)
    return user
