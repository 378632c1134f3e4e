# ototamirci/routers/auth.py

import logging

from fastapi import APIRouter, Depends, Request, status
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from .. import schemas
from ..auth import get_current_user
from ..captcha import verify_captcha
from ..database import get_db
from ..models import User
from ..rate_limiter import client_ip, login_rate_limit, register_rate_limit
from ..responses import success
from ..services import users
from ..utils import generate_token

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])


# ────────────────────────────── ENDPOINTS ──────────────────────────────

@router.post(
    "/register",
    status_code=status.HTTP_201_CREATED,
    response_model=schemas.Envelope[schemas.AuthData],
    dependencies=[Depends(register_rate_limit)],
)
async def register(req: schemas.RegisterRequest, request: Request, db: Session = Depends(get_db)):
    await verify_captcha(req.captchaToken, client_ip(request))

    # Password hashing and the commit are blocking
    user = await run_in_threadpool(
        users.register_user,
        db,
        name=req.name,
        email=req.email,
        password=req.password,
        role=req.role,
        phone=req.phone,
        phone_visible=req.phone_visible,
        shop_name=req.shop_name,
        address=req.address,
        latitude=req.latitude,
        longitude=req.longitude,
        categories=req.categories,
        working_hours=req.working_hours,
    )
    token = generate_token(user)
    return success({"user": schemas.UserOut.model_validate(user), "token": token})


@router.post(
    "/login",
    response_model=schemas.Envelope[schemas.AuthData],
    dependencies=[Depends(login_rate_limit)],
)
def login(req: schemas.LoginRequest, db: Session = Depends(get_db)):
    user = users.authenticate(db, req.email, req.password)
    token = generate_token(user)
    return success({"user": schemas.UserOut.model_validate(user), "token": token})


@router.get("/me", response_model=schemas.Envelope[schemas.UserOut])
def me(user: User = Depends(get_current_user)):
    return success(schemas.UserOut.model_validate(user))


@router.put("/profile", response_model=schemas.Envelope[schemas.UserOut])
def update_profile(
    req: schemas.ProfileUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    user = users.update_profile(
        db,
        user,
        name=req.name,
        phone=req.phone,
        avatar_url=str(req.avatar_url) if req.avatar_url else None,
        phone_visible=req.phone_visible,
    )
    return success(schemas.UserOut.model_validate(user))
