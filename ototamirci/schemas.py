from datetime import datetime
from typing import Any, Generic, List, Literal, Optional, TypeVar

from pydantic import BaseModel, EmailStr, Field, HttpUrl, field_validator

from .models import AppointmentStatus
from .utils import as_utc

T = TypeVar("T")


class Envelope(BaseModel, Generic[T]):
    success: bool = True
    data: Optional[T] = None
    message: Optional[str] = None


class RequestModel(BaseModel):
    class Config:
        str_strip_whitespace = True


# ────────────────────────────── AUTH ──────────────────────────────

class RegisterRequest(RequestModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=6)
    role: Literal["customer", "mechanic"]
    phone: Optional[str] = None
    phone_visible: bool = True
    # Mechanic-specific
    shop_name: Optional[str] = None
    address: Optional[str] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    categories: Optional[List[str]] = None
    working_hours: Optional[Any] = None
    captchaToken: Optional[str] = None


class LoginRequest(RequestModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class ProfileUpdate(RequestModel):
    name: Optional[str] = Field(None, min_length=1)
    phone: Optional[str] = None
    avatar_url: Optional[HttpUrl] = None
    phone_visible: Optional[bool] = None


class UserOut(BaseModel):
    id: int
    name: str
    email: str
    role: str
    avatar_url: Optional[str]
    phone: Optional[str]
    phone_visible: bool

    class Config:
        from_attributes = True


class AuthData(BaseModel):
    user: UserOut
    token: str


# ────────────────────────────── SHOPS ──────────────────────────────

class ShopCreate(RequestModel):
    name: str = Field(..., min_length=1)
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    address: str = Field(..., min_length=1)
    phone: str = Field(..., min_length=1)
    image_url: Optional[str] = None
    categories: List[str]
    working_hours: Optional[Any] = None


class ShopUpdate(RequestModel):
    name: Optional[str] = Field(None, min_length=1)
    address: Optional[str] = Field(None, min_length=1)
    phone: Optional[str] = Field(None, min_length=1)
    image_url: Optional[str] = None
    categories: Optional[List[str]] = None
    working_hours: Optional[Any] = None


class AvailabilityUpdate(BaseModel):
    is_open: bool


class ShopSummary(BaseModel):
    id: int
    name: str
    latitude: float
    longitude: float
    address: Optional[str]
    phone: Optional[str]
    image_url: Optional[str]
    rating: float
    is_open: bool
    categories: List[str] = []

    class Config:
        from_attributes = True


class NearbyShopOut(ShopSummary):
    distance: float


class ShopOut(ShopSummary):
    owner_id: int
    working_hours: Optional[Any] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# ────────────────────────────── REVIEWS ──────────────────────────────

class ReviewCreate(RequestModel):
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = None


class ReviewOut(BaseModel):
    id: int
    shop_id: int
    user_id: int
    rating: int
    comment: Optional[str]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True


class ReviewListItem(BaseModel):
    id: int
    rating: int
    comment: Optional[str]
    created_at: Optional[datetime]
    user_name: Optional[str]

    class Config:
        from_attributes = True


class ShopReviews(BaseModel):
    reviews: List[ReviewListItem]
    average_rating: float
    review_count: int


# ────────────────────────────── APPOINTMENTS ──────────────────────────────

class AppointmentCreate(RequestModel):
    shop_id: int
    car_model: str = Field(..., min_length=1)
    appointment_date: datetime
    service_type: str = Field(..., min_length=1)
    note: Optional[str] = None

    @field_validator("appointment_date")
    @classmethod
    def normalize_appointment_date(cls, v: datetime) -> datetime:
        return as_utc(v)


class AppointmentStatusUpdate(BaseModel):
    status: AppointmentStatus


class AppointmentOut(BaseModel):
    id: int
    shop_id: int
    user_id: int
    car_model: str
    appointment_date: datetime
    service_type: str
    status: str
    note: Optional[str]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]
    shop_name: Optional[str]
    user_name: Optional[str]

    @field_validator("appointment_date")
    @classmethod
    def appointment_date_in_utc(cls, v: datetime) -> datetime:
        # SQLite hands back naive UTC values
        return as_utc(v)

    class Config:
        from_attributes = True
