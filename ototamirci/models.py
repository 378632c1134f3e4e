import enum

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


class UserRole(str, enum.Enum):
    CUSTOMER = "customer"
    MECHANIC = "mechanic"


class AppointmentStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"
    COMPLETED = "completed"


class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default=UserRole.CUSTOMER.value)  # customer / mechanic
    phone = Column(String(50), nullable=True)
    phone_visible = Column(Boolean, nullable=False, default=True)
    avatar_url = Column(String(500), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    shop = relationship("Shop", back_populates="owner", uselist=False, cascade="all, delete-orphan")
    appointments = relationship("Appointment", back_populates="user", cascade="all, delete-orphan")
    reviews = relationship("Review", back_populates="user", cascade="all, delete-orphan")


class Shop(Base):
    __tablename__ = "shops"
    __table_args__ = (
        CheckConstraint("latitude >= -90 AND latitude <= 90", name="ck_shops_latitude"),
        CheckConstraint("longitude >= -180 AND longitude <= 180", name="ck_shops_longitude"),
    )
    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    name = Column(String(255), nullable=False)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    address = Column(String(500), nullable=True)
    phone = Column(String(50), nullable=True)
    image_url = Column(String(500), nullable=True)
    working_hours = Column(JSON, nullable=True)
    # Mean of reviews.rating, written only by the review engine
    rating = Column(Float, nullable=False, default=0.0)
    is_open = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    owner = relationship("User", back_populates="shop")
    category_rows = relationship(
        "ShopCategory", back_populates="shop", cascade="all, delete-orphan", order_by="ShopCategory.category"
    )
    appointments = relationship("Appointment", back_populates="shop", cascade="all, delete-orphan")
    reviews = relationship("Review", back_populates="shop", cascade="all, delete-orphan")

    @property
    def categories(self) -> list[str]:
        return [row.category for row in self.category_rows]


class ShopCategory(Base):
    __tablename__ = "shop_categories"
    shop_id = Column(Integer, ForeignKey("shops.id", ondelete="CASCADE"), primary_key=True)
    category = Column(String(50), primary_key=True)

    shop = relationship("Shop", back_populates="category_rows")


class Appointment(Base):
    __tablename__ = "appointments"
    id = Column(Integer, primary_key=True, index=True)
    shop_id = Column(Integer, ForeignKey("shops.id", ondelete="CASCADE"), index=True, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    car_model = Column(String(255), nullable=False)
    # Stored in UTC
    appointment_date = Column(DateTime(timezone=True), nullable=False)
    service_type = Column(String(255), nullable=False)
    status = Column(String(20), nullable=False, default=AppointmentStatus.PENDING.value)
    note = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    shop = relationship("Shop", back_populates="appointments")
    user = relationship("User", back_populates="appointments")

    @property
    def shop_name(self):
        return self.shop.name if self.shop else None

    @property
    def user_name(self):
        return self.user.name if self.user else None


class Review(Base):
    __tablename__ = "reviews"
    __table_args__ = (
        UniqueConstraint("shop_id", "user_id", name="uq_reviews_shop_user"),
        CheckConstraint("rating >= 1 AND rating <= 5", name="ck_reviews_rating"),
    )
    id = Column(Integer, primary_key=True, index=True)
    shop_id = Column(Integer, ForeignKey("shops.id", ondelete="CASCADE"), index=True, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    rating = Column(Integer, nullable=False)  # 1..5
    comment = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now())

    shop = relationship("Shop", back_populates="reviews")
    user = relationship("User", back_populates="reviews")

    @property
    def user_name(self):
        return self.user.name if self.user else None
