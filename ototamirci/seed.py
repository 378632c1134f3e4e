"""
Load demo data: ``python -m ototamirci.seed``

Creates the tables if needed, then two customers, one mechanic per shop, the
shops with their categories, a sample appointment and a few reviews. Reviews go
through the review engine so every shop rating matches its reviews.
"""

import argparse
import logging
from datetime import datetime, timedelta, timezone

from .auth import Identity
from .database import Base, SessionLocal
from .models import Appointment, AppointmentStatus, User
from .services.reviews import submit_review
from .services.shops import build_shop
from .utils import hash_password

logger = logging.getLogger(__name__)

DEMO_PASSWORD = "password123"

CUSTOMERS = [
    {"name": "Ahmet Yılmaz", "email": "ahmet@example.com", "phone": "0555 123 45 67"},
    {"name": "Ayşe Demir", "email": "ayse@example.com", "phone": "0555 765 43 21"},
]

SHOPS = [
    {
        "mechanic": {"name": "Usta Mehmet", "email": "mehmet@sanayi.com", "phone": "0555 987 65 43"},
        "name": "Yıldız Oto Tamir",
        "latitude": 41.0122,
        "longitude": 28.9764,
        "address": "Atatürk Sanayi Sitesi, No: 12",
        "phone": "0555 123 45 67",
        "image_url": "https://picsum.photos/400/300?random=3",
        "categories": ["motor", "bakim"],
    },
    {
        "mechanic": {"name": "Usta Hasan", "email": "hasan@sanayi.com", "phone": "0532 987 65 43"},
        "name": "Demir Kaporta & Boya",
        "latitude": 41.0052,
        "longitude": 28.9854,
        "address": "Fatih Oto Sanayi, Blok B",
        "phone": "0532 987 65 43",
        "image_url": "https://picsum.photos/400/300?random=4",
        "categories": ["kaporta"],
    },
    {
        "mechanic": {"name": "Usta Kemal", "email": "kemal@sanayi.com", "phone": "0212 444 55 66"},
        "name": "Gürbüz Elektrik",
        "latitude": 40.9982,
        "longitude": 28.9684,
        "address": "Maslak Oto Sanayi, 2. Kısım",
        "phone": "0212 444 55 66",
        "image_url": "https://picsum.photos/400/300?random=5",
        "categories": ["elektrik", "bakim"],
        "is_open": False,
    },
    {
        "mechanic": {"name": "Usta Ali", "email": "ali@sanayi.com", "phone": "0500 111 22 33"},
        "name": "Hızlı Lastik",
        "latitude": 41.0182,
        "longitude": 28.9924,
        "address": "Beşiktaş Çarşı Yanı",
        "phone": "0500 111 22 33",
        "image_url": "https://picsum.photos/400/300?random=6",
        "categories": ["lastik"],
    },
    {
        "mechanic": {"name": "Usta Murat", "email": "murat@sanayi.com", "phone": "0544 222 33 44"},
        "name": "Pro Performans Servis",
        "latitude": 41.0012,
        "longitude": 28.9614,
        "address": "Zeytinburnu Sanayi",
        "phone": "0544 222 33 44",
        "image_url": "https://picsum.photos/400/300?random=7",
        "categories": ["motor", "elektrik", "bakim"],
    },
]

# (customer index, shop index, rating, comment)
REVIEWS = [
    (0, 0, 5, "Hızlı ve güvenilir"),
    (1, 0, 4, "İyi iş çıkardılar"),
    (0, 1, 4, None),
    (1, 3, 5, "Lastikler yarım saatte hazırdı"),
    (0, 4, 3, "Biraz pahalı"),
]


def _user(data: dict, role: str, password_hash: str) -> User:
    return User(role=role, password_hash=password_hash, phone_visible=True, **data)


def seed(db, reset: bool = False) -> dict:
    bind = db.get_bind()
    if reset:
        Base.metadata.drop_all(bind=bind)
    Base.metadata.create_all(bind=bind)

    if db.query(User.id).first():
        logger.info("Database already has users; skipping seed")
        return {"users": 0, "shops": 0}

    password_hash = hash_password(DEMO_PASSWORD)
    customers = [_user(c, "customer", password_hash) for c in CUSTOMERS]
    db.add_all(customers)

    shops = []
    for data in SHOPS:
        data = dict(data)
        mechanic = _user(data.pop("mechanic"), "mechanic", password_hash)
        db.add(mechanic)
        db.flush()
        shop = build_shop(mechanic.id, data.pop("categories"), **data)
        db.add(shop)
        shops.append(shop)
        logger.info("  Shop created: %s", shop.name)
    db.flush()

    tomorrow = (datetime.now(timezone.utc) + timedelta(days=1)).replace(hour=10, minute=0, second=0, microsecond=0)
    db.add(
        Appointment(
            shop_id=shops[0].id,
            user_id=customers[0].id,
            car_model="Volkswagen Golf 2018",
            appointment_date=tomorrow,
            service_type="Bakım",
            status=AppointmentStatus.PENDING.value,
            note="Yağ değişimi ve filtreler",
        )
    )
    db.commit()

    for customer_index, shop_index, rating, comment in REVIEWS:
        customer = customers[customer_index]
        identity = Identity(id=customer.id, email=customer.email, role=customer.role)
        submit_review(db, identity, shops[shop_index].id, rating, comment)

    return {"users": len(customers) + len(shops), "shops": len(shops)}


def main(argv=None):
    parser = argparse.ArgumentParser(description="Load demo data into the database")
    parser.add_argument("--reset", action="store_true", help="drop all tables first")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    db = SessionLocal()
    try:
        counts = seed(db, reset=args.reset)
    finally:
        db.close()

    logger.info("Seeded %(users)s users and %(shops)s shops", counts)
    logger.info("Customer: %s / %s", CUSTOMERS[0]["email"], DEMO_PASSWORD)
    logger.info("Mechanic: %s / %s", SHOPS[0]["mechanic"]["email"], DEMO_PASSWORD)


if __name__ == "__main__":
    main()
