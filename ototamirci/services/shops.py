import logging
from typing import Iterable, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from ..categories import normalize_categories
from ..exceptions import ConflictError, NotFoundError, StoreError
from ..models import Shop, ShopCategory
from ..policy import Action, authorize

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ("name", "address", "phone", "image_url", "working_hours")


def get_shop(db: Session, shop_id: int) -> Shop:
    shop = db.query(Shop).options(selectinload(Shop.category_rows)).filter(Shop.id == shop_id).first()
    if not shop:
        raise NotFoundError("Shop not found")
    return shop


def set_categories(shop: Shop, categories: Optional[Iterable[str]]) -> None:
    shop.category_rows = [ShopCategory(category=label) for label in normalize_categories(categories)]


def build_shop(owner_id: int, categories: Optional[Iterable[str]] = None, **fields) -> Shop:
    """An unsaved shop with normalized categories; ``rating`` starts at 0.0."""
    shop = Shop(owner_id=owner_id, rating=0.0, is_open=fields.pop("is_open", True), **fields)
    set_categories(shop, categories)
    return shop


def create_shop(db: Session, identity, categories=None, **fields) -> Shop:
    authorize(identity, Action.SHOP_CREATE)
    if db.query(Shop.id).filter(Shop.owner_id == identity.id).first():
        raise ConflictError("You already have a shop")

    shop = build_shop(identity.id, categories, **fields)
    db.add(shop)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise ConflictError("You already have a shop") from e
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Create shop failed")
        raise StoreError() from e

    logger.info("Shop %s created by mechanic %s", shop.id, identity.id)
    return get_shop(db, shop.id)


def update_shop(db: Session, identity, shop_id: int, categories=None, **fields) -> Shop:
    shop = get_shop(db, shop_id)
    authorize(identity, Action.SHOP_UPDATE, shop)

    for key in UPDATABLE_FIELDS:
        value = fields.get(key)
        if value is not None:
            setattr(shop, key, value)
    if categories is not None:
        # Old rows must be deleted before re-inserting the same (shop_id, category) keys
        shop.category_rows = []
        db.flush()
        set_categories(shop, categories)

    _commit(db, "update")
    return get_shop(db, shop_id)


def set_availability(db: Session, identity, shop_id: int, is_open: bool) -> Shop:
    shop = get_shop(db, shop_id)
    authorize(identity, Action.SHOP_AVAILABILITY, shop)
    shop.is_open = is_open
    _commit(db, "update availability of")
    logger.info("Shop %s is now %s", shop_id, "open" if is_open else "closed")
    return get_shop(db, shop_id)


def delete_shop(db: Session, identity, shop_id: int) -> None:
    shop = get_shop(db, shop_id)
    authorize(identity, Action.SHOP_DELETE, shop)
    db.delete(shop)
    _commit(db, "delete")
    logger.info("Shop %s deleted by mechanic %s", shop_id, identity.id)


def _commit(db: Session, action: str):
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Failed to %s shop", action)
        raise StoreError() from e
