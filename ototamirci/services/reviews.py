"""
Review aggregation.

``Shop.rating`` is a denormalized mean of the shop's reviews. It is recomputed
in the same transaction as every review upsert, with the shop row locked so two
concurrent submissions for one shop cannot each write an average computed from
a stale review set.
"""

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from ..exceptions import NotFoundError, StoreError, ValidationError
from ..models import Review, Shop
from ..policy import Action, authorize

logger = logging.getLogger(__name__)

MIN_RATING = 1
MAX_RATING = 5


def round_rating(value) -> float:
    """Round half-up to two decimals; ``None`` (no reviews) becomes 0.0."""
    if value is None:
        return 0.0
    return float(Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def aggregate_rating(ratings: Iterable[int]) -> float:
    values = list(ratings)
    if not values:
        return 0.0
    return round_rating(Decimal(sum(values)) / Decimal(len(values)))


def _validate_rating(rating) -> int:
    if isinstance(rating, bool) or not isinstance(rating, int) or not MIN_RATING <= rating <= MAX_RATING:
        raise ValidationError("Rating must be between 1 and 5")
    return rating


def _recompute_shop_rating(db: Session, shop: Shop) -> float:
    average = db.query(func.avg(Review.rating)).filter(Review.shop_id == shop.id).scalar()
    shop.rating = round_rating(average)
    return shop.rating


def submit_review(db: Session, identity, shop_id: int, rating: int, comment: Optional[str] = None) -> Review:
    """Insert or overwrite the caller's review of a shop and refresh the shop's rating."""
    rating = _validate_rating(rating)
    authorize(identity, Action.REVIEW_SUBMIT)

    try:
        shop = db.query(Shop).filter(Shop.id == shop_id).with_for_update().populate_existing().first()
        if not shop:
            raise NotFoundError("Shop not found")

        review = (
            db.query(Review)
            .filter(Review.shop_id == shop_id, Review.user_id == identity.id)
            .first()
        )
        if review:
            review.rating = rating
            review.comment = comment
            review.updated_at = func.now()
        else:
            review = Review(shop_id=shop_id, user_id=identity.id, rating=rating, comment=comment)
            db.add(review)
        db.flush()

        new_rating = _recompute_shop_rating(db, shop)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Review submission failed for shop %s", shop_id)
        raise StoreError() from e
    except NotFoundError:
        db.rollback()
        raise

    db.refresh(review)
    logger.info("Review by user %s on shop %s stored; shop rating now %.2f", identity.id, shop_id, new_rating)
    return review


def list_reviews(db: Session, shop_id: int) -> dict:
    if not db.query(Shop.id).filter(Shop.id == shop_id).first():
        raise NotFoundError("Shop not found")

    reviews = (
        db.query(Review)
        .options(joinedload(Review.user))
        .filter(Review.shop_id == shop_id)
        .order_by(Review.created_at.desc(), Review.id.desc())
        .all()
    )
    average, count = (
        db.query(func.avg(Review.rating), func.count(Review.id)).filter(Review.shop_id == shop_id).one()
    )
    return {
        "reviews": reviews,
        "average_rating": round_rating(average),
        "review_count": int(count or 0),
    }
