from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from .. import schemas
from ..auth import Identity, get_current_identity
from ..database import get_db
from ..responses import success
from ..services import reviews

router = APIRouter(prefix="/reviews", tags=["Reviews"])


@router.get("/{shop_id}", response_model=schemas.Envelope[schemas.ShopReviews])
def get_shop_reviews(shop_id: int, db: Session = Depends(get_db)):
    result = reviews.list_reviews(db, shop_id)
    return success(
        schemas.ShopReviews(
            reviews=[schemas.ReviewListItem.model_validate(r) for r in result["reviews"]],
            average_rating=result["average_rating"],
            review_count=result["review_count"],
        )
    )


@router.post("/{shop_id}", status_code=status.HTTP_201_CREATED, response_model=schemas.Envelope[schemas.ReviewOut])
def create_review(
    shop_id: int,
    req: schemas.ReviewCreate,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    review = reviews.submit_review(db, identity, shop_id, req.rating, req.comment)
    return success(schemas.ReviewOut.model_validate(review))
