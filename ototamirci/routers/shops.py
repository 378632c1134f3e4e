from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from .. import schemas
from ..auth import Identity, get_current_identity
from ..database import get_db
from ..responses import success
from ..services import proximity, shops

router = APIRouter(prefix="/shops", tags=["Shops"])


@router.get("", response_model=schemas.Envelope[List[schemas.NearbyShopOut]])
def get_nearby_shops(
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    radius: float = Query(proximity.DEFAULT_RADIUS_KM, ge=proximity.MIN_RADIUS_KM, le=proximity.MAX_RADIUS_KM),
    category: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    results = proximity.find_nearby_shops(db, lat, lng, radius_km=radius, category=category or None)
    return success(
        [
            schemas.NearbyShopOut(**schemas.ShopSummary.model_validate(shop).model_dump(), distance=distance)
            for shop, distance in results
        ]
    )


@router.get("/{shop_id}", response_model=schemas.Envelope[schemas.ShopOut])
def get_shop(shop_id: int, db: Session = Depends(get_db)):
    return success(schemas.ShopOut.model_validate(shops.get_shop(db, shop_id)))


@router.post("", status_code=status.HTTP_201_CREATED, response_model=schemas.Envelope[schemas.ShopOut])
def create_shop(
    req: schemas.ShopCreate,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    shop = shops.create_shop(db, identity, **req.model_dump())
    return success(schemas.ShopOut.model_validate(shop))


@router.put("/{shop_id}", response_model=schemas.Envelope[schemas.ShopOut])
def update_shop(
    shop_id: int,
    req: schemas.ShopUpdate,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    shop = shops.update_shop(db, identity, shop_id, **req.model_dump())
    return success(schemas.ShopOut.model_validate(shop))


@router.patch("/{shop_id}/availability", response_model=schemas.Envelope[schemas.ShopOut])
def update_availability(
    shop_id: int,
    req: schemas.AvailabilityUpdate,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    shop = shops.set_availability(db, identity, shop_id, req.is_open)
    return success(schemas.ShopOut.model_validate(shop))


@router.delete("/{shop_id}")
def delete_shop(
    shop_id: int,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    shops.delete_shop(db, identity, shop_id)
    return success(message="Shop deleted successfully")
