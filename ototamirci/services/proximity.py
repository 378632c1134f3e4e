"""
Proximity search over repair shops.

Distances use the spherical law of cosines on a 6371 km sphere. Every shop is
scanned; there is no spatial index, which is fine at the scale of a city's
repair-shop directory.
"""

import logging
import math
from typing import Iterable, Optional

from sqlalchemy.orm import Session, selectinload

from ..models import Shop

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0
DEFAULT_RADIUS_KM = 10.0
MIN_RADIUS_KM = 1.0
MAX_RADIUS_KM = 100.0


def distance_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance between two points given in degrees."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta_lambda = math.radians(lng2) - math.radians(lng1)
    cosine = math.cos(phi1) * math.cos(phi2) * math.cos(delta_lambda) + math.sin(phi1) * math.sin(phi2)
    # Rounding can push the cosine just past 1.0 for identical points
    cosine = max(-1.0, min(1.0, cosine))
    return EARTH_RADIUS_KM * math.acos(cosine)


def rank_shops(
    lat: float,
    lng: float,
    shops: Iterable,
    radius_km: float = DEFAULT_RADIUS_KM,
    category: Optional[str] = None,
) -> list:
    """Return ``(shop, distance)`` pairs strictly inside ``radius_km``, nearest first.

    ``category`` is matched exactly against each shop's ``categories``; shops
    without categories never match a category filter.
    """
    if radius_km is None or radius_km <= 0:
        return []

    ranked = []
    for shop in shops:
        if category and category not in (shop.categories or []):
            continue
        distance = distance_km(lat, lng, shop.latitude, shop.longitude)
        if distance < radius_km:
            ranked.append((shop, distance))

    ranked.sort(key=lambda pair: (pair[1], pair[0].id))
    return ranked


def find_nearby_shops(
    db: Session,
    lat: float,
    lng: float,
    radius_km: float = DEFAULT_RADIUS_KM,
    category: Optional[str] = None,
) -> list:
    shops = db.query(Shop).options(selectinload(Shop.category_rows)).all()
    results = rank_shops(lat, lng, shops, radius_km=radius_km, category=category)
    logger.debug(
        "Nearby search at (%s, %s) r=%skm category=%s: %d of %d shops",
        lat, lng, radius_km, category, len(results), len(shops),
    )
    return results
