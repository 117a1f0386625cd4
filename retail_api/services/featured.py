"""
Proximity-weighted featured product sampler

Each candidate gets weight = band multiplier * U(0, 1) and the page is taken
from the ascending weights, so nearby products tend to come first while far
ones still surface. Without coordinates every multiplier is 1.0, which is a
uniform shuffle.
"""

from dataclasses import dataclass
from math import asin, cos, degrees, radians, sin, sqrt
from typing import List, Optional, Tuple
import random

from sqlalchemy import func
from sqlmodel import Session, select
import structlog

from retail_api.core.cache import TTLCache
from retail_api.models import DirectoryFeaturedProduct
from retail_api.schemas.directory import FeaturedProductResponse, FeaturedProductsResponse

logger = structlog.get_logger(__name__)

EARTH_RADIUS_KM = 6371.0

# (upper bound km, multiplier); anything beyond the last band uses FAR_MULTIPLIER
DISTANCE_BANDS: Tuple[Tuple[float, float], ...] = ((50.0, 0.1), (100.0, 0.3), (200.0, 0.5))
FAR_MULTIPLIER = 1.0


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance between two points in kilometres"""
    phi1, phi2 = radians(lat1), radians(lat2)
    d_phi = radians(lat2 - lat1)
    d_lambda = radians(lng2 - lng1)
    a = sin(d_phi / 2) ** 2 + cos(phi1) * cos(phi2) * sin(d_lambda / 2) ** 2
    return 2 * EARTH_RADIUS_KM * asin(min(1.0, sqrt(a)))


def bounding_box(lat: float, lng: float, radius_km: float) -> Tuple[float, float, Optional[Tuple[float, float]]]:
    """Degree box enclosing every point within radius_km of (lat, lng)

    Returns (min_lat, max_lat, lng_range); lng_range is None when the box
    reaches a pole or crosses the antimeridian and longitude cannot narrow it.
    """
    angle = radius_km / EARTH_RADIUS_KM
    lat_delta = degrees(angle)
    min_lat, max_lat = lat - lat_delta, lat + lat_delta
    if min_lat <= -90 or max_lat >= 90:
        return max(min_lat, -90.0), min(max_lat, 90.0), None
    ratio = sin(angle) / cos(radians(lat))
    if ratio >= 1:
        return min_lat, max_lat, None
    lng_delta = degrees(asin(ratio))
    if lng - lng_delta < -180 or lng + lng_delta > 180:
        return min_lat, max_lat, None
    return min_lat, max_lat, (lng - lng_delta, lng + lng_delta)


def distance_multiplier(distance_km: Optional[float]) -> float:
    if distance_km is None:
        return FAR_MULTIPLIER
    for upper_bound, multiplier in DISTANCE_BANDS:
        if distance_km < upper_bound:
            return multiplier
    return FAR_MULTIPLIER


@dataclass(frozen=True)
class FeaturedQuery:
    lat: Optional[float] = None
    lng: Optional[float] = None
    max_distance_km: Optional[float] = None
    page: int = 1
    limit: int = 12

    @property
    def has_location(self) -> bool:
        return self.lat is not None and self.lng is not None

    @property
    def cache_key(self) -> tuple:
        return ("featured", self.lat, self.lng, self.max_distance_km, self.page, self.limit)


class FeaturedProductSampler:
    """Samples featured products; pages are cached per (lat, lng, maxDistance, page, limit)"""

    def __init__(self, cache: TTLCache, rng: Optional[random.Random] = None, candidate_limit: int = 2000):
        self.cache = cache
        self.rng = rng or random.Random()
        self.candidate_limit = candidate_limit

    def _candidates(self, session: Session, query: FeaturedQuery) -> List[DirectoryFeaturedProduct]:
        """In-stock rows, narrowed to the maxDistance box when one applies

        Rows past candidate_limit are dropped at random so no product is
        permanently out of reach.
        """
        statement = select(DirectoryFeaturedProduct).where(DirectoryFeaturedProduct.stock > 0)
        if query.has_location and query.max_distance_km is not None:
            min_lat, max_lat, lng_range = bounding_box(query.lat, query.lng, query.max_distance_km)
            statement = statement.where(
                DirectoryFeaturedProduct.latitude.between(min_lat, max_lat),
                DirectoryFeaturedProduct.longitude.is_not(None),
            )
            if lng_range is not None:
                statement = statement.where(DirectoryFeaturedProduct.longitude.between(*lng_range))
        return list(session.exec(statement.order_by(func.random()).limit(self.candidate_limit)).all())

    def rank(self, products: List[DirectoryFeaturedProduct], query: FeaturedQuery) -> List[Tuple[float, Optional[float], DirectoryFeaturedProduct]]:
        """Return (weight, distance_km, product) sorted by ascending weight"""
        weighted = []
        for product in products:
            distance = None
            if query.has_location and product.latitude is not None and product.longitude is not None:
                distance = haversine_km(query.lat, query.lng, product.latitude, product.longitude)
            if query.has_location and query.max_distance_km is not None:
                if distance is None or distance > query.max_distance_km:
                    continue
            multiplier = distance_multiplier(distance) if query.has_location else FAR_MULTIPLIER
            weighted.append((multiplier * self.rng.random(), distance, product))
        weighted.sort(key=lambda entry: entry[0])
        return weighted

    def sample(self, session: Session, query: FeaturedQuery) -> FeaturedProductsResponse:
        cached = self.cache.get(query.cache_key)
        if cached is not None:
            logger.debug("Featured products cache hit", key=str(query.cache_key))
            return cached

        ranked = self.rank(self._candidates(session, query), query)
        start = (query.page - 1) * query.limit
        page_rows = ranked[start:start + query.limit]

        response = FeaturedProductsResponse(
            products=[
                FeaturedProductResponse(
                    id=product.id,
                    tenant_id=product.tenant_id,
                    store_name=product.store_name,
                    store_slug=product.store_slug,
                    name=product.name,
                    sku=product.sku,
                    price_cents=product.price_cents or 0,
                    sale_price_cents=product.sale_price_cents,
                    currency=product.currency or "usd",
                    image_url=product.image_url,
                    stock=product.stock or 0,
                    category_name=product.category_name,
                    city=product.city,
                    state=product.state,
                    distance_km=round(distance, 1) if distance is not None else None,
                )
                for _, distance, product in page_rows
            ],
            page=query.page,
            limit=query.limit,
            has_location=query.has_location,
        )
        self.cache.set(query.cache_key, response)
        return response
