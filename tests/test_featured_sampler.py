"""
Proximity-weighted featured product sampling
"""

from math import asin, atan2, cos, degrees, radians, sin
import random
import uuid

import pytest

from retail_api.core.cache import TTLCache
from retail_api.models import DirectoryFeaturedProduct
from retail_api.services.featured import (
    FeaturedProductSampler,
    FeaturedQuery,
    bounding_box,
    distance_multiplier,
    haversine_km,
)

AUSTIN = (30.2672, -97.7431)
SAN_ANTONIO = (29.4241, -98.4936)
DALLAS = (32.7767, -96.7970)
DENVER = (39.7392, -104.9903)


def destination(origin, bearing_deg, distance_km):
    """Point reached by travelling distance_km from origin along a bearing"""
    lat1, lng1 = radians(origin[0]), radians(origin[1])
    angle = distance_km / 6371.0
    bearing = radians(bearing_deg)
    lat2 = asin(sin(lat1) * cos(angle) + cos(lat1) * sin(angle) * cos(bearing))
    lng2 = lng1 + atan2(sin(bearing) * sin(angle) * cos(lat1), cos(angle) - sin(lat1) * sin(lat2))
    return degrees(lat2), degrees(lng2)


def featured(name, location=None, stock=5, priority=0):
    lat, lng = location or (None, None)
    return DirectoryFeaturedProduct(
        id=uuid.uuid4(),
        tenant_id=uuid.uuid4(),
        store_name=f"{name} Store",
        store_slug=f"{name.lower()}-store",
        name=name,
        price_cents=1000,
        stock=stock,
        featured_priority=priority,
        latitude=lat,
        longitude=lng,
    )


# Fixtures
@pytest.fixture
def products(db):
    rows = [
        featured("Local", AUSTIN),
        featured("Regional", SAN_ANTONIO),
        featured("Far", DENVER),
        featured("Nowhere"),
        featured("SoldOut", AUSTIN, stock=0),
    ]
    for row in rows:
        db.add(row)
    db.commit()
    return rows


def test_haversine_known_distance():
    distance = haversine_km(*AUSTIN, *DALLAS)

    assert 290 < distance < 300
    assert haversine_km(*AUSTIN, *AUSTIN) == 0


@pytest.mark.parametrize(
    "distance,multiplier",
    [(0, 0.1), (49.9, 0.1), (50, 0.3), (99.9, 0.3), (100, 0.5), (199.9, 0.5), (200, 1.0), (None, 1.0)],
)
def test_distance_bands(distance, multiplier):
    assert distance_multiplier(distance) == multiplier


def test_sampling_is_deterministic_with_seeded_rng(products):
    query = FeaturedQuery(lat=AUSTIN[0], lng=AUSTIN[1])
    first = FeaturedProductSampler(TTLCache(0), rng=random.Random(42)).rank(products, query)
    second = FeaturedProductSampler(TTLCache(0), rng=random.Random(42)).rank(products, query)

    assert [p.name for _, _, p in first] == [p.name for _, _, p in second]


def test_nearby_products_tend_to_rank_first(products):
    """With a 0.1 multiplier the local product wins the large majority of draws"""
    sampler = FeaturedProductSampler(TTLCache(0), rng=random.Random(7))
    query = FeaturedQuery(lat=AUSTIN[0], lng=AUSTIN[1])
    candidates = [p for p in products if p.name in ("Local", "Far")]

    wins = sum(1 for _ in range(500) if sampler.rank(candidates, query)[0][2].name == "Local")

    assert wins > 400


def test_max_distance_excludes_far_and_unlocated(products):
    sampler = FeaturedProductSampler(TTLCache(0), rng=random.Random(1))
    query = FeaturedQuery(lat=AUSTIN[0], lng=AUSTIN[1], max_distance_km=150)

    names = {p.name for _, _, p in sampler.rank(products, query)}

    assert names == {"Local", "Regional", "SoldOut"}


def test_sample_skips_out_of_stock(db, products):
    sampler = FeaturedProductSampler(TTLCache(300), rng=random.Random(3))

    response = sampler.sample(db, FeaturedQuery(limit=10))

    assert {p.name for p in response.products} == {"Local", "Regional", "Far", "Nowhere"}
    assert response.has_location is False
    assert all(p.distance_km is None for p in response.products)


def test_sample_reports_distance(db, products):
    sampler = FeaturedProductSampler(TTLCache(300), rng=random.Random(3))

    response = sampler.sample(db, FeaturedQuery(lat=AUSTIN[0], lng=AUSTIN[1], limit=10))

    by_name = {p.name: p for p in response.products}
    assert by_name["Local"].distance_km == 0
    assert by_name["Nowhere"].distance_km is None
    assert response.has_location is True


def test_sample_pages_are_cached(db, products):
    sampler = FeaturedProductSampler(TTLCache(300), rng=random.Random(5))
    query = FeaturedQuery(page=1, limit=2)

    first = sampler.sample(db, query)
    for row in products:
        db.delete(row)
    db.commit()
    second = sampler.sample(db, query)

    assert second is first
    assert len(sampler.cache) == 1


def test_featured_products_endpoint(client, products):
    response = client.get(f"/api/directory/featured-products?lat={AUSTIN[0]}&lng={AUSTIN[1]}&limit=2")

    assert response.status_code == 200
    body = response.json()
    assert body["page"] == 1
    assert body["limit"] == 2
    assert body["hasLocation"] is True
    assert len(body["products"]) == 2


def test_featured_products_rejects_non_positive_distance(client):
    response = client.get("/api/directory/featured-products?lat=1&lng=2&maxDistance=0")

    assert response.status_code == 400
    assert response.json()["error"] == "invalid_request"


def test_in_range_product_survives_candidate_cap(db):
    db.add(featured("Near", AUSTIN, priority=0))
    for index in range(5):
        db.add(featured(f"Denver{index}", DENVER, priority=1))
    db.commit()
    sampler = FeaturedProductSampler(TTLCache(0), rng=random.Random(9), candidate_limit=5)

    response = sampler.sample(db, FeaturedQuery(lat=AUSTIN[0], lng=AUSTIN[1], max_distance_km=10))

    assert [p.name for p in response.products] == ["Near"]


def test_low_priority_rows_are_reachable_past_the_cap(db):
    db.add(featured("Promoted", AUSTIN, priority=10))
    db.add(featured("Plain", AUSTIN, priority=0))
    db.commit()
    sampler = FeaturedProductSampler(TTLCache(0), rng=random.Random(11), candidate_limit=1)

    seen = {sampler.sample(db, FeaturedQuery(limit=1)).products[0].name for _ in range(60)}

    assert seen == {"Promoted", "Plain"}


@pytest.mark.parametrize("origin,radius", [(AUSTIN, 150), (DENVER, 1000), ((64.8378, -147.7164), 800)])
def test_bounding_box_encloses_radius(origin, radius):
    min_lat, max_lat, lng_range = bounding_box(*origin, radius)

    for bearing in range(0, 360, 15):
        point = destination(origin, bearing, radius * 0.999)
        assert min_lat <= point[0] <= max_lat
        assert lng_range[0] <= point[1] <= lng_range[1]


def test_bounding_box_gives_up_on_longitude_near_pole():
    assert bounding_box(89.5, 10.0, 200)[2] is None
    assert bounding_box(0.0, 179.9, 50)[2] is None
