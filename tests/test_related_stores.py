"""
Related-store scoring, fallback ladder and recommendation endpoints
"""

import uuid

import pytest

from retail_api.models import DirectoryListing
from retail_api.services.related_stores import category_match, score_candidates


def listing(primary=None, secondary=(), city="Austin", state="TX", **fields):
    return DirectoryListing(
        tenant_id=fields.pop("tenant_id", uuid.uuid4()),
        business_name=fields.pop("business_name", "Store"),
        slug=fields.pop("slug", f"store-{uuid.uuid4().hex[:6]}"),
        primary_category=primary,
        secondary_categories=list(secondary),
        city=city,
        state=state,
        **fields,
    )


# Fixtures
@pytest.fixture
def grocery_block(make_listing):
    source = make_listing("fresh-foods", primary_category="Grocery Store", city="Austin", state="TX")
    make_listing("corner-grocer", primary_category="Grocery Store", city="Austin", state="TX")
    make_listing("big-box", primary_category="Grocery Store", city="Dallas", state="TX", rating_avg=4.9)
    make_listing(
        "daily-bread",
        primary_category="Bakery",
        secondary_categories=["Grocery Store"],
        city="Austin",
        state="TX",
    )
    make_listing("tea-house", primary_category="Cafe", city="Austin", state="TX")
    return source


@pytest.mark.parametrize(
    "source,candidate,expected",
    [
        (listing("Grocery Store"), listing("grocery store"), (10, 1)),
        (listing("Grocery Store"), listing("Bakery", ["Grocery Store"]), (7, 1)),
        (listing("Bakery", ["Grocery Store"]), listing("Grocery Store"), (7, 1)),
        (listing("Grocery Store", ["Deli"]), listing("Cafe", ["Deli"]), (5, 1)),
        (listing("Grocery Store", ["Deli", "Bakery"]), listing("Grocery Store", ["Deli", "Bakery"]), (20, 3)),
        (listing("Grocery Store"), listing("Cafe"), (0, 0)),
        (listing(None), listing(None), (0, 0)),
    ],
)
def test_category_match(source, candidate, expected):
    assert category_match(source, candidate) == expected


def test_score_candidates_adds_location_bonus_and_drops_source():
    source = listing("Grocery Store", city="Austin", state="TX")
    local = listing("Grocery Store", city="austin", state="tx")
    remote = listing("Grocery Store", city="Dallas", state="TX")
    unrelated = listing("Cafe")
    same_tenant = listing("Grocery Store", tenant_id=source.tenant_id)

    scored = score_candidates(source, [remote, unrelated, same_tenant, local])

    assert [entry.listing for entry in scored] == [local, remote]
    assert [entry.score for entry in scored] == [15, 10]
    assert scored[0].same_location is True
    assert scored[1].same_location is False


def test_score_ties_break_on_rating():
    source = listing("Grocery Store")
    better = listing("Grocery Store", city="Dallas", rating_avg=4.5, rating_count=10)
    worse = listing("Grocery Store", city="Dallas", rating_avg=3.0, rating_count=200)

    assert [e.listing for e in score_candidates(source, [worse, better])] == [better, worse]


def test_related_endpoint_scores_category_matches(client, grocery_block):
    response = client.get("/api/directory/fresh-foods/related")

    assert response.status_code == 200
    body = response.json()
    assert body["sourceSlug"] == "fresh-foods"
    assert body["method"] == "category_match"
    assert [l["slug"] for l in body["listings"]] == ["corner-grocer", "daily-bread", "big-box"]
    assert [l["score"] for l in body["listings"]] == [15, 12, 10]
    assert body["listings"][0]["sameLocation"] is True


def test_related_endpoint_respects_limit(client, grocery_block):
    body = client.get("/api/directory/fresh-foods/related?limit=1").json()

    assert [l["slug"] for l in body["listings"]] == ["corner-grocer"]


def test_related_for_missing_listing(client):
    response = client.get("/api/directory/ghost/related")

    assert response.status_code == 404
    assert response.json()["error"] == "listing_not_found"


def test_fallback_same_state_featured(client, make_listing):
    make_listing("antique-barn", primary_category="Antiques", state="TX")
    make_listing("star-cafe", primary_category="Cafe", state="TX", is_featured=True)
    make_listing("plain-cafe", primary_category="Cafe", state="TX")

    body = client.get("/api/directory/antique-barn/related").json()

    assert body["method"] == "same_state_featured"
    assert [l["slug"] for l in body["listings"]] == ["star-cafe"]


def test_fallback_same_state(client, make_listing):
    make_listing("antique-barn", primary_category="Antiques", state="TX")
    make_listing("plain-cafe", primary_category="Cafe", state="tx", rating_avg=4.0)
    make_listing("out-of-state", primary_category="Cafe", state="OK", rating_avg=5.0)

    body = client.get("/api/directory/antique-barn/related").json()

    assert body["method"] == "same_state"
    assert [l["slug"] for l in body["listings"]] == ["plain-cafe"]


def test_fallback_any_listing(client, make_listing):
    make_listing("antique-barn", primary_category="Antiques", state="TX")
    make_listing("far-away", primary_category="Cafe", state="ME")

    body = client.get("/api/directory/antique-barn/related").json()

    assert body["method"] == "any_listing"
    assert [l["slug"] for l in body["listings"]] == ["far-away"]


def test_fallback_none_when_alone(client, make_listing):
    make_listing("antique-barn", primary_category="Antiques", state="TX")
    make_listing("hidden", primary_category="Antiques", state="TX", is_published=False)

    body = client.get("/api/directory/antique-barn/related").json()

    assert body == {"sourceSlug": "antique-barn", "method": "none", "listings": []}


def test_stores_like_this_by_tenant(client, grocery_block):
    response = client.get(f"/api/recommendations/stores-like-this/{grocery_block.tenant_id}")

    assert response.status_code == 200
    assert response.json()["listings"][0]["slug"] == "corner-grocer"

    missing = client.get(f"/api/recommendations/stores-like-this/{uuid.uuid4()}")
    assert missing.status_code == 404


def test_popular_in_category(client, grocery_block):
    body = client.get("/api/recommendations/popular-in-category/grocery-store").json()

    assert body["categorySlug"] == "grocery-store"
    slugs = [l["slug"] for l in body["listings"]]
    assert slugs[0] == "big-box"
    assert set(slugs) == {"fresh-foods", "corner-grocer", "big-box", "daily-bread"}
