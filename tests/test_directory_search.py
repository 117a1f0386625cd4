"""
Directory search, categories, stats and health over the listing views
"""

from datetime import datetime, timedelta, timezone

import pytest

from retail_api.models import DirectoryRefreshLog
from retail_api.services.directory import (
    DirectorySearchParams,
    category_activity_score,
    resolve_category,
    slugify,
)


# Fixtures
@pytest.fixture
def listings(make_listing, make_category):
    make_category("Grocery Store", slug="grocery-store")
    make_category("Bakery")
    now = datetime.now(timezone.utc)
    return [
        make_listing(
            "fresh-foods",
            primary_category="Grocery Store",
            city="Austin",
            state="TX",
            rating_avg=4.8,
            rating_count=120,
            product_count=40,
            created_at=now - timedelta(days=10),
        ),
        make_listing(
            "daily-bread",
            primary_category="Bakery",
            secondary_categories=["Grocery Store"],
            city="Austin",
            state="TX",
            rating_avg=4.2,
            rating_count=30,
            product_count=12,
            is_featured=True,
            created_at=now - timedelta(days=2),
        ),
        make_listing(
            "hill-country-market",
            primary_category="Grocery Store",
            city="Dallas",
            state="TX",
            rating_avg=None,
            product_count=90,
            created_at=now - timedelta(days=1),
        ),
        make_listing(
            "hidden-shop",
            primary_category="Bakery",
            city="Austin",
            state="TX",
            is_published=False,
        ),
    ]


def slugs(response):
    return [listing["slug"] for listing in response.json()["listings"]]


def test_search_returns_published_only(client, listings):
    response = client.get("/api/directory/search")

    assert response.status_code == 200
    assert "hidden-shop" not in slugs(response)
    assert response.json()["pagination"]["totalItems"] == 3


def test_pagination_total_matches_filtered_rows(client, listings):
    """totalItems counts every filtered row, not just the page"""
    first = client.get("/api/directory/search?limit=2&page=1").json()
    second = client.get("/api/directory/search?limit=2&page=2").json()

    assert first["pagination"] == {"page": 1, "limit": 2, "totalItems": 3, "totalPages": 2}
    assert len(first["listings"]) == 2
    assert len(second["listings"]) == 1
    seen = {l["slug"] for l in first["listings"]} | {l["slug"] for l in second["listings"]}
    assert seen == {"fresh-foods", "daily-bread", "hill-country-market"}


def test_category_filter_matches_primary_and_secondary(client, listings):
    response = client.get("/api/directory/search?category=grocery-store")

    assert set(slugs(response)) == {"fresh-foods", "daily-bread", "hill-country-market"}
    assert response.json()["pagination"]["totalItems"] == 3


def test_category_filter_accepts_display_name(client, listings):
    response = client.get("/api/directory/search?category=Bakery")

    assert slugs(response) == ["daily-bread"]


def test_city_filter_is_case_insensitive(client, listings):
    response = client.get("/api/directory/search?city=austin&state=tx")

    assert set(slugs(response)) == {"fresh-foods", "daily-bread"}


def test_text_search(client, listings):
    response = client.get("/api/directory/search?q=bread")

    assert slugs(response) == ["daily-bread"]


def test_sort_by_rating_puts_unrated_last(client, listings):
    response = client.get("/api/directory/search?sort=rating")

    assert slugs(response) == ["fresh-foods", "daily-bread", "hill-country-market"]


def test_sort_newest_and_products(client, listings):
    assert slugs(client.get("/api/directory/search?sort=newest")) == [
        "hill-country-market", "daily-bread", "fresh-foods",
    ]
    assert slugs(client.get("/api/directory/search?sort=products")) == [
        "hill-country-market", "fresh-foods", "daily-bread",
    ]


def test_relevance_puts_featured_first(client, listings):
    assert slugs(client.get("/api/directory/search"))[0] == "daily-bread"


@pytest.mark.parametrize("query", ["page=abc&limit=-5", "page=0&limit=zero", "sort=bogus"])
def test_malformed_params_fall_back_to_defaults(client, listings, query):
    response = client.get(f"/api/directory/search?{query}")

    assert response.status_code == 200
    assert response.json()["pagination"]["page"] == 1


def test_limit_is_clamped():
    assert DirectorySearchParams.from_query(limit="500").limit == 100
    assert DirectorySearchParams.from_query(limit="-5").limit == 1
    assert DirectorySearchParams.from_query(limit="x").limit == 12
    assert DirectorySearchParams.from_query(page="-3").page == 1


def test_empty_result_has_zero_pages(client):
    body = client.get("/api/directory/search?q=nothing").json()

    assert body["listings"] == []
    assert body["pagination"]["totalItems"] == 0
    assert body["pagination"]["totalPages"] == 0


def test_listing_by_slug(client, listings):
    response = client.get("/api/directory/fresh-foods")

    assert response.status_code == 200
    body = response.json()
    assert body["businessName"] == "Fresh Foods"
    assert body["ratingAvg"] == 4.8
    assert body["secondaryCategories"] == []


def test_unpublished_listing_is_not_found(client, listings):
    response = client.get("/api/directory/hidden-shop")

    assert response.status_code == 404
    assert response.json()["error"] == "listing_not_found"


def test_directory_categories(client, listings):
    body = client.get("/api/directory/categories").json()

    by_slug = {c["slug"]: c for c in body["categories"]}
    assert by_slug["grocery-store"]["storeCount"] == 3
    assert by_slug["grocery-store"]["primaryStoreCount"] == 2
    assert by_slug["grocery-store"]["name"] == "Grocery Store"
    assert body["categories"][0]["slug"] == "grocery-store"

    filtered = client.get("/api/directory/categories?minStores=3").json()
    assert [c["slug"] for c in filtered["categories"]] == ["grocery-store"]


def test_directory_category_detail(client, listings):
    response = client.get("/api/directory/categories/bakery")

    assert response.status_code == 200
    body = response.json()
    assert body["category"]["name"] == "Bakery"
    assert slugs(response) == ["daily-bread"]

    assert client.get("/api/directory/categories/no-such-thing").status_code == 404


def test_directory_stats(client, listings):
    body = client.get("/api/directory/stats").json()

    assert body == {
        "totalListings": 3,
        "featuredListings": 1,
        "totalProducts": 142,
        "totalCategories": 2,
        "totalCities": 2,
    }


def test_directory_health_reports_each_view(client, db):
    now = datetime.now(timezone.utc)
    db.add(DirectoryRefreshLog(view_name="directory_listings_list", started_at=now, finished_at=now, status="success"))
    db.add(DirectoryRefreshLog(
        view_name="directory_category_listings",
        started_at=now - timedelta(hours=3),
        finished_at=now - timedelta(hours=3),
        status="success",
    ))
    db.commit()

    body = client.get("/api/directory/health").json()

    states = {v["viewName"]: v["status"] for v in body["views"]}
    assert states == {
        "directory_listings_list": "healthy",
        "directory_category_listings": "stale",
        "directory_featured_products": "unknown",
    }
    assert body["healthy"] is False


def test_refresh_on_sqlite_is_logged_as_skipped(client, admin_user, auth_headers):
    response = client.post("/api/admin/directory/refresh", headers=auth_headers(admin_user))

    assert response.status_code == 200
    assert [r["status"] for r in response.json()] == ["skipped", "skipped", "skipped"]

    unknown = client.post("/api/admin/directory/refresh?view=nope", headers=auth_headers(admin_user))
    assert unknown.status_code == 400
    assert unknown.json()["error"] == "unknown_view"


def test_resolve_category_title_cases_unknown_slugs(db):
    assert resolve_category(db, "pet-supplies") == ("Pet Supplies", "pet-supplies")
    assert slugify("Health & Beauty") == "health-beauty"


def test_category_activity_score():
    now = datetime(2026, 6, 1)

    assert category_activity_score(None, None, now) == 0
    assert category_activity_score(now - timedelta(days=3), now - timedelta(days=400), now) == 60
    assert category_activity_score(now - timedelta(days=20), now - timedelta(days=200), now) == 35
    assert category_activity_score(now - timedelta(days=500), now - timedelta(days=500), now) == 10
