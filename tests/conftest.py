"""
Test configuration for pytest
"""

import os
import uuid
from datetime import datetime, timezone
from typing import Callable, Generator, List, Optional

# Test environment variables, set before the application module is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET_KEY"] = "test-jwt-secret"
os.environ["ENVIRONMENT"] = "test"

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session

from retail_api.core.auth import create_access_token
from retail_api.core.config import Settings
from retail_api.core.permissions import PlatformRole, TenantRole
from retail_api.main import create_app
from retail_api.models import (
    DirectoryCategoryListing,
    DirectoryListing,
    InventoryItem,
    PlatformCategory,
    Tenant,
    User,
    UserTenant,
)

WEBHOOK_SECRET = "whsec_test_secret"


@pytest.fixture
def engine():
    """In-memory SQLite shared by the app and the test session"""
    test_engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(test_engine)
    yield test_engine
    SQLModel.metadata.drop_all(test_engine)
    test_engine.dispose()


@pytest.fixture
def db(engine) -> Generator[Session, None, None]:
    """Create a clean database session for each test"""
    with Session(engine) as session:
        yield session


@pytest.fixture
def settings() -> Settings:
    return Settings(
        DATABASE_URL="sqlite://",
        ENVIRONMENT="test",
        JWT_SECRET_KEY="test-jwt-secret",
        STRIPE_SECRET_KEY=None,
        STRIPE_WEBHOOK_SECRET=WEBHOOK_SECRET,
        FEATURE_FLAG_DEFAULTS={"env_default_on": True},
        SUBDOMAIN_CHANGES_PER_HOUR=3,
        FEATURED_CACHE_TTL_SECONDS=300,
        DEFAULT_TAX_RATE_BPS=0,
    )


@pytest.fixture
def app(settings: Settings, engine) -> FastAPI:
    return create_app(settings, engine)


@pytest.fixture
def client(app: FastAPI) -> Generator[TestClient, None, None]:
    with TestClient(app) as test_client:
        yield test_client


# Auth helpers
@pytest.fixture
def auth_headers(settings: Settings) -> Callable[..., dict]:
    """Build an Authorization header for a user"""

    def _headers(user: User, role: Optional[str] = None, tenant_ids: List[uuid.UUID] = ()) -> dict:
        token = create_access_token(
            user_id=user.id,
            email=user.email,
            role=role or getattr(user.role, "value", user.role),
            tenant_ids=tenant_ids,
            settings=settings,
        )
        return {"Authorization": f"Bearer {token}"}

    return _headers


# Factories
@pytest.fixture
def make_tenant(db: Session) -> Callable[..., Tenant]:
    def _make(name: str = "Corner Market", slug: Optional[str] = None, **fields) -> Tenant:
        tenant = Tenant(name=name, slug=slug or f"{name.lower().replace(' ', '-')}-{uuid.uuid4().hex[:6]}", **fields)
        db.add(tenant)
        db.commit()
        db.refresh(tenant)
        return tenant

    return _make


@pytest.fixture
def make_user(db: Session) -> Callable[..., User]:
    def _make(
        email: Optional[str] = None,
        tenant: Optional[Tenant] = None,
        tenant_role: TenantRole = TenantRole.OWNER,
        role: PlatformRole = PlatformRole.USER,
        **fields,
    ) -> User:
        user = User(email=email or f"user-{uuid.uuid4().hex[:8]}@example.com", role=role, **fields)
        db.add(user)
        db.commit()
        if tenant is not None:
            db.add(UserTenant(user_id=user.id, tenant_id=tenant.id, role=tenant_role))
            db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def admin_user(make_user) -> User:
    return make_user(email="admin@example.com", role=PlatformRole.PLATFORM_ADMIN)


@pytest.fixture
def make_category(db: Session) -> Callable[..., PlatformCategory]:
    def _make(name: str, slug: Optional[str] = None, **fields) -> PlatformCategory:
        category = PlatformCategory(name=name, slug=slug or name.lower().replace(" ", "-"), **fields)
        db.add(category)
        db.commit()
        db.refresh(category)
        return category

    return _make


@pytest.fixture
def make_listing(db: Session) -> Callable[..., DirectoryListing]:
    """Insert a listing row plus its category rows, as the views would produce"""

    def _make(
        slug: str,
        primary_category: Optional[str] = None,
        secondary_categories: Optional[List[str]] = None,
        created_at: Optional[datetime] = None,
        **fields,
    ) -> DirectoryListing:
        listing = DirectoryListing(
            tenant_id=fields.pop("tenant_id", None) or uuid.uuid4(),
            business_name=fields.pop("business_name", slug.replace("-", " ").title()),
            slug=slug,
            primary_category=primary_category,
            secondary_categories=secondary_categories or [],
            created_at=created_at or datetime.now(timezone.utc),
            **fields,
        )
        db.add(listing)
        categories = ([primary_category] if primary_category else []) + list(secondary_categories or [])
        if not listing.is_published:
            categories = []
        for index, name in enumerate(categories):
            db.add(DirectoryCategoryListing(
                tenant_id=listing.tenant_id,
                category_slug=name.lower().replace(" ", "-"),
                category_name=name,
                is_primary=index == 0 and primary_category is not None,
                product_count=listing.product_count,
            ))
        db.commit()
        db.refresh(listing)
        return listing

    return _make


@pytest.fixture
def make_item(db: Session) -> Callable[..., InventoryItem]:
    def _make(tenant: Tenant, sku: str = "SKU-1", name: str = "Widget", **fields) -> InventoryItem:
        item = InventoryItem(tenant_id=tenant.id, sku=sku, name=name, **fields)
        db.add(item)
        db.commit()
        db.refresh(item)
        return item

    return _make
