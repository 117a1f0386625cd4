"""
UTC timestamp columns
"""

from datetime import datetime, timedelta, timezone

from sqlmodel import select

from retail_api.models import DirectoryRefreshLog, Tenant, TenantFeatureOverride
from retail_api.models.base import as_utc, utcnow


def test_as_utc_tags_naive_and_converts_aware():
    naive = datetime(2026, 1, 1, 12, 0)
    eastern = datetime(2026, 1, 1, 7, 0, tzinfo=timezone(timedelta(hours=-5)))

    assert as_utc(naive) == datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
    assert as_utc(eastern).tzinfo == timezone.utc
    assert as_utc(eastern) == as_utc(naive)
    assert as_utc(None) is None


def test_default_timestamps_are_aware(make_tenant):
    tenant = make_tenant("Clockwork")

    assert tenant.created_at.tzinfo is not None
    assert utcnow() - tenant.created_at < timedelta(minutes=1)


def test_values_read_back_as_utc(db, make_tenant):
    tenant = make_tenant("Offsets")
    db.add(TenantFeatureOverride(
        tenant_id=tenant.id,
        feature="quick_start",
        expires_at=datetime(2026, 5, 1, 10, 0, tzinfo=timezone(timedelta(hours=2))),
    ))
    db.add(DirectoryRefreshLog(view_name="directory_listings_list", started_at=datetime(2026, 5, 1, 8, 0)))
    db.commit()
    db.expire_all()

    override = db.exec(select(TenantFeatureOverride)).one()
    log = db.exec(select(DirectoryRefreshLog)).one()
    assert override.expires_at == datetime(2026, 5, 1, 8, 0, tzinfo=timezone.utc)
    assert override.expires_at.tzinfo is not None
    assert log.started_at == datetime(2026, 5, 1, 8, 0, tzinfo=timezone.utc)


def test_filtering_by_aware_timestamp(db, make_tenant):
    make_tenant("Older", created_at=utcnow() - timedelta(days=2))
    make_tenant("Newer")

    cutoff = utcnow() - timedelta(days=1)
    names = db.exec(select(Tenant.name).where(Tenant.created_at >= cutoff)).all()

    assert names == ["Newer"]


def test_expiry_check_accepts_naive_values():
    override = TenantFeatureOverride(feature="quick_start", expires_at=datetime.now(timezone.utc).replace(tzinfo=None) - timedelta(minutes=5))

    assert override.is_expired() is True
    assert override.is_active(utcnow() - timedelta(hours=1)) is True
