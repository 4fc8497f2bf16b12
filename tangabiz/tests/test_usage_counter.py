"""Live usage counts and fault propagation."""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest
from sqlalchemy import insert

from tangabiz.core.database import customers, get_db_session, init_engine, members, products, sales
from tangabiz.core.errors import UsageUnavailableError
from tangabiz.features.usage.service import billing_period_start, count_usage, get_usage_snapshot
from tangabiz.models.usage import ResourceKind


def seed_products(org_id: str, count: int, *, active: bool = True) -> None:
    if count == 0:
        return
    with get_db_session() as session:
        session.execute(
            insert(products),
            [
                {"id": str(uuid4()), "organization_id": org_id, "name": f"p{i}", "price": 1, "is_active": active}
                for i in range(count)
            ],
        )


def seed_sales(org_id: str, at: datetime, count: int = 1) -> None:
    with get_db_session() as session:
        session.execute(
            insert(sales),
            [
                {"id": str(uuid4()), "organization_id": org_id, "created_by": "owner", "total": 10, "created_at": at}
                for _ in range(count)
            ],
        )


def test_billing_period_is_calendar_month_utc():
    assert billing_period_start(datetime(2025, 6, 15, 12, tzinfo=timezone.utc)) == datetime(2025, 6, 1, tzinfo=timezone.utc)
    assert billing_period_start(datetime(2025, 7, 1, 0, 0, tzinfo=timezone.utc)) == datetime(2025, 7, 1, tzinfo=timezone.utc)
    # 01:00 on the 1st in UTC+3 is still the previous month in UTC
    eat = timezone(timedelta(hours=3))
    assert billing_period_start(datetime(2025, 7, 1, 1, 0, tzinfo=eat)) == datetime(2025, 6, 1, tzinfo=timezone.utc)


def test_products_count_only_active(trial_org):
    seed_products(trial_org.id, 3)
    seed_products(trial_org.id, 2, active=False)
    assert count_usage(trial_org.id, ResourceKind.PRODUCTS) == 3


def test_team_members_include_owner(trial_org):
    assert count_usage(trial_org.id, ResourceKind.TEAM_MEMBERS) == 1
    with get_db_session() as session:
        session.execute(insert(members).values(organization_id=trial_org.id, user_id="clerk", role="STAFF"))
    assert count_usage(trial_org.id, "team_members") == 2


def test_sales_count_resets_each_month(trial_org, now):
    seed_sales(trial_org.id, datetime(2025, 5, 31, 23, 59, tzinfo=timezone.utc), 4)
    seed_sales(trial_org.id, datetime(2025, 6, 1, 0, 0, tzinfo=timezone.utc), 2)
    seed_sales(trial_org.id, now, 1)
    assert count_usage(trial_org.id, ResourceKind.SALES, now=now) == 3


def test_counts_are_scoped_to_organization(trial_org, expired_org):
    seed_products(trial_org.id, 2)
    seed_products(expired_org.id, 5)
    assert count_usage(trial_org.id, ResourceKind.PRODUCTS) == 2
    assert count_usage(expired_org.id, ResourceKind.PRODUCTS) == 5


def test_snapshot(trial_org, now):
    seed_products(trial_org.id, 2)
    with get_db_session() as session:
        session.execute(insert(customers).values(id="c1", organization_id=trial_org.id, name="Amina"))
    seed_sales(trial_org.id, now)

    snapshot = get_usage_snapshot(trial_org.id, now=now)
    assert snapshot.products == 2
    assert snapshot.customers == 1
    assert snapshot.team_members == 1
    assert snapshot.sales == 1
    assert snapshot.count_for(ResourceKind.CUSTOMERS) == 1
    assert snapshot.period_start == datetime(2025, 6, 1, tzinfo=timezone.utc)
    assert snapshot.computed_at == now


def test_unknown_organization_counts_zero():
    assert count_usage("nope", ResourceKind.PRODUCTS) == 0


def test_store_failure_is_unavailable_not_zero(tmp_path):
    init_engine(f"sqlite:///{tmp_path / 'missing-dir' / 'gone.db'}")
    with pytest.raises(UsageUnavailableError) as exc_info:
        count_usage("org-x", ResourceKind.PRODUCTS)
    assert exc_info.value.status_code == 503
    with pytest.raises(UsageUnavailableError):
        get_usage_snapshot("org-x")
