"""Resource creation paths that consume quota."""

from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import insert

from tangabiz.core.database import customers, get_db_session, sales
from tangabiz.core.errors import (
    NotFoundError,
    QuotaExceededError,
    RolePermissionDeniedError,
    ValidationError,
)
from tangabiz.features.catalog.service import (
    create_customer,
    create_product,
    deactivate_product,
    list_products,
    record_sale,
)
from tangabiz.features.organizations.service import add_member
from tangabiz.features.usage.service import count_usage
from tangabiz.models.permission import Role
from tangabiz.models.usage import ResourceKind


def seed_customers(org_id: str, count: int) -> None:
    with get_db_session() as session:
        session.execute(
            insert(customers),
            [{"id": str(uuid4()), "organization_id": org_id, "name": f"c{i}"} for i in range(count)],
        )


def seed_sales(org_id: str, at: datetime, count: int) -> None:
    with get_db_session() as session:
        session.execute(
            insert(sales),
            [
                {"id": str(uuid4()), "organization_id": org_id, "created_by": "owner", "total": 1, "created_at": at}
                for _ in range(count)
            ],
        )


def test_create_product(trial_org, now):
    product = create_product("owner", trial_org.id, " Maziwa 500ml ", "0.755", now=now)
    assert product["name"] == "Maziwa 500ml"
    assert product["price"] == Decimal("0.76")
    assert [p["id"] for p in list_products("owner", trial_org.id, now=now)] == [product["id"]]


@pytest.mark.parametrize("price", ["-1", "abc", "NaN"])
def test_create_product_rejects_bad_price(trial_org, now, price):
    with pytest.raises(ValidationError):
        create_product("owner", trial_org.id, "Bad", price, now=now)


def test_staff_cannot_create_or_delete_products(trial_org, now):
    add_member("owner", trial_org.id, "clerk", Role.STAFF, now=now)
    product = create_product("owner", trial_org.id, "Soap", 1, now=now)
    with pytest.raises(RolePermissionDeniedError):
        create_product("clerk", trial_org.id, "Soap", 1, now=now)
    with pytest.raises(RolePermissionDeniedError):
        deactivate_product("clerk", trial_org.id, product["id"], now=now)


def test_deactivate_product(trial_org, now):
    product = create_product("owner", trial_org.id, "Soap", 1, now=now)
    deactivate_product("owner", trial_org.id, product["id"], now=now)
    assert count_usage(trial_org.id, ResourceKind.PRODUCTS) == 0
    assert list_products("owner", trial_org.id, now=now) == []
    assert len(list_products("owner", trial_org.id, include_inactive=True, now=now)) == 1
    with pytest.raises(NotFoundError):
        deactivate_product("owner", trial_org.id, "missing", now=now)


def test_customer_quota(starter_org, now):
    seed_customers(starter_org.id, 99)
    create_customer("owner", starter_org.id, "Last One", email="last@duka.co.ke", now=now)
    with pytest.raises(QuotaExceededError) as exc_info:
        create_customer("owner", starter_org.id, "One Too Many", now=now)
    assert (exc_info.value.current, exc_info.value.limit) == (100, 100)


def test_staff_can_create_customers_and_sales(trial_org, now):
    add_member("owner", trial_org.id, "clerk", Role.STAFF, now=now)
    customer = create_customer("clerk", trial_org.id, "Baraka", now=now)
    sale = record_sale("clerk", trial_org.id, 120, customer_id=customer["id"], payment_method="mobile_money", now=now)
    assert sale["payment_method"] == "MOBILE_MONEY"
    assert sale["created_by"] == "clerk"


def test_monthly_sales_cap_resets_next_month(starter_org, now):
    seed_sales(starter_org.id, now, 500)
    with pytest.raises(QuotaExceededError) as exc_info:
        record_sale("owner", starter_org.id, 10, now=now)
    assert (exc_info.value.current, exc_info.value.limit) == (500, 500)

    next_month = datetime(2025, 7, 1, 8, 0, tzinfo=timezone.utc)
    record_sale("owner", starter_org.id, 10, now=next_month)
    assert count_usage(starter_org.id, ResourceKind.SALES, now=next_month) == 1


def test_sale_validation(trial_org, expired_org, now):
    with pytest.raises(ValidationError):
        record_sale("owner", trial_org.id, 10, payment_method="IOU", now=now)

    seed_customers(expired_org.id, 1)
    with get_db_session() as session:
        foreign_id = session.execute(
            customers.select().where(customers.c.organization_id == expired_org.id)
        ).first().id
    with pytest.raises(ValidationError):
        record_sale("owner", trial_org.id, 10, customer_id=foreign_id, now=now)
    assert count_usage(trial_org.id, ResourceKind.SALES, now=now) == 0
