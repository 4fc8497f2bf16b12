"""
tangabiz/features/catalog/service.py

Creation and removal of the countable resources: products, customers, sales.

Every creation runs inside a quota reservation, so the insert and the check
that allowed it commit together. Removal only needs the role permission.
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union
from uuid import uuid4

from sqlalchemy import insert, select, update

from tangabiz.core.database import customers, get_db_session, products, sales
from tangabiz.core.errors import NotFoundError, ValidationError
from tangabiz.features.entitlements.reservation import reserve
from tangabiz.features.entitlements.service import check_entitlement, raise_for_decision
from tangabiz.features.plans.resolver import as_utc
from tangabiz.models.permission import Permission
from tangabiz.models.usage import ResourceKind


logger = logging.getLogger(__name__)

PAYMENT_METHODS = frozenset({"CASH", "CARD", "BANK_TRANSFER", "MOBILE_MONEY", "OTHER"})

Amount = Union[Decimal, float, int, str]


def _amount(value: Amount, field: str) -> Decimal:
    try:
        amount = Decimal(str(value))
    except (ArithmeticError, ValueError):
        raise ValidationError(f"{field} must be a number")
    if not amount.is_finite() or amount < 0:
        raise ValidationError(f"{field} must be a non-negative number")
    return amount.quantize(Decimal("0.01"))


def _require_name(name: Optional[str], what: str) -> str:
    if not name or not name.strip():
        raise ValidationError(f"{what} name is required")
    return name.strip()


def create_product(
    user_id: str,
    organization_id: str,
    name: str,
    price: Amount,
    *,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Create an active product.

    Raises:
        ValidationError: blank name or bad price
        RolePermissionDeniedError / TrialExpiredError / QuotaExceededError
    """
    name = _require_name(name, "Product")
    price = _amount(price, "price")
    now = as_utc(now) if now else datetime.now(timezone.utc)
    product_id = str(uuid4())

    with reserve(user_id, organization_id, Permission.CREATE_PRODUCTS, ResourceKind.PRODUCTS, now=now) as reservation:
        reservation.session.execute(
            insert(products).values(
                id=product_id,
                organization_id=organization_id,
                name=name,
                price=price,
                is_active=True,
                created_by=user_id,
                created_at=now,
            )
        )

    logger.info("[catalog] product created", extra={"organization_id": organization_id, "user_id": user_id})
    return {
        "id": product_id,
        "organization_id": organization_id,
        "name": name,
        "price": price,
        "is_active": True,
        "created_by": user_id,
        "created_at": now,
    }


def list_products(
    user_id: str,
    organization_id: str,
    *,
    include_inactive: bool = False,
    now: Optional[datetime] = None,
) -> List[Dict[str, Any]]:
    raise_for_decision(check_entitlement(user_id, organization_id, Permission.VIEW_PRODUCTS, now=now))
    query = select(products).where(products.c.organization_id == organization_id)
    if not include_inactive:
        query = query.where(products.c.is_active == True)  # noqa: E712
    with get_db_session() as session:
        rows = session.execute(query.order_by(products.c.created_at, products.c.id)).all()
        return [dict(row._mapping) for row in rows]


def deactivate_product(user_id: str, organization_id: str, product_id: str, *, now: Optional[datetime] = None) -> None:
    """
    Soft-delete a product. Inactive products stop counting against the quota.

    Raises:
        RolePermissionDeniedError: actor lacks delete_products
        NotFoundError: no such product in the organization
    """
    raise_for_decision(check_entitlement(user_id, organization_id, Permission.DELETE_PRODUCTS, now=now))

    with get_db_session() as session:
        result = session.execute(
            update(products)
            .where(products.c.id == product_id)
            .where(products.c.organization_id == organization_id)
            .values(is_active=False)
        )
        if result.rowcount == 0:
            raise NotFoundError(f"Product {product_id} not found")

    logger.info("[catalog] product deactivated", extra={"organization_id": organization_id, "user_id": user_id})


def create_customer(
    user_id: str,
    organization_id: str,
    name: str,
    *,
    email: Optional[str] = None,
    phone: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Create a customer.

    Raises:
        ValidationError: blank name
        RolePermissionDeniedError / TrialExpiredError / QuotaExceededError
    """
    name = _require_name(name, "Customer")
    now = as_utc(now) if now else datetime.now(timezone.utc)
    customer_id = str(uuid4())
    values = {
        "id": customer_id,
        "organization_id": organization_id,
        "name": name,
        "email": email,
        "phone": phone,
        "created_at": now,
    }

    with reserve(user_id, organization_id, Permission.CREATE_CUSTOMERS, ResourceKind.CUSTOMERS, now=now) as reservation:
        reservation.session.execute(insert(customers).values(**values))

    logger.info("[catalog] customer created", extra={"organization_id": organization_id, "user_id": user_id})
    return values


def record_sale(
    user_id: str,
    organization_id: str,
    total: Amount,
    *,
    customer_id: Optional[str] = None,
    payment_method: str = "CASH",
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Record a completed sale. Counts against the monthly sales ceiling.

    Raises:
        ValidationError: bad total, payment method, or a customer from another organization
        RolePermissionDeniedError / TrialExpiredError / QuotaExceededError
    """
    total = _amount(total, "total")
    payment_method = (payment_method or "").upper()
    if payment_method not in PAYMENT_METHODS:
        raise ValidationError(f"Unsupported payment method: {payment_method}")
    now = as_utc(now) if now else datetime.now(timezone.utc)
    sale_id = str(uuid4())
    values = {
        "id": sale_id,
        "organization_id": organization_id,
        "created_by": user_id,
        "customer_id": customer_id,
        "total": total,
        "payment_method": payment_method,
        "created_at": now,
    }

    with reserve(user_id, organization_id, Permission.CREATE_SALES, ResourceKind.SALES, now=now) as reservation:
        if customer_id is not None:
            owner = reservation.session.execute(
                select(customers.c.organization_id).where(customers.c.id == customer_id)
            ).scalar_one_or_none()
            if owner != organization_id:
                raise ValidationError(f"Customer {customer_id} not found in this organization")
        reservation.session.execute(insert(sales).values(**values))

    logger.info("[catalog] sale recorded", extra={"organization_id": organization_id, "user_id": user_id})
    return values
