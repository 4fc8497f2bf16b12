"""
Catalog API routes: products, customers, sales.

Every create route goes through a quota reservation; a denial surfaces as
403 with the decision reason as the error code.
"""
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from tangabiz.core.auth import get_current_user_id
from tangabiz.features.catalog.service import (
    create_customer,
    create_product,
    deactivate_product,
    list_products,
    record_sale,
)


router = APIRouter(prefix="/api/organizations", tags=["catalog"])


class CreateProductRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    price: Decimal = Field(..., ge=0)


class CreateCustomerRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    email: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=50)


class RecordSaleRequest(BaseModel):
    total: Decimal = Field(..., ge=0)
    customer_id: Optional[str] = None
    payment_method: str = "CASH"


@router.get("/{organization_id}/products")
def get_products(
    organization_id: str,
    include_inactive: bool = Query(False),
    user_id: str = Depends(get_current_user_id),
):
    return {"products": list_products(user_id, organization_id, include_inactive=include_inactive)}


@router.post("/{organization_id}/products", status_code=201)
def post_product(organization_id: str, request: CreateProductRequest, user_id: str = Depends(get_current_user_id)):
    return create_product(user_id, organization_id, request.name, request.price)


@router.delete("/{organization_id}/products/{product_id}")
def delete_product(organization_id: str, product_id: str, user_id: str = Depends(get_current_user_id)):
    deactivate_product(user_id, organization_id, product_id)
    return {"success": True}


@router.post("/{organization_id}/customers", status_code=201)
def post_customer(organization_id: str, request: CreateCustomerRequest, user_id: str = Depends(get_current_user_id)):
    return create_customer(user_id, organization_id, request.name, email=request.email, phone=request.phone)


@router.post("/{organization_id}/sales", status_code=201)
def post_sale(organization_id: str, request: RecordSaleRequest, user_id: str = Depends(get_current_user_id)):
    return record_sale(
        user_id,
        organization_id,
        request.total,
        customer_id=request.customer_id,
        payment_method=request.payment_method,
    )
