"""
tangabiz/models/usage.py

Countable resources and the live usage snapshot computed from them.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict


class ResourceKind(str, Enum):
    PRODUCTS = "products"
    CUSTOMERS = "customers"
    TEAM_MEMBERS = "team_members"
    SALES = "sales"  # counted per billing period


class UsageSnapshot(BaseModel):
    """
    Live counts for one organization at one instant.

    Derived on demand from the system of record; never stored.
    """
    model_config = ConfigDict(frozen=True)

    organization_id: str
    products: int
    customers: int
    team_members: int
    sales: int
    period_start: datetime
    computed_at: datetime

    def count_for(self, resource_kind: ResourceKind) -> int:
        return getattr(self, ResourceKind(resource_kind).value)
