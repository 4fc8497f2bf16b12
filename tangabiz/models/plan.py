"""
tangabiz/models/plan.py

Plan catalog records.

Numeric ceilings use -1 for "no ceiling"; 0 means the resource is not
available at all on that plan.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from tangabiz.models.usage import ResourceKind


UNLIMITED = -1


class PlanId(str, Enum):
    STARTER = "starter"
    GROWTH = "growth"
    ENTERPRISE = "enterprise"


class Feature(str, Enum):
    ANALYTICS = "analytics"
    ADVANCED_REPORTS = "advanced_reports"
    EMAIL_ALERTS = "email_alerts"
    API_ACCESS = "api_access"
    CUSTOM_BRANDING = "custom_branding"
    PRIORITY_SUPPORT = "priority_support"
    MULTI_LOCATION = "multi_location"
    BULK_IMPORT = "bulk_import"
    EXPORT_DATA = "export_data"
    CUSTOMER_LOYALTY = "customer_loyalty"
    INVENTORY_ALERTS = "inventory_alerts"
    SALES_FORECASTING = "sales_forecasting"
    EMAIL_MARKETING = "email_marketing"


class PlanFeatures(BaseModel):
    """Feature flags for one plan. Unset flags are off."""
    model_config = ConfigDict(frozen=True)

    analytics: bool = False
    advanced_reports: bool = False
    email_alerts: bool = False
    api_access: bool = False
    custom_branding: bool = False
    priority_support: bool = False
    multi_location: bool = False
    bulk_import: bool = False
    export_data: bool = False
    customer_loyalty: bool = False
    inventory_alerts: bool = False
    sales_forecasting: bool = False
    email_marketing: bool = False

    def enabled(self, feature: Feature) -> bool:
        try:
            name = Feature(feature).value
        except ValueError:
            return False
        return bool(getattr(self, name, False))


_LIMIT_FIELDS = {
    ResourceKind.PRODUCTS: "max_products",
    ResourceKind.CUSTOMERS: "max_customers",
    ResourceKind.TEAM_MEMBERS: "max_team_members",
    ResourceKind.SALES: "max_monthly_sales",
}


class PlanLimits(BaseModel):
    """
    Ceilings and feature flags granted by a plan.

    Every ceiling is either a non-negative integer or UNLIMITED (-1).
    """
    model_config = ConfigDict(frozen=True)

    max_products: int = Field(ge=UNLIMITED)
    max_customers: int = Field(ge=UNLIMITED)
    max_team_members: int = Field(ge=UNLIMITED)
    max_monthly_sales: int = Field(ge=UNLIMITED)
    max_locations: int = Field(ge=UNLIMITED)
    features: PlanFeatures

    def limit_for(self, resource_kind: ResourceKind) -> int:
        return getattr(self, _LIMIT_FIELDS[ResourceKind(resource_kind)])


class Plan(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: PlanId
    name: str
    description: str
    price: float  # monthly, USD
    yearly_price: float  # yearly, USD (discounted)
    limits: PlanLimits
    popular: Optional[bool] = False
