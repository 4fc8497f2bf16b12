"""
Polar billing provider implementation.

Implements BillingProvider over the Polar subscriptions API.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx

from tangabiz.core.config import settings
from tangabiz.features.billing.provider import BillingProviderError, BillingSubscription
from tangabiz.features.plans.resolver import ACTIVE_SUBSCRIPTION_STATUSES


class PolarProvider:
    """Polar implementation of BillingProvider protocol."""

    def __init__(
        self,
        access_token: Optional[str] = None,
        api_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """
        Initialize Polar provider.

        Args:
            access_token: Polar organization access token (defaults to POLAR_ACCESS_TOKEN)
            api_url: API base URL (defaults to POLAR_API_URL)
            timeout: Request timeout in seconds (defaults to BILLING_TIMEOUT_SECONDS)
            transport: Optional httpx transport (tests)
        """
        self.access_token = access_token or settings.POLAR_ACCESS_TOKEN
        self.api_url = (api_url or settings.POLAR_API_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.BILLING_TIMEOUT_SECONDS
        self.transport = transport

        if not self.access_token:
            raise BillingProviderError("POLAR_ACCESS_TOKEN not configured")

    def _list_subscriptions(self) -> List[Dict[str, Any]]:
        headers = {
            "Authorization": f"Bearer {self.access_token}",
            "Content-Type": "application/json",
        }
        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                response = client.get(f"{self.api_url}/v1/subscriptions", headers=headers)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            raise BillingProviderError(f"Polar subscriptions request failed: {e.response.status_code}")
        except (httpx.HTTPError, ValueError) as e:
            raise BillingProviderError(f"Polar subscriptions request failed: {e}")
        return data.get("items") or []

    def find_active_subscription(self, customer_email: str) -> Optional[BillingSubscription]:
        """Return the first active/trialing subscription owned by customer_email."""
        for item in self._list_subscriptions():
            customer = item.get("customer") or {}
            if item.get("status") in ACTIVE_SUBSCRIPTION_STATUSES and customer.get("email") == customer_email:
                return self._parse_subscription(item)
        return None

    def _parse_subscription(self, item: Dict[str, Any]) -> BillingSubscription:
        period_end = item.get("current_period_end")
        product = item.get("product") or {}
        return BillingSubscription(
            subscription_id=str(item.get("id")),
            product_id=item.get("product_id"),
            status=item.get("status"),
            customer_email=(item.get("customer") or {}).get("email"),
            recurring_interval=item.get("recurring_interval"),
            current_period_end=datetime.fromisoformat(period_end.replace("Z", "+00:00")) if period_end else None,
            product_name=product.get("name"),
        )
