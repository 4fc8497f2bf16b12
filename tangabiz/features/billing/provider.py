"""
Billing provider protocol.

Defines the interface for billing providers (Polar, etc.).
This allows swapping providers without changing plan resolution.
"""
from typing import Protocol, Optional
from dataclasses import dataclass
from datetime import datetime


@dataclass
class BillingSubscription:
    """A subscription as reported by the billing provider."""
    subscription_id: str
    product_id: Optional[str]
    status: str  # active, trialing, canceled, past_due, etc.
    customer_email: Optional[str]
    recurring_interval: Optional[str] = None  # month, year
    current_period_end: Optional[datetime] = None
    product_name: Optional[str] = None

    @property
    def is_yearly(self) -> bool:
        return self.recurring_interval == "year"


class BillingProvider(Protocol):
    """
    Protocol for billing providers.

    Implementations only report subscriptions; they never decide plans.
    """

    def find_active_subscription(self, customer_email: str) -> Optional[BillingSubscription]:
        """
        Find an active or trialing subscription for a customer.

        Args:
            customer_email: Email the customer subscribed with

        Returns:
            The subscription, or None when the customer has none active

        Raises:
            BillingProviderError: If the provider could not be queried
        """
        ...


class BillingProviderError(Exception):
    """Base exception for billing provider errors."""
    pass
