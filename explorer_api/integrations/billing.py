"""
Billing provider used by the explorer services.

Services depend on the `BillingProvider` protocol only; the Stripe
implementation is wired in through `explorer_api.api.deps.get_billing` so
tests can substitute a fake. Every call returns plain dicts and every Stripe
failure is translated into `BillingProviderFailure`.
"""
import logging
from typing import Any, Dict, List, Optional, Protocol

import stripe

from explorer_api.errors import BillingProviderFailure

logger = logging.getLogger(__name__)


class BillingProvider(Protocol):
    def create_subscription(self, **params: Any) -> Dict[str, Any]:
        ...

    def retrieve_subscription(self, subscription_id: str, expand: Optional[List[str]] = None) -> Dict[str, Any]:
        ...

    def update_subscription(self, subscription_id: str, **params: Any) -> Dict[str, Any]:
        ...

    def retrieve_customer(self, customer_id: str) -> Dict[str, Any]:
        ...

    def construct_event(self, payload: bytes, signature: str) -> Dict[str, Any]:
        ...


class StripeBillingProvider:
    """Stripe implementation of BillingProvider."""

    def __init__(self, secret_key: str, webhook_secret: Optional[str] = None):
        if not secret_key:
            raise BillingProviderFailure("Stripe is not configured")
        self.secret_key = secret_key
        self.webhook_secret = webhook_secret
        stripe.api_key = secret_key

    @staticmethod
    def _to_dict(obj) -> Dict[str, Any]:
        return obj.to_dict() if hasattr(obj, "to_dict") else dict(obj)

    def _call(self, operation: str, fn, *args, **kwargs) -> Dict[str, Any]:
        try:
            return self._to_dict(fn(*args, **kwargs))
        except stripe.StripeError as e:
            logger.error(f"Stripe {operation} failed: {e}")
            message = getattr(e, "user_message", None) or str(e)
            raise BillingProviderFailure(message, {"operation": operation})

    def create_subscription(self, **params: Any) -> Dict[str, Any]:
        return self._call("subscriptions.create", stripe.Subscription.create, **params)

    def retrieve_subscription(self, subscription_id: str, expand: Optional[List[str]] = None) -> Dict[str, Any]:
        return self._call(
            "subscriptions.retrieve",
            stripe.Subscription.retrieve,
            subscription_id,
            expand=expand or [],
        )

    def update_subscription(self, subscription_id: str, **params: Any) -> Dict[str, Any]:
        return self._call("subscriptions.update", stripe.Subscription.modify, subscription_id, **params)

    def retrieve_customer(self, customer_id: str) -> Dict[str, Any]:
        return self._call("customers.retrieve", stripe.Customer.retrieve, customer_id)

    def construct_event(self, payload: bytes, signature: str) -> Dict[str, Any]:
        try:
            event = stripe.Webhook.construct_event(
                payload=payload, sig_header=signature, secret=self.webhook_secret
            )
        except (ValueError, stripe.SignatureVerificationError) as e:
            raise BillingProviderFailure(str(e), {"operation": "webhook"})
        return self._to_dict(event)
