import logging

from fastapi import APIRouter, Depends, Header, HTTPException, Request

from explorer_api.api.deps import get_subscription_service, require_billing
from explorer_api.api.errors import handle_errors
from explorer_api.errors import BillingProviderFailure
from explorer_api.integrations.billing import BillingProvider
from explorer_api.services.subscriptions import SubscriptionService

router = APIRouter()

logger = logging.getLogger(__name__)

SUBSCRIPTION_EVENTS = (
    "customer.subscription.created",
    "customer.subscription.updated",
    "customer.subscription.deleted",
)

@router.post("/stripe")
async def stripe_webhook(
    request: Request,
    stripe_signature: str = Header(None),
    billing: BillingProvider = Depends(require_billing),
    service: SubscriptionService = Depends(get_subscription_service),
):
    payload = await request.body()
    try:
        event = billing.construct_event(payload, stripe_signature)
    except BillingProviderFailure as e:
        logger.error(f"Rejected Stripe webhook: {e.message}")
        raise HTTPException(status_code=400, detail=e.message)

    if event["type"] in SUBSCRIPTION_EVENTS:
        subscription = event["data"]["object"]
        logger.info(f"Stripe {event['type']} for subscription {subscription.get('id')}")
        with handle_errors("post.webhooks.stripe", event=event["type"]):
            await service.sync_from_stripe(subscription)

    return {"status": "success"}
