"""
Explorer subscription coordinator.

Keeps the local `ExplorerSubscription` rows in line with the Stripe
subscription objects: trials, plan changes, cancelations and the invoiced
(crypto) flow. Local writes that belong together are committed once.
"""
import logging
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from explorer_api.config import Settings
from explorer_api.errors import (
    BillingProviderFailure,
    Conflict,
    Forbidden,
    InvalidInput,
    NotFound,
    PaymentMethodMissing,
)
from explorer_api.integrations.billing import BillingProvider
from explorer_api.models.explorer import Explorer
from explorer_api.models.explorer_subscription import ExplorerSubscription
from explorer_api.models.stripe_plan import StripePlan
from explorer_api.models.user import User

logger = logging.getLogger(__name__)

SUPPORT_EMAIL = "contact@tryethernal.com"


class SubscriptionService:
    def __init__(self, db: AsyncSession, billing: Optional[BillingProvider], settings: Settings):
        self.db = db
        self.billing = billing
        self.settings = settings

    def _require_billing(self) -> BillingProvider:
        if self.billing is None:
            raise BillingProviderFailure("Stripe is not enabled.")
        return self.billing

    async def get_plan(self, slug: str) -> Optional[StripePlan]:
        result = await self.db.execute(select(StripePlan).where(StripePlan.slug == slug))
        return result.scalar_one_or_none()

    async def get_public_plan(self, slug: str) -> StripePlan:
        plan = await self.get_plan(slug)
        if not plan or not plan.public:
            raise NotFound("Can't find plan.", {"plan": slug})
        return plan

    async def get_plan_by_price(self, price_id: str) -> Optional[StripePlan]:
        result = await self.db.execute(select(StripePlan).where(StripePlan.stripe_price_id == price_id))
        return result.scalar_one_or_none()

    async def list_public_plans(self):
        stmt = select(StripePlan).where(StripePlan.public == True).order_by(StripePlan.price.asc())
        result = await self.db.execute(stmt)
        return result.scalars().all()

    async def attach_default_plan(self, explorer: Explorer) -> ExplorerSubscription:
        """Free subscription on the default plan. Added to the session, not committed."""
        plan = await self.get_plan(self.settings.DEFAULT_PLAN_SLUG)
        if not plan:
            raise NotFound(
                "Can't setup explorer. Make sure the default plan has been seeded (python init_db.py).",
                {"plan": self.settings.DEFAULT_PLAN_SLUG},
            )
        subscription = ExplorerSubscription(explorer_id=explorer.id, stripe_plan_id=plan.id)
        self.db.add(subscription)
        return subscription

    def check_payment_method(self, user: User) -> None:
        if user.crypto_payment_enabled:
            return
        customer = self._require_billing().retrieve_customer(user.stripe_customer_id)
        if not customer.get("default_source"):
            raise PaymentMethodMissing(
                "There doesn't seem to be a payment method associated to your account. "
                "If you never subscribed to an explorer plan, please start your first one using the dashboard. "
                f"You can also reach out to support on Discord or at {SUPPORT_EMAIL}.",
                {"user_id": user.id},
            )

    def create_paid_subscription(self, user: User, explorer_id: int, plan: StripePlan) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "customer": user.stripe_customer_id,
            "items": [{"price": plan.stripe_price_id}],
            "metadata": {"explorerId": explorer_id},
        }
        if user.crypto_payment_enabled:
            params["collection_method"] = "send_invoice"
            params["days_until_due"] = self.settings.CRYPTO_DAYS_UNTIL_DUE
        return self._require_billing().create_subscription(**params)

    async def start_trial(self, user: User, explorer_id: int, plan_slug: Optional[str]) -> ExplorerSubscription:
        if not plan_slug:
            raise InvalidInput("Missing parameter")

        if not user.can_trial:
            raise Forbidden("You've already used your trial.", {"user_id": user.id})

        explorer = await Explorer.find_for_user(self.db, user.id, explorer_id)
        if not explorer:
            raise NotFound("Could not find explorer.", {"explorer_id": explorer_id})

        if explorer.stripe_subscription:
            raise Conflict("This explorer already has a subscription.", {"explorer_id": explorer.id})

        plan = await self.get_plan(plan_slug)
        if not plan:
            raise NotFound("Could not find plan.", {"plan": plan_slug})

        billing = self._require_billing()
        subscription = billing.create_subscription(
            customer=user.stripe_customer_id,
            items=[{"price": plan.stripe_price_id}],
            trial_period_days=self.settings.DEFAULT_EXPLORER_TRIAL_DAYS,
            trial_settings={"end_behavior": {"missing_payment_method": "cancel"}},
            metadata={"explorerId": explorer.id},
        )
        if not subscription:
            raise BillingProviderFailure("Error while starting trial. Please try again.")

        customer = billing.retrieve_customer(subscription["customer"])

        # Subscription row and trial flag go out in the same commit
        explorer_subscription = ExplorerSubscription(
            explorer_id=explorer.id,
            stripe_plan_id=plan.id,
            stripe_id=subscription["id"],
            stripe_subscription={**subscription, "customer": customer},
        )
        self.db.add(explorer_subscription)
        user.can_trial = False
        try:
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            logger.error(
                f"Trial subscription {subscription['id']} created on Stripe but could not be saved "
                f"for explorer {explorer.id}"
            )
            raise

        logger.info(f"Started {plan.slug} trial for explorer {explorer.id}")
        return explorer_subscription

    async def _get_subscribed_explorer(self, user: User, explorer_id: int) -> Explorer:
        explorer = await Explorer.find_for_user(self.db, user.id, explorer_id)
        if not explorer or not explorer.stripe_subscription:
            raise NotFound("Can't find explorer.", {"explorer_id": explorer_id})
        return explorer

    async def change_subscription(self, user: User, explorer_id: int, new_plan_slug: Optional[str]) -> ExplorerSubscription:
        if not new_plan_slug:
            raise InvalidInput("Missing parameters.")

        explorer = await self._get_subscribed_explorer(user, explorer_id)
        current = explorer.stripe_subscription

        if current.stripe_plan.slug != new_plan_slug and current.is_pending_cancelation:
            raise Conflict(
                "Revert plan cancelation before choosing a new plan.",
                {"explorer_id": explorer.id, "plan": new_plan_slug},
            )

        plan = await self.get_public_plan(new_plan_slug)

        snapshot = None
        if current.stripe_id:
            billing = self._require_billing()
            subscription = billing.retrieve_subscription(current.stripe_id, expand=["customer"])
            updated = billing.update_subscription(
                subscription["id"],
                cancel_at_period_end=False,
                proration_behavior="always_invoice",
                items=[{
                    "id": subscription["items"]["data"][0]["id"],
                    "price": plan.stripe_price_id,
                }],
            )
            snapshot = {**(updated or subscription), "customer": subscription.get("customer")}

        if current.is_pending_cancelation:
            current.is_pending_cancelation = False
        else:
            current.stripe_plan_id = plan.id
            current.stripe_plan = plan
            if snapshot:
                current.stripe_subscription = snapshot

        await self.db.commit()
        logger.info(f"Explorer {explorer.id} subscription set to {plan.slug}")
        return current

    async def cancel_subscription(self, user: User, explorer_id: int) -> ExplorerSubscription:
        explorer = await self._get_subscribed_explorer(user, explorer_id)
        current = explorer.stripe_subscription

        if current.stripe_id:
            billing = self._require_billing()
            subscription = billing.retrieve_subscription(current.stripe_id)
            billing.update_subscription(subscription["id"], cancel_at_period_end=True)

        current.is_pending_cancelation = True
        await self.db.commit()
        logger.info(f"Explorer {explorer.id} subscription will cancel at period end")
        return current

    async def start_crypto_subscription(self, user: User, explorer_id: int, plan_slug: Optional[str]) -> None:
        if not plan_slug:
            raise InvalidInput("Missing parameter")

        if not user.crypto_payment_enabled:
            raise Forbidden(
                "Crypto payment is not available for your account. "
                f"Please reach out to {SUPPORT_EMAIL} if you'd like to enable it.",
                {"user_id": user.id},
            )

        explorer = await Explorer.find_for_user(self.db, user.id, explorer_id)
        if not explorer:
            raise NotFound("Can't find explorer.", {"explorer_id": explorer_id})

        plan = await self.get_public_plan(plan_slug)

        # The local row is written when Stripe reports the subscription (webhook)
        self._require_billing().create_subscription(
            customer=user.stripe_customer_id,
            collection_method="send_invoice",
            days_until_due=self.settings.DEFAULT_EXPLORER_TRIAL_DAYS,
            items=[{"price": plan.stripe_price_id}],
            metadata={"explorerId": explorer.id},
        )

    async def sync_from_stripe(self, subscription: Dict[str, Any]) -> Optional[ExplorerSubscription]:
        """Upsert the local row from a `customer.subscription.*` webhook object."""
        explorer_id = (subscription.get("metadata") or {}).get("explorerId")
        if not explorer_id:
            return None

        try:
            explorer_id = int(explorer_id)
        except (TypeError, ValueError):
            raise InvalidInput("Invalid explorerId metadata.", {"subscription": subscription.get("id")})

        explorer = await self.db.get(Explorer, explorer_id, populate_existing=True)
        if not explorer:
            logger.warning(f"Stripe subscription {subscription.get('id')} references unknown explorer {explorer_id}")
            return None

        current = explorer.stripe_subscription
        if subscription.get("status") in ("canceled", "incomplete_expired"):
            if current and current.stripe_id == subscription.get("id"):
                await self.db.delete(current)
                await self.db.commit()
                logger.info(f"Removed subscription of explorer {explorer.id}")
            return None

        items = (subscription.get("items") or {}).get("data") or []
        price_id = items[0]["price"]["id"] if items else None
        plan = await self.get_plan_by_price(price_id) if price_id else None
        if not plan:
            logger.warning(f"No plan matches Stripe price {price_id}")
            return None

        if current is None:
            current = ExplorerSubscription(explorer_id=explorer.id, stripe_plan_id=plan.id)
            self.db.add(current)
        current.stripe_plan_id = plan.id
        current.stripe_plan = plan
        current.stripe_id = subscription.get("id")
        current.is_pending_cancelation = bool(subscription.get("cancel_at_period_end"))
        current.stripe_subscription = subscription
        await self.db.commit()
        return current
