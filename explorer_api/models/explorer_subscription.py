from sqlalchemy import Column, String, Integer, Boolean, ForeignKey, DateTime, func, JSON
from sqlalchemy.orm import relationship
from explorer_api.database import Base

class ExplorerSubscription(Base):
    __tablename__ = "explorer_subscriptions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    explorer_id = Column(Integer, ForeignKey("explorers.id", ondelete="CASCADE"), nullable=False, unique=True)
    stripe_plan_id = Column(Integer, ForeignKey("stripe_plans.id"), nullable=False)
    stripe_id = Column(String, nullable=True, index=True)
    is_pending_cancelation = Column(Boolean, nullable=False, default=False)
    stripe_subscription = Column(JSON, nullable=True)  # Last known Stripe object, customer expanded
    transaction_quota = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    explorer = relationship("Explorer", back_populates="stripe_subscription")
    stripe_plan = relationship("StripePlan", lazy="joined")

    def has_reached_transaction_quota(self) -> bool:
        tx_limit = (self.stripe_plan.capabilities or {}).get("txLimit") if self.stripe_plan else None
        if not tx_limit or tx_limit <= 0:
            return False
        return (self.transaction_quota or 0) >= tx_limit

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "stripe_id": self.stripe_id,
            "is_pending_cancelation": self.is_pending_cancelation,
            "transaction_quota": self.transaction_quota,
            "stripe_plan": self.stripe_plan.to_dict() if self.stripe_plan else None,
        }
