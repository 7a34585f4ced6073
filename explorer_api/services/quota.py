from typing import Protocol


class QuotaEvaluator(Protocol):
    async def has_reached_transaction_quota(self, explorer) -> bool:
        ...


class PlanQuotaEvaluator:
    """Compares the transactions synced this period against the plan's `txLimit` capability."""

    async def has_reached_transaction_quota(self, explorer) -> bool:
        return explorer.has_reached_transaction_quota()
