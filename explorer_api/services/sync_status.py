from explorer_api.integrations.supervisor import ProcessSupervisor
from explorer_api.services.quota import QuotaEvaluator

UNREACHABLE = "unreachable"
TRANSACTION_QUOTA_REACHED = "transactionQuotaReached"
STOPPED = "stopped"


def rpc_is_unreachable(explorer) -> bool:
    health_check = explorer.workspace.rpc_health_check if explorer.workspace else None
    return bool(health_check and not health_check.is_reachable)


async def resolve_sync_status(explorer, quota: QuotaEvaluator, supervisor: ProcessSupervisor) -> str:
    # Order matters: health check, then quota, then the supervisor.
    # The evaluator is not consulted for unreachable explorers.
    if rpc_is_unreachable(explorer):
        return UNREACHABLE
    if await quota.has_reached_transaction_quota(explorer):
        return TRANSACTION_QUOTA_REACHED
    status = await supervisor.find(explorer.slug)
    return status or STOPPED
