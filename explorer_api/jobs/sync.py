"""
RQ job converging an explorer's PM2 sync process with its desired state.

Enqueued by the explorer routes whenever `should_sync` changes and in bulk by
`/api/explorers/syncExplorers`.
"""
import asyncio
import logging
from typing import Any, Dict

from explorer_api.config import settings
from explorer_api.database import async_session, engine, load_models
from explorer_api.integrations.supervisor import PM2Supervisor, ProcessSupervisor
from explorer_api.models.explorer import Explorer
from explorer_api.services.quota import PlanQuotaEvaluator

logger = logging.getLogger(__name__)

load_models()


async def converge_explorer_process(db, explorer_slug: str, supervisor: ProcessSupervisor, quota=None) -> str:
    """Start or delete the sync process for `explorer_slug`. Returns the action taken."""
    quota = quota or PlanQuotaEvaluator()
    explorer = await Explorer.find_by_slug(db, explorer_slug)
    existing = await supervisor.find(explorer_slug)

    if explorer is None:
        reason = "explorer deleted"
    elif not explorer.stripe_subscription:
        reason = "no active subscription"
    elif await quota.has_reached_transaction_quota(explorer):
        reason = "transaction quota reached"
    elif not explorer.should_sync:
        reason = "sync disabled"
    else:
        reason = None

    if reason:
        if existing:
            await supervisor.delete(explorer_slug)
            logger.info(f"Process {explorer_slug} deleted ({reason})")
            return "deleted"
        return "none"

    if not existing:
        await supervisor.start(explorer_slug, explorer.workspace_id)
        return "started"
    return "none"


async def _run(data: Dict[str, Any]) -> str:
    supervisor = PM2Supervisor(settings.PM2_HOST, settings.PM2_SECRET)
    try:
        async with async_session() as db:
            return await converge_explorer_process(db, data["explorerSlug"], supervisor)
    finally:
        # Each job runs in its own event loop; pooled connections must not outlive it
        await engine.dispose()


def update_explorer_syncing_process(data: Dict[str, Any]) -> str:
    if not data.get("explorerSlug"):
        raise ValueError("Missing parameter: explorerSlug")
    return asyncio.run(_run(data))
