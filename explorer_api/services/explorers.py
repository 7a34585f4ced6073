"""
Explorer lifecycle: creation, sync desired-state, domains, branding,
settings, deletion and public lookup.

Sync start/stop only flips `Explorer.should_sync`; the
`updateExplorerSyncingProcess` job converges the actual process.
"""
import logging
from typing import Any, Callable, Dict, Optional

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from explorer_api.config import Settings
from explorer_api.errors import (
    Conflict,
    Inactive,
    InvalidInput,
    NoActiveSubscription,
    NotFound,
    QuotaExceeded,
    UpstreamUnreachable,
)
from explorer_api.integrations.billing import BillingProvider
from explorer_api.integrations.queue import JobQueue
from explorer_api.integrations.rpc import ProviderConnector, with_timeout
from explorer_api.integrations.supervisor import ProcessSupervisor
from explorer_api.models.explorer import Explorer, ExplorerDomain
from explorer_api.models.user import User
from explorer_api.models.workspace import Workspace
from explorer_api.services.quota import PlanQuotaEvaluator, QuotaEvaluator
from explorer_api.services.subscriptions import SubscriptionService
from explorer_api.services.sync_status import resolve_sync_status
from explorer_api.utils.helpers import random_suffix, sanitize, slugify

logger = logging.getLogger(__name__)

SYNC_QUEUE = "updateExplorerSyncingProcess"
UNREACHABLE_RPC_MESSAGE = "Our servers can't query this rpc, please use a rpc that is reachable from the internet."
ORDERABLE_FIELDS = {"id", "name", "slug", "created_at"}
THEME_FIELDS = ("light", "dark", "font", "logo", "favicon", "banner", "links")


class ExplorerService:
    def __init__(
        self,
        db: AsyncSession,
        settings: Settings,
        billing: Optional[BillingProvider] = None,
        queue: Optional[JobQueue] = None,
        rpc_factory: Callable[[str], Any] = ProviderConnector,
        quota: Optional[QuotaEvaluator] = None,
    ):
        self.db = db
        self.settings = settings
        self.billing = billing
        self.queue = queue
        self.rpc_factory = rpc_factory
        self.quota = quota or PlanQuotaEvaluator()
        self.subscriptions = SubscriptionService(db, billing, settings)

    # --- Helpers ---

    async def _get_explorer(self, user: User, explorer_id: int, message: str = "Could not find explorer.") -> Explorer:
        explorer = await Explorer.find_for_user(self.db, user.id, explorer_id)
        if not explorer:
            raise NotFound(message, {"explorer_id": explorer_id})
        return explorer

    async def _reload(self, explorer_id: int) -> Explorer:
        stmt = select(Explorer).where(Explorer.id == explorer_id).execution_options(populate_existing=True)
        result = await self.db.execute(stmt)
        return result.scalar_one()

    async def _fetch_network_id(self, rpc_server: str):
        provider = self.rpc_factory(rpc_server)
        return await with_timeout(provider.fetch_network_id(), self.settings.RPC_TIMEOUT_SECONDS)

    async def _unique_slug(self, name: str) -> str:
        base = slugify(name)
        slug = base
        while await Explorer.find_by_slug(self.db, slug):
            slug = f"{base}-{random_suffix()}"
        return slug

    def _enqueue_sync_update(self, explorer: Explorer) -> None:
        if self.queue is None:
            logger.warning(f"No job queue configured, explorer {explorer.slug} will converge on next bulk sync")
            return
        try:
            self.queue.enqueue(SYNC_QUEUE, f"{SYNC_QUEUE}-{explorer.id}", {"explorerSlug": explorer.slug})
        except Exception as e:
            # should_sync is already persisted; the next bulk sync picks it up
            logger.error(f"Could not enqueue sync update for explorer {explorer.slug}: {e}")

    # --- Creation ---

    async def create(self, user: User, data: Dict[str, Any], start_subscription: bool = False) -> Explorer:
        workspace_id = data.get("workspace_id")
        rpc_server = data.get("rpc_server")
        name = data.get("name")

        if not workspace_id and not (rpc_server and name):
            raise InvalidInput("Missing parameters.")

        if workspace_id:
            workspace = await self.db.get(Workspace, workspace_id, populate_existing=True)
            if not workspace or workspace.user_id != user.id:
                raise NotFound("Invalid workspace.", {"workspace_id": workspace_id})

            if workspace.explorer:
                raise Conflict("This workspace already has an explorer.", {"workspace_id": workspace.id})

            try:
                await self._fetch_network_id(workspace.rpc_server)
            except Exception as e:
                logger.warning(f"RPC probe failed for workspace {workspace.id}: {e!r}")
                raise UpstreamUnreachable(UNREACHABLE_RPC_MESSAGE, {"rpc_server": workspace.rpc_server})
        else:
            if await Workspace.find_by_name(self.db, user.id, name):
                raise Conflict("A workspace with this name already exists.", {"name": name})

            try:
                network_id = await self._fetch_network_id(rpc_server)
            except Exception as e:
                logger.warning(f"RPC probe failed for {rpc_server}: {e!r}")
                network_id = None

            if not network_id:
                raise UpstreamUnreachable(UNREACHABLE_RPC_MESSAGE, {"rpc_server": rpc_server})

            workspace = None

        plan = None
        try:
            if workspace is None:
                workspace = await user.safe_create_workspace(self.db, {
                    "name": name,
                    "network_id": network_id,
                    "rpc_server": rpc_server,
                    "tracing": data.get("tracing"),
                    "data_retention_limit": user.default_data_retention_limit,
                })

            explorer = Explorer(
                user_id=user.id,
                workspace_id=workspace.id,
                name=workspace.name,
                slug=await self._unique_slug(workspace.name),
                chain_id=workspace.network_id,
                rpc_server=workspace.rpc_server,
            )
            self.db.add(explorer)
            await self.db.flush()

            if not self.settings.billing_enabled() or user.can_use_demo_plan:
                await self.subscriptions.attach_default_plan(explorer)
            elif start_subscription:
                if not data.get("plan"):
                    raise InvalidInput("Missing plan parameter.")
                plan = await self.subscriptions.get_public_plan(data["plan"])
                self.subscriptions.check_payment_method(user)

            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        if plan:
            # Local subscription row is created when Stripe reports it (webhook)
            self.subscriptions.create_paid_subscription(user, explorer.id, plan)

        logger.info(f"Created explorer {explorer.slug} for user {user.id}")
        return await self._reload(explorer.id)

    # --- Reads ---

    async def get(self, user: User, explorer_id: int) -> Explorer:
        return await self._get_explorer(user, explorer_id)

    async def list(
        self,
        user: User,
        page: int = 1,
        items_per_page: int = 10,
        order: str = "desc",
        order_by: str = "id",
    ) -> Dict[str, Any]:
        column = getattr(Explorer, order_by if order_by in ORDERABLE_FIELDS else "id")
        stmt = (
            select(Explorer)
            .where(Explorer.user_id == user.id)
            .order_by(column.asc() if order == "asc" else column.desc())
            .offset((max(page, 1) - 1) * items_per_page)
            .limit(items_per_page)
        )
        explorers = (await self.db.execute(stmt)).scalars().all()
        total = (await self.db.execute(
            select(func.count()).select_from(Explorer).where(Explorer.user_id == user.id)
        )).scalar_one()
        return {"items": [explorer.to_dict() for explorer in explorers], "total": total}

    # --- Sync ---

    async def stop_sync(self, user: User, explorer_id: int) -> None:
        explorer = await self._get_explorer(user, explorer_id, "Couldn't find explorer.")
        explorer.should_sync = False
        await self.db.commit()
        self._enqueue_sync_update(explorer)

    async def start_sync(self, user: User, explorer_id: int) -> None:
        explorer = await self._get_explorer(user, explorer_id, "Couldn't find explorer.")

        if not explorer.stripe_subscription:
            raise NoActiveSubscription("No active subscription for this explorer.", {"explorer_id": explorer.id})

        if await self.quota.has_reached_transaction_quota(explorer):
            raise QuotaExceeded(
                "Transaction quota reached. Upgrade your plan to resume sync.",
                {"explorer_id": explorer.id},
            )

        try:
            await self._fetch_network_id(explorer.workspace.rpc_server)
        except Exception as e:
            logger.warning(f"RPC probe failed for explorer {explorer.slug}: {e!r}")
            raise UpstreamUnreachable(
                "This explorer's RPC is not reachable. Please update it in order to start syncing.",
                {"explorer_id": explorer.id},
            )

        explorer.should_sync = True
        await self.db.commit()
        self._enqueue_sync_update(explorer)

    async def sync_status(self, user: User, explorer_id: int, supervisor: ProcessSupervisor) -> str:
        explorer = await self._get_explorer(user, explorer_id, "Can't find explorer.")
        return await resolve_sync_status(explorer, self.quota, supervisor)

    async def sync_all(self) -> int:
        explorers = (await self.db.execute(select(Explorer.id, Explorer.slug))).all()
        jobs = [
            {"name": f"{SYNC_QUEUE}-{explorer_id}", "data": {"explorerSlug": slug}}
            for explorer_id, slug in explorers
        ]
        if jobs:
            self.queue.bulk_enqueue(SYNC_QUEUE, jobs)
        return len(jobs)

    # --- Mutations ---

    async def delete(self, user: User, explorer_id: int) -> None:
        explorer = await self._get_explorer(user, explorer_id)
        await self.db.delete(explorer)
        await self.db.commit()
        logger.info(f"Deleted explorer {explorer.slug}")

    def _reject_app_domain(self, domain: str):
        app_domain = self.settings.APP_DOMAIN
        if domain.endswith(app_domain):
            raise Conflict(
                f"You can only have one {app_domain} domain. If you'd like a different one, "
                'update the "Ethernal Domain" field, in the "Settings" panel.',
                {"domain": domain},
            )

    async def create_domain(self, user: User, explorer_id: int, domain: Optional[str]) -> ExplorerDomain:
        if not domain:
            raise InvalidInput("Missing parameter")

        self._reject_app_domain(domain)

        explorer = await self._get_explorer(user, explorer_id)

        existing = await self.db.execute(select(ExplorerDomain).where(ExplorerDomain.domain == domain))
        if existing.scalar_one_or_none():
            raise Conflict("This domain is already in use.", {"domain": domain})

        explorer_domain = ExplorerDomain(explorer_id=explorer.id, domain=domain)
        self.db.add(explorer_domain)
        await self.db.commit()
        return explorer_domain

    async def update_branding(self, user: User, explorer_id: int, data: Dict[str, Any]) -> Explorer:
        explorer = await self._get_explorer(user, explorer_id)
        themes = dict(explorer.themes or {})
        themes.pop("default", None)
        themes.update(sanitize({field: data.get(field) for field in THEME_FIELDS}))
        explorer.themes = themes or {"default": {}}
        await self.db.commit()
        return explorer

    async def update_settings(self, user: User, explorer_id: int, data: Dict[str, Any]) -> Explorer:
        explorer = await self._get_explorer(user, explorer_id)
        if not explorer.workspace:
            raise NotFound("Could not find explorer.", {"explorer_id": explorer_id})

        if data.get("domain"):
            self._reject_app_domain(data["domain"])

        workspace_name = data.get("workspace")
        if workspace_name and workspace_name != explorer.workspace.name:
            workspace = await Workspace.find_by_name(self.db, user.id, workspace_name)
            if not workspace:
                raise InvalidInput("Invalid workspace.", {"workspace": workspace_name})
            if workspace.explorer:
                raise Conflict("This workspace already has an explorer.", {"workspace": workspace_name})

            explorer.workspace = workspace
            explorer.rpc_server = workspace.rpc_server
            explorer.chain_id = workspace.network_id

        slug = slugify(data["slug"]) if data.get("slug") else None
        if slug and slug != explorer.slug:
            if await Explorer.find_by_slug(self.db, slug):
                raise Conflict("This slug is already taken.", {"slug": slug})
            explorer.slug = slug

        for field in ("name", "domain", "token", "total_supply", "l1_explorer"):
            if data.get(field) is not None:
                setattr(explorer, field, data[field])

        await self.db.commit()
        return await self._reload(explorer.id)

    # --- Public ---

    async def public_lookup(self, domain: Optional[str]) -> Optional[Dict[str, Any]]:
        if not domain:
            raise InvalidInput("Missing parameters.")

        app_domain = self.settings.APP_DOMAIN
        if domain == f"app.{app_domain}":
            return None

        explorer = None
        if domain.endswith(app_domain):
            slug = domain.split(f".{app_domain}")[0]
            explorer = await Explorer.find_by_slug(self.db, slug)

        if not explorer:
            explorer = await Explorer.find_by_domain(self.db, domain)
            # Custom domains only resolve on plans that include them
            if explorer and not (
                explorer.stripe_subscription and explorer.stripe_subscription.stripe_plan.has_capability("customDomain")
            ):
                explorer = None

        if not explorer:
            raise NotFound("Couldn't find explorer.", {"domain": domain})

        if not explorer.stripe_subscription:
            raise Inactive("This explorer is not active.", {"domain": domain})

        plan = explorer.stripe_subscription.stripe_plan
        params = explorer.to_public_dict()
        if not plan.has_capability("nativeToken"):
            params["token"] = "ether"
        if not plan.has_capability("totalSupply"):
            params.pop("total_supply", None)
        if not plan.has_capability("branding"):
            params["themes"] = {"default": {}}
        return params
