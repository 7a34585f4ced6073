from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, Response
from pydantic import BaseModel

from explorer_api.api.deps import (
    get_current_user,
    get_explorer_service,
    get_subscription_service,
    get_supervisor,
    require_billing,
    verify_secret,
)
from explorer_api.api.errors import handle_errors
from explorer_api.integrations.supervisor import ProcessSupervisor
from explorer_api.models.user import User
from explorer_api.services.explorers import ExplorerService
from explorer_api.services.subscriptions import SubscriptionService

router = APIRouter()

# --- Pydantic Models ---
# Fields are optional so missing parameters surface as our own 400 messages.
class ExplorerCreate(BaseModel):
    workspace_id: Optional[int] = None
    rpc_server: Optional[str] = None
    name: Optional[str] = None
    tracing: Optional[str] = None
    plan: Optional[str] = None

class TrialRequest(BaseModel):
    stripe_plan_slug: Optional[str] = None

class SubscriptionUpdate(BaseModel):
    new_stripe_plan_slug: Optional[str] = None

class CryptoSubscriptionRequest(BaseModel):
    stripe_plan_slug: Optional[str] = None

class DomainCreate(BaseModel):
    domain: Optional[str] = None

class BrandingUpdate(BaseModel):
    light: Optional[Dict[str, Any]] = None
    dark: Optional[Dict[str, Any]] = None
    font: Optional[str] = None
    logo: Optional[str] = None
    favicon: Optional[str] = None
    banner: Optional[str] = None
    links: Optional[List[Dict[str, Any]]] = None

class SettingsUpdate(BaseModel):
    workspace: Optional[str] = None
    name: Optional[str] = None
    slug: Optional[str] = None
    domain: Optional[str] = None
    token: Optional[str] = None
    total_supply: Optional[str] = None
    l1_explorer: Optional[str] = None

SUCCESS = {"status": "success"}

# --- Public & internal routes ---
@router.get("/search")
async def search_explorer(
    domain: Optional[str] = Query(None),
    service: ExplorerService = Depends(get_explorer_service),
):
    with handle_errors("get.api.explorers.search", domain=domain):
        explorer = await service.public_lookup(domain)
    if explorer is None:
        return Response(status_code=200)
    return {"explorer": explorer}

@router.post("/syncExplorers", dependencies=[Depends(verify_secret)])
async def sync_explorers(service: ExplorerService = Depends(get_explorer_service)):
    with handle_errors("post.api.explorers.syncExplorers"):
        count = await service.sync_all()
    return {"status": "success", "enqueued": count}

@router.get("/plans", dependencies=[Depends(require_billing)])
async def get_plans(
    current_user: User = Depends(get_current_user),
    service: SubscriptionService = Depends(get_subscription_service),
):
    with handle_errors("get.api.explorers.plans", user_id=current_user.id):
        plans = await service.list_public_plans()
    return [plan.to_dict() for plan in plans]

# --- Explorers ---
@router.post("/")
async def create_explorer(
    payload: ExplorerCreate,
    start_subscription: bool = Query(False, alias="startSubscription"),
    current_user: User = Depends(get_current_user),
    service: ExplorerService = Depends(get_explorer_service),
):
    data = payload.model_dump()
    with handle_errors("post.api.explorers", user_id=current_user.id, data=data):
        explorer = await service.create(current_user, data, start_subscription=start_subscription)
    return explorer.to_dict()

@router.get("/")
async def list_explorers(
    page: int = Query(1, ge=1),
    items_per_page: int = Query(10, ge=1, le=100, alias="itemsPerPage"),
    order: str = Query("desc"),
    order_by: str = Query("id", alias="orderBy"),
    current_user: User = Depends(get_current_user),
    service: ExplorerService = Depends(get_explorer_service),
):
    with handle_errors("get.api.explorers", user_id=current_user.id):
        return await service.list(current_user, page, items_per_page, order, order_by)

@router.get("/{explorer_id}")
async def get_explorer(
    explorer_id: int,
    current_user: User = Depends(get_current_user),
    service: ExplorerService = Depends(get_explorer_service),
):
    with handle_errors("get.api.explorers.id", user_id=current_user.id, explorer_id=explorer_id):
        explorer = await service.get(current_user, explorer_id)
    return explorer.to_dict()

@router.delete("/{explorer_id}")
async def delete_explorer(
    explorer_id: int,
    current_user: User = Depends(get_current_user),
    service: ExplorerService = Depends(get_explorer_service),
):
    with handle_errors("delete.api.explorers.id", user_id=current_user.id, explorer_id=explorer_id):
        await service.delete(current_user, explorer_id)
    return SUCCESS

# --- Sync ---
@router.put("/{explorer_id}/stopSync")
async def stop_sync(
    explorer_id: int,
    current_user: User = Depends(get_current_user),
    service: ExplorerService = Depends(get_explorer_service),
):
    # The sync job converges the process; clients poll syncStatus for the new state
    with handle_errors("put.api.explorers.id.stopSync", user_id=current_user.id, explorer_id=explorer_id):
        await service.stop_sync(current_user, explorer_id)
    return SUCCESS

@router.put("/{explorer_id}/startSync")
async def start_sync(
    explorer_id: int,
    current_user: User = Depends(get_current_user),
    service: ExplorerService = Depends(get_explorer_service),
):
    with handle_errors("put.api.explorers.id.startSync", user_id=current_user.id, explorer_id=explorer_id):
        await service.start_sync(current_user, explorer_id)
    return SUCCESS

@router.get("/{explorer_id}/syncStatus")
async def sync_status(
    explorer_id: int,
    current_user: User = Depends(get_current_user),
    service: ExplorerService = Depends(get_explorer_service),
    supervisor: ProcessSupervisor = Depends(get_supervisor),
):
    with handle_errors("get.api.explorers.id.syncStatus", user_id=current_user.id, explorer_id=explorer_id):
        status = await service.sync_status(current_user, explorer_id, supervisor)
    return {"status": status}

# --- Subscriptions ---
@router.post("/{explorer_id}/startTrial")
async def start_trial(
    explorer_id: int,
    payload: TrialRequest,
    current_user: User = Depends(get_current_user),
    service: SubscriptionService = Depends(get_subscription_service),
):
    with handle_errors("post.api.explorers.startTrial", user_id=current_user.id, explorer_id=explorer_id):
        await service.start_trial(current_user, explorer_id, payload.stripe_plan_slug)
    return SUCCESS

@router.put("/{explorer_id}/subscription", dependencies=[Depends(require_billing)])
async def update_subscription(
    explorer_id: int,
    payload: SubscriptionUpdate,
    current_user: User = Depends(get_current_user),
    service: SubscriptionService = Depends(get_subscription_service),
):
    with handle_errors(
        "put.api.explorers.id.updateSubscription",
        user_id=current_user.id,
        explorer_id=explorer_id,
        data=payload.model_dump(),
    ):
        await service.change_subscription(current_user, explorer_id, payload.new_stripe_plan_slug)
    return SUCCESS

@router.delete("/{explorer_id}/subscription", dependencies=[Depends(require_billing)])
async def cancel_subscription(
    explorer_id: int,
    current_user: User = Depends(get_current_user),
    service: SubscriptionService = Depends(get_subscription_service),
):
    with handle_errors("delete.api.explorers.id.cancelSubscription", user_id=current_user.id, explorer_id=explorer_id):
        await service.cancel_subscription(current_user, explorer_id)
    return SUCCESS

@router.post("/{explorer_id}/cryptoSubscription", dependencies=[Depends(require_billing)])
async def start_crypto_subscription(
    explorer_id: int,
    payload: CryptoSubscriptionRequest,
    current_user: User = Depends(get_current_user),
    service: SubscriptionService = Depends(get_subscription_service),
):
    with handle_errors(
        "post.api.explorers.id.startCryptoSubscription",
        user_id=current_user.id,
        explorer_id=explorer_id,
        data=payload.model_dump(),
    ):
        await service.start_crypto_subscription(current_user, explorer_id, payload.stripe_plan_slug)
    return SUCCESS

# --- Customization ---
@router.post("/{explorer_id}/domains")
async def create_domain(
    explorer_id: int,
    payload: DomainCreate,
    current_user: User = Depends(get_current_user),
    service: ExplorerService = Depends(get_explorer_service),
):
    with handle_errors("post.api.explorers.id.domains", user_id=current_user.id, explorer_id=explorer_id, domain=payload.domain):
        await service.create_domain(current_user, explorer_id, payload.domain)
    return SUCCESS

@router.post("/{explorer_id}/branding")
async def update_branding(
    explorer_id: int,
    payload: BrandingUpdate,
    current_user: User = Depends(get_current_user),
    service: ExplorerService = Depends(get_explorer_service),
):
    with handle_errors("post.api.explorers.id.branding", user_id=current_user.id, explorer_id=explorer_id):
        await service.update_branding(current_user, explorer_id, payload.model_dump())
    return SUCCESS

@router.post("/{explorer_id}/settings")
async def update_settings(
    explorer_id: int,
    payload: SettingsUpdate,
    current_user: User = Depends(get_current_user),
    service: ExplorerService = Depends(get_explorer_service),
):
    data = payload.model_dump()
    with handle_errors("post.api.explorers.settings", user_id=current_user.id, explorer_id=explorer_id, data=data):
        await service.update_settings(current_user, explorer_id, data)
    return SUCCESS
