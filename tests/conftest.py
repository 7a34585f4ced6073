"""
Shared fixtures: in-memory database, fake collaborators and an HTTP client
wired to the app through dependency overrides.
"""
import asyncio
import json
import os

# Settings are read at import time, configure them before importing the app
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["SECRET"] = "internal-secret"
os.environ["APP_DOMAIN"] = "tryethernal.com"
os.environ["DEFAULT_PLAN_SLUG"] = "self-hosted"
os.environ.pop("STRIPE_SECRET_KEY", None)

import httpx
import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.future import select
from sqlalchemy.pool import StaticPool

from explorer_api.api import deps
from explorer_api.config import settings
from explorer_api.database import Base
from explorer_api.main import app
from explorer_api.models.explorer import Explorer
from explorer_api.models.explorer_subscription import ExplorerSubscription
from explorer_api.models.stripe_plan import StripePlan
from explorer_api.models.user import User
from explorer_api.models.workspace import RpcHealthCheck, Workspace


# ============================================================================
# FAKE COLLABORATORS
# ============================================================================

class FakeBilling:
    """Records every call; returns Stripe-shaped dicts."""

    def __init__(self, default_source="card_1"):
        self.calls = []
        self.customer = {"id": "cus_1", "default_source": default_source}
        self.subscriptions = {}

    def called(self, name):
        return [params for method, params in self.calls if method == name]

    def create_subscription(self, **params):
        self.calls.append(("create_subscription", params))
        subscription_id = f"sub_{len(self.subscriptions) + 1}"
        subscription = {
            "id": subscription_id,
            "customer": params.get("customer"),
            "status": "trialing" if "trial_period_days" in params else "active",
            "items": {"data": [{"id": f"si_{subscription_id}", "price": {"id": params["items"][0]["price"]}}]},
            "metadata": params.get("metadata", {}),
        }
        self.subscriptions[subscription_id] = subscription
        return subscription

    def retrieve_subscription(self, subscription_id, expand=None):
        self.calls.append(("retrieve_subscription", {"id": subscription_id, "expand": expand}))
        return self.subscriptions.get(subscription_id) or {
            "id": subscription_id,
            "customer": self.customer,
            "status": "active",
            "items": {"data": [{"id": "si_1", "price": {"id": "price_old"}}]},
        }

    def update_subscription(self, subscription_id, **params):
        self.calls.append(("update_subscription", {"id": subscription_id, **params}))
        return {"id": subscription_id, "status": "active", **params}

    def retrieve_customer(self, customer_id):
        self.calls.append(("retrieve_customer", {"id": customer_id}))
        return dict(self.customer)

    def construct_event(self, payload, signature):
        return json.loads(payload)


class FakeConnector:
    """Stands in for ProviderConnector; call it with the RPC url like the class."""

    def __init__(self, network_id="1", error=None, delay=None):
        self.network_id = network_id
        self.error = error
        self.delay = delay
        self.servers = []

    def __call__(self, server):
        self.servers.append(server)
        return self

    async def fetch_network_id(self):
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.network_id


class FakeSupervisor:
    def __init__(self, processes=None):
        self.processes = dict(processes or {})
        self.started = []
        self.deleted = []

    async def find(self, name):
        return self.processes.get(name)

    async def start(self, name, workspace_id):
        self.started.append((name, workspace_id))
        self.processes[name] = "online"

    async def delete(self, name):
        self.deleted.append(name)
        self.processes.pop(name, None)


class FakeQueue:
    def __init__(self):
        self.jobs = []
        self.bulk = []

    def enqueue(self, queue_name, job_name, data):
        self.jobs.append((queue_name, job_name, data))

    def bulk_enqueue(self, queue_name, jobs):
        self.bulk.append((queue_name, jobs))


# ============================================================================
# DATABASE FIXTURES
# ============================================================================

@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db(engine):
    session_factory = async_sessionmaker(engine, expire_on_commit=False)
    async with session_factory() as session:
        yield session


# ============================================================================
# COLLABORATOR FIXTURES
# ============================================================================

@pytest.fixture
def billing():
    return FakeBilling()


@pytest.fixture
def connector():
    return FakeConnector()


@pytest.fixture
def supervisor():
    return FakeSupervisor()


@pytest.fixture
def queue():
    return FakeQueue()


@pytest.fixture
def test_settings():
    """Billing disabled."""
    return settings.model_copy(update={"STRIPE_SECRET_KEY": None, "RPC_TIMEOUT_SECONDS": 0.5})


# ============================================================================
# DATA FIXTURES
# ============================================================================

@pytest.fixture
async def user(db):
    user = User(
        firebase_user_id="firebase-1",
        email="owner@example.com",
        api_key="api-key-1",
        stripe_customer_id="cus_1",
    )
    db.add(user)
    await db.commit()
    return user


@pytest.fixture
async def other_user(db):
    user = User(firebase_user_id="firebase-2", email="other@example.com", stripe_customer_id="cus_2")
    db.add(user)
    await db.commit()
    return user


@pytest.fixture
async def plans(db):
    plans = {
        "self-hosted": StripePlan(slug="self-hosted", name="Self Hosted", public=False, price=0, capabilities={
            "nativeToken": True, "totalSupply": True, "branding": True, "customDomain": True,
        }),
        "explorer-150": StripePlan(
            slug="explorer-150", name="Team", public=True, price=150, stripe_price_id="price_150",
            capabilities={"nativeToken": True, "totalSupply": False, "branding": False, "customDomain": False, "txLimit": 100000},
        ),
        "explorer-500": StripePlan(
            slug="explorer-500", name="App Chain", public=True, price=500, stripe_price_id="price_500",
            capabilities={"nativeToken": True, "totalSupply": True, "branding": True, "customDomain": True},
        ),
        "legacy": StripePlan(slug="legacy", name="Legacy", public=False, price=50, stripe_price_id="price_legacy"),
    }
    db.add_all(plans.values())
    await db.commit()
    return plans


@pytest.fixture
def make_workspace(db):
    async def _make(owner, name="My Workspace", rpc_server="https://rpc.example.com", reachable=None):
        workspace = Workspace(
            user_id=owner.id,
            name=name,
            rpc_server=rpc_server,
            network_id="1",
            rpc_health_check=RpcHealthCheck(is_reachable=reachable) if reachable is not None else None,
        )
        db.add(workspace)
        await db.commit()
        return workspace
    return _make


@pytest.fixture
def make_explorer(db, make_workspace):
    async def _make(
        owner,
        slug="my-explorer",
        plan=None,
        stripe_id=None,
        pending_cancelation=False,
        transaction_quota=0,
        reachable=None,
    ):
        workspace = await make_workspace(owner, name=f"{slug}-workspace", reachable=reachable)
        subscription = None
        if plan is not None:
            subscription = ExplorerSubscription(
                stripe_plan=plan,
                stripe_id=stripe_id,
                is_pending_cancelation=pending_cancelation,
                transaction_quota=transaction_quota,
            )
        explorer = Explorer(
            user_id=owner.id,
            workspace=workspace,
            name=slug,
            slug=slug,
            rpc_server=workspace.rpc_server,
            chain_id=workspace.network_id,
            token="MYT",
            total_supply="1000000",
            themes={"light": {"primary": "#000"}},
            stripe_subscription=subscription,
        )
        db.add(explorer)
        await db.commit()
        return await reload_explorer(db, explorer.id)
    return _make


async def reload_explorer(db, explorer_id):
    stmt = select(Explorer).where(Explorer.id == explorer_id).execution_options(populate_existing=True)
    return (await db.execute(stmt)).scalar_one_or_none()


@pytest.fixture
def reload(db):
    async def _reload(explorer_id):
        return await reload_explorer(db, explorer_id)
    return _reload


# ============================================================================
# HTTP FIXTURES
# ============================================================================

@pytest.fixture
def override(db, user, billing, connector, supervisor, queue, test_settings):
    """Wire the app to the test session and fakes; returns a dict tests can tweak."""
    current = {"user": user, "billing": None, "settings": test_settings}

    async def _get_db():
        yield db

    app.dependency_overrides[deps.get_db] = _get_db
    app.dependency_overrides[deps.get_current_user] = lambda: current["user"]
    app.dependency_overrides[deps.get_settings] = lambda: current["settings"]
    app.dependency_overrides[deps.get_billing] = lambda: current["billing"]
    app.dependency_overrides[deps.get_queue] = lambda: queue
    app.dependency_overrides[deps.get_supervisor] = lambda: supervisor
    app.dependency_overrides[deps.get_rpc_factory] = lambda: connector

    def enable_billing():
        current["billing"] = billing
        current["settings"] = current["settings"].model_copy(update={"STRIPE_SECRET_KEY": "sk_test_123"})

    current["enable_billing"] = enable_billing
    yield current
    app.dependency_overrides.clear()


@pytest.fixture
async def client(override):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
