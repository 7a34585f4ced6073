from functools import lru_cache
from typing import Optional

from fastapi import Depends, Header, HTTPException, Query, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from explorer_api.config import Settings, settings
from explorer_api.database import async_session
from explorer_api.integrations.billing import BillingProvider, StripeBillingProvider
from explorer_api.integrations.queue import JobQueue, RQJobQueue
from explorer_api.integrations.rpc import ProviderConnector
from explorer_api.integrations.supervisor import PM2Supervisor, ProcessSupervisor
from explorer_api.models.user import User
from explorer_api.security import ALGORITHM, SECRET_KEY
from explorer_api.services.explorers import ExplorerService
from explorer_api.services.quota import PlanQuotaEvaluator, QuotaEvaluator
from explorer_api.services.subscriptions import SubscriptionService

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/token")

class TokenData(BaseModel):
    sub: Optional[str] = None

async def get_db():
    async with async_session() as session:
        yield session

def get_settings() -> Settings:
    return settings

async def get_current_user(token: str = Depends(oauth2_scheme), db: AsyncSession = Depends(get_db)) -> User:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    user = None
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        token_data = TokenData(sub=payload.get("sub"))
        if token_data.sub is None:
            raise credentials_exception
        user = await User.find_by_auth_id(db, token_data.sub)
    except JWTError:
        # Not a JWT, try it as an API key
        user = await User.find_by_api_key(db, token)

    if user is None:
        raise credentials_exception
    return user

def get_billing(app_settings: Settings = Depends(get_settings)) -> Optional[BillingProvider]:
    if not app_settings.billing_enabled():
        return None
    return StripeBillingProvider(app_settings.STRIPE_SECRET_KEY, app_settings.STRIPE_WEBHOOK_SECRET)

def require_billing(billing: Optional[BillingProvider] = Depends(get_billing)) -> BillingProvider:
    if billing is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Stripe is not enabled.")
    return billing

@lru_cache
def _rq_queue(redis_url: str) -> RQJobQueue:
    return RQJobQueue(redis_url)

def get_queue(app_settings: Settings = Depends(get_settings)) -> JobQueue:
    return _rq_queue(app_settings.REDIS_URL)

def get_supervisor(app_settings: Settings = Depends(get_settings)) -> ProcessSupervisor:
    return PM2Supervisor(app_settings.PM2_HOST, app_settings.PM2_SECRET)

def get_rpc_factory():
    return ProviderConnector

def get_quota_evaluator() -> QuotaEvaluator:
    return PlanQuotaEvaluator()

def verify_secret(
    secret: Optional[str] = Query(None),
    x_secret: Optional[str] = Header(None),
    app_settings: Settings = Depends(get_settings),
):
    provided = secret or x_secret
    if not app_settings.SECRET or provided != app_settings.SECRET:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid secret")

def get_subscription_service(
    db: AsyncSession = Depends(get_db),
    billing: Optional[BillingProvider] = Depends(get_billing),
    app_settings: Settings = Depends(get_settings),
) -> SubscriptionService:
    return SubscriptionService(db, billing, app_settings)

def get_explorer_service(
    db: AsyncSession = Depends(get_db),
    billing: Optional[BillingProvider] = Depends(get_billing),
    queue: JobQueue = Depends(get_queue),
    rpc_factory=Depends(get_rpc_factory),
    quota: QuotaEvaluator = Depends(get_quota_evaluator),
    app_settings: Settings = Depends(get_settings),
) -> ExplorerService:
    return ExplorerService(
        db,
        app_settings,
        billing=billing,
        queue=queue,
        rpc_factory=rpc_factory,
        quota=quota,
    )
