from sqlalchemy import Column, String, Integer, Boolean, DateTime, func, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import relationship, selectinload
from explorer_api.database import Base
from explorer_api.utils.helpers import sanitize

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    firebase_user_id = Column(String, unique=True, nullable=False, index=True)
    email = Column(String, unique=True, nullable=False, index=True)
    api_key = Column(String, unique=True, nullable=True, index=True)
    current_workspace_id = Column(Integer, nullable=True)
    plan = Column(String, default="free")
    stripe_customer_id = Column(String, nullable=True, index=True)
    explorer_subscription_id = Column(String, nullable=True)
    created_at = Column(DateTime, default=func.now())

    # Explorer billing eligibility
    can_trial = Column(Boolean, nullable=False, default=True)
    can_use_demo_plan = Column(Boolean, nullable=False, default=False)
    crypto_payment_enabled = Column(Boolean, nullable=False, default=False)
    default_data_retention_limit = Column(Integer, default=7)

    workspaces = relationship("Workspace", back_populates="user", cascade="all, delete-orphan")
    explorers = relationship("Explorer", back_populates="user", cascade="all, delete-orphan")

    @classmethod
    async def _find_one(cls, db: AsyncSession, *criteria):
        stmt = (
            select(cls)
            .where(*criteria)
            .options(selectinload(cls.workspaces))
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @classmethod
    async def find_by_auth_id(cls, db: AsyncSession, firebase_user_id: str):
        return await cls._find_one(db, cls.firebase_user_id == firebase_user_id)

    @classmethod
    async def find_by_api_key(cls, db: AsyncSession, api_key: str):
        return await cls._find_one(db, cls.api_key == api_key)

    @classmethod
    async def safe_create(
        cls,
        db: AsyncSession,
        firebase_user_id: str,
        email: str,
        api_key: str,
        stripe_customer_id: str,
        plan: str,
        explorer_subscription_id: str = None,
    ):
        if not firebase_user_id or not email or not api_key or not stripe_customer_id or not plan:
            raise ValueError("[User.safe_create] Missing parameter")

        stmt = select(cls).where(or_(cls.firebase_user_id == firebase_user_id, cls.email == email))
        existing_user = (await db.execute(stmt)).scalar_one_or_none()
        if existing_user:
            return None

        user = cls(**sanitize({
            "firebase_user_id": firebase_user_id,
            "email": email,
            "api_key": api_key,
            "stripe_customer_id": stripe_customer_id,
            "plan": plan,
            "explorer_subscription_id": explorer_subscription_id,
        }))
        db.add(user)
        await db.commit()
        await db.refresh(user)
        return user

    async def safe_create_workspace(self, db: AsyncSession, data: dict):
        from explorer_api.models.workspace import Workspace

        settings = data.get("settings") or {}
        integrations = data.get("integrations")
        workspace = Workspace(user_id=self.id, **sanitize({
            "name": data.get("name"),
            "public": data.get("public"),
            "chain": data.get("chain"),
            "network_id": data.get("network_id"),
            "rpc_server": data.get("rpc_server"),
            "tracing": data.get("tracing"),
            "data_retention_limit": data.get("data_retention_limit"),
            "default_account": settings.get("defaultAccount"),
            "gas_limit": settings.get("gasLimit"),
            "gas_price": settings.get("gasPrice"),
            "api_enabled": "api" in integrations if integrations is not None else None,
        }))
        db.add(workspace)
        await db.flush()
        return workspace
