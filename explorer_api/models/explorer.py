from sqlalchemy import Column, String, Integer, Boolean, ForeignKey, DateTime, func, JSON
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import relationship
from explorer_api.database import Base

class Explorer(Base):
    __tablename__ = "explorers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    workspace_id = Column(Integer, ForeignKey("workspaces.id"), nullable=False, unique=True)
    name = Column(String, nullable=False)
    slug = Column(String, nullable=False, unique=True, index=True)
    chain_id = Column(String, nullable=True)
    rpc_server = Column(String, nullable=False)
    token = Column(String, nullable=True)
    domain = Column(String, nullable=True)
    total_supply = Column(String, nullable=True)
    l1_explorer = Column(String, nullable=True)
    themes = Column(JSON, nullable=False, default=lambda: {"default": {}})
    should_sync = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=func.now())

    user = relationship("User", back_populates="explorers")
    workspace = relationship("Workspace", back_populates="explorer", lazy="selectin")
    domains = relationship(
        "ExplorerDomain",
        back_populates="explorer",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="ExplorerDomain.id",
    )
    stripe_subscription = relationship(
        "ExplorerSubscription",
        back_populates="explorer",
        uselist=False,
        lazy="selectin",
        cascade="all, delete-orphan",
    )

    @classmethod
    async def find_for_user(cls, db: AsyncSession, user_id: int, explorer_id: int):
        stmt = (
            select(cls)
            .where(cls.id == explorer_id, cls.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @classmethod
    async def find_by_slug(cls, db: AsyncSession, slug: str):
        stmt = select(cls).where(cls.slug == slug).execution_options(populate_existing=True)
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @classmethod
    async def find_by_domain(cls, db: AsyncSession, domain: str):
        stmt = (
            select(cls)
            .join(ExplorerDomain, ExplorerDomain.explorer_id == cls.id)
            .where(ExplorerDomain.domain == domain)
            .execution_options(populate_existing=True)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    def has_reached_transaction_quota(self) -> bool:
        return bool(self.stripe_subscription and self.stripe_subscription.has_reached_transaction_quota())

    def to_dict(self) -> dict:
        workspace = self.workspace
        return {
            "id": self.id,
            "user_id": self.user_id,
            "workspace_id": self.workspace_id,
            "name": self.name,
            "slug": self.slug,
            "chain_id": self.chain_id,
            "rpc_server": self.rpc_server,
            "token": self.token,
            "domain": self.domain,
            "total_supply": self.total_supply,
            "l1_explorer": self.l1_explorer,
            "themes": self.themes,
            "should_sync": self.should_sync,
            "domains": [{"id": d.id, "domain": d.domain} for d in self.domains],
            "workspace": {
                "id": workspace.id,
                "name": workspace.name,
                "network_id": workspace.network_id,
                "rpc_server": workspace.rpc_server,
                "tracing": workspace.tracing,
            } if workspace else None,
            "stripe_subscription": self.stripe_subscription.to_dict() if self.stripe_subscription else None,
        }

    def to_public_dict(self) -> dict:
        """Fields safe to expose on unauthenticated explorer pages."""
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "chain_id": self.chain_id,
            "rpc_server": self.rpc_server,
            "token": self.token,
            "domain": self.domain,
            "total_supply": self.total_supply,
            "l1_explorer": self.l1_explorer,
            "themes": self.themes,
            "domains": [{"domain": d.domain} for d in self.domains],
            "workspace": self.workspace.name if self.workspace else None,
        }


class ExplorerDomain(Base):
    __tablename__ = "explorer_domains"

    id = Column(Integer, primary_key=True, autoincrement=True)
    explorer_id = Column(Integer, ForeignKey("explorers.id", ondelete="CASCADE"), nullable=False, index=True)
    domain = Column(String, nullable=False, unique=True)
    created_at = Column(DateTime, default=func.now())

    explorer = relationship("Explorer", back_populates="domains")
