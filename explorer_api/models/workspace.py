from sqlalchemy import Column, String, Integer, Boolean, ForeignKey, DateTime, func, UniqueConstraint
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import relationship
from explorer_api.database import Base

class Workspace(Base):
    __tablename__ = "workspaces"
    __table_args__ = (UniqueConstraint("user_id", "name", name="uq_workspaces_user_name"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)
    chain = Column(String, default="ethereum")
    network_id = Column(String, nullable=True)
    rpc_server = Column(String, nullable=False)
    public = Column(Boolean, default=True)
    tracing = Column(String, nullable=True)  # None | "other" | "hardhat"
    data_retention_limit = Column(Integer, default=0)
    default_account = Column(String, nullable=True)
    gas_limit = Column(String, nullable=True)
    gas_price = Column(String, nullable=True)
    api_enabled = Column(Boolean, default=False)
    created_at = Column(DateTime, default=func.now())

    user = relationship("User", back_populates="workspaces")
    explorer = relationship("Explorer", back_populates="workspace", uselist=False, lazy="selectin")
    rpc_health_check = relationship(
        "RpcHealthCheck",
        back_populates="workspace",
        uselist=False,
        lazy="selectin",
        cascade="all, delete-orphan",
    )
    blocks = relationship("Block", back_populates="workspace", cascade="all, delete-orphan", passive_deletes=True)

    @classmethod
    async def find_by_name(cls, db: AsyncSession, user_id: int, name: str):
        stmt = (
            select(cls)
            .where(cls.user_id == user_id, cls.name == name)
            .execution_options(populate_existing=True)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()


class RpcHealthCheck(Base):
    """Last known reachability of a workspace RPC, written by the health monitor."""
    __tablename__ = "rpc_health_checks"

    id = Column(Integer, primary_key=True, autoincrement=True)
    workspace_id = Column(Integer, ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False, unique=True)
    is_reachable = Column(Boolean, nullable=False, default=True)
    failed_attempts = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    workspace = relationship("Workspace", back_populates="rpc_health_check")
