from sqlalchemy import Column, String, Integer, ForeignKey, DateTime, func, JSON, UniqueConstraint
from sqlalchemy.orm import relationship
from explorer_api.database import Base

class Block(Base):
    __tablename__ = "blocks"
    __table_args__ = (UniqueConstraint("workspace_id", "number", name="uq_blocks_workspace_number"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    workspace_id = Column(Integer, ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False, index=True)
    number = Column(Integer, nullable=False, index=True)
    hash = Column(String, nullable=True)
    parent_hash = Column(String, nullable=True)
    miner = Column(String, nullable=True)
    timestamp = Column(Integer, nullable=True)
    gas_used = Column(String, nullable=True)
    gas_limit = Column(String, nullable=True)
    transactions_count = Column(Integer, default=0)
    raw = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=func.now())

    workspace = relationship("Workspace", back_populates="blocks")

    @classmethod
    def from_rpc(cls, workspace_id: int, block: dict) -> "Block":
        transactions = block.get("transactions") or []
        return cls(
            workspace_id=workspace_id,
            number=int(block["number"]),
            hash=block.get("hash"),
            parent_hash=block.get("parentHash"),
            miner=block.get("miner"),
            timestamp=int(block["timestamp"]) if block.get("timestamp") is not None else None,
            gas_used=str(block["gasUsed"]) if block.get("gasUsed") is not None else None,
            gas_limit=str(block["gasLimit"]) if block.get("gasLimit") is not None else None,
            transactions_count=len(transactions),
            raw=block,
        )

    def to_dict(self, with_transactions: bool = False) -> dict:
        data = {
            "number": self.number,
            "hash": self.hash,
            "parent_hash": self.parent_hash,
            "miner": self.miner,
            "timestamp": self.timestamp,
            "gas_used": self.gas_used,
            "gas_limit": self.gas_limit,
            "transactions_count": self.transactions_count,
        }
        if with_transactions:
            data["transactions"] = (self.raw or {}).get("transactions", [])
        return data
