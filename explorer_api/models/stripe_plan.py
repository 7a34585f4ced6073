from sqlalchemy import Column, Integer, String, Numeric, Boolean, JSON
from explorer_api.database import Base

class StripePlan(Base):
    __tablename__ = "stripe_plans"

    id = Column(Integer, primary_key=True, autoincrement=True)
    slug = Column(String, nullable=False, unique=True, index=True)
    name = Column(String, nullable=False)
    stripe_price_id = Column(String, nullable=True)
    public = Column(Boolean, default=False)
    price = Column(Numeric, nullable=False, default=0)
    capabilities = Column(JSON, nullable=False, default=dict)  # nativeToken, totalSupply, branding, customDomain, txLimit...

    def has_capability(self, name: str) -> bool:
        return bool((self.capabilities or {}).get(name))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "slug": self.slug,
            "name": self.name,
            "price": float(self.price or 0),
            "public": self.public,
            "capabilities": self.capabilities or {},
        }
