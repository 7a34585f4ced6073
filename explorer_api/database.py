import logging

from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base
from explorer_api.config import settings

logger = logging.getLogger(__name__)

# engine = create_async_engine(settings.DATABASE_URL, echo=True)
engine = create_async_engine(settings.DATABASE_URL)
async_session = async_sessionmaker(engine, expire_on_commit=False)
Base = declarative_base()

def load_models():
    """Import every model so string relationships resolve before the first query."""
    from explorer_api.models import (  # noqa: F401
        user,
        workspace,
        explorer,
        stripe_plan,
        explorer_subscription,
        block,
    )

async def init_db():
    load_models()
    async with engine.begin() as conn:
        logger.info("Creating database tables...")
        await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created successfully")
