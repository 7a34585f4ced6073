import asyncio
import logging
from sqlalchemy.future import select
from explorer_api.config import settings
from explorer_api.database import async_session, init_db
from explorer_api.models.stripe_plan import StripePlan

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

DEFAULT_CAPABILITIES = {
    "nativeToken": True,
    "totalSupply": True,
    "branding": True,
    "customDomain": True,
    "txLimit": 0,
}

async def create_default_plan():
    async with async_session() as session:
        stmt = select(StripePlan).where(StripePlan.slug == settings.DEFAULT_PLAN_SLUG)
        result = await session.execute(stmt)
        if result.scalar_one_or_none() is None:
            plan = StripePlan(
                slug=settings.DEFAULT_PLAN_SLUG,
                name="Self Hosted",
                public=False,
                price=0,
                capabilities=DEFAULT_CAPABILITIES,
            )
            session.add(plan)
            await session.commit()
            logger.info(f"Default plan '{settings.DEFAULT_PLAN_SLUG}' created.")
        else:
            logger.info(f"Default plan '{settings.DEFAULT_PLAN_SLUG}' already exists.")

async def main():
    await init_db()
    await create_default_plan()


if __name__ == "__main__":
    logger.info("Initializing database and seeding the default plan...")
    asyncio.run(main())
