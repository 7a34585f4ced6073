from fastapi import APIRouter
from .explorers import router as explorers_router
from .blocks import router as blocks_router

router = APIRouter()

# Auth is enforced per route: /api/explorers/search and /syncExplorers are public or secret-protected
router.include_router(explorers_router, prefix="/api/explorers", tags=["Explorers"])
router.include_router(blocks_router, prefix="/api/blocks", tags=["Blocks"])
