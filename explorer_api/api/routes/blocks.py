from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from explorer_api.api.deps import get_db, get_current_user
from explorer_api.api.errors import handle_errors
from explorer_api.errors import InvalidInput, NotFound
from explorer_api.models.block import Block
from explorer_api.models.user import User
from explorer_api.models.workspace import Workspace

router = APIRouter()

class BlockCreate(BaseModel):
    workspace: Optional[str] = None
    block: Optional[Dict[str, Any]] = None

async def _get_workspace(db: AsyncSession, user: User, name: Optional[str]) -> Workspace:
    if not name:
        raise InvalidInput("Missing workspace parameter.")
    workspace = await Workspace.find_by_name(db, user.id, name)
    if not workspace:
        raise NotFound("Could not find workspace.", {"workspace": name})
    return workspace

@router.post("/")
async def store_block(
    payload: BlockCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    with handle_errors("post.api.blocks", user_id=current_user.id, workspace=payload.workspace):
        if not payload.block or payload.block.get("number") is None:
            raise InvalidInput("Missing parameter.")

        workspace = await _get_workspace(db, current_user, payload.workspace)
        number = int(payload.block["number"])

        stmt = select(Block).where(Block.workspace_id == workspace.id, Block.number == number)
        block = (await db.execute(stmt)).scalar_one_or_none()
        if not block:
            block = Block.from_rpc(workspace.id, payload.block)
            db.add(block)
            await db.commit()
    return block.to_dict()

@router.get("/{number}")
async def get_block(
    number: int,
    workspace: Optional[str] = Query(None),
    with_transactions: bool = Query(False, alias="withTransactions"),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    with handle_errors("get.api.blocks.number", user_id=current_user.id, number=number):
        target = await _get_workspace(db, current_user, workspace)
        stmt = select(Block).where(Block.workspace_id == target.id, Block.number == number)
        block = (await db.execute(stmt)).scalar_one_or_none()
        if not block:
            raise NotFound("Could not find block.", {"number": number})
    return block.to_dict(with_transactions=with_transactions)

@router.get("/")
async def get_blocks(
    workspace: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    items_per_page: int = Query(10, ge=1, le=100, alias="itemsPerPage"),
    order: str = Query("desc"),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    with handle_errors("get.api.blocks", user_id=current_user.id):
        target = await _get_workspace(db, current_user, workspace)
        stmt = (
            select(Block)
            .where(Block.workspace_id == target.id)
            .order_by(Block.number.asc() if order == "asc" else Block.number.desc())
            .offset((page - 1) * items_per_page)
            .limit(items_per_page)
        )
        blocks = (await db.execute(stmt)).scalars().all()
        total = (await db.execute(
            select(func.count()).select_from(Block).where(Block.workspace_id == target.id)
        )).scalar_one()
    return {"items": [block.to_dict() for block in blocks], "total": total}
