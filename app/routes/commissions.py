"""Commission table routes"""
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.dependencies import get_db
from app.schemas.commission import CommissionRead, CommissionUpdate
from app.services.commission_service import CommissionService

router = APIRouter(prefix="/commissions", tags=["commissions"])


@router.get("", response_model=List[CommissionRead])
async def list_commissions(db: AsyncSession = Depends(get_db)):
    rows = await CommissionService(db).list_commissions()
    return [CommissionRead.model_validate(r) for r in rows]


@router.put("", response_model=CommissionRead)
async def set_commission(request: CommissionUpdate, db: AsyncSession = Depends(get_db)):
    row = await CommissionService(db).set_rate(request.category, request.commission_rate)
    return CommissionRead.model_validate(row)


@router.delete("/{category}")
async def delete_commission(category: str, db: AsyncSession = Depends(get_db)):
    await CommissionService(db).delete_rate(category)
    return {"success": True, "category": category}
