from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_current_user, require_admin
from db.session import get_db
from models.user import User
from schemas.auth import MessageResponse
from schemas.catalog import BranchIn, BranchOut, BranchWithSemesters
from services.branch_service import BranchService

router = APIRouter(prefix="/api/branches", tags=["branches"])


def _with_semesters(branch, semesters):
    return {
        **BranchOut.model_validate(branch).model_dump(),
        "semesters": [
            {"id": s.id, "name": s.name, "branch_id": s.branch_id, "branch_name": branch.name,
             "description": s.description or "", "is_active": s.is_active}
            for s in semesters
        ],
    }


@router.get("", response_model=List[BranchOut], summary="List branches")
async def list_branches(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    return await BranchService(db).list_branches()


@router.get("/with-semesters", response_model=List[BranchWithSemesters], summary="List branches with semesters")
async def list_with_semesters(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    pairs = await BranchService(db).list_with_semesters()
    return [_with_semesters(branch, semesters) for branch, semesters in pairs]


@router.get(
    "/{branch_id}",
    response_model=BranchOut,
    summary="Get branch",
    responses={404: {"description": "Branch not found"}},
)
async def get_branch(branch_id: int, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    branch = await BranchService(db).get_branch(branch_id)
    if not branch:
        raise HTTPException(status_code=404, detail="Branch not found")
    return branch


@router.get(
    "/{branch_id}/with-semesters",
    response_model=BranchWithSemesters,
    summary="Get branch with its semesters",
    responses={404: {"description": "Branch not found"}},
)
async def get_branch_with_semesters(
    branch_id: int, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)
):
    service = BranchService(db)
    branch = await service.get_branch(branch_id)
    if not branch:
        raise HTTPException(status_code=404, detail="Branch not found")
    return _with_semesters(branch, await service.get_semesters(branch_id))


@router.post(
    "",
    response_model=BranchOut,
    status_code=201,
    summary="Create branch",
    responses={409: {"description": "Name or code already taken"}},
)
async def create_branch(body: BranchIn, admin: User = Depends(require_admin), db: AsyncSession = Depends(get_db)):
    return await BranchService(db).create_branch(body.name, body.code, body.description)


@router.put(
    "/{branch_id}",
    response_model=BranchOut,
    summary="Update branch",
    responses={404: {"description": "Branch not found"}, 409: {"description": "Name or code already taken"}},
)
async def update_branch(
    branch_id: int, body: BranchIn, admin: User = Depends(require_admin), db: AsyncSession = Depends(get_db)
):
    branch = await BranchService(db).update_branch(branch_id, body.name, body.code, body.description, body.is_active)
    if not branch:
        raise HTTPException(status_code=404, detail="Branch not found")
    return branch


@router.delete(
    "/{branch_id}",
    response_model=MessageResponse,
    summary="Delete branch",
    responses={400: {"description": "Branch still has semesters"}, 404: {"description": "Branch not found"}},
)
async def delete_branch(branch_id: int, admin: User = Depends(require_admin), db: AsyncSession = Depends(get_db)):
    if not await BranchService(db).delete_branch(branch_id):
        raise HTTPException(status_code=404, detail="Branch not found")
    return {"message": "Branch deleted successfully"}
