from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_current_user, require_admin
from db.session import get_db
from models.semester import Semester
from models.user import User
from schemas.auth import MessageResponse
from schemas.catalog import SemesterIn, SemesterOut
from services.branch_service import BranchService
from services.semester_service import SemesterService

router = APIRouter(prefix="/api/semesters", tags=["semesters"])


def _out(semester: Semester) -> dict:
    return {
        "id": semester.id,
        "name": semester.name,
        "branch_id": semester.branch_id,
        "branch_name": semester.branch.name if semester.branch else None,
        "description": semester.description or "",
        "is_active": semester.is_active,
    }


@router.get("", response_model=List[SemesterOut], summary="List semesters, optionally for one branch")
async def list_semesters(
    branch_id: Optional[int] = None, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)
):
    return [_out(s) for s in await SemesterService(db).list_semesters(branch_id)]


@router.get(
    "/by-branch/{branch_id}",
    response_model=List[SemesterOut],
    summary="Semesters of a branch",
    responses={404: {"description": "Branch not found"}},
)
async def semesters_by_branch(branch_id: int, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    if not await BranchService(db).get_branch(branch_id):
        raise HTTPException(status_code=404, detail="Branch not found")
    return [_out(s) for s in await SemesterService(db).list_semesters(branch_id)]


@router.get(
    "/{semester_id}",
    response_model=SemesterOut,
    summary="Get semester",
    responses={404: {"description": "Semester not found"}},
)
async def get_semester(semester_id: int, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    semester = await SemesterService(db).get_semester(semester_id)
    if not semester:
        raise HTTPException(status_code=404, detail="Semester not found")
    return _out(semester)


@router.post(
    "",
    response_model=SemesterOut,
    status_code=201,
    summary="Create semester",
    responses={400: {"description": "Branch not found"}, 409: {"description": "Name already used in this branch"}},
)
async def create_semester(body: SemesterIn, admin: User = Depends(require_admin), db: AsyncSession = Depends(get_db)):
    service = SemesterService(db)
    semester = await service.create_semester(body.name, body.branch_id, body.description)
    # Reload so the joined branch is available for branch_name
    return _out(await service.get_semester(semester.id))


@router.put(
    "/{semester_id}",
    response_model=SemesterOut,
    summary="Update semester",
    responses={404: {"description": "Semester not found"}, 409: {"description": "Name already used in this branch"}},
)
async def update_semester(
    semester_id: int, body: SemesterIn, admin: User = Depends(require_admin), db: AsyncSession = Depends(get_db)
):
    service = SemesterService(db)
    semester = await service.update_semester(semester_id, body.name, body.branch_id, body.description, body.is_active)
    if not semester:
        raise HTTPException(status_code=404, detail="Semester not found")
    return _out(await service.get_semester(semester.id))


@router.delete(
    "/{semester_id}",
    response_model=MessageResponse,
    summary="Delete semester",
    responses={404: {"description": "Semester not found"}},
)
async def delete_semester(semester_id: int, admin: User = Depends(require_admin), db: AsyncSession = Depends(get_db)):
    if not await SemesterService(db).delete_semester(semester_id):
        raise HTTPException(status_code=404, detail="Semester not found")
    return {"message": "Semester deleted successfully"}
