from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from models.branch import Branch
from models.semester import Semester
from core.exceptions import ConflictError, RuleViolation
from core.logger import logger

class SemesterService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_semesters(self, branch_id: Optional[int] = None) -> List[Semester]:
        query = select(Semester).order_by(Semester.name)
        if branch_id is not None:
            query = query.filter(Semester.branch_id == branch_id)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_semester(self, semester_id: int) -> Optional[Semester]:
        result = await self.db.execute(select(Semester).filter(Semester.id == semester_id))
        return result.scalar_one_or_none()

    async def _require_branch(self, branch_id: int) -> Branch:
        result = await self.db.execute(select(Branch).filter(Branch.id == branch_id))
        branch = result.scalar_one_or_none()
        if not branch:
            raise RuleViolation("Branch not found")
        return branch

    async def _check_unique(self, name: str, branch_id: int, exclude_id: Optional[int] = None):
        query = select(Semester).filter(Semester.name == name, Semester.branch_id == branch_id)
        if exclude_id is not None:
            query = query.filter(Semester.id != exclude_id)
        if (await self.db.execute(query)).scalar_one_or_none():
            raise ConflictError("A semester with this name already exists in the selected branch")

    async def create_semester(self, name: str, branch_id: int, description: str = "") -> Semester:
        name = name.strip()
        if not name:
            raise RuleViolation("Semester name is required")
        await self._require_branch(branch_id)
        await self._check_unique(name, branch_id)

        semester = Semester(name=name, branch_id=branch_id, description=(description or "").strip())
        self.db.add(semester)
        await self.db.commit()
        await self.db.refresh(semester)
        logger.info("Semester created", semester_id=semester.id, branch_id=branch_id)
        return semester

    async def update_semester(self, semester_id: int, name: str, branch_id: int,
                              description: str = "", is_active: bool = True) -> Optional[Semester]:
        name = name.strip()
        if not name:
            raise RuleViolation("Semester name is required")
        await self._require_branch(branch_id)

        semester = await self.get_semester(semester_id)
        if not semester:
            return None
        await self._check_unique(name, branch_id, exclude_id=semester_id)

        semester.name = name
        semester.branch_id = branch_id
        semester.description = (description or "").strip()
        semester.is_active = is_active
        await self.db.commit()
        await self.db.refresh(semester)
        logger.info("Semester updated", semester_id=semester_id)
        return semester

    async def delete_semester(self, semester_id: int) -> bool:
        semester = await self.get_semester(semester_id)
        if not semester:
            return False
        await self.db.delete(semester)
        await self.db.commit()
        logger.info("Semester deleted", semester_id=semester_id)
        return True
