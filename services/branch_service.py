from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from models.branch import Branch
from models.semester import Semester
from core.exceptions import ConflictError, RuleViolation
from core.logger import logger

class BranchService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_branches(self) -> List[Branch]:
        result = await self.db.execute(select(Branch).order_by(Branch.name))
        return list(result.scalars().all())

    async def get_branch(self, branch_id: int) -> Optional[Branch]:
        result = await self.db.execute(select(Branch).filter(Branch.id == branch_id))
        return result.scalar_one_or_none()

    async def get_semesters(self, branch_id: int) -> List[Semester]:
        result = await self.db.execute(
            select(Semester).filter(Semester.branch_id == branch_id).order_by(Semester.name)
        )
        return list(result.scalars().all())

    async def list_with_semesters(self) -> List[tuple]:
        branches = await self.list_branches()
        return [(branch, await self.get_semesters(branch.id)) for branch in branches]

    async def _check_unique(self, name: str, code: str, exclude_id: Optional[int] = None):
        query = select(Branch).filter(Branch.name == name)
        if exclude_id is not None:
            query = query.filter(Branch.id != exclude_id)
        if (await self.db.execute(query)).scalar_one_or_none():
            raise ConflictError("Branch with this name already exists")

        query = select(Branch).filter(Branch.code == code)
        if exclude_id is not None:
            query = query.filter(Branch.id != exclude_id)
        if (await self.db.execute(query)).scalar_one_or_none():
            raise ConflictError("Branch with this code already exists")

    async def create_branch(self, name: str, code: str, description: str = "") -> Branch:
        name, code = name.strip(), code.strip()
        if not name:
            raise RuleViolation("Branch name is required")
        if not code:
            raise RuleViolation("Branch code is required")
        await self._check_unique(name, code)

        branch = Branch(name=name, code=code, description=(description or "").strip())
        self.db.add(branch)
        await self.db.commit()
        await self.db.refresh(branch)
        logger.info("Branch created", branch_id=branch.id, code=code)
        return branch

    async def update_branch(self, branch_id: int, name: str, code: str,
                            description: str = "", is_active: bool = True) -> Optional[Branch]:
        name, code = name.strip(), code.strip()
        if not name:
            raise RuleViolation("Branch name is required")
        if not code:
            raise RuleViolation("Branch code is required")

        branch = await self.get_branch(branch_id)
        if not branch:
            return None
        await self._check_unique(name, code, exclude_id=branch_id)

        branch.name = name
        branch.code = code
        branch.description = (description or "").strip()
        branch.is_active = is_active
        await self.db.commit()
        await self.db.refresh(branch)
        logger.info("Branch updated", branch_id=branch_id)
        return branch

    async def delete_branch(self, branch_id: int) -> bool:
        result = await self.db.execute(
            select(func.count(Semester.id)).filter(Semester.branch_id == branch_id)
        )
        if result.scalar():
            raise RuleViolation(
                "Cannot delete branch with associated semesters. "
                "Delete the semesters first or reassign them to another branch."
            )

        branch = await self.get_branch(branch_id)
        if not branch:
            return False
        await self.db.delete(branch)
        await self.db.commit()
        logger.info("Branch deleted", branch_id=branch_id)
        return True
