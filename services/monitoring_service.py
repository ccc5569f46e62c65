from core.logger import logger
from db.session import AsyncSessionLocal
from services.exam_service import ExamService

async def monitor_exam_attempts():
    """
    Periodic task run by the scheduler.
    Closes exam attempts whose time ran out while the student was away,
    so they show up as timed-out with their saved answers graded.
    """
    logger.debug("Starting exam attempt monitor scan...")

    async with AsyncSessionLocal() as db:
        try:
            expired = await ExamService(db).expire_overdue()
        except Exception as e:
            await db.rollback()
            logger.error("Monitor: Error expiring exam attempts", error=str(e))
            return

    if expired:
        logger.info(f"Monitor: Timed out {expired} overdue exam attempts")
    logger.debug("Exam attempt monitor scan completed.")
