import asyncio
import sys
import os

# Add project root to path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import text
from db.session import engine
from models.branch import Branch  # noqa: F401  (semesters.branch_id references it)
from models.semester import Semester
from core.logger import logger

# Compound index from the old schema; it made semester names collide across branches
LEGACY_INDEX = "ix_semesters_branch_id_name"

# Foreign keys dropped by CASCADE and restored afterwards
SEMESTER_REFERENCES = [
    ("users", "users_semester_id_fkey"),
    ("courses", "courses_semester_id_fkey"),
]

async def reset_semesters(conn):
    """Drop and recreate the semesters table inside the caller's transaction."""
    print("Clearing semester references on users and courses...")
    for table, _ in SEMESTER_REFERENCES:
        await conn.execute(text(f"UPDATE {table} SET semester_id = NULL"))

    print(f"Dropping legacy index {LEGACY_INDEX} (if present)...")
    await conn.execute(text(f"DROP INDEX IF EXISTS {LEGACY_INDEX}"))

    print("Dropping semesters table...")
    await conn.execute(text("DROP TABLE IF EXISTS semesters CASCADE"))

    print("Recreating semesters table (single non-unique index on branch_id)...")
    await conn.run_sync(Semester.__table__.create)

    for table, constraint in SEMESTER_REFERENCES:
        print(f"Restoring foreign key {constraint}...")
        await conn.execute(text(
            f"ALTER TABLE {table} ADD CONSTRAINT {constraint} "
            f"FOREIGN KEY (semester_id) REFERENCES semesters (id) ON DELETE SET NULL"
        ))

async def main():
    print("⚠️  WARNING: This will DELETE ALL SEMESTERS and recreate the table.")
    print("Users and courses will lose their semester placement.")
    confirm = input("Type 'CONFIRM' to proceed: ")

    if confirm != "CONFIRM":
        print("Operation cancelled.")
        return False

    try:
        async with engine.begin() as conn:
            await reset_semesters(conn)
        print("✅ Semesters table has been reset successfully.")
        logger.info("Semesters table reset")
        return True
    except Exception as e:
        print(f"❌ Error resetting semesters: {e}")
        logger.error("Error resetting semesters", error=str(e))
        return False
    finally:
        await engine.dispose()

if __name__ == "__main__":
    if os.name == 'nt':
        asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())
    asyncio.run(main())
