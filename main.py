import asyncio
import sys

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from core.config import settings
from core.logger import setup_logging, logger
from services.monitoring_service import monitor_exam_attempts

async def start_api():
    import uvicorn
    from api.main import app
    config = uvicorn.Config(app, host="0.0.0.0", port=8000, log_level="debug" if settings.DEBUG else "info")
    server = uvicorn.Server(config)
    await server.serve()

def create_scheduler() -> AsyncIOScheduler:
    scheduler = AsyncIOScheduler(timezone="UTC")

    # Exam attempt monitor (every 30 seconds by default)
    scheduler.add_job(
        monitor_exam_attempts,
        trigger="interval",
        seconds=settings.MONITOR_INTERVAL_SECONDS,
        id="exam_attempt_monitor",
        replace_existing=True,
        max_instances=1,
    )
    return scheduler

async def main():
    # "api" runs the HTTP server alone, e.g. when the monitor runs on another node
    mode = "api" if "api" in sys.argv[1:] else "all"

    # Setup structured logging
    setup_logging()

    if mode == "api":
        logger.info("Starting API Only Mode...", env=settings.ENV)
        await start_api()
        return

    scheduler = create_scheduler()
    scheduler.start()
    logger.info("Scheduler started (Exam Attempt Monitor).", interval=settings.MONITOR_INTERVAL_SECONDS)

    logger.info("Starting API + Scheduler...", env=settings.ENV)
    try:
        await start_api()
    finally:
        scheduler.shutdown(wait=False)

if __name__ == "__main__":
    try:
        asyncio.run(main())
    except (KeyboardInterrupt, SystemExit):
        logger.info("Application stopped.")
