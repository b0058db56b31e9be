import asyncio
import logging
import uvicorn
from contextlib import asynccontextmanager
from datetime import datetime
from fastapi import FastAPI, Depends, status
from fastapi.responses import JSONResponse

from .config import get_settings
from .database import engine, Base
from .dependencies import get_monitor, get_digest_service
from .routers import podcasts_router, topics_router, episodes_router, settings_router, digests_router
from .services.digest import DigestService
from .services.monitor import FeedMonitor
from .services.scheduler import get_scheduler, FEED_CHECK_JOB, DIGEST_JOB
from . import models, schemas  # noqa: F401

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)

# Create database tables
Base.metadata.create_all(bind=engine)


async def run_feed_check():
    await get_monitor().check_all_feeds()


async def run_daily_digest():
    await asyncio.to_thread(get_digest_service().send_daily_digest)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan management."""
    scheduler = get_scheduler(settings.timezone)
    if settings.scheduler_enabled:
        scheduler.schedule_feed_checks(run_feed_check, hours=settings.feed_check_hours)
        scheduler.schedule_daily_digest(run_daily_digest, hour=settings.digest_hour)
        scheduler.start()
    logger.info(f"Podcast Monitor running on port {settings.port}")

    yield

    scheduler.stop()
    logger.info("Application shutdown complete")


app = FastAPI(
    title="Podcast Monitor",
    description="Polls podcast feeds, annotates new episodes with AI and emails a daily digest",
    version="1.0.0",
    lifespan=lifespan
)

app.include_router(podcasts_router)
app.include_router(topics_router)
app.include_router(episodes_router)
app.include_router(settings_router)
app.include_router(digests_router)


@app.get("/health")
async def health_check():
    return {"status": "healthy", "timestamp": datetime.utcnow().isoformat()}


@app.post("/check-feeds", response_model=schemas.FeedCheckResponse)
async def check_feeds(monitor: FeedMonitor = Depends(get_monitor)):
    """Run a full feed check now."""
    try:
        result = await monitor.check_all_feeds()
    except Exception as e:
        logger.error(f"Error checking feeds: {e}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"success": False, "error": str(e)}
        )
    return schemas.FeedCheckResponse(
        success=True,
        message="Feed check completed",
        podcasts_checked=result.podcasts_checked,
        podcasts_failed=result.podcasts_failed,
        new_episodes=result.new_episodes,
        processed=result.processed
    )


@app.post("/send-digest", response_model=schemas.DigestResponse)
async def send_digest(service: DigestService = Depends(get_digest_service)):
    """Build and send the daily digest now."""
    try:
        result = await asyncio.to_thread(service.send_daily_digest)
    except Exception as e:
        logger.error(f"Error sending digest: {e}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"success": False, "error": str(e)}
        )
    return schemas.DigestResponse(
        success=True,
        message=result.message,
        sent=result.sent,
        recipient=result.recipient,
        episode_count=result.episode_count,
        priority_count=result.priority_count
    )


@app.get("/api/scheduler/status", response_model=schemas.SchedulerStatus)
async def get_scheduler_status():
    """Get the current scheduler status."""
    scheduler = get_scheduler(settings.timezone)
    return schemas.SchedulerStatus(
        running=scheduler.is_running,
        timezone=scheduler.timezone,
        feed_check_hours=scheduler.feed_check_hours,
        digest_hour=scheduler.digest_hour,
        next_feed_check=scheduler.get_next_run_time(FEED_CHECK_JOB),
        next_digest=scheduler.get_next_run_time(DIGEST_JOB)
    )


def run():
    uvicorn.run(app, host="0.0.0.0", port=settings.port)
