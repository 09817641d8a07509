"""
Background scheduler.
Handles:
- Checking every minute that the Redis cache is reachable

No scheduled job takes part in quest, reroll or badge operations.
"""

import logging
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from quest_engine.cache import RedisCache, app_cache
from quest_engine.constants import CACHE_HEALTH_CHECK_INTERVAL_SECONDS

logger = logging.getLogger("quest_engine.scheduler")

scheduler = AsyncIOScheduler()


async def run_cache_health_check(cache=app_cache) -> bool:
    """Ping the cache; an unreachable cache only costs hits"""
    healthy = cache.ping()
    if not healthy:
        logger.warning("Cache health check failed, reads fall back to the database")
    return healthy


def start_scheduler(cache=app_cache):
    """Start the scheduler"""
    if not scheduler.running:
        if isinstance(cache, RedisCache):
            scheduler.add_job(
                run_cache_health_check,
                IntervalTrigger(seconds=CACHE_HEALTH_CHECK_INTERVAL_SECONDS),
                args=[cache],
                id="cache_health_check",
                replace_existing=True
            )
        scheduler.start()
        logger.info(">>> APScheduler STARTED <<<")
        logger.info(f"Scheduled jobs: {[job.id for job in scheduler.get_jobs()]}")


def stop_scheduler():
    """Stop the scheduler"""
    if scheduler.running:
        scheduler.shutdown()
        logger.info("APScheduler stopped")
