#!/usr/bin/env python3
"""
Cache Cleanup Worker

Background worker that keeps the discovery cache tables small:
- Deletes expired company research and contact search entries
- Deletes search logs older than SEARCH_LOG_RETENTION_DAYS
- Sleeps CACHE_CLEANUP_INTERVAL_SECONDS between runs
"""

import asyncio
import logging
from typing import Dict

from contact_finder.core.config import settings
from contact_finder.services.cache_store import CacheStore

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Wait before retrying after a failed run
ERROR_RETRY_SECONDS = 60


def run_cleanup(store: CacheStore) -> Dict[str, int]:
    """One cleanup pass. Returns the number of rows removed per table."""
    result = store.cleanup()
    logger.info(f"✓ Cleanup finished: {result}")
    return result


async def main():
    """Main worker loop."""
    logger.info("Cache Cleanup Worker starting...")
    logger.info(f"Cleanup interval: {settings.CACHE_CLEANUP_INTERVAL_SECONDS}s")
    store = CacheStore()

    while True:
        try:
            run_cleanup(store)
            await asyncio.sleep(settings.CACHE_CLEANUP_INTERVAL_SECONDS)
        except Exception as e:
            logger.exception(f"Error in cleanup loop: {e}")
            await asyncio.sleep(ERROR_RETRY_SECONDS)


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Worker shutting down...")
