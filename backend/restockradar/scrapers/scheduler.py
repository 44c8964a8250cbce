"""APScheduler-based crawl trigger.

Runs CrawlService on a fixed interval. With a session factory configured,
every successful site result is written to the ProductStore and products
missing from a successful crawl get a missed scan counted.
"""

from datetime import datetime, timezone
from typing import Callable, List, Optional, Sequence

import structlog
from apscheduler.job import Job
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from restockradar.config import settings
from restockradar.scrapers.base import SiteResult
from restockradar.scrapers.crawl_service import CrawlService
from restockradar.services.product_store import ProductChange, ProductStore

logger = structlog.get_logger(__name__)

CRAWL_JOB_ID = "crawl_sites"


class CrawlScheduler:
    """Manages the periodic crawl job.

    Errors inside a run are logged and never stop the scheduler.
    """

    def __init__(
        self,
        db_session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
        service_factory: Callable[[], CrawlService] = CrawlService,
    ):
        """Initialize crawl scheduler.

        Args:
            db_session_factory: Async session factory; results are not persisted when None
            service_factory: Builds a CrawlService per run
        """
        self.db_session_factory = db_session_factory
        self.service_factory = service_factory
        self.scheduler = AsyncIOScheduler(timezone="UTC")
        self.logger = logger.bind(service="crawl_scheduler")

    def start(self) -> None:
        if not self.scheduler.running:
            self.scheduler.start()
            self.logger.info("scheduler_started")
        else:
            self.logger.warning("scheduler_already_running")

    def stop(self) -> None:
        """Stop the scheduler, waiting for a running crawl to finish."""
        if self.scheduler.running:
            self.scheduler.shutdown(wait=True)
            self.logger.info("scheduler_stopped")
        else:
            self.logger.warning("scheduler_not_running")

    def add_crawl_job(
        self,
        site_keys: Sequence[str] = (),
        interval_minutes: Optional[int] = None,
    ) -> Job:
        """Schedule the periodic crawl, replacing an existing one.

        Args:
            site_keys: Sites to crawl; every registered site when empty
            interval_minutes: Interval, settings.CRAWL_INTERVAL_MINUTES by default
        """
        interval_minutes = interval_minutes or settings.CRAWL_INTERVAL_MINUTES
        trigger = IntervalTrigger(
            minutes=interval_minutes,
            start_date=datetime.now(timezone.utc),
            timezone="UTC",
        )

        job = self.scheduler.add_job(
            func=self._run_crawl_wrapper,
            trigger=trigger,
            args=[list(site_keys)],
            id=CRAWL_JOB_ID,
            name="Crawl storefronts",
            replace_existing=True,
            max_instances=1,  # Prevent overlapping crawls
        )

        self.logger.info(
            "crawl_job_added",
            sites=list(site_keys) or "all",
            interval_minutes=interval_minutes,
            next_run=job.next_run_time.isoformat() if job.next_run_time else None,
        )
        return job

    async def _run_crawl_wrapper(self, site_keys: List[str]) -> None:
        """Entry point called by APScheduler. Catches every exception."""
        try:
            await self.run_crawl(site_keys)
        except Exception as e:
            self.logger.error("crawl_job_failed", error=str(e), exc_info=True)

    async def run_crawl(self, site_keys: Sequence[str] = ()) -> List[SiteResult]:
        """Run one crawl and persist successful results.

        Returns:
            The SiteResults of the run
        """
        start_time = datetime.now(timezone.utc)
        self.logger.info("starting_crawl_job", sites=list(site_keys) or "all")

        async with self.service_factory() as service:
            results = await service.crawl(site_keys)

        changes: List[ProductChange] = []
        if self.db_session_factory is not None:
            changes = await self.persist(results)

        duration = (datetime.now(timezone.utc) - start_time).total_seconds()
        self.logger.info(
            "crawl_job_completed",
            duration_seconds=round(duration, 2),
            failed_sites=[r.site for r in results if not r.succeeded],
            changes=len(changes),
            restocks=[c.product_id for c in changes if c.is_restock],
        )
        return results

    async def persist(self, results: Sequence[SiteResult]) -> List[ProductChange]:
        """Write successful site results to the product store."""
        changes: List[ProductChange] = []
        async with self.db_session_factory() as db:
            store = ProductStore(db)
            for result in results:
                if not result.succeeded:
                    continue
                changes.extend(await store.upsert_products(result.products))
                await store.mark_missed(result.site, (p.id for p in result.products))
        return changes

    def get_job_status(self) -> Optional[dict]:
        job = self.scheduler.get_job(CRAWL_JOB_ID)
        if not job:
            return None
        return {
            "job_id": job.id,
            "next_run": job.next_run_time.isoformat() if job.next_run_time else None,
            "trigger": str(job.trigger),
        }

    def is_running(self) -> bool:
        return self.scheduler.running
