"""Tests for the product store and the scheduled crawl persistence."""

from decimal import Decimal
from typing import List, Optional

import pytest_asyncio
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from restockradar.core.exceptions import ErrorKind
from restockradar.db.session import Base
from restockradar.models.price_history import PriceHistory
from restockradar.models.stock_history import StockHistory
from restockradar.scrapers.base import Product, SiteResult, Variant
from restockradar.scrapers.scheduler import CRAWL_JOB_ID, CrawlScheduler
from restockradar.services.product_store import ProductStore


def _product(
    product_id: str = "ippodo_sayaka_sayaka",
    site: str = "ippodo",
    price: Optional[str] = "24.00",
    in_stock: bool = True,
    name: str = "Sayaka Matcha",
) -> Product:
    amount = Decimal(price) if price is not None else None
    return Product(
        site=site,
        id=product_id,
        name=name,
        url=f"https://{site}.example.com/products/{product_id}",
        category="matcha",
        price=amount,
        in_stock=in_stock,
        image_url=None,
        variants=[Variant(label="40g", price=amount, available=in_stock)],
        site_name=site.title(),
    )


async def _count(db: AsyncSession, model) -> int:
    result = await db.execute(select(func.count()).select_from(model))
    return result.scalar_one()


class TestProductStore:
    """Test upserts and change detection."""

    async def test_new_product(self, test_db):
        store = ProductStore(test_db)

        changes = await store.upsert_products([_product()])

        assert [(c.change_type, c.in_stock, c.price) for c in changes] == [("new", True, Decimal("24.00"))]
        record = await store.get("ippodo_sayaka_sayaka")
        assert record.name == "Sayaka Matcha"
        assert record.variants == [
            {"label": "40g", "price": "24.00", "available": True, "variant_id": None, "currency": None}
        ]
        assert await _count(test_db, StockHistory) == 1
        assert await _count(test_db, PriceHistory) == 1

    async def test_unchanged_product_reports_nothing(self, test_db):
        store = ProductStore(test_db)
        await store.upsert_products([_product()])

        changes = await store.upsert_products([_product()])

        assert changes == []
        assert await _count(test_db, StockHistory) == 1

    async def test_restock_detected(self, test_db):
        """Test that an out-of-stock product coming back is flagged as a restock."""
        store = ProductStore(test_db)
        await store.upsert_products([_product(in_stock=False)])

        changes = await store.upsert_products([_product(in_stock=True)])

        assert len(changes) == 1
        assert changes[0].change_type == "stock"
        assert changes[0].previous_in_stock is False
        assert changes[0].is_restock
        assert await _count(test_db, StockHistory) == 2

    async def test_sell_out_is_not_a_restock(self, test_db):
        store = ProductStore(test_db)
        await store.upsert_products([_product(in_stock=True)])

        [change] = await store.upsert_products([_product(in_stock=False)])

        assert change.change_type == "stock"
        assert not change.is_restock

    async def test_price_change(self, test_db):
        store = ProductStore(test_db)
        await store.upsert_products([_product(price="24.00")])

        [change] = await store.upsert_products([_product(price="21.60")])

        assert change.change_type == "price"
        assert change.price == Decimal("21.60")
        assert change.previous_price == Decimal("24.00")
        assert await _count(test_db, PriceHistory) == 2

    async def test_missing_price_keeps_last_known(self, test_db):
        store = ProductStore(test_db)
        await store.upsert_products([_product(price="24.00")])

        changes = await store.upsert_products([_product(price=None)])
        record = await store.get("ippodo_sayaka_sayaka")

        assert changes == []
        assert record.price == Decimal("24.00")

    async def test_duplicate_ids_in_one_batch(self, test_db):
        store = ProductStore(test_db)

        changes = await store.upsert_products([_product(in_stock=False), _product(in_stock=True)])

        assert [c.change_type for c in changes] == ["new", "stock"]
        assert (await store.get("ippodo_sayaka_sayaka")).in_stock is True


class TestMarkMissed:
    """Test missed scan counting."""

    async def test_unlisted_products_are_counted(self, test_db):
        store = ProductStore(test_db)
        await store.upsert_products([
            _product("ippodo_a_a", name="A"),
            _product("ippodo_b_b", name="B"),
            _product("marukyu_c_c", site="marukyu", name="C"),
        ])

        marked = await store.mark_missed("ippodo", ["ippodo_a_a"])

        assert marked == 1
        assert (await store.get("ippodo_b_b")).missed_scans == 1
        assert (await store.get("ippodo_a_a")).missed_scans == 0
        assert (await store.get("marukyu_c_c")).missed_scans == 0

    async def test_seen_again_resets_counter(self, test_db):
        store = ProductStore(test_db)
        await store.upsert_products([_product()])
        await store.mark_missed("ippodo", [])

        await store.upsert_products([_product()])

        assert (await store.get("ippodo_sayaka_sayaka")).missed_scans == 0

    async def test_list_site_products_filters_stock(self, test_db):
        store = ProductStore(test_db)
        await store.upsert_products([
            _product("ippodo_a_a", name="A", in_stock=True),
            _product("ippodo_b_b", name="B", in_stock=False),
        ])

        in_stock = await store.list_site_products("ippodo", in_stock=True)

        assert [r.name for r in in_stock] == ["A"]
        assert len(await store.list_site_products("ippodo")) == 2


class FakeCrawlService:
    """Stands in for CrawlService inside the scheduler."""

    results: List[SiteResult] = []
    requested: List[list] = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return None

    async def crawl(self, site_keys):
        type(self).requested.append(list(site_keys))
        return self.results


@pytest_asyncio.fixture
async def session_factory():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


class TestCrawlScheduler:
    """Test the scheduled crawl job."""

    async def test_run_crawl_persists_successful_sites_only(self, session_factory):
        FakeCrawlService.requested = []
        FakeCrawlService.results = [
            SiteResult(site="ippodo", status="success", products=[_product()]),
            SiteResult(
                site="marukyu",
                status="failed",
                error_kind=ErrorKind.FETCH,
                error_message="HTTP 503",
            ),
        ]
        scheduler = CrawlScheduler(db_session_factory=session_factory, service_factory=FakeCrawlService)

        results = await scheduler.run_crawl(["ippodo", "marukyu"])

        assert results == FakeCrawlService.results
        assert FakeCrawlService.requested == [["ippodo", "marukyu"]]
        async with session_factory() as db:
            store = ProductStore(db)
            assert [r.id for r in await store.list_site_products("ippodo")] == ["ippodo_sayaka_sayaka"]
            assert await store.list_site_products("marukyu") == []

    async def test_failed_site_does_not_mark_products_missed(self, session_factory):
        async with session_factory() as db:
            await ProductStore(db).upsert_products([_product("marukyu_c_c", site="marukyu", name="C")])

        FakeCrawlService.results = [SiteResult(site="marukyu", status="failed", error_kind=ErrorKind.TIMEOUT)]
        scheduler = CrawlScheduler(db_session_factory=session_factory, service_factory=FakeCrawlService)
        await scheduler.run_crawl(["marukyu"])

        async with session_factory() as db:
            assert (await ProductStore(db).get("marukyu_c_c")).missed_scans == 0

    async def test_wrapper_swallows_errors(self):
        class ExplodingService(FakeCrawlService):
            async def crawl(self, site_keys):
                raise RuntimeError("boom")

        scheduler = CrawlScheduler(service_factory=ExplodingService)

        await scheduler._run_crawl_wrapper(["ippodo"])

    async def test_add_crawl_job(self):
        scheduler = CrawlScheduler(service_factory=FakeCrawlService)
        scheduler.start()
        try:
            scheduler.add_crawl_job(["ippodo"], interval_minutes=30)
            status = scheduler.get_job_status()
        finally:
            scheduler.stop()

        assert status["job_id"] == CRAWL_JOB_ID
        assert "0:30:00" in status["trigger"]
        assert scheduler.is_running() is False
