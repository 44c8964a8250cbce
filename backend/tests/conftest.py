"""Pytest configuration and shared fixtures."""

from typing import Dict, List, Optional, Union

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from restockradar.core.exceptions import FetchError
from restockradar.db.session import Base
from restockradar.scrapers.base import SiteConfig
from restockradar.scrapers.utils.fetcher import FetchResponse


class FakeFetcher:
    """In-memory fetch transport.

    Pages map a URL to HTML text, raw bytes (served with the given content
    type) or an exception instance to raise.
    """

    def __init__(self, pages: Optional[Dict[str, Union[str, bytes, Exception]]] = None):
        self.pages = dict(pages or {})
        self.calls: List[str] = []
        self.content_types: Dict[str, str] = {}

    async def fetch(self, url: str, headers=None, timeout=None) -> FetchResponse:
        self.calls.append(url)
        page = self.pages.get(url)
        if page is None:
            raise FetchError(url, "HTTP 404", status=404)
        if isinstance(page, Exception):
            raise page
        if isinstance(page, bytes):
            return FetchResponse(
                status=200,
                text="",
                url=url,
                content=page,
                headers={"content-type": self.content_types.get(url, "image/png")},
            )
        return FetchResponse(
            status=200,
            text=page,
            url=url,
            content=page.encode("utf-8"),
            headers={"content-type": "text/html; charset=utf-8"},
        )

    async def close(self) -> None:
        pass


@pytest.fixture
def fake_fetcher() -> FakeFetcher:
    return FakeFetcher()


@pytest.fixture
def shop_config() -> SiteConfig:
    """A German storefront with a two-step name selector chain."""
    return SiteConfig(
        key="testshop",
        name="Test Shop",
        base_url="https://shop.example.com",
        category_url="https://shop.example.com/collections/matcha",
        currency="EUR",
        product_selectors=(".product-card", ".grid-item"),
        name_selectors=(".title", "h3"),
        price_selectors=(".price",),
        stock_selectors=(".stock", "button"),
        link_selectors=("a.product-link", "a[href]"),
        image_selectors=("img",),
        stock_keywords=("in den warenkorb",),
        out_of_stock_keywords=("ausverkauft",),
        out_of_stock_selectors=(".badge--sold-out",),
        request_delay_seconds=0,
    )


@pytest_asyncio.fixture
async def test_db():
    """Create an in-memory SQLite database for testing."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    SessionLocal = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )

    async with SessionLocal() as session:
        yield session

    await engine.dispose()
