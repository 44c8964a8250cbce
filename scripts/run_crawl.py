"""Manual crawl runner.

Crawls one or more storefronts and prints the normalized products. With
--save the results are written to the product store; with --schedule the
crawl repeats every CRAWL_INTERVAL_MINUTES until interrupted.

Usage:
    python scripts/run_crawl.py
    python scripts/run_crawl.py --site poppatea --site tokichi
    python scripts/run_crawl.py --site yoshien --limit 5 --save
    python scripts/run_crawl.py --schedule
"""

import argparse
import asyncio
from typing import List

from restockradar.config import settings
from restockradar.core.logging import configure_logging
from restockradar.db.session import async_session_factory, init_db
from restockradar.scrapers.base import SiteResult
from restockradar.scrapers.register_adapters import register_all_adapters
from restockradar.scrapers.scheduler import CrawlScheduler
from restockradar.scrapers.sites import SITE_CONFIGS


def print_results(results: List[SiteResult], limit: int) -> None:
    for result in results:
        print(f"\n{'=' * 70}")
        if not result.succeeded:
            print(f"  {result.site}: FAILED ({result.error_kind.value}) after {result.elapsed_seconds:.1f}s")
            print(f"  {result.error_message}")
            continue

        in_stock = sum(1 for p in result.products if p.in_stock)
        print(
            f"  {result.site}: {len(result.products)} products, {in_stock} in stock, "
            f"{result.elapsed_seconds:.1f}s"
        )
        print(f"{'=' * 70}")
        for product in result.products[:limit]:
            price = f"{product.price:.2f} {product.currency}" if product.price is not None else "n/a"
            stock = "in stock" if product.in_stock else "sold out"
            print(f"  [{stock:>8}] {product.name}  {price}")
            for variant in product.variants:
                variant_price = variant.price if variant.price is not None else "n/a"
                print(f"      - {variant.label}: {variant_price} {'' if variant.available else '(sold out)'}")
            print(f"      {product.url}")

    failed = [r.site for r in results if not r.succeeded]
    print(f"\n{'=' * 70}")
    print(f"  Sites: {len(results)}  Failed: {', '.join(failed) if failed else 'none'}")
    print(f"{'=' * 70}\n")


async def run(site_keys: List[str], limit: int, save: bool) -> None:
    if save:
        await init_db()
    scheduler = CrawlScheduler(db_session_factory=async_session_factory if save else None)
    results = await scheduler.run_crawl(site_keys)
    print_results(results, limit)


async def run_forever(site_keys: List[str]) -> None:
    await init_db()
    scheduler = CrawlScheduler(db_session_factory=async_session_factory)
    scheduler.add_crawl_job(site_keys)
    scheduler.start()
    try:
        await asyncio.Event().wait()
    finally:
        scheduler.stop()


def main():
    """Parse arguments and run the crawl."""
    parser = argparse.ArgumentParser(
        description="Crawl storefronts and print normalized products",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"Configured sites: {', '.join(SITE_CONFIGS)}",
    )
    parser.add_argument(
        "--site",
        action="append",
        default=[],
        help="Site key to crawl; repeat for several (default: all sites)",
    )
    parser.add_argument(
        "--limit",
        type=int,
        default=10,
        help="Maximum number of products printed per site (default: 10)",
    )
    parser.add_argument(
        "--save",
        action="store_true",
        help="Persist results to DATABASE_URL",
    )
    parser.add_argument(
        "--schedule",
        action="store_true",
        help="Keep running and crawl every CRAWL_INTERVAL_MINUTES",
    )
    args = parser.parse_args()

    configure_logging(settings.LOG_LEVEL, json=settings.LOG_JSON)
    register_all_adapters()

    try:
        if args.schedule:
            asyncio.run(run_forever(args.site))
        else:
            asyncio.run(run(args.site, args.limit, args.save))
    except KeyboardInterrupt:
        print("\nInterrupted.")


if __name__ == "__main__":
    main()
