#!/usr/bin/env python3
"""
Polyfills - Polymarket fill history fetcher

Fetches every order fill for all outcome tokens of a market or event,
prices each fill, merges complementary outcomes and prints a summary.

Usage:
    python main.py <market-slug>                  # Fetch (or reuse cache) and summarize
    python main.py <market-slug> --no-cache       # Ignore cached fills, fetch fresh
    python main.py <market-slug> --skip-fetch     # Use cached fills only
    python main.py <market-slug> --output out.json
"""

import asyncio
import argparse
import json
import logging
import sys

from loguru import logger

from polyfills.config import load_config
from polyfills.core.gamma_client import GammaClient
from polyfills.core.subgraph_client import SubgraphClient
from polyfills.database.db import init_db
from polyfills.exceptions import PolyfillsError
from polyfills.ingestion.fill_fetcher import FillFetcher, RetryPolicy
from polyfills.pipeline import MarketFillsPipeline, PipelineResult
from polyfills.processing.aggregator import log_statistics, outcome_statistics
from polyfills.processing.pair_matcher import BinaryPairMatcher, PairingPolicy


def setup_logging(config: dict):
    """Configure loguru and the stdlib loggers used by library modules"""
    log_config = config.get('logging', {})
    level = log_config.get('level', 'INFO')

    # Remove default handler
    logger.remove()

    logger.add(
        sys.stderr,
        level=level,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
    )

    log_file = log_config.get('file')
    if log_file:
        logger.add(
            log_file,
            level=level,
            rotation="10 MB",
            retention="7 days"
        )

    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s | %(levelname)-8s | %(name)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logging.getLogger("aiohttp").setLevel(logging.WARNING)


def log_summary(result: PipelineResult):
    """Write the market summary table to the log"""
    logger.info("=" * 60)
    logger.info(f"MARKET SUMMARY: {result.market_slug}")
    logger.info("=" * 60)
    for row in result.summary:
        kind = "binary" if row.is_binary else "single"
        logger.info(
            f"{row.market} [{kind}] fills={row.total_fills:g} volume={row.total_volume:,.2f} "
            f"avg_vol={row.avg_volume:,.2f} price={row.current_price:.4f} "
            f"(min {row.min_price:.4f} / max {row.max_price:.4f} / avg {row.avg_price:.4f}) "
            f"{row.earliest_fill} -> {row.latest_fill}"
        )

    if result.failed_tokens:
        logger.warning(f"Tokens with no data due to fetch errors: {', '.join(result.failed_tokens)}")


async def run(args) -> int:
    config = load_config(args.config)
    if args.verbose:
        config['logging']['level'] = 'DEBUG'
    setup_logging(config)

    sub_cfg = config['subgraph']
    gamma_cfg = config['gamma']
    cache_cfg = config['cache']

    cache = init_db(cache_cfg['path']) if cache_cfg.get('enabled', True) else None

    if args.clear_cache:
        if cache is None:
            logger.error("Cache is disabled in config")
            return 1
        await cache.clear_cache(args.slug)
        await cache.close()
        return 0

    if not args.slug:
        logger.error("Market slug is required")
        return 1

    logger.info("=" * 60)
    logger.info("POLYMARKET FILLS FETCHER")
    logger.info(f"Market Slug: {args.slug}")
    logger.info(f"Use Cache: {not args.no_cache}")
    logger.info(f"Skip Fetch: {args.skip_fetch}")
    logger.info("=" * 60)

    subgraph = SubgraphClient(
        url=sub_cfg['url'],
        request_timeout=sub_cfg['request_timeout'],
    )
    gamma = GammaClient(
        url=gamma_cfg['url'],
        max_retries=gamma_cfg['max_retries'],
        retry_delay=gamma_cfg['retry_delay'],
    )
    fetcher = FillFetcher(
        subgraph,
        page_size=sub_cfg['page_size'],
        max_concurrent=sub_cfg['max_concurrent'],
        retry_policy=RetryPolicy(
            page_delay=sub_cfg['page_delay'],
            rate_limit_cooldown=sub_cfg['rate_limit_cooldown'],
        ),
    )
    policy = PairingPolicy.STRICT if args.strict_pairing else PairingPolicy.GREEDY
    pipeline = MarketFillsPipeline(
        gamma=gamma,
        fetcher=fetcher,
        matcher=BinaryPairMatcher(policy),
        cache=cache,
        tz_name=config['output']['timezone'],
    )

    try:
        result = await pipeline.run(
            args.slug,
            use_cache=not args.no_cache,
            skip_fetch=args.skip_fetch,
        )
    except PolyfillsError as e:
        logger.error(f"Error: {e}")
        return 1
    finally:
        await subgraph.close()
        await gamma.close()
        if cache is not None:
            await cache.close()

    if result.is_empty:
        logger.info("No fills found for this market.")
        return 0

    log_summary(result)
    log_statistics(outcome_statistics(result.processed_fills))

    if args.output:
        with open(args.output, "w") as f:
            json.dump(result.to_dict(), f, indent=2)
        logger.info(f"Wrote {len(result.processed_fills)} fills to {args.output}")

    logger.info("Done!")
    return 0


def main():
    """Main entry point"""
    parser = argparse.ArgumentParser(
        description="Polyfills - Polymarket fill history fetcher"
    )
    parser.add_argument('slug', nargs='?', help='Polymarket market or event slug')
    parser.add_argument('--config', '-c', default='config.yaml', help='Path to configuration file')
    parser.add_argument('--no-cache', action='store_true', help="Don't use cached data, fetch fresh")
    parser.add_argument('--skip-fetch', action='store_true', help='Use cached data only')
    parser.add_argument('--output', '-o', help='Write fills, groups and summary to a JSON file')
    parser.add_argument(
        '--strict-pairing',
        action='store_true',
        help='Only merge outcomes when exactly two share a market question'
    )
    parser.add_argument(
        '--clear-cache',
        action='store_true',
        help='Remove cached fills (for the slug if given, otherwise all) and exit'
    )
    parser.add_argument('--verbose', '-v', action='store_true', help='Debug logging')

    args = parser.parse_args()
    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
