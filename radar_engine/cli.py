"""Command-line interface for the marketplace engine.

Usage:
    radar-engine sites
    radar-engine scrape --site OLX --url "https://www.olx.com.br/autos-e-pecas/carros?q=civic"
    radar-engine add-session --site FACEBOOK_MARKETPLACE --user-id u1 --storage-state state.json
"""

import argparse
import asyncio
import json
import sys
import uuid
from pathlib import Path
from typing import List, Optional

from radar_engine.core.marketplace_engine import EngineFactory
from radar_engine.core.site_registry import load_site_registry
from radar_engine.domain.entities.monitor import MonitorWithFilters
from radar_engine.domain.entities.session import StoredSession
from radar_engine.domain.entities.site_config import SiteConfig
from radar_engine.infrastructure.auth.session_store import JsonFileSessionStore
from radar_engine.utils import get_config, get_logger, log_exception, log_execution_time, set_log_level
from radar_engine.utils.config import AppConfig
from radar_engine.utils.exceptions import AppException, ConfigurationError, InvalidURLError
from radar_engine.utils.performance import get_performance_monitor
from radar_engine.utils.validators import validate_price_range, validate_site_url

logger = get_logger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Args:
        argv: Argument list (default: sys.argv[1:])

    Returns:
        Parsed arguments
    """
    parser = argparse.ArgumentParser(
        prog="radar-engine",
        description="Scrape marketplace search pages and explain empty results",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # List configured sites
  radar-engine sites

  # Scrape a saved search URL and print the diagnosis record as JSON
  radar-engine scrape --site OLX --url "https://www.olx.com.br/autos-e-pecas/carros?q=civic" --json

  # Build a Facebook Marketplace search from filters
  radar-engine scrape --site FACEBOOK_MARKETPLACE --city "São Paulo" --keyword iphone --country BR

  # Register exported browser cookies for a user
  radar-engine add-session --site FACEBOOK_MARKETPLACE --user-id u1 --storage-state state.json
        """
    )

    parser.add_argument(
        '--config',
        type=Path,
        default=None,
        help='Path to configuration file (default: auto-detect)'
    )
    parser.add_argument(
        '--log-level',
        type=str,
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        default=None,
        help='Override log level'
    )

    subparsers = parser.add_subparsers(dest='command', required=True)

    subparsers.add_parser('sites', help='List configured sites')

    scrape = subparsers.add_parser('scrape', help='Run one scrape')
    scrape.add_argument('--site', required=True, help='Site identifier (e.g., OLX)')
    scrape.add_argument('--url', default=None, help='Search URL (omit to build one from filters)')
    scrape.add_argument('--user-id', default='cli', help='User whose sessions may be used')
    scrape.add_argument('--monitor-id', default='cli', help='Monitor id used in logs and screenshots')
    scrape.add_argument('--keyword', default=None, help='Search keyword for built URLs')
    scrape.add_argument('--city', default=None)
    scrape.add_argument('--state', default=None, help='State or region code (e.g., SP)')
    scrape.add_argument('--country', default=None, help='ISO country code or WORLDWIDE')
    scrape.add_argument('--price-min', type=float, default=None)
    scrape.add_argument('--price-max', type=float, default=None)
    scrape.add_argument('--json', action='store_true', help='Print the diagnosis record as JSON')
    scrape.add_argument('--profile', action='store_true', help='Report duration and memory of the scrape')

    add_session = subparsers.add_parser('add-session', help='Store a browser session for a user')
    add_session.add_argument('--site', required=True)
    add_session.add_argument('--user-id', required=True)
    add_session.add_argument('--storage-state', type=Path, required=True,
                             help='Playwright storage state JSON file')
    add_session.add_argument('--label', default='default', help='Account label')

    return parser.parse_args(argv)


def build_monitor(args: argparse.Namespace, site_config: SiteConfig) -> MonitorWithFilters:
    """Turn scrape arguments into a monitor.

    Raises:
        InvalidURLError: If the URL is not on the site's domain.
        ValueError: If the price bounds are invalid.
    """
    if args.url and not validate_site_url(args.url, site_config.domain):
        raise InvalidURLError(f"URL is not on {site_config.domain}", url=args.url)

    validate_price_range(args.price_min, args.price_max)

    filters = {"keywords": args.keyword} if args.keyword else {}
    return MonitorWithFilters(
        id=args.monitor_id,
        user_id=args.user_id,
        site=site_config.site,
        search_url=args.url,
        mode="URL_ONLY" if args.url else "STRUCTURED_FILTERS",
        filters=filters,
        price_min=args.price_min,
        price_max=args.price_max,
        country=args.country,
        state_region=args.state,
        city=args.city,
    )


def list_sites(config: AppConfig) -> int:
    registry = load_site_registry(config.resolve_path(config.sites_file))
    for site in registry.sites:
        site_config = registry.get(site)
        print(f"{site:<24} {site_config.domain:<28} {site_config.auth_mode}")
    return 0


async def add_session(args: argparse.Namespace, config: AppConfig) -> int:
    """Save a storage state file into the JSON session store."""
    if not config.sessions_file:
        raise ConfigurationError("sessions_file is not configured; sessions would not persist")

    registry = load_site_registry(config.resolve_path(config.sites_file))
    site = registry.get(args.site).site

    with open(args.storage_state, "r", encoding="utf-8") as f:
        storage_state = json.load(f)

    session = StoredSession(
        session_id=f"{site.lower()}-{uuid.uuid4().hex[:8]}",
        user_id=args.user_id,
        site=site,
        storage_state=storage_state,
        account_label=args.label,
    )
    store = JsonFileSessionStore(config.resolve_path(config.sessions_file))
    await store.save(session)

    print(f"✓ Stored session {session.session_id} for {args.user_id} on {site}")
    return 0


async def scrape(args: argparse.Namespace, config: AppConfig) -> int:
    """Run one scrape and print its outcome."""
    performance = get_performance_monitor()
    if args.profile:
        performance.enable()

    factory = EngineFactory.from_config(config)
    try:
        engine = factory.create_engine(args.site)
        monitor = build_monitor(args, engine.config)

        with log_execution_time(logger, f"scrape {engine.site}"), performance.measure("scrape") as entry:
            result, record = await engine.scrape_with_record(monitor)
            entry.items_processed = len(result.ads)
    finally:
        await factory.shutdown()

    if args.json:
        print(record.model_dump_json(indent=2))
        return 0 if result.success else 1

    print("\n" + "=" * 60)
    print("SCRAPE SUMMARY")
    print("=" * 60)
    print(f"Site: {engine.site}")
    print(f"Page type: {record.page_type.value}")
    print(f"Final URL: {record.final_url}")
    print(f"Ads: {record.ads_valid} valid / {record.ads_raw} raw")
    if record.skipped_reasons:
        print(f"Skipped: {record.skipped_reasons}")
    print(f"Auth: {record.auth_source}")
    print(f"Duration: {record.duration_ms}ms (retries: {record.retry_attempts})")
    if result.diagnosis.screenshot_path:
        print(f"Screenshot: {result.diagnosis.screenshot_path}")
    if performance.enabled:
        summary = performance.get_summary("scrape")
        print(f"Profile: {summary['total_duration']:.2f}s, memory {summary['avg_memory_mb']:+.1f}MB")
    print("=" * 60)

    for i, ad in enumerate(result.ads[:5], 1):
        print(f"  {i}. {ad.title} - {ad.price:.2f}")
        print(f"     URL: {ad.url}")

    if not result.success:
        print(f"\n✗ Scrape failed: {record.error}")
        return 1
    return 0


async def run(args: argparse.Namespace) -> int:
    config = get_config(args.config)
    if args.log_level:
        set_log_level(logger, args.log_level)

    if args.command == 'sites':
        return list_sites(config)
    if args.command == 'add-session':
        return await add_session(args, config)
    return await scrape(args, config)


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    args = parse_args(argv)

    try:
        return asyncio.run(run(args))

    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        print("\n✗ Cancelled by user")
        return 1

    except (AppException, ValueError, OSError) as e:
        log_exception(logger, args.command, e)
        print(f"\n✗ {args.command} failed: {e}")
        return 1


if __name__ == '__main__':
    sys.exit(main())
