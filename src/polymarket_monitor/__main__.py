"""Command line entry point: ``python -m polymarket_monitor <command>``."""

from __future__ import annotations

import argparse
import asyncio
import logging
import re
import signal
import sys
from collections.abc import Sequence

from pydantic import ValidationError

from polymarket_monitor.alerter.formatter import format_alert_line
from polymarket_monitor.alerter.models import Alert, AlertSeverity, AlertType
from polymarket_monitor.alerter.webhook import WebhookDelivery
from polymarket_monitor.config import Settings, get_settings
from polymarket_monitor.orchestrator import build_from_settings
from polymarket_monitor.storage.database import DatabaseManager
from polymarket_monitor.storage.repos import (
    AlertRepository,
    TrackedAccountDTO,
    TrackedAccountRepository,
    TrackedMarketDTO,
    TrackedMarketRepository,
)
from polymarket_monitor.tracked import ADDRESS_PATTERN, TrackedConfigError, load_tracked_config, sync_tracked

logger = logging.getLogger("polymarket_monitor")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _configure_logging(settings: Settings) -> None:
    logging.basicConfig(level=settings.get_logging_level(), format=LOG_FORMAT)
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


async def _sync_tracked_file(settings: Settings, db: DatabaseManager) -> None:
    if settings.tracked.config_path is None:
        return
    config = load_tracked_config(settings.tracked.config_path)
    await sync_tracked(db, config)


async def _run(settings: Settings, *, once: bool) -> int:
    db = DatabaseManager(settings.database.url)
    orchestrator = build_from_settings(settings, db=db)
    async with orchestrator:
        await _sync_tracked_file(settings, db)
        if once:
            await orchestrator.run_cycle()
            return 0

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, orchestrator.stop)
        try:
            await orchestrator.run()
        finally:
            for sig in (signal.SIGTERM, signal.SIGINT):
                loop.remove_signal_handler(sig)
    return 0


async def _track_market(settings: Settings, args: argparse.Namespace) -> int:
    db = DatabaseManager(settings.database.url)
    try:
        async with db.session() as session:
            await TrackedMarketRepository(session).upsert(
                TrackedMarketDTO(
                    condition_id=args.condition_id,
                    name=args.name,
                    event_id=args.event_id,
                    enabled=not args.disable,
                )
            )
    finally:
        await db.dispose()
    print(f"Tracked market {args.condition_id} ({'disabled' if args.disable else 'enabled'})")
    return 0


async def _track_account(settings: Settings, args: argparse.Namespace) -> int:
    if not re.match(ADDRESS_PATTERN, args.address):
        print(f"Invalid address: {args.address}", file=sys.stderr)
        return 2
    db = DatabaseManager(settings.database.url)
    try:
        async with db.session() as session:
            account = await TrackedAccountRepository(session).upsert(
                TrackedAccountDTO(address=args.address, name=args.name, enabled=not args.disable)
            )
    finally:
        await db.dispose()
    print(f"Tracked account {account.address} ({'disabled' if args.disable else 'enabled'})")
    return 0


async def _show_alerts(settings: Settings, args: argparse.Namespace) -> int:
    db = DatabaseManager(settings.database.url)
    try:
        async with db.session() as session:
            alerts = await AlertRepository(session).find_recent(limit=args.limit)
    finally:
        await db.dispose()
    if not alerts:
        print("No alerts stored")
    for alert in alerts:
        print(format_alert_line(alert))
    return 0


async def _test_webhook(settings: Settings) -> int:
    db = DatabaseManager(settings.database.url)
    delivery = WebhookDelivery(
        db,
        settings.webhook.url,
        retry_attempts=settings.webhook.retry_attempts,
        timeout_ms=settings.webhook.timeout_ms,
    )
    alert = Alert(
        alert_type=AlertType.MARKET_UPDATE,
        severity=AlertSeverity.LOW,
        title="Test alert from polymarket-monitor",
        data={
            "market": {"slug": "test-market", "title": "Test market", "conditionId": "0xtest", "outcomes": ["Yes", "No"]},
            "outcomePrices": [0.5, 0.5],
            "volume": 0,
            "test": True,
        },
    )
    try:
        ok = await delivery.send_alert(alert)
    finally:
        await delivery.close()
        await db.dispose()
    print("Webhook test succeeded" if ok else "Webhook test failed")
    return 0 if ok else 1


async def _init_db(settings: Settings) -> int:
    db = DatabaseManager(settings.database.url)
    try:
        await db.init_schema()
    finally:
        await db.dispose()
    print("Database schema created")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="polymarket-monitor",
        description="Poll Polymarket for notable activity and deliver alerts to a webhook",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("run", help="Run monitoring cycles on the configured interval until interrupted")
    sub.add_parser("once", help="Run a single monitoring cycle")

    market = sub.add_parser("track-market", help="Add or update a tracked market")
    market.add_argument("condition_id")
    market.add_argument("--name", help="Market question; also used for slug lookup")
    market.add_argument("--event-id", type=int, help="Event id, enables live volume tracking")
    market.add_argument("--disable", action="store_true", help="Store the market as disabled")

    account = sub.add_parser("track-account", help="Add or update a tracked account")
    account.add_argument("address")
    account.add_argument("--name")
    account.add_argument("--disable", action="store_true", help="Store the account as disabled")

    alerts = sub.add_parser("show-alerts", help="List recently stored alerts")
    alerts.add_argument("--limit", type=int, default=20)

    sub.add_parser("test-webhook", help="Send a sample alert to the configured webhook")
    sub.add_parser("init-db", help="Create the database schema without migrations")
    return parser


async def _dispatch(settings: Settings, args: argparse.Namespace) -> int:
    if args.command in ("run", "once"):
        return await _run(settings, once=args.command == "once")
    if args.command == "track-market":
        return await _track_market(settings, args)
    if args.command == "track-account":
        return await _track_account(settings, args)
    if args.command == "show-alerts":
        return await _show_alerts(settings, args)
    if args.command == "test-webhook":
        return await _test_webhook(settings)
    if args.command == "init-db":
        return await _init_db(settings)
    raise ValueError(f"Unknown command: {args.command}")


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = get_settings()
    except ValidationError as e:
        print(f"Invalid configuration:\n{e}", file=sys.stderr)
        return 2

    _configure_logging(settings)
    logger.info("Starting with settings: %s", settings.redacted_summary())

    try:
        return asyncio.run(_dispatch(settings, args))
    except TrackedConfigError as e:
        logger.error("%s", e)
        return 2
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
