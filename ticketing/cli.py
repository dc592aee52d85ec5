#!/usr/bin/env python3
"""Operator CLI for the ticketing backend.

Usage:
    # Create any missing tables
    python -m ticketing.cli init-db

    # Settle open orders whose payment was captured at the gateway
    python -m ticketing.cli reconcile --older-than 15

    # Quote a fare without touching the database
    python -m ticketing.cli quote-fare Churchgate Andheri --fare-class premium
"""

import argparse
import asyncio
import sys
from datetime import timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from ticketing.core.config import settings
from ticketing.core.database import create_tables, get_session_factory
from ticketing.core.exceptions import TicketingError
from ticketing.core.stations import get_station_catalog
from ticketing.models.ticket import FareClass, PassengerClass, TripValidity
from ticketing.services.fare_service import FareRequest, compute_fare
from ticketing.services.payment_gateway import RazorpayGateway
from ticketing.services.payment_service import PaymentService
from ticketing.services.storage import TicketingStore


async def cmd_init_db(args: argparse.Namespace) -> int:
    """Create tables for all models."""
    await create_tables()
    print("✅ Database tables are in place")
    return 0


async def cmd_reconcile(args: argparse.Namespace, session: AsyncSession) -> int:
    """
    Run one reconciliation pass.

    Args:
        args: Parsed command-line arguments
        session: Database session

    Returns:
        Exit code (0 for success, 1 if any order could not be checked)
    """
    service = PaymentService(TicketingStore(session), RazorpayGateway.from_settings())
    summary = await service.reconcile_open_orders(timedelta(minutes=args.older_than))

    print(f"Checked:    {summary.checked}")
    print(f"Settled:    {summary.settled}")
    print(f"Still open: {summary.still_open}")
    print(f"Errors:     {summary.errors}")
    for order_id in summary.settled_order_ids:
        print(f"   settled {order_id}")
    return 1 if summary.errors else 0


def cmd_quote_fare(args: argparse.Namespace) -> int:
    """Print a fare quote."""
    catalog = get_station_catalog()
    quote = compute_fare(
        FareRequest(
            from_station=args.from_station,
            to_station=args.to_station,
            fare_class=FareClass(args.fare_class),
            passenger_class=PassengerClass(args.passenger_class),
            validity=TripValidity(args.validity),
        ),
        catalog,
    )
    if not quote.available:
        print(f"❌ Fare unavailable: station not in catalog {catalog.version}", file=sys.stderr)
        return 1

    print(f"{args.from_station} -> {args.to_station}: {quote.amount} {settings.PAYMENT_CURRENCY}")
    print(f"   Steps: {quote.distance_factor}")
    return 0


def main() -> int:
    """
    Main entry point for the CLI tool.

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    parser = argparse.ArgumentParser(
        description="Mumbai Local ticketing operator CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    subparsers.add_parser("init-db", help="Create any missing database tables")

    reconcile_parser = subparsers.add_parser(
        "reconcile",
        help="Settle open payment orders captured at the gateway",
        description="Ask the gateway about open orders older than the cutoff and settle captured ones.",
    )
    reconcile_parser.add_argument(
        "--older-than",
        type=int,
        default=settings.RECONCILE_AFTER_MINUTES,
        help=f"Minimum order age in minutes (default: {settings.RECONCILE_AFTER_MINUTES})",
    )

    quote_parser = subparsers.add_parser("quote-fare", help="Quote a fare between two stations")
    quote_parser.add_argument("from_station", type=str)
    quote_parser.add_argument("to_station", type=str)
    quote_parser.add_argument("--fare-class", choices=[c.value for c in FareClass], default=FareClass.STANDARD.value)
    quote_parser.add_argument(
        "--passenger-class",
        choices=[c.value for c in PassengerClass],
        default=PassengerClass.ADULT.value,
    )
    quote_parser.add_argument("--validity", choices=[v.value for v in TripValidity], default=TripValidity.ONE_WAY.value)

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return 1

    if args.command == "quote-fare":
        return cmd_quote_fare(args)

    if args.command == "init-db":
        return asyncio.run(cmd_init_db(args))

    async def run_with_session() -> int:
        async with get_session_factory()() as session:
            try:
                return await cmd_reconcile(args, session)
            except TicketingError as e:
                print(f"❌ Error ({e.kind}): {e.detail}", file=sys.stderr)
                return 1

    return asyncio.run(run_with_session())


if __name__ == "__main__":
    sys.exit(main())
