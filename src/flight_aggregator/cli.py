# src/flight_aggregator/cli.py
"""
Command-line entry point for the flight aggregator.

Runs a single search across the configured providers and prints the
ranked result as JSON. Providers, cache and ranking weights come from the
environment (see config.load_settings).
"""

import argparse
import json
import logging
import sys
from dataclasses import asdict, replace
from typing import List, Optional

from flight_aggregator.config import Settings, build_aggregator, load_settings
from flight_aggregator.core.models import CABINS, TRIP_TYPES, SearchParams
from flight_aggregator.core.scoring import FilterCriteria


logger = logging.getLogger(__name__)


def _csv_list(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [p.strip() for p in value.split(",") if p.strip()]


def create_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="flight-aggregator",
        description="Search flight offers across several providers.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  flight-aggregator search JFK LAX 2030-01-01
  flight-aggregator search JFK LAX 2030-01-01 --return-date 2030-01-08 --trip-type round-trip
  flight-aggregator search JFK LAX 2030-01-01 --max-stops 0 --sort-by price --order asc
  flight-aggregator providers --health
        """,
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    sub = parser.add_subparsers(dest="command", required=True)

    search = sub.add_parser("search", help="Run one flight search")
    search.add_argument("origin", help="Departure airport (IATA)")
    search.add_argument("destination", help="Arrival airport (IATA)")
    search.add_argument("depart_date", help="Departure date, YYYY-MM-DD")
    search.add_argument("--return-date", help="Return date, YYYY-MM-DD")
    search.add_argument("--trip-type", choices=TRIP_TYPES, default="one-way")
    search.add_argument("--passengers", type=int, default=1)
    search.add_argument("--cabin", choices=CABINS)
    search.add_argument("--max-price", type=float)
    search.add_argument("--providers", help="Comma-separated provider subset")
    search.add_argument("--airlines", help="Comma-separated carrier codes to allow")
    search.add_argument("--max-stops", type=int, help="Drop offers with more stops")
    search.add_argument("--max-duration", type=int, help="Drop offers longer than N minutes")
    search.add_argument("--sort-by", choices=["price", "duration", "stops", "score"])
    search.add_argument("--order", choices=["asc", "desc"], default="desc")
    search.add_argument("--stats", action="store_true", help="Include price statistics")

    providers = sub.add_parser("providers", help="List registered providers")
    providers.add_argument("--health", action="store_true", help="Also run health checks")

    return parser


def _run_search(args: argparse.Namespace, settings: Settings) -> int:
    try:
        params = SearchParams.from_dict(
            {
                "from": args.origin,
                "to": args.destination,
                "departDate": args.depart_date,
                "returnDate": args.return_date,
                "tripType": args.trip_type,
                "passengers": args.passengers,
                "cabin": args.cabin,
                "maxPrice": args.max_price,
                "includeProviders": _csv_list(args.providers),
                "airlines": _csv_list(args.airlines),
            }
        )
    except ValueError as exc:
        print(f"Invalid search parameters: {exc}", file=sys.stderr)
        return 2

    aggregator = build_aggregator(settings)

    validation = aggregator.validate_search_params(params)
    if not validation.valid:
        print("Invalid search parameters:", file=sys.stderr)
        for error in validation.errors:
            print(f"  - {error}", file=sys.stderr)
        return 2

    logger.debug("Searching with %s", params)
    result = aggregator.search_flights(params)

    flights = aggregator.filter_offers(
        result.flights,
        FilterCriteria(
            max_stops=args.max_stops,
            max_duration=args.max_duration,
        ),
    )
    if args.sort_by:
        flights = aggregator.sort_offers(flights, args.sort_by, args.order)
    result = replace(result, flights=flights, total_results=len(flights))

    payload = result.to_dict()
    if args.stats:
        payload["price_stats"] = asdict(aggregator.price_stats(flights))

    print(json.dumps(payload, indent=2))
    return 0 if result.status != "error" else 1


def _run_providers(args: argparse.Namespace, settings: Settings) -> int:
    aggregator = build_aggregator(settings)
    payload = {"providers": aggregator.get_providers(), "count": len(aggregator.get_providers())}
    if args.health:
        payload["health"] = aggregator.provider_health()
    print(json.dumps(payload, indent=2))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = create_argument_parser()
    args = parser.parse_args(argv)

    try:
        settings = load_settings()
    except ValueError as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return 2

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else settings.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    if args.command == "search":
        return _run_search(args, settings)
    return _run_providers(args, settings)


if __name__ == "__main__":
    sys.exit(main())
