"""
RegistryScout — CLI Entry Point

Usage:
  # Search the default registries (Florida, New York, Colorado)
  python main.py search "acme holdings"

  # Officer search on chosen sources, one at a time
  python main.py search "jane doe" --type officer --sources florida colorado --sequential

  # Fetch one OpenCorporates company page with its officers
  python main.py details https://opencorporates.com/companies/us_de/1234567

  # Show which sources and strategies can run on this machine
  python main.py sources
"""

import argparse
import asyncio
import json
import logging
import sys

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s — %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("registryscout")


def parse_args(argv=None):
    from registryscout.adapters.sources.policy import SOURCE_POLICIES

    parser = argparse.ArgumentParser(
        description="RegistryScout — Resilient business registry search"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # search command
    search_parser = subparsers.add_parser("search", help="Search business registries")
    search_parser.add_argument("query", help="Company or person name")
    search_parser.add_argument(
        "--sources", nargs="+", choices=sorted(SOURCE_POLICIES), default=None,
        help="Sources to query (default: florida new_york colorado)",
    )
    search_parser.add_argument(
        "--type", dest="search_type", choices=["company", "officer"], default="company",
        help="What to search for (default: company)",
    )
    search_parser.add_argument("--limit", type=int, default=None, help="Max results per source")
    search_parser.add_argument(
        "--sequential", action="store_true", help="Query sources one at a time instead of concurrently"
    )
    search_parser.add_argument("--jurisdiction", default=None, help="OpenCorporates code, e.g. us_de")
    search_parser.add_argument("--active-only", action="store_true", help="Drop inactive entities")
    search_parser.add_argument("--current-only", action="store_true", help="Drop former officers")

    # details command
    details_parser = subparsers.add_parser("details", help="Fetch an OpenCorporates company page")
    details_parser.add_argument("url", help="Company URL or /companies/{jurisdiction}/{number} path")

    # sources command
    subparsers.add_parser("sources", help="Show the source status table")

    return parser.parse_args(argv)


def _print_json(payload) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False))


async def run_search(args) -> int:
    from registryscout.infrastructure.config import Config
    from registryscout.infrastructure.container import Container
    from registryscout.use_cases.search_registries import SearchRegistriesRequest

    config = Config.from_env()
    container = Container(config)
    try:
        response = await container.search_use_case.execute(
            SearchRegistriesRequest(
                query=args.query,
                sources=args.sources,
                search_type=args.search_type,
                limit=args.limit or config.default_search_limit,
                parallel=not args.sequential,
                jurisdiction=args.jurisdiction,
                include_inactive=not args.active_only,
                current_only=args.current_only,
            )
        )
    finally:
        await container.aclose()

    _print_json(response.to_dict())
    return 0 if response.successful else 1


async def run_details(url: str) -> int:
    from registryscout.infrastructure.config import Config
    from registryscout.infrastructure.container import Container

    container = Container(Config.from_env())
    try:
        result = await container.opencorporates.fetch_company_details(url)
    finally:
        await container.aclose()

    _print_json(result.to_dict())
    return 0 if result.success else 1


def show_sources() -> int:
    from registryscout.infrastructure.config import Config
    from registryscout.infrastructure.container import Container

    container = Container(Config.from_env())
    _print_json(container.describe_sources())
    return 0


def main(argv=None) -> int:
    args = parse_args(argv)
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        if args.command == "search":
            return asyncio.run(run_search(args))
        elif args.command == "details":
            return asyncio.run(run_details(args.url))
        elif args.command == "sources":
            return show_sources()
    except (ValueError, EnvironmentError) as e:
        logger.error(str(e))
        return 2
    return 0


if __name__ == "__main__":
    sys.exit(main())
