"""Command-line entry point: run the API server or count entries in a log group."""

import argparse
import asyncio
import json
import sys
from datetime import datetime, timedelta, timezone

from dotenv import load_dotenv

from logpilot.config import ConfigurationError, config_from_env
from logpilot.models.schemas import TimeRange
from logpilot.services.query_service import QueryFailure, QueryService
from logpilot.stores import build_store


async def count_entries(queries: QueryService, collection_name: str, days: float, filter_expression: str = "") -> int:
    end = datetime.now(timezone.utc)
    window = TimeRange(start=end - timedelta(days=days), end=end)
    records = await queries.query(
        collection_name=collection_name,
        time_range=window,
        filter_expression=filter_expression or None,
    )
    return len(records)


async def _count(args) -> int:
    config = config_from_env()
    store = build_store(config)
    try:
        total = await count_entries(QueryService(store, config), args.group, args.days, args.filter)
    finally:
        await store.close()

    if args.json:
        print(json.dumps({"logGroupName": args.group, "days": args.days, "count": total}, indent=2))
    else:
        print(f"{args.group}: {total} entries in the last {args.days:g} days")
    return 0


def main(argv=None) -> int:
    load_dotenv()

    parser = argparse.ArgumentParser(prog="logpilot", description="Conversational CloudWatch log search")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, default=8000)
    serve.add_argument("--reload", action="store_true", help="Reload on code changes")

    count = sub.add_parser("count", help="Count every entry in a log group")
    count.add_argument("group", help="Log group name (e.g., /aws/lambda/my-function)")
    count.add_argument(
        "--days",
        type=float,
        default=7,
        help="Days to look back (default: 7)",
    )
    count.add_argument("--filter", "-f", default="", help="Filter pattern passed to the store")
    count.add_argument("--json", action="store_true", help="Output as JSON")

    args = parser.parse_args(argv)

    if args.command == "serve":
        from logpilot.api.main import run
        run(host=args.host, port=args.port, reload=args.reload)
        return 0

    try:
        return asyncio.run(_count(args))
    except (ConfigurationError, QueryFailure) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
