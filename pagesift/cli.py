"""CLI tool for pagesift: product extraction from the command line.

Usage:
    python -m pagesift.cli scrape https://shop.example.com/p/123
    python -m pagesift.cli scrape https://shop.example.com/p/123 --no-ai
    python -m pagesift.cli scrape https://shop.example.com/p/123 --strategy fetch-headers --strategy browser
    python -m pagesift.cli -o prompt scrape https://shop.example.com/p/123 --ip-strategy residential
    python -m pagesift.cli -o text scrape https://shop.example.com/p/123 --no-ai
    python -m pagesift.cli strategies
"""

import argparse
import asyncio
import json
import sys

from pagesift.config import settings
from pagesift.core.exceptions import AcquisitionError, ConfigurationError
from pagesift.core.logging_config import configure_logging


def _setup_logging(verbose: bool = False):
    level = "DEBUG" if verbose else "WARNING"
    configure_logging(log_format="text", log_level=level, stream=sys.stderr)


def _print_scrape_text(result) -> None:
    page = result.page
    print(f"URL: {page.url}")
    print(f"Strategy: {page.strategy} ({page.ip_strategy})")
    for label, value in (("Title", page.title), ("Price", page.price), ("SKU", page.sku)):
        if value:
            print(f"{label}: {value}")
    if page.images:
        print(f"Images: {len(page.images)}")

    if result.product:
        print("--- product ---")
        for key, value in result.product.model_dump(exclude_none=True).items():
            print(f"{key}: {value}")
    if result.error:
        print("--- error ---")
        print(result.error)


async def _cmd_scrape(args) -> int:
    """Extract a single product page."""
    from pagesift.services.pipeline import scrape_product

    try:
        result = await scrape_product(
            args.url,
            ip_strategy=args.ip_strategy,
            strategies=args.strategy,
            use_ai=not args.no_ai,
            max_json_tokens=args.max_tokens,
        )
    except ConfigurationError as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        return 2
    except AcquisitionError as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        return 1

    if args.output == "prompt":
        print(result.prompt.text)
    elif args.output == "text":
        _print_scrape_text(result)
    else:
        print(json.dumps(result.to_dict(include_raw=args.raw), indent=2, ensure_ascii=False))

    print(
        f"\n{result.page.strategy} succeeded in {result.timing['total']}ms "
        f"(json sections: {result.prompt.section_count}, "
        f"truncated: {result.prompt.was_truncated})",
        file=sys.stderr,
    )
    return 1 if result.error else 0


def _cmd_strategies(args) -> int:
    """List registered IP and extraction strategies."""
    from pagesift.services.registry import list_extraction_strategies, list_ip_strategies

    listing = {
        "ip_strategies": [d.model_dump(mode="json") for d in list_ip_strategies()],
        "extraction_strategies": [
            d.model_dump(mode="json") for d in list_extraction_strategies()
        ],
        "defaults": {
            "ip_strategy": settings.DEFAULT_IP_STRATEGY,
            "extraction_strategies": settings.DEFAULT_EXTRACTION_STRATEGIES,
        },
    }
    if args.output == "json":
        print(json.dumps(listing, indent=2))
    else:
        for section in ("ip_strategies", "extraction_strategies"):
            print(f"--- {section} ---")
            for d in listing[section]:
                print(f"{d['name']:<15} {d['description']}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pagesift",
        description="pagesift CLI: extract structured product data from e-commerce pages",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "-o", "--output", default="json",
        choices=["json", "prompt", "text"],
        help="Output format (default: json)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # --- scrape ---
    scrape_parser = subparsers.add_parser("scrape", help="Extract one product page")
    scrape_parser.add_argument("url", help="Product page URL")
    scrape_parser.add_argument(
        "--ip-strategy", default=None,
        help=f"IP strategy name (default: {settings.DEFAULT_IP_STRATEGY})",
    )
    scrape_parser.add_argument(
        "--strategy", action="append", default=None,
        help="Extraction strategy, repeat to set cascade order "
             f"(default: {' '.join(settings.DEFAULT_EXTRACTION_STRATEGIES)})",
    )
    scrape_parser.add_argument("--no-ai", action="store_true", help="Skip LLM extraction")
    scrape_parser.add_argument(
        "--max-tokens", type=int, default=None,
        help=f"JSON token budget (default: {settings.PROMPT_JSON_TOKEN_BUDGET})",
    )
    scrape_parser.add_argument("--raw", action="store_true", help="Include raw page markup")

    # --- strategies ---
    subparsers.add_parser("strategies", help="List available strategies")

    return parser


def main(argv: list[str] | None = None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    _setup_logging(args.verbose)

    if args.command == "scrape":
        sys.exit(asyncio.run(_cmd_scrape(args)))
    elif args.command == "strategies":
        sys.exit(_cmd_strategies(args))


if __name__ == "__main__":
    main()
