"""CLI entrypoint: open a URL through a migration-enabled browser."""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from pydantic import ValidationError

from ..browser.errors import ConfigurationError
from ..browser.registry import resilient_playwright
from ..core.config import load_settings

# Load environment variables
load_dotenv()


def setup_logging(level: str = "INFO") -> None:
    """Setup logging configuration.

    Args:
        level: Logging level
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        level=numeric_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments.

    Returns:
        Parsed arguments
    """
    parser = argparse.ArgumentParser(
        description="Open a page, migrating to a fresh proxy if navigation fails",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Open a page headless with settings from ALUVIA_* / .env
  aluvia-playwright https://example.com

  # Visible Firefox, two migrations allowed
  aluvia-playwright https://example.com --browser firefox --headed --max-retries 2
        """,
    )
    parser.add_argument("url", type=str, help="URL to open")
    parser.add_argument(
        "--browser",
        type=str,
        default="chromium",
        choices=["chromium", "firefox", "webkit"],
        help="Browser engine (default: chromium)",
    )
    parser.add_argument(
        "--headed",
        action="store_true",
        help="Run browser in headed mode (visible)",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Optional YAML settings file",
    )
    parser.add_argument(
        "--max-retries",
        type=int,
        help="Migrations allowed per navigation (overrides ALUVIA_MAX_RETRIES)",
    )
    parser.add_argument(
        "--wait-until",
        type=str,
        choices=["commit", "domcontentloaded", "load", "networkidle"],
        help="Navigation wait condition",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )
    return parser.parse_args(argv)


def build_overrides(args: argparse.Namespace) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    if args.max_retries is not None:
        overrides["max_retries"] = args.max_retries
    return overrides


async def main_async(argv: list[str] | None = None) -> int:
    """Async main function.

    Returns:
        Exit code
    """
    args = parse_args(argv)
    setup_logging(args.log_level)
    logger = logging.getLogger(__name__)

    try:
        settings = load_settings(config_path=args.config, overrides=build_overrides(args))
    except (ValidationError, FileNotFoundError) as e:
        logger.error(f"Invalid configuration: {e}")
        return 2

    goto_options: dict[str, Any] = {}
    if args.wait_until:
        goto_options["wait_until"] = args.wait_until

    try:
        async with resilient_playwright(settings) as pw:
            browser_type = getattr(pw, args.browser)
            browser = await browser_type.launch(headless=not args.headed)
            try:
                page = await browser.new_page()
                response = await page.goto(args.url, **goto_options)
                summary = {
                    "url": page.url,
                    "title": await page.title(),
                    "status": response.status if response is not None else None,
                    "migrations": page.migrations,
                }
            finally:
                await browser.close()
    except ConfigurationError as e:
        logger.error(str(e))
        return 2
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as e:
        logger.error(f"Navigation failed: {type(e).__name__}: {e}")
        return 1

    print(json.dumps(summary, indent=2))
    return 0


def main() -> None:
    """Main CLI entrypoint."""
    sys.exit(asyncio.run(main_async()))


if __name__ == "__main__":
    main()
