"""Command-line plumbing shared by the updater scripts."""

import argparse
import logging
from typing import Iterable

from dotenv import load_dotenv

from utils.config import ConfigurationError, Settings, load_settings

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def build_parser(prog: str, description: str, examples: str = "") -> argparse.ArgumentParser:
    """Parser with the flags every updater accepts.

    Boolean flags default to None so an unset flag never overrides the
    environment.
    """
    parser = argparse.ArgumentParser(
        prog=prog,
        description=description,
        epilog=examples,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        default=None,
        help="Preview changes without writing to the database or object store",
    )
    parser.add_argument(
        "--filter",
        "-f",
        default=None,
        help="Only process resorts whose slug contains this text",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        default=None,
        help="Verbose output",
    )
    return parser


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        force=True,
    )
    # Keep HTTP client chatter out of normal runs
    for noisy in ("urllib3", "botocore", "httpx", "httpcore", "openai"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def settings_from_args(
    args: argparse.Namespace,
    required: Iterable[str],
    **overrides,
) -> Settings | None:
    """Load settings for a CLI run, or log the problem and return None."""
    load_dotenv()
    configure_logging(bool(args.verbose))
    try:
        settings = load_settings(
            required=required,
            dry_run=args.dry_run,
            filter=args.filter,
            verbose=args.verbose,
            **overrides,
        )
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return None

    if settings.verbose and not args.verbose:
        configure_logging(True)
    return settings


def print_banner(title: str, settings: Settings) -> None:
    print("=" * 60)
    print(title)
    print("=" * 60)
    if settings.dry_run:
        print("\n[DRY RUN] No changes will be made\n")
