"""Command-line interface for grantgraph."""

import argparse
import logging
import sys
import time
from typing import Optional

from .config import PipelineConfig
from .dataset import is_valid_ein
from .errors import GrantGraphError
from .parser import normalize_ein
from .pipeline import run

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False):
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[logging.StreamHandler()]
    )
    # Quiet down HTTP libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("aiohttp").setLevel(logging.WARNING)


def main(argv: Optional[list[str]] = None):
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="grantgraph",
        description="Build the bidirectional grants dataset and network from IRS 990 bulk XML"
    )
    parser.add_argument(
        "--ein",
        help="Build the network around this foundation (IRS data only) instead of the default"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Verbose output"
    )

    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    config = PipelineConfig()
    central_ein = normalize_ein(args.ein) if args.ein else None
    if args.ein and not is_valid_ein(central_ein):
        print(f"Error: invalid EIN: {args.ein}", file=sys.stderr)
        sys.exit(2)

    print(f"\n{'='*70}")
    if central_ein:
        print(f"GRANTS NETWORK FOR EIN {central_ein}")
    else:
        print("COMPLETE BIDIRECTIONAL GRANTS DATASET")
    print(f"{'='*70}")
    print(f"Processing years: {', '.join(str(y) for y in config.years)}")

    start = time.monotonic()
    try:
        result = run(config, central_ein=central_ein)
    except (GrantGraphError, OSError) as e:
        logger.error(f"Fatal error during execution: {e}")
        sys.exit(1)

    dataset = result.dataset
    print(f"\n{'='*70}")
    print("COMPLETE")
    print(f"{'='*70}")
    print(f"Months processed: {result.months_processed}")
    print(f"Foundations: {len(dataset.foundations):,}")
    print(f"Organizations: {len(dataset.organizations):,}")
    print(f"Total grants: {dataset.metadata.total_grants:,}")
    print(f"Network: {len(result.network.nodes):,} nodes, {len(result.network.links):,} links")
    print(f"Dataset: {config.dataset_path}")
    print(f"Network: {config.network_path}")
    print(f"Done in {(time.monotonic() - start) / 60:.1f} minutes")


if __name__ == "__main__":
    main()
