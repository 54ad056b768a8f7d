"""Report on placeholder (no EIN) organizations in a written dataset."""

import argparse
import logging
import sys
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .config import PipelineConfig
from .dataset import is_placeholder, normalize_org_name
from .errors import GrantGraphError
from .models import CompleteDataset
from .serialize import load_dataset

logger = logging.getLogger(__name__)


@dataclass
class PlaceholderMatch:
    key: str
    name: str
    grant_count: int
    matched_eins: list[str]


@dataclass
class PlaceholderReport:
    total_organizations: int
    real_ein_organizations: int
    placeholder_organizations: int
    sampled: int
    potential_matches: int
    examples: list[PlaceholderMatch] = field(default_factory=list)
    top_funders: list[tuple[str, int]] = field(default_factory=list)


def placeholder_report(dataset: CompleteDataset, match_sample: int = 10_000,
                       funder_sample: int = 1_000, max_examples: int = 20) -> PlaceholderReport:
    """Count placeholders that a name match against real EINs could consolidate.

    Args:
        dataset: Dataset to inspect
        match_sample: How many placeholders to test for a real-EIN name match
        funder_sample: How many placeholders to tally funders over
        max_examples: Example matches to keep
    """
    organizations = dataset.organizations
    placeholders = [k for k in organizations if is_placeholder(k)]

    real_index: dict[str, list[str]] = {}
    for key, org in organizations.items():
        if not is_placeholder(key):
            real_index.setdefault(normalize_org_name(org.name), []).append(key)

    sample = placeholders[:match_sample]
    potential = 0
    examples = []
    for key in sample:
        org = organizations[key]
        matches = real_index.get(normalize_org_name(org.name))
        if matches:
            potential += 1
            if len(examples) < max_examples:
                examples.append(PlaceholderMatch(key, org.name, len(org.grants_received), matches))

    funders = Counter()
    for key in placeholders[:funder_sample]:
        for grant in organizations[key].grants_received:
            funders[grant.funder_name or "Unknown"] += 1

    return PlaceholderReport(
        total_organizations=len(organizations),
        real_ein_organizations=len(organizations) - len(placeholders),
        placeholder_organizations=len(placeholders),
        sampled=len(sample),
        potential_matches=potential,
        examples=examples,
        top_funders=funders.most_common(10),
    )


def print_report(report: PlaceholderReport, dataset: CompleteDataset):
    total = report.total_organizations or 1
    print("\nStatistics:")
    print(f"   Total organizations: {report.total_organizations:,}")
    print(f"   With real EINs: {report.real_ein_organizations:,} ({report.real_ein_organizations / total * 100:.1f}%)")
    print(f"   With no_ein_: {report.placeholder_organizations:,} ({report.placeholder_organizations / total * 100:.1f}%)")

    sampled = report.sampled or 1
    print(f"\nPotential matches found: {report.potential_matches:,} out of {report.sampled:,} no_ein entries")
    print(f"   ({report.potential_matches / sampled * 100:.1f}% could potentially be consolidated)")

    print(f"\nExample matches (first {len(report.examples)}):")
    for example in report.examples:
        print(f"\n   no_ein entry: {example.key}")
        print(f"   Name: \"{example.name}\"")
        print(f"   Grants received: {example.grant_count}")
        print(f"   Matched EINs: {', '.join(example.matched_eins)}")
        print(f"   Matched name: \"{dataset.organizations[example.matched_eins[0]].name}\"")

    print("\nTop funders giving grants to no_ein entries:")
    for funder, count in report.top_funders:
        print(f"   {count:>6,} grants - {funder}")


def main(argv: Optional[list[str]] = None):
    """Entry point for ``grantgraph-audit``."""
    parser = argparse.ArgumentParser(
        prog="grantgraph-audit",
        description="Analyze placeholder (no EIN) organizations in a grants dataset"
    )
    parser.add_argument(
        "dataset",
        nargs="?",
        type=Path,
        help="Dataset JSON (default: the pipeline's dataset output path)"
    )
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(message)s")
    path = args.dataset or PipelineConfig().dataset_path

    try:
        dataset = load_dataset(path)
    except GrantGraphError as e:
        print(f"Error: {e}", file=sys.stderr)
        print("Run \"grantgraph\" first to build the dataset.", file=sys.stderr)
        sys.exit(1)

    print_report(placeholder_report(dataset), dataset)


if __name__ == "__main__":
    main()
