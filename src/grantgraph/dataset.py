"""Merge parsed filings into one bidirectional grants dataset."""

import logging
import re
from datetime import datetime, timezone
from typing import Iterable, Optional

from .models import (
    CompleteDataset,
    FilingRecord,
    Foundation,
    Grant,
    MonthBatch,
    Organization,
    ReceivedGrant,
)

logger = logging.getLogger(__name__)

PLACEHOLDER_PREFIX = "no_ein_"

_LEGAL_WORDS = re.compile(
    r"\b(inc|incorporated|llc|ltd|limited|corp|corporation|foundation|fund|trust|the|a|an)\b"
)
_NON_ALNUM = re.compile(r"[^a-z0-9]+")
_EIN = re.compile(r"^[0-9]{9}$")


def normalize_org_name(name: str) -> str:
    """Reduce an organization name to a comparison key.

    Lowercases, drops common legal/filler words as whole words, then drops
    everything that is not a letter or digit: "The Acme Fund, Inc." -> "acme".
    """
    lowered = (name or "").lower()
    return _NON_ALNUM.sub("", _LEGAL_WORDS.sub("", lowered))


def placeholder_key(name: str) -> str:
    """Key for a recipient with no usable EIN.

    Names made only of legal/filler words ("The Foundation") normalize to
    nothing; they keep their full alphanumeric text instead so unrelated
    recipients do not share one ``no_ein_`` entry.
    """
    normalized = normalize_org_name(name) or _NON_ALNUM.sub("", (name or "").lower())
    return PLACEHOLDER_PREFIX + normalized


def is_placeholder(key: str) -> bool:
    return key.startswith(PLACEHOLDER_PREFIX)


def is_valid_ein(value: Optional[str]) -> bool:
    return bool(value) and bool(_EIN.match(value))


def recipient_key(grant: Grant) -> str:
    """Organization key for a grant's recipient: its EIN, or a name placeholder."""
    if is_valid_ein(grant.recipient_ein):
        return grant.recipient_ein
    return placeholder_key(grant.recipient_name)


def build_name_index(organizations: dict[str, Organization]) -> dict[str, list[str]]:
    """Map normalized name -> organization keys, in dictionary order."""
    index: dict[str, list[str]] = {}
    for key, org in organizations.items():
        index.setdefault(normalize_org_name(org.name), []).append(key)
    return index


class DatasetBuilder:
    """Accumulates filings into a CompleteDataset.

    Grant-makers are added first, then beneficiary metadata, then
    :meth:`consolidate` folds placeholder recipients into real EINs.
    """

    def __init__(self):
        self.dataset = CompleteDataset()
        self.total_grants = 0
        self.ambiguous: list[tuple[str, list[str]]] = []

    def add_grant_maker(self, record: FilingRecord):
        if not record.ein:
            return

        foundations = self.dataset.foundations
        foundation = foundations.get(record.ein)
        if foundation is None:
            foundation = Foundation(ein=record.ein, name=record.name, metadata=record.metadata)
            foundations[record.ein] = foundation

        # list.extend grows in place; safe for arbitrarily large grant lists
        foundation.grants_given.extend(record.grants)
        self.total_grants += len(record.grants)

        organizations = self.dataset.organizations
        for grant in record.grants:
            key = recipient_key(grant)
            org = organizations.get(key)
            if org is None:
                org = Organization(ein=key, name=grant.recipient_name)
                organizations[key] = org
            org.grants_received.append(ReceivedGrant(
                funder_ein=record.ein,
                funder_name=record.name,
                amount=grant.amount,
                tax_year=grant.tax_year,
            ))

    def add_beneficiaries(self, records: Iterable[FilingRecord]) -> tuple[int, int]:
        """Merge Form 990 filers as organization metadata.

        Returns:
            (added, updated) counts.
        """
        added = updated = 0
        organizations = self.dataset.organizations
        for record in records:
            if not record.ein:
                continue
            org = organizations.get(record.ein)
            if org is None:
                organizations[record.ein] = Organization(
                    ein=record.ein, name=record.name, metadata=record.metadata
                )
                added += 1
            elif org.metadata is None:
                org.metadata = record.metadata
                updated += 1
        return added, updated

    def consolidate(self) -> int:
        """Fold placeholder organizations into real-EIN entries with the same name.

        When several real EINs share the normalized name the first one in
        index order wins; those cases are kept in ``self.ambiguous`` for
        review.

        Returns:
            Number of placeholders consolidated.
        """
        organizations = self.dataset.organizations
        name_index = build_name_index(organizations)
        consolidated = 0

        for key in [k for k in organizations if is_placeholder(k)]:
            placeholder = organizations[key]
            normalized = normalize_org_name(placeholder.name)
            if not normalized:
                continue

            real_keys = [k for k in name_index.get(normalized, []) if not is_placeholder(k)]
            if not real_keys:
                continue
            if len(real_keys) > 1:
                self.ambiguous.append((placeholder.name, real_keys))
                logger.debug(f"   Ambiguous match for '{placeholder.name}': {', '.join(real_keys)} (using {real_keys[0]})")

            organizations[real_keys[0]].grants_received.extend(placeholder.grants_received)
            del organizations[key]
            consolidated += 1

        return consolidated

    def finish(self) -> CompleteDataset:
        meta = self.dataset.metadata
        meta.foundations_processed = len(self.dataset.foundations)
        meta.total_grants = self.total_grants
        meta.generated_at = datetime.now(timezone.utc).isoformat()
        return self.dataset


def build_dataset(batches: Iterable[MonthBatch]) -> CompleteDataset:
    """Build the complete dataset from every monthly batch.

    Batches are merged in (year, month) order so repeated runs over the same
    cache produce the same dataset.
    """
    ordered = sorted(batches, key=lambda b: b.key)
    builder = DatasetBuilder()

    logger.info("Building final bidirectional dataset...")
    for batch in ordered:
        for record in batch.grant_makers:
            builder.add_grant_maker(record)

    beneficiaries = [r for batch in ordered for r in batch.beneficiaries]
    if beneficiaries:
        logger.info(f"Merging {len(beneficiaries)} Form 990 organizations into dataset...")
        added, updated = builder.add_beneficiaries(beneficiaries)
        logger.info(f"   Added {added} new organizations from Form 990")
        logger.info(f"   Updated {updated} existing organizations with Form 990 metadata")

    logger.info("Consolidating placeholder entries with real EINs...")
    consolidated = builder.consolidate()
    logger.info(f"   Consolidated {consolidated} placeholder entries into real EINs")
    if builder.ambiguous:
        logger.info(f"   {len(builder.ambiguous)} placeholders matched more than one EIN (first match used)")

    dataset = builder.finish()
    logger.info(f"   Foundations: {len(dataset.foundations)}")
    logger.info(f"   Organizations (recipients): {len(dataset.organizations)}")
    logger.info(f"   Total grants: {dataset.metadata.total_grants}")
    return dataset
