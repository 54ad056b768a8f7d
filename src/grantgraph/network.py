"""Build the two-layer grants network around one central foundation."""

import logging
from typing import Optional

from .dataset import build_name_index, is_valid_ein, normalize_org_name, placeholder_key
from .errors import DatasetError
from .models import (
    CompleteDataset,
    CuratedGrant,
    Grant,
    NetworkGraph,
    NetworkLink,
    NetworkNode,
    ReceivedGrant,
)

logger = logging.getLogger(__name__)

FUNDER = "funder"
GRANTEE = "grantee"
CENTRAL_GRANT = "central-grant"
OTHER_FUNDER = "other-funder"


class RecipientResolver:
    """Resolve a grant recipient to an organization key in the dataset."""

    def __init__(self, dataset: CompleteDataset):
        self.organizations = dataset.organizations
        self.name_index = build_name_index(dataset.organizations)
        self.without_ein = 0
        self.matched_by_name = 0
        self.multiple_matches = 0

    def resolve(self, grant: Grant) -> str:
        """Return the recipient's EIN, a name-matched key, or a placeholder key.

        One name match is used directly. Several are narrowed by city and
        state against each candidate's metadata, falling back to the first
        candidate. No match mints the same placeholder key the dataset uses.
        """
        if is_valid_ein(grant.recipient_ein):
            return grant.recipient_ein

        self.without_ein += 1
        normalized = normalize_org_name(grant.recipient_name)
        matches = self.name_index.get(normalized, []) if normalized else []

        if len(matches) == 1:
            self.matched_by_name += 1
            return matches[0]

        if len(matches) > 1:
            self.matched_by_name += 1
            self.multiple_matches += 1
            best = self._match_address(matches, grant)
            if best is None:
                logger.debug(f"   Ambiguous recipient '{grant.recipient_name}': {', '.join(matches)} (using {matches[0]})")
                best = matches[0]
            return best

        return placeholder_key(grant.recipient_name)

    def _match_address(self, candidates: list[str], grant: Grant) -> Optional[str]:
        if not (grant.recipient_city and grant.recipient_state):
            return None
        city = grant.recipient_city.upper()
        state = grant.recipient_state.upper()
        for key in candidates:
            metadata = self.organizations[key].metadata
            if metadata is None:
                continue
            if (metadata.city or "").upper() == city and (metadata.state or "").upper() == state:
                return key
        return None


def curated_to_grants(curated: list[CuratedGrant]) -> list[Grant]:
    return [
        Grant(
            recipient_name=c.organization,
            amount=c.amount,
            tax_year=c.year,
            recipient_city=c.city,
            recipient_state=c.state,
        )
        for c in curated
    ]


def build_network(
    dataset: CompleteDataset,
    central_ein: str,
    central_name: Optional[str] = None,
    curated: Optional[list[CuratedGrant]] = None,
) -> NetworkGraph:
    """Build the ego-graph around ``central_ein``.

    The central foundation's grants come from ``curated`` when given,
    otherwise from its Foundation record in the dataset. Every grant becomes
    its own central -> grantee link; every other funder of a grantee found in
    the dataset gets a funder -> grantee link per grant. Nothing further than
    two hops from the central node is added.

    Args:
        dataset: Complete grants dataset
        central_ein: EIN of the central foundation
        central_name: Display name used when the foundation is not in the dataset
        curated: Curated grant list for the central foundation

    Raises:
        DatasetError: No curated list was given and the foundation is not in the dataset.
    """
    foundation = dataset.foundations.get(central_ein)

    if curated is not None:
        central_grants = curated_to_grants(curated)
        logger.info(f"Building network for {central_ein} from {len(central_grants)} curated grants...")
    elif foundation is not None:
        central_grants = foundation.grants_given
        logger.info(f"Building network for {central_ein} from {len(central_grants)} grants in the dataset...")
    else:
        raise DatasetError(f"Foundation with EIN {central_ein} not found in dataset")

    name = foundation.name if foundation else (central_name or f"Foundation {central_ein}")
    nodes: dict[str, NetworkNode] = {
        central_ein: NetworkNode(
            id=central_ein,
            name=name,
            type=FUNDER,
            central=True,
            metadata=foundation.metadata if foundation else None,
        )
    }
    links: list[NetworkLink] = []

    resolver = RecipientResolver(dataset)
    grants_by_recipient: dict[str, list[Grant]] = {}
    for grant in central_grants:
        key = resolver.resolve(grant)
        if key == central_ein:
            continue
        grants_by_recipient.setdefault(key, []).append(grant)

    logger.info(f"   {resolver.without_ein} grants had no EIN in source data")
    logger.info(f"   {resolver.matched_by_name} matched to organizations by name ({resolver.multiple_matches} had multiple matches)")
    logger.info(f"   Found {len(grants_by_recipient)} unique recipients")

    matched_in_irs = 0
    for key, grants in grants_by_recipient.items():
        org = dataset.organizations.get(key)
        if org is not None:
            matched_in_irs += 1

        if key not in nodes:
            central_received = [
                ReceivedGrant(funder_ein=central_ein, funder_name=name,
                              amount=g.amount, tax_year=g.tax_year)
                for g in grants
            ]
            if org is None:
                received = central_received
            elif curated is not None:
                # the curated list replaces whatever the filings say about the central funder
                received = central_received + [
                    r for r in org.grants_received if r.funder_ein != central_ein
                ]
            else:
                received = list(org.grants_received)

            nodes[key] = NetworkNode(
                id=key,
                name=org.name if org else grants[0].recipient_name,
                type=GRANTEE,
                amount=sum(g.amount for g in grants),
                metadata=org.metadata if org else None,
                grants_received=received,
            )

        for grant in grants:
            links.append(NetworkLink(source=central_ein, target=key, amount=grant.amount,
                                     year=grant.tax_year, type=CENTRAL_GRANT))

        if org is None:
            continue

        for received in org.grants_received:
            funder_ein = received.funder_ein
            if funder_ein == central_ein:
                continue
            if funder_ein not in nodes:
                funder = dataset.foundations.get(funder_ein)
                nodes[funder_ein] = NetworkNode(
                    id=funder_ein,
                    name=received.funder_name,
                    type=FUNDER,
                    metadata=funder.metadata if funder else None,
                    grants_given=list(funder.grants_given) if funder else [],
                )
            links.append(NetworkLink(source=funder_ein, target=key, amount=received.amount,
                                     year=received.tax_year, type=OTHER_FUNDER))

    network = NetworkGraph(nodes=list(nodes.values()), links=links)

    logger.info(f"   {matched_in_irs} grantees found in IRS dataset")
    logger.info("Network Statistics:")
    logger.info(f"   Nodes: {len(network.nodes)}")
    logger.info(f"   Links: {len(network.links)}")
    logger.info(f"   Grantees: {network.count(GRANTEE)}")
    logger.info(f"   Funders: {network.count(FUNDER)}")
    return network
