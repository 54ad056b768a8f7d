"""Tests for the central-foundation network builder."""

import pytest

from grantgraph.dataset import build_dataset
from grantgraph.errors import DatasetError
from grantgraph.models import CuratedGrant, EntityMetadata, Grant, MonthBatch, Organization
from grantgraph.network import CENTRAL_GRANT, OTHER_FUNDER, build_network

from conftest import beneficiary, grant_maker

CENTRAL = "352338463"


def reachable_within_two_hops(network):
    central = network.central_node.id
    first = {link.target for link in network.links if link.source == central}
    second = {link.source for link in network.links if link.target in first}
    return {central} | first | second


@pytest.fixture
def dataset():
    batches = [
        MonthBatch(2023, 1, grant_makers=[
            grant_maker(CENTRAL, "Central Foundation", [
                Grant("Acme Inc", 1000, 2022),
                Grant("Acme Inc", 2000, 2023),
                Grant("River Trust", 500, 2023, recipient_ein="900000003"),
                Grant("Unknown Collective", 300, 2023),
            ]),
            grant_maker("222222222", "Other Funder", [
                Grant("ACME", 750, 2023, recipient_ein="900000001"),
                Grant("Elsewhere Org", 40, 2023, recipient_ein="900000009"),
            ]),
        ]),
    ]
    return build_dataset(batches)


class TestFoundationNetwork:
    def test_exactly_one_central_node(self, dataset):
        network = build_network(dataset, CENTRAL)
        central = [n for n in network.nodes if n.central]
        assert len(central) == 1
        assert central[0].id == CENTRAL
        assert central[0].name == "Central Foundation"

    def test_every_node_within_two_hops(self, dataset):
        network = build_network(dataset, CENTRAL)
        assert {n.id for n in network.nodes} <= reachable_within_two_hops(network)
        assert "900000009" not in {n.id for n in network.nodes}

    def test_grants_in_different_years_are_separate_links(self, dataset):
        network = build_network(dataset, CENTRAL)
        acme_links = [l for l in network.links
                      if l.source == CENTRAL and l.target == "900000001"]
        assert sorted((l.year, l.amount) for l in acme_links) == [(2022, 1000), (2023, 2000)]
        assert all(l.type == CENTRAL_GRANT for l in acme_links)

    def test_other_funders_linked(self, dataset):
        network = build_network(dataset, CENTRAL)
        other = [l for l in network.links if l.type == OTHER_FUNDER]
        assert [(l.source, l.target, l.amount) for l in other] == [("222222222", "900000001", 750)]
        funder = next(n for n in network.nodes if n.id == "222222222")
        assert funder.type == "funder"
        assert len(funder.grants_given) == 2

    def test_unmatched_recipient_gets_placeholder(self, dataset):
        network = build_network(dataset, CENTRAL)
        ids = {n.id for n in network.nodes}
        assert "no_ein_unknowncollective" in ids
        assert build_network(dataset, CENTRAL).to_dict() == network.to_dict()

    def test_missing_foundation(self, dataset):
        with pytest.raises(DatasetError):
            build_network(dataset, "999999999")


class TestNameResolution:
    def _dataset_with(self, *orgs):
        dataset = build_dataset([])
        for org in orgs:
            dataset.organizations[org.ein] = org
        return dataset

    def test_single_name_match_uses_real_ein(self):
        dataset = self._dataset_with(Organization("900000001", "ACME"))
        network = build_network(dataset, CENTRAL, "Central",
                                curated=[CuratedGrant("Acme, Inc.", 5000, 2024)])
        assert network.links[0].target == "900000001"

    def test_multiple_matches_disambiguated_by_address(self):
        dataset = self._dataset_with(
            Organization("900000001", "Acme", metadata=EntityMetadata(city="Denver", state="CO")),
            Organization("900000002", "Acme Inc", metadata=EntityMetadata(city="Chicago", state="IL")),
        )
        network = build_network(dataset, CENTRAL, "Central",
                                curated=[CuratedGrant("Acme", 5000, 2024, city="chicago", state="il")])
        assert network.links[0].target == "900000002"

    def test_multiple_matches_fall_back_to_first(self):
        dataset = self._dataset_with(
            Organization("900000001", "Acme"),
            Organization("900000002", "Acme Inc"),
        )
        network = build_network(dataset, CENTRAL, "Central",
                                curated=[CuratedGrant("Acme", 5000, 2024, city="Boston", state="MA")])
        assert network.links[0].target == "900000001"


class TestCuratedNetwork:
    def test_curated_grants_replace_filed_central_grants(self, dataset):
        curated = [
            CuratedGrant("Acme", 10_000, 2024),
            CuratedGrant("Brand New Project", 20_000, 2024),
        ]
        network = build_network(dataset, CENTRAL, "Central", curated=curated)

        central_links = [l for l in network.links if l.type == CENTRAL_GRANT]
        assert sorted((l.target, l.amount) for l in central_links) == [
            ("900000001", 10_000),
            ("no_ein_brandnewproject", 20_000),
        ]

        acme = next(n for n in network.nodes if n.id == "900000001")
        central_received = [r for r in acme.grants_received if r.funder_ein == CENTRAL]
        assert [(r.amount, r.tax_year) for r in central_received] == [(10_000, 2024)]

    def test_central_missing_from_dataset_uses_given_name(self):
        dataset = build_dataset([MonthBatch(2023, 1, beneficiaries=[beneficiary("900000001", "Acme")])])
        network = build_network(dataset, CENTRAL, "Hidden Leaf Foundation",
                                curated=[CuratedGrant("Acme", 15_000, 2023)])
        assert network.central_node.name == "Hidden Leaf Foundation"
        assert network.count("grantee") == 1
        assert network.to_dict()["nodes"][0]["central"] is True


def test_address_match_can_differ_from_consolidation():
    dataset = build_dataset([MonthBatch(2023, 1,
        grant_makers=[
            grant_maker("222222222", "Other Funder", [
                Grant("Acme", 100, 2023, recipient_ein="900000001"),
                Grant("Acme Inc", 200, 2023, recipient_ein="900000002"),
            ]),
            grant_maker(CENTRAL, "Central Foundation", [
                Grant("Acme", 5000, 2023, recipient_city="Chicago", recipient_state="IL"),
            ]),
        ],
        beneficiaries=[
            beneficiary("900000001", "Acme", city="Denver", state="CO"),
            beneficiary("900000002", "Acme Inc", city="Chicago", state="IL"),
        ],
    )])
    consolidated_into = [k for k, org in dataset.organizations.items()
                         if any(r.funder_ein == CENTRAL for r in org.grants_received)]
    assert consolidated_into == ["900000001"]

    network = build_network(dataset, CENTRAL)
    central_links = [l for l in network.links if l.type == CENTRAL_GRANT]
    assert [(l.target, l.amount) for l in central_links] == [("900000002", 5000)]
    grantee = next(n for n in network.nodes if n.id == "900000002")
    assert all(r.funder_ein != CENTRAL for r in grantee.grants_received)
