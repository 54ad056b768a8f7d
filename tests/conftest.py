"""Shared fixtures: sample filings and small datasets."""

import pytest

from grantgraph.models import EntityMetadata, FilingRecord, FilingRole, Grant, MonthBatch

NS = 'xmlns="http://www.irs.gov/efile"'


def pf_grant_xml(name, amount, ein=None, city=None, state=None, name_tag="BusinessNameLine1Txt",
                 amount_tag="Amt"):
    parts = []
    if name is not None:
        if name_tag == "RecipientPersonNm":
            parts.append(f"<RecipientPersonNm>{name}</RecipientPersonNm>")
        else:
            parts.append(f"<RecipientBusinessName><{name_tag}>{name}</{name_tag}></RecipientBusinessName>")
    if ein:
        parts.append(f"<RecipientEIN>{ein}</RecipientEIN>")
    if city or state:
        parts.append(
            f"<RecipientUSAddress><CityNm>{city or ''}</CityNm>"
            f"<StateAbbreviationCd>{state or ''}</StateAbbreviationCd><ZIPCd>60601</ZIPCd></RecipientUSAddress>"
        )
    if amount is not None:
        parts.append(f"<{amount_tag}>{amount}</{amount_tag}>")
    return "<GrantOrContributionPdDurYrGrp>" + "".join(parts) + "</GrantOrContributionPdDurYrGrp>"


def pf_filing(grants_xml, ein="123456789", name="Example Family Foundation", tax_year="2022",
              assets="<TotalAssetsBOYAmt>900000</TotalAssetsBOYAmt><TotalAssetsEOYAmt>1000000</TotalAssetsEOYAmt>",
              namespace=NS, wrap_supplementary=True) -> bytes:
    tax_year_xml = f"<TaxYr>{tax_year}</TaxYr>" if tax_year else ""
    grants = "".join(grants_xml)
    if wrap_supplementary:
        grants = f"<SupplementaryInformationGrp>{grants}</SupplementaryInformationGrp>"
    return f"""<?xml version="1.0" encoding="utf-8"?>
<Return {namespace} returnVersion="2022v5.0">
  <ReturnHeader>
    {tax_year_xml}
    <Filer>
      <EIN>{ein}</EIN>
      <BusinessName><BusinessNameLine1Txt>{name}</BusinessNameLine1Txt></BusinessName>
      <USAddress>
        <AddressLine1Txt>1 Main St</AddressLine1Txt>
        <CityNm>Springfield</CityNm>
        <StateAbbreviationCd>IL</StateAbbreviationCd>
        <ZIPCd>62701</ZIPCd>
      </USAddress>
    </Filer>
  </ReturnHeader>
  <ReturnData>
    <IRS990PF>
      <AnalysisOfRevenueAndExpenses><TotalRevAndExpnssAmt>250000</TotalRevAndExpnssAmt></AnalysisOfRevenueAndExpenses>
      <Form990PFBalanceSheetsGrp>{assets}</Form990PFBalanceSheetsGrp>
      {grants}
    </IRS990PF>
  </ReturnData>
</Return>
""".encode("utf-8")


def form990_filing(ein="555555555", name="Acme", city="Chicago", state="IL") -> bytes:
    return f"""<?xml version="1.0" encoding="utf-8"?>
<Return {NS} returnVersion="2022v5.0">
  <ReturnHeader>
    <TaxYr>2022</TaxYr>
    <Filer>
      <EIN>{ein}</EIN>
      <BusinessName><BusinessNameLine1Txt>{name}</BusinessNameLine1Txt></BusinessName>
      <USAddress>
        <AddressLine1Txt>200 Lake St</AddressLine1Txt>
        <CityNm>{city}</CityNm>
        <StateAbbreviationCd>{state}</StateAbbreviationCd>
      </USAddress>
    </Filer>
  </ReturnHeader>
  <ReturnData>
    <IRS990>
      <CYTotalRevenueAmt>75000</CYTotalRevenueAmt>
      <TotalAssetsEOYAmt>120000</TotalAssetsEOYAmt>
    </IRS990>
    <IRS990ScheduleB/>
  </ReturnData>
</Return>
""".encode("utf-8")


def grant_maker(ein, name, grants, year=2023):
    return FilingRecord(ein=ein, name=name, role=FilingRole.GRANT_MAKER, tax_year=year,
                        metadata=EntityMetadata(city="Springfield", state="IL"), grants=grants)


def beneficiary(ein, name, city=None, state=None, year=2023):
    return FilingRecord(ein=ein, name=name, role=FilingRole.BENEFICIARY, tax_year=year,
                        metadata=EntityMetadata(city=city, state=state))


@pytest.fixture
def acme_batches():
    """Two months: F1 gives to "Acme Inc" without an EIN, F2 gives to ACME (E1) with one."""
    batch_a = MonthBatch(year=2023, month=1, grant_makers=[
        grant_maker("111111111", "F1 Foundation", [Grant(recipient_name="Acme Inc", amount=1000, tax_year=2023)]),
    ])
    batch_b = MonthBatch(year=2023, month=2, grant_makers=[
        grant_maker("222222222", "F2 Foundation", [
            Grant(recipient_name="ACME", amount=500, tax_year=2023, recipient_ein="900000001"),
        ]),
    ])
    return [batch_a, batch_b]
