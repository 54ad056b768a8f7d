"""IRS Form 990 / 990-PF XML parser.

Field names drift between filing years and e-file software vendors, so each
value is read from an ordered tuple of candidate paths; the first candidate
present in the document wins. Paths are written without namespace prefixes
and matched on local names, so documents with or without the
``http://www.irs.gov/efile`` default namespace parse the same way.
"""

import logging
import math
import re
from functools import lru_cache
from pathlib import Path
from typing import Optional, Union

from lxml import etree

from .models import EntityMetadata, FilingRecord, FilingRole, Grant

logger = logging.getLogger(__name__)

Number = Union[int, float]

# --- Filing header (relative to ReturnHeader) ---
FILER_EIN = ("Filer/EIN",)
FILER_NAME = (
    "Filer/BusinessName/BusinessNameLine1Txt",
    "Filer/BusinessName/BusinessNameLine1",
)
TAX_YEAR = ("TaxYr", "TaxYear")
FILER_ADDRESS_LINE = ("Filer/USAddress/AddressLine1Txt", "Filer/USAddress/AddressLine1")
FILER_CITY = ("Filer/USAddress/CityNm", "Filer/USAddress/City")
FILER_STATE = ("Filer/USAddress/StateAbbreviationCd", "Filer/USAddress/State")

# --- 990-PF body (relative to IRS990PF) ---
PF_TOTAL_ASSETS = (
    "Form990PFBalanceSheetsGrp/TotalAssetsEOYAmt",
    "Form990PFBalanceSheetsGrp/TotalAssetsBOYAmt",
)
PF_TOTAL_REVENUE = ("AnalysisOfRevenueAndExpenses/TotalRevAndExpnssAmt",)
PF_GRANT_GROUPS = (
    "SupplementaryInformationGrp/GrantOrContributionPdDurYrGrp",
    "GrantOrContributionPdDurYrGrp",
    "GrantOrContribPaidDuringYear",
)

# --- One grant (relative to a grant group element) ---
RECIPIENT_NAME = (
    "RecipientBusinessName/BusinessNameLine1Txt",
    "RecipientBusinessName/BusinessNameLine1",
    "RecipientPersonNm",
    "RecipientOrganizationName",
)
RECIPIENT_EIN = ("RecipientEIN", "EINOfRecipient")
GRANT_AMOUNT = ("Amt", "Amount", "CashGrantAmt")
RECIPIENT_CITY = ("RecipientUSAddress/CityNm", "RecipientForeignAddress/CityNm")
RECIPIENT_STATE = ("RecipientUSAddress/StateAbbreviationCd",)
RECIPIENT_ZIP = ("RecipientUSAddress/ZIPCd",)

# --- 990 body (relative to IRS990) ---
ORG_ADDRESS_LINE = ("PrincipalOfficeUSAddress/AddressLine1Txt", "PrincipalOfficeUSAddress/AddressLine1")
ORG_CITY = ("PrincipalOfficeUSAddress/CityNm", "PrincipalOfficeUSAddress/City")
ORG_STATE = ("PrincipalOfficeUSAddress/StateAbbreviationCd", "PrincipalOfficeUSAddress/State")
ORG_TOTAL_ASSETS = ("TotalAssetsEOYAmt", "Form990PartVIISectionAGrp/TotalAssetsEOYAmt")
ORG_TOTAL_REVENUE = ("CYTotalRevenueAmt", "TotalRevenueCurrentYearAmt")

_NON_DIGITS = re.compile(r"[^0-9]")


def normalize_ein(value: Optional[str]) -> str:
    """Strip dashes, spaces and anything else that is not a digit."""
    if not value:
        return ""
    return _NON_DIGITS.sub("", value)


@lru_cache(maxsize=None)
def _qualify(path: str) -> str:
    return "/".join("{*}" + step for step in path.split("/"))


def first_text(elem: Optional[etree._Element], candidates: tuple) -> Optional[str]:
    """Return the stripped text of the first candidate path present under elem."""
    if elem is None:
        return None
    for path in candidates:
        found = elem.find(_qualify(path))
        if found is not None and found.text and found.text.strip():
            return found.text.strip()
    return None


def first_number(elem: Optional[etree._Element], candidates: tuple) -> Optional[Number]:
    """Like :func:`first_text`, skipping candidates that are not numeric."""
    if elem is None:
        return None
    for path in candidates:
        value = _to_number(first_text(elem, (path,)))
        if value is not None:
            return value
    return None


def first_group(elem: etree._Element, candidates: tuple) -> list:
    """Return all elements matching the first candidate path that matches any."""
    for path in candidates:
        found = elem.findall(_qualify(path))
        if found:
            return found
    return []


def _to_number(text: Optional[str]) -> Optional[Number]:
    if not text:
        return None
    try:
        value = float(text.replace(",", ""))
    except ValueError:
        return None
    if not math.isfinite(value):
        return None
    return int(value) if value.is_integer() else value


class Form990Parser:
    """Parser for IRS 990 and 990-PF XML filings."""

    def __init__(self, process_990: bool = True):
        """
        Args:
            process_990: Also extract organization metadata from Form 990
                filings. When False only 990-PF grant-makers are parsed.
        """
        self.process_990 = process_990

    def classify(self, xml_content: bytes) -> Optional[FilingRole]:
        """Guess the filing role from raw bytes without parsing.

        Most documents in a monthly archive are neither form, so this check
        runs before any XML parsing.
        """
        if b"<IRS990PF" in xml_content:
            return FilingRole.GRANT_MAKER
        if self.process_990 and b"<IRS990" in xml_content:
            return FilingRole.BENEFICIARY
        return None

    def parse_xml(self, xml_content: bytes) -> Optional[etree._Element]:
        """Parse XML content into an element tree.

        Args:
            xml_content: Raw XML bytes

        Returns:
            Root element or None if parsing fails
        """
        try:
            return etree.fromstring(xml_content)
        except etree.XMLSyntaxError as e:
            logger.warning(f"Failed to parse XML: {e}")
            return None

    def parse_file(self, path: Path, fallback_year: int) -> Optional[FilingRecord]:
        """Read and parse one filing from disk. See :meth:`parse`."""
        try:
            xml_content = path.read_bytes()
        except OSError as e:
            logger.warning(f"  Skipping file {path.name}: {e}")
            return None
        return self.parse(xml_content, fallback_year, source=path.name)

    def parse(self, xml_content: bytes, fallback_year: int,
              source: str = "<bytes>") -> Optional[FilingRecord]:
        """Parse one filing into a FilingRecord.

        Args:
            xml_content: Raw XML bytes
            fallback_year: Tax year to use when the header does not declare one
            source: Name used in log messages

        Returns:
            A grant-maker record with at least one grant, a beneficiary record,
            or None when the document is not relevant or could not be parsed.
        """
        role = self.classify(xml_content)
        if role is None:
            return None

        try:
            root = self.parse_xml(xml_content)
            if root is None:
                return None
            if role is FilingRole.GRANT_MAKER:
                return self._parse_grant_maker(root, fallback_year)
            return self._parse_beneficiary(root, fallback_year)
        except Exception as e:
            logger.warning(f"  Skipping file {source} due to parsing error: {e}")
            return None

    def _sections(self, root: etree._Element, form_tag: str):
        header = root.find(_qualify("ReturnHeader"))
        form = root.find(_qualify(f"ReturnData/{form_tag}"))
        return header, form

    def _tax_year(self, header: etree._Element, fallback_year: int) -> int:
        # The filer's declared year dates the grants, not the archive's year.
        declared = first_text(header, TAX_YEAR)
        if declared:
            try:
                return int(declared)
            except ValueError:
                pass
        return fallback_year

    def _parse_grant_maker(self, root: etree._Element, fallback_year: int) -> Optional[FilingRecord]:
        header, form = self._sections(root, "IRS990PF")
        if header is None or form is None:
            return None

        ein = normalize_ein(first_text(header, FILER_EIN))
        if not ein:
            return None

        tax_year = self._tax_year(header, fallback_year)
        metadata = EntityMetadata(
            address=first_text(header, FILER_ADDRESS_LINE),
            city=first_text(header, FILER_CITY),
            state=first_text(header, FILER_STATE),
            assets=first_number(form, PF_TOTAL_ASSETS) or 0,
            revenue=first_number(form, PF_TOTAL_REVENUE) or 0,
        )

        grants = []
        for group in first_group(form, PF_GRANT_GROUPS):
            grant = self._parse_grant(group, tax_year)
            if grant:
                grants.append(grant)

        # Grant-makers reporting no grants are not re-read as beneficiaries.
        if not grants:
            return None

        return FilingRecord(
            ein=ein,
            name=first_text(header, FILER_NAME) or f"Foundation {ein}",
            role=FilingRole.GRANT_MAKER,
            tax_year=tax_year,
            metadata=metadata,
            grants=grants,
        )

    def _parse_grant(self, grant_elem: etree._Element, tax_year: int) -> Optional[Grant]:
        """Parse a 990-PF grant element; None unless it has a name and a positive amount."""
        name = first_text(grant_elem, RECIPIENT_NAME)
        amount = first_number(grant_elem, GRANT_AMOUNT)
        if not name or not amount or amount <= 0:
            return None

        return Grant(
            recipient_name=name,
            amount=amount,
            tax_year=tax_year,
            recipient_ein=normalize_ein(first_text(grant_elem, RECIPIENT_EIN)),
            recipient_city=first_text(grant_elem, RECIPIENT_CITY) or "",
            recipient_state=first_text(grant_elem, RECIPIENT_STATE) or "",
            recipient_zip=first_text(grant_elem, RECIPIENT_ZIP) or "",
        )

    def _parse_beneficiary(self, root: etree._Element, fallback_year: int) -> Optional[FilingRecord]:
        header, form = self._sections(root, "IRS990")
        if header is None or form is None:
            return None

        ein = normalize_ein(first_text(header, FILER_EIN))
        if not ein:
            return None

        metadata = EntityMetadata(
            address=first_text(header, FILER_ADDRESS_LINE) or first_text(form, ORG_ADDRESS_LINE),
            city=first_text(header, FILER_CITY) or first_text(form, ORG_CITY),
            state=first_text(header, FILER_STATE) or first_text(form, ORG_STATE),
            assets=first_number(form, ORG_TOTAL_ASSETS) or 0,
            revenue=first_number(form, ORG_TOTAL_REVENUE) or 0,
        )

        return FilingRecord(
            ein=ein,
            name=first_text(header, FILER_NAME) or f"Organization {ein}",
            role=FilingRole.BENEFICIARY,
            tax_year=self._tax_year(header, fallback_year),
            metadata=metadata,
        )
