"""Loader for the curated central-foundation grant list (Excel workbook)."""

import logging
from pathlib import Path
from typing import Iterable, Optional

import openpyxl

from .config import CURATED_SHEETS
from .errors import DatasetError
from .models import CuratedGrant

logger = logging.getLogger(__name__)

SECTION_HEADERS = {
    "Discretionary Grants",
    "Mini grants for Storytelling",
    "5-Year Grants",
    "4-Year Grants",
    "1-Year Grants",
    "Transition Fund",
}
FALLBACK_AMOUNT_COLUMN = "2025 Amount"
INDIVIDUAL_GRANT_LIMIT = 10_000


def parse_amount(value) -> float:
    """Parse a dollar cell ("$12,500", 12500, None) into a number; 0 if unreadable."""
    if value is None:
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    cleaned = str(value).replace("$", "").replace(",", "").strip()
    try:
        return float(cleaned)
    except ValueError:
        return 0.0


def is_excluded(organization: str, amount: float) -> bool:
    """Rows that are not real organization grants.

    Section headers and totals are layout, and single-word names at or under
    $10,000 are discretionary grants to individuals.
    """
    if not organization or amount <= 0:
        return True
    if organization in SECTION_HEADERS or "TOTAL" in organization:
        return True
    is_single_name = len(organization.split()) == 1
    return is_single_name and amount <= INDIVIDUAL_GRANT_LIMIT


def rows_to_grants(rows: Iterable[dict], year: int) -> list[CuratedGrant]:
    """Filter and convert sheet rows (header -> cell dicts) for one year."""
    grants = []
    for row in rows:
        organization = str(row.get("Organization") or "").strip()
        raw_amount = row.get(f"{year} Amount") or row.get(FALLBACK_AMOUNT_COLUMN)
        amount = parse_amount(raw_amount)
        if is_excluded(organization, amount):
            continue
        grants.append(CuratedGrant(
            organization=organization,
            amount=amount,
            year=year,
            city=str(row.get("City") or "").strip(),
            state=str(row.get("State") or "").strip(),
        ))
    return grants


def _sheet_rows(ws) -> Iterable[dict]:
    rows_iter = ws.iter_rows(values_only=True)
    headers = next(rows_iter, None)
    if not headers:
        return
    headers = [str(h).strip() if h is not None else "" for h in headers]
    for row in rows_iter:
        yield dict(zip(headers, row))


def load_curated_grants(path: Path, sheets: Optional[dict] = None) -> list[CuratedGrant]:
    """Read every year's sheet from the curated workbook.

    Args:
        path: Workbook path
        sheets: Sheet name -> year map (defaults to the configured sheets)

    Raises:
        DatasetError: The workbook does not exist.
    """
    if not path.exists():
        raise DatasetError(f"Curated grant list not found at {path}")

    logger.info(f"Reading curated grants from {path}...")
    wb = openpyxl.load_workbook(str(path), read_only=True, data_only=True)
    all_grants: list[CuratedGrant] = []
    try:
        for sheet_name, year in (sheets or CURATED_SHEETS).items():
            if sheet_name not in wb.sheetnames:
                logger.warning(f"   Sheet \"{sheet_name}\" not found, skipping...")
                continue
            grants = rows_to_grants(_sheet_rows(wb[sheet_name]), year)
            logger.info(f"   Found {len(grants)} grants from {year} (sheet: {sheet_name})")
            all_grants.extend(grants)
    finally:
        wb.close()

    return all_grants
