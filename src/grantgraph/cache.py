"""On-disk cache of parsed monthly batches."""

import json
import logging
import os
from pathlib import Path
from typing import Optional

from .models import FilingRecord, MonthBatch

logger = logging.getLogger(__name__)


class OrgCacheWriter:
    """Write beneficiary records to a JSON array one record at a time."""

    def __init__(self, path: Path):
        self.path = path
        self.count = 0
        self._file = None

    def __enter__(self) -> "OrgCacheWriter":
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._file = open(self.path, "w", encoding="utf-8")
        self._file.write("[\n")
        return self

    def write(self, record: FilingRecord):
        if self.count > 0:
            self._file.write(",\n")
        self._file.write(json.dumps(record.to_dict()))
        self.count += 1

    def __exit__(self, exc_type, exc, tb):
        self._file.write("\n]\n")
        self._file.close()
        if exc_type is not None and self.path.exists():
            self.path.unlink()
        return False


class MonthlyCache:
    """Parsed results keyed by (year, month).

    A month counts as cached once its grant-maker file exists; the
    beneficiary file is optional.
    """

    def __init__(self, cache_dir: Path):
        self.cache_dir = cache_dir
        cache_dir.mkdir(parents=True, exist_ok=True)

    def grants_path(self, year: int, month: int) -> Path:
        return self.cache_dir / f"{year}_month_{month}.json"

    def orgs_path(self, year: int, month: int) -> Path:
        return self.cache_dir / f"{year}_month_{month}_orgs.json"

    def is_cached(self, year: int, month: int) -> bool:
        return self.grants_path(year, month).exists()

    def load(self, year: int, month: int) -> Optional[MonthBatch]:
        """Load a cached month, or None if it has not been processed yet."""
        grants_path = self.grants_path(year, month)
        if not grants_path.exists():
            return None

        with open(grants_path, encoding="utf-8") as f:
            grant_makers = [FilingRecord.from_dict(r) for r in json.load(f)]

        beneficiaries = []
        orgs_path = self.orgs_path(year, month)
        if orgs_path.exists():
            with open(orgs_path, encoding="utf-8") as f:
                beneficiaries = [FilingRecord.from_dict(r) for r in json.load(f)]

        logger.info(
            f"Loaded {year} month {month} from cache "
            f"({len(grant_makers)} foundations, {len(beneficiaries)} organizations)"
        )
        return MonthBatch(year=year, month=month, grant_makers=grant_makers,
                          beneficiaries=beneficiaries)

    def open_org_writer(self, year: int, month: int) -> OrgCacheWriter:
        return OrgCacheWriter(self.orgs_path(year, month))

    def save_grant_makers(self, batch: MonthBatch):
        """Write a month's grant-maker records, marking the month as cached."""
        path = self.grants_path(batch.year, batch.month)
        tmp_path = path.with_suffix(".json.tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump([r.to_dict() for r in batch.grant_makers], f, indent=2)
        os.replace(tmp_path, path)
        logger.info(f"Cached {len(batch.grant_makers)} foundations for {batch.year} month {batch.month} to {path}")

    def save(self, batch: MonthBatch):
        """Write a whole batch (beneficiaries included) in one go."""
        with self.open_org_writer(batch.year, batch.month) as writer:
            for record in batch.beneficiaries:
                writer.write(record)
        self.save_grant_makers(batch)
