"""Build-time configuration for the grants pipeline.

Processing limits are fixed here rather than exposed as command-line flags.
Filesystem locations may be overridden through the environment (or a
``.env`` file in the working directory).
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

YEARS = (2023, 2024, 2025)
TEST_MODE = False  # only parse TEST_LIMIT filings per month
TEST_LIMIT = 200
PROCESS_990 = True  # also collect Form 990 filers as organization metadata
CONCURRENCY_LIMIT = 20
BATCH_SIZE = 2000
MONTHS_PER_GROUP = 3
DOWNLOAD_TIMEOUT = 600

IRS_BASE = "https://apps.irs.gov/pub/epostcard/990/xml"
MONTHLY_ZIP_NAME = "{year}_TEOS_XML_{month:02d}A.zip"

DEFAULT_CENTRAL_EIN = "352338463"
DEFAULT_CENTRAL_NAME = "Hidden Leaf Foundation"

CURATED_SHEETS = {
    "2020": 2020,
    "2021": 2021,
    "2022": 2022,
    "2023": 2023,
    "2024": 2024,
    "2025 DRAFT": 2025,
}

NETWORK_CACHE_TTL = 3600
NETWORK_REMOTE_URL = os.getenv("GRANTGRAPH_NETWORK_URL", "")


def _path(env_name: str, default: str) -> Path:
    return Path(os.getenv(env_name, default))


@dataclass(frozen=True)
class PipelineConfig:
    """Everything one pipeline run needs to know."""
    years: tuple = YEARS
    test_mode: bool = TEST_MODE
    test_limit: int = TEST_LIMIT
    process_990: bool = PROCESS_990
    concurrency_limit: int = CONCURRENCY_LIMIT
    batch_size: int = BATCH_SIZE
    months_per_group: int = MONTHS_PER_GROUP
    download_timeout: int = DOWNLOAD_TIMEOUT
    data_dir: Path = field(default_factory=lambda: _path("GRANTGRAPH_DATA_DIR", "data"))
    cache_dir: Path = field(default_factory=lambda: _path("GRANTGRAPH_CACHE_DIR", ".cache/monthly"))
    dataset_path: Path = field(
        default_factory=lambda: _path("GRANTGRAPH_DATASET_PATH", "data/complete-grants-dataset.json")
    )
    network_path: Path = field(
        default_factory=lambda: _path("GRANTGRAPH_NETWORK_PATH", "public/grants-network-data.json")
    )
    curated_path: Path = field(
        default_factory=lambda: _path("GRANTGRAPH_CURATED_PATH", "public/master_grants_list.xlsx")
    )
    central_ein: str = DEFAULT_CENTRAL_EIN
    central_name: str = DEFAULT_CENTRAL_NAME

    @property
    def bulk_dir(self) -> Path:
        return self.data_dir / "irs_bulk"

    def monthly_zip_url(self, year: int, month: int) -> str:
        return f"{IRS_BASE}/{year}/" + MONTHLY_ZIP_NAME.format(year=year, month=month)
