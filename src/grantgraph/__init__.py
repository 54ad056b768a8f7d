"""
grantgraph - Build a bidirectional grants graph from IRS Form 990 bulk XML.

This package downloads the IRS monthly 990 XML archives, extracts the grants
paid by private foundations (990-PF), merges them into a dataset of who gave
to whom, and derives the funding network around one foundation.
"""

from .models import (
    CompleteDataset,
    FilingRecord,
    FilingRole,
    Foundation,
    Grant,
    NetworkGraph,
    Organization,
)
from .parser import Form990Parser
from .dataset import DatasetBuilder, build_dataset, normalize_org_name
from .network import build_network
from .pipeline import GrantsPipeline
from .serving import NetworkDataCache, NetworkDataSource

__version__ = "0.1.0"
__all__ = [
    "CompleteDataset",
    "FilingRecord",
    "FilingRole",
    "Foundation",
    "Grant",
    "NetworkGraph",
    "Organization",
    "Form990Parser",
    "DatasetBuilder",
    "build_dataset",
    "normalize_org_name",
    "build_network",
    "GrantsPipeline",
    "NetworkDataCache",
    "NetworkDataSource",
]
