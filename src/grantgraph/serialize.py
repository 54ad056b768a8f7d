"""Reading and writing the dataset and network documents."""

import json
import logging
import os
from pathlib import Path
from typing import Iterable, TextIO

from .errors import DatasetError
from .models import CompleteDataset, DatasetMetadata, Foundation, NetworkGraph, Organization

logger = logging.getLogger(__name__)


def _write_entries(out: TextIO, entries: Iterable[tuple[str, dict]]):
    """Write ``"key": value`` pairs, one serialized entry at a time."""
    first = True
    for key, value in entries:
        if not first:
            out.write(",\n")
        out.write(f"{json.dumps(key)}: {json.dumps(value, allow_nan=False)}")
        first = False
    out.write("\n")


def stream_dataset_to_file(dataset: CompleteDataset, file_path: Path):
    """Write a CompleteDataset as JSON without building the whole document in memory.

    Each foundation and organization is serialized on its own, so peak memory
    is one entry rather than the full text. The file is written beside its
    destination and renamed into place once complete.

    Args:
        dataset: Dataset to write
        file_path: Output JSON path
    """
    logger.info(f"Streaming final dataset to {file_path}...")
    file_path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = file_path.with_name(file_path.name + ".tmp")

    try:
        with open(tmp_path, "w", encoding="utf-8") as out:
            out.write("{\n")

            out.write('"foundations": {\n')
            _write_entries(out, ((k, f.to_dict()) for k, f in dataset.foundations.items()))
            out.write("},\n")

            out.write('"organizations": {\n')
            _write_entries(out, ((k, o.to_dict()) for k, o in dataset.organizations.items()))
            out.write("},\n")

            out.write(f'"metadata": {json.dumps(dataset.metadata.to_dict(), allow_nan=False)}\n')
            out.write("}\n")
        os.replace(tmp_path, file_path)
    finally:
        if tmp_path.exists():
            tmp_path.unlink()

    logger.info("Dataset streaming complete.")


def load_dataset(file_path: Path) -> CompleteDataset:
    """Load a dataset previously written by :func:`stream_dataset_to_file`.

    Raises:
        DatasetError: The file does not exist.
    """
    if not file_path.exists():
        raise DatasetError(f"Dataset not found at {file_path}")

    logger.info(f"Loading dataset from {file_path}...")
    with open(file_path, encoding="utf-8") as f:
        data = json.load(f)

    return CompleteDataset(
        foundations={k: Foundation.from_dict(v) for k, v in data.get("foundations", {}).items()},
        organizations={k: Organization.from_dict(v) for k, v in data.get("organizations", {}).items()},
        metadata=DatasetMetadata.from_dict(data.get("metadata", {})),
    )


def write_network(network: NetworkGraph, file_path: Path):
    """Write the network graph as a single JSON document."""
    logger.info(f"Writing network to {file_path}...")
    file_path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = file_path.with_name(file_path.name + ".tmp")
    with open(tmp_path, "w", encoding="utf-8") as f:
        json.dump(network.to_dict(), f, indent=2, allow_nan=False)
    os.replace(tmp_path, file_path)
    logger.info("Network saved.")
