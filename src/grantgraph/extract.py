"""Bulk archive extraction."""

import asyncio
import logging
from pathlib import Path

from .errors import ExtractionError

logger = logging.getLogger(__name__)

# unzip exit codes: 0=success, 1=warnings, 2=format errors, 3=severe errors.
# IRS archives routinely exit 1 or 3 while still extracting nearly every file.
UNZIP_WARNING_CODES = {1: "warnings", 2: "errors", 3: "severe errors"}


async def extract_archive(zip_path: Path, dest: Path, unzip: str = "unzip") -> int:
    """Extract a ZIP archive with the system unzip command.

    unzip is used instead of :mod:`zipfile` because it handles every
    compression method the IRS uses, including deflate64.

    Args:
        zip_path: Archive to extract
        dest: Directory to extract into (created if missing)
        unzip: unzip executable

    Returns:
        Number of files found under ``dest`` afterwards.

    Raises:
        ExtractionError: unzip could not run, or nothing was extracted.
    """
    logger.info(f"Extracting {zip_path.name}...")
    dest.mkdir(parents=True, exist_ok=True)

    try:
        proc = await asyncio.create_subprocess_exec(
            unzip, "-q", "-o", str(zip_path), "-d", str(dest),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        raise ExtractionError(f"Could not run {unzip}: {e}") from e

    _, stderr = await proc.communicate()
    extracted = count_files(dest)

    if proc.returncode != 0:
        detail = stderr.decode("utf-8", errors="ignore").strip() if stderr else ""
        if extracted == 0:
            raise ExtractionError(
                f"Unzip failed with exit code {proc.returncode}, no files extracted: {detail}"
            )
        kind = UNZIP_WARNING_CODES.get(proc.returncode, f"exit code {proc.returncode}")
        logger.warning(f"   Extraction of {zip_path.name} completed with {kind} ({extracted} files extracted)")
    elif extracted == 0:
        raise ExtractionError(f"No files extracted from {zip_path.name}")

    return extracted


def count_files(root: Path) -> int:
    return sum(1 for p in root.rglob("*") if p.is_file())


def _has_xml(directory: Path) -> bool:
    return any(p.suffix == ".xml" and p.is_file() for p in directory.iterdir())


def locate_xml_dir(extracted: Path, archive_stem: str) -> Path:
    """Find the directory holding the extracted filings.

    Archives sometimes repeat their own name as a top-level folder, sometimes
    unpack flat, and sometimes use an unrelated folder name. Checked in order:
    ``extracted/archive_stem``, ``extracted`` itself, then the first
    subdirectory (by name) that contains ``.xml`` files.

    Raises:
        ExtractionError: No candidate directory holds any XML.
    """
    if not extracted.is_dir():
        raise ExtractionError(f"Extraction failed - directory not found: {extracted}")

    nested = extracted / archive_stem
    if nested.is_dir():
        return nested

    if _has_xml(extracted):
        logger.info(f"   Files extracted directly to {extracted.name}")
        return extracted

    subdirs = sorted(p for p in extracted.iterdir() if p.is_dir())
    if not subdirs:
        raise ExtractionError(f"Extraction failed - no XML files or subdirectories found in {extracted}")

    for subdir in subdirs:
        if _has_xml(subdir):
            logger.info(f"   Found XML files in subdirectory: {subdir.name}")
            return subdir

    raise ExtractionError(f"Extraction failed - no XML files found in {extracted} or subdirectories")


def list_xml_files(xml_dir: Path) -> list[Path]:
    return sorted(p for p in xml_dir.iterdir() if p.suffix == ".xml" and p.is_file())
