"""Monthly fetch -> extract -> parse pipeline and the end-to-end run."""

import asyncio
import logging
import shutil
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .cache import MonthlyCache
from .config import PipelineConfig
from .curated import load_curated_grants
from .dataset import build_dataset
from .errors import ArchiveNotPublishedError, DownloadError
from .extract import extract_archive, list_xml_files, locate_xml_dir
from .irs import IRSBulkDownloader, open_session
from .models import CompleteDataset, FilingRecord, MonthBatch, NetworkGraph
from .network import build_network
from .parser import Form990Parser
from .serialize import stream_dataset_to_file, write_network

logger = logging.getLogger(__name__)


def month_groups(size: int) -> list[list[int]]:
    """Split months 1-12 into consecutive groups of at most ``size``."""
    months = list(range(1, 13))
    return [months[i:i + size] for i in range(0, 12, size)]


class GrantsPipeline:
    """Turns IRS monthly archives into parsed batches, using the cache when it can.

    Months in a group run concurrently, each in its own working directory.
    Within a month, filings are parsed on a bounded thread pool in batches of
    ``config.batch_size``.
    """

    def __init__(self, config: PipelineConfig, cache: Optional[MonthlyCache] = None,
                 parser: Optional[Form990Parser] = None, downloader=None,
                 extractor=extract_archive):
        self.config = config
        self.cache = cache or MonthlyCache(config.cache_dir)
        self.parser = parser or Form990Parser(process_990=config.process_990)
        self.downloader = downloader
        self.extractor = extractor
        self._executor: Optional[ThreadPoolExecutor] = None

    async def collect_batches(self) -> list[MonthBatch]:
        """Process every configured year and month.

        Returns:
            One batch per month (empty for skipped or failed months).
        """
        self._executor = ThreadPoolExecutor(max_workers=self.config.concurrency_limit)
        try:
            if self.downloader is not None:
                return await self._collect(self.downloader)
            async with open_session() as session:
                return await self._collect(IRSBulkDownloader(session, timeout=self.config.download_timeout))
        finally:
            self._executor.shutdown(wait=True)
            self._executor = None

    async def _collect(self, downloader) -> list[MonthBatch]:
        batches: list[MonthBatch] = []
        for year in self.config.years:
            logger.info(f"=== PROCESSING YEAR {year} ===")
            for group in month_groups(self.config.months_per_group):
                logger.info(f"Processing months {group[0]}-{group[-1]} in parallel...")
                # every month in the group settles before a fatal error is raised
                results = await asyncio.gather(
                    *(self.process_month(year, month, downloader) for month in group),
                    return_exceptions=True,
                )
                for result in results:
                    if isinstance(result, BaseException):
                        raise result
                batches.extend(results)
        return batches

    async def process_month(self, year: int, month: int, downloader) -> MonthBatch:
        """Fetch, extract and parse one month, or load it from the cache.

        Unpublished archives and download failures skip the month. Extraction
        failures propagate and end the run.
        """
        cached = self.cache.load(year, month)
        if cached is not None:
            return cached

        logger.info(f"--- Processing {year} Month: {month} ---")
        month_dir = self.config.bulk_dir / f"{year}_month_{month}"
        url = self.config.monthly_zip_url(year, month)
        zip_name = url.rsplit("/", 1)[-1]

        try:
            if month_dir.exists():
                shutil.rmtree(month_dir)
            month_dir.mkdir(parents=True)

            zip_path = month_dir / zip_name
            await downloader.download(url, zip_path)

            archive_stem = Path(zip_name).stem
            extract_dir = month_dir / "xml" / archive_stem
            await self.extractor(zip_path, extract_dir)
            zip_path.unlink()

            xml_files = list_xml_files(locate_xml_dir(extract_dir, archive_stem))
            if self.config.test_mode:
                logger.warning(f"TEST MODE: Processing only {self.config.test_limit} of {len(xml_files)} filings.")
                xml_files = xml_files[:self.config.test_limit]

            batch = await self.parse_files(xml_files, year, month)
            self.cache.save_grant_makers(batch)
            return batch

        except ArchiveNotPublishedError:
            logger.info(f"Skipping {year} month {month} - data not available yet (404)")
        except (DownloadError, OSError) as e:
            logger.error(f"Error during {year} month {month}: {e}")
        finally:
            if month_dir.exists():
                logger.info(f"Cleaning up downloaded files for {year} month {month}...")
                shutil.rmtree(month_dir, ignore_errors=True)

        return MonthBatch(year=year, month=month)

    async def parse_files(self, xml_files: list[Path], year: int, month: int) -> MonthBatch:
        """Parse a month's filings with bounded concurrency.

        Beneficiary records are streamed to the month's organization cache
        file as each parse batch completes.
        """
        batch = MonthBatch(year=year, month=month)
        semaphore = asyncio.Semaphore(self.config.concurrency_limit)
        loop = asyncio.get_running_loop()
        size = self.config.batch_size
        total = len(xml_files)

        async def parse_with_semaphore(path: Path) -> Optional[FilingRecord]:
            async with semaphore:
                return await loop.run_in_executor(self._executor, self.parser.parse_file, path, year)

        logger.info(
            f"Processing {total} XML files for month {month} "
            f"({self.config.concurrency_limit} concurrent, batches of {size})..."
        )

        with self.cache.open_org_writer(year, month) as org_writer:
            for start in range(0, total, size):
                chunk = xml_files[start:start + size]
                logger.info(f"  Processing batch {start // size + 1}/{(total + size - 1) // size} ({len(chunk)} files)...")
                results = await asyncio.gather(*(parse_with_semaphore(p) for p in chunk))

                for record in results:
                    if record is None:
                        continue
                    if record.is_grant_maker:
                        batch.grant_makers.append(record)
                    else:
                        org_writer.write(record)
                        batch.beneficiaries.append(record)

                logger.info(
                    f"  ...processed {min(start + size, total)} of {total} files "
                    f"({len(batch.grant_makers)} 990-PF, {len(batch.beneficiaries)} 990)"
                )

        logger.info(f"XML Processing complete for {year} month {month}!")
        return batch


@dataclass
class RunResult:
    dataset: CompleteDataset
    network: NetworkGraph
    months_processed: int


def run(config: PipelineConfig, central_ein: Optional[str] = None,
        pipeline: Optional[GrantsPipeline] = None) -> RunResult:
    """Run the whole pipeline and write both output documents.

    Args:
        config: Pipeline configuration
        central_ein: Build the network around this foundation using only IRS
            data, instead of the default foundation and its curated list
        pipeline: Pre-built pipeline (tests inject fakes through this)

    Raises:
        GrantGraphError: A fatal precondition failed; nothing is written.
    """
    pipeline = pipeline or GrantsPipeline(config)
    batches = asyncio.run(pipeline.collect_batches())
    dataset = build_dataset(batches)

    if central_ein:
        network = build_network(dataset, central_ein)
    else:
        curated = load_curated_grants(config.curated_path)
        network = build_network(dataset, config.central_ein, config.central_name, curated)

    write_network(network, config.network_path)
    stream_dataset_to_file(dataset, config.dataset_path)

    months_processed = sum(1 for b in batches if b.grant_makers or b.beneficiaries)
    return RunResult(dataset=dataset, network=network, months_processed=months_processed)
