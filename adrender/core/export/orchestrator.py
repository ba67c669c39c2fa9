"""
Batch Export Orchestrator
=========================

Runs export jobs with partial-failure semantics: a failing job is logged and
recorded, the batch goes on, and the archive is finalized once every job was
attempted. Only archive failures abort a batch.
"""

from typing import Any, Awaitable, Callable, List, Optional, Tuple
import asyncio
import time

from adrender.config.logging import get_logger, job_context
from adrender.config.settings import get_settings
from adrender.core.rendering import BrowserSession, PlaywrightPNGGenerator
from adrender.models.schemas import ExportKind, ExportResult, JobFailure
from .archive import ArchiveError, ArchiveWriter
from .assets import AssetFetcher
from .jobs import ArchiveEntry, ExportFlow, RenderJob

logger = get_logger(__name__)

JobProcessor = Callable[[RenderJob], Awaitable[List[ArchiveEntry]]]


class ExportTimeoutError(Exception):
    """Raised when a whole export batch exceeds the export timeout."""

    pass


class ExportOrchestrator:
    """Fans export jobs out, collects their entries and accounts for every job."""

    def __init__(self, concurrency: Optional[int] = None, timeout: Optional[float] = None):
        self.settings = get_settings()
        self.concurrency = concurrency or self.settings.render_concurrency
        self.timeout = timeout if timeout is not None else self.settings.export_timeout
        self.logger: Any = logger.bind(component="export_orchestrator")

    async def run(
        self,
        jobs: List[RenderJob],
        processor: JobProcessor,
        archive: ArchiveWriter,
        kind: ExportKind = ExportKind.STATIC,
    ) -> ExportResult:
        """
        Process jobs and write their entries into the archive.

        Jobs run at most `concurrency` at a time; entries are written in
        completion order. Every job ends up either in `succeeded` or in
        `failures`.

        Args:
            jobs: Jobs to run
            processor: Coroutine producing the archive entries of one job
            archive: Archive sink, finalized once every job was attempted
            kind: Export flow recorded on the result

        Returns:
            ExportResult with archive bytes

        Raises:
            ArchiveError: If writing or finalizing the archive fails
        """
        start_time = time.time()
        result = ExportResult(kind=kind)
        semaphore = asyncio.Semaphore(self.concurrency)

        async def attempt(job: RenderJob) -> Tuple[RenderJob, Optional[List[ArchiveEntry]], Optional[Exception]]:
            async with semaphore:
                try:
                    with job_context(job.job_id):
                        return job, await processor(job), None
                except ArchiveError:
                    raise
                except Exception as e:
                    return job, None, e

        self.logger.info("Export batch started", kind=kind.value, jobs=len(jobs), concurrency=self.concurrency)
        tasks = [asyncio.ensure_future(attempt(job)) for job in jobs]
        try:
            for next_done in asyncio.as_completed(tasks):
                job, entries, error = await next_done
                if error is not None:
                    self.logger.warning(
                        "Export job failed, skipping",
                        job_id=job.job_id,
                        error_type=type(error).__name__,
                        error=str(error),
                    )
                    result.failures.append(
                        JobFailure(job_id=job.job_id, error_type=type(error).__name__, message=str(error))
                    )
                    continue

                for name, content in entries or []:
                    result.entries.append(archive.add(name, content))
                result.succeeded.append(job.job_id)
        finally:
            pending = [task for task in tasks if not task.done()]
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

        result.archive_data = archive.finalize()
        result.processing_time = time.time() - start_time

        self.logger.info(
            "Export batch completed",
            kind=kind.value,
            succeeded=len(result.succeeded),
            failed=len(result.failures),
            entries=len(result.entries),
            archive_size=len(result.archive_data),
            processing_time=result.processing_time,
        )
        return result

    async def execute(self, flow: ExportFlow) -> ExportResult:
        """
        Run an export flow end to end.

        Starts one browser session for the request when the flow renders,
        prepares the flow, runs its jobs under the export timeout and closes
        every resource before returning. A batch that times out or fails
        on the archive leaves no archive behind.

        Raises:
            ExportTimeoutError: If the batch exceeds the export timeout
            ArchiveError: If the archive cannot be written
        """
        archive = ArchiveWriter(compression_level=flow.compression_level)
        fetcher = AssetFetcher()
        session = BrowserSession(concurrency=self.concurrency) if flow.needs_browser else None

        try:
            generator = None
            if session is not None:
                await session.start()
                generator = PlaywrightPNGGenerator(session)

            await flow.prepare(fetcher, generator)
            jobs = flow.build_jobs()
            try:
                return await asyncio.wait_for(
                    self.run(jobs, flow.process, archive, kind=flow.kind), timeout=self.timeout
                )
            except asyncio.TimeoutError:
                self.logger.error("Export timed out", kind=flow.kind.value, timeout=self.timeout, jobs=len(jobs))
                raise ExportTimeoutError(f"Export exceeded {self.timeout:.0f}s with {len(jobs)} jobs")
        except BaseException:
            archive.discard()
            raise
        finally:
            try:
                await fetcher.close()
            finally:
                if session is not None:
                    await session.close()
