"""
Analysis orchestrator.

start(url):
  cache hit  -> result returned immediately
  cache miss -> job created, pipeline scheduled as one asyncio task, job id returned

Pipeline (strictly sequential, each stage feeds the next):
  scrape -> components (+ models when combined) -> [models] -> mappings -> export

The task is the only writer for its job id. Callers poll the JobStore.
There is no cancellation: a job whose poller went away still finishes and
its result is cached.
"""

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from content_mapper.cache import AnalysisCache
from content_mapper.extractor import ExtractionPipeline
from content_mapper.exporter import export_to_webflow
from content_mapper.job_store import JobStatus, JobStore
from content_mapper.models import AnalysisMetadata, AnalysisResult, ExportDocument
from content_mapper.scraper import PageScraper
from content_mapper.url_safety import validate_and_sanitize_url

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StartResult:
    url: str
    cached: bool
    job_id: Optional[str] = None
    analysis: Optional[AnalysisResult] = None
    export: Optional[ExportDocument] = None

    def to_json(self) -> dict:
        if self.cached:
            return {
                "cached": True,
                "analysis": self.analysis.to_json(),
                "export": self.export.to_json(),
                "message": "Analysis retrieved from cache",
            }
        return {
            "cached": False,
            "job_id": self.job_id,
            "status": "started",
            "message": "Analysis started",
        }


class AnalysisService:
    def __init__(
        self,
        jobs: JobStore,
        cache: AnalysisCache,
        scraper: PageScraper,
        pipeline: ExtractionPipeline,
        *,
        use_combined_detection: bool = True,
        page_name: str = "Homepage",
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
    ):
        self.jobs = jobs
        self.cache = cache
        self.scraper = scraper
        self.pipeline = pipeline
        self.use_combined_detection = use_combined_detection
        self.page_name = page_name
        self._new_id = id_factory
        self._tasks: set[asyncio.Task] = set()

    async def start(self, raw_url: str) -> StartResult:
        url = validate_and_sanitize_url(raw_url)

        entry = self.cache.get(url)
        if entry is not None:
            return StartResult(url=url, cached=True, analysis=entry.analysis, export=entry.export)

        job_id = self._new_id()
        self.jobs.create(job_id)
        task = asyncio.create_task(self._run_job(job_id, url), name=f"analysis-{job_id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        logger.info(f"[analyzer] Started job {job_id} for {url}")
        return StartResult(url=url, cached=False, job_id=job_id)

    def _progress(self, job_id: str, stage: str, progress: int, message: str, **extra):
        self.jobs.update(job_id, stage=stage, progress=progress, message=message, **extra)

    async def run_pipeline(self, job_id: str, url: str) -> tuple[AnalysisResult, ExportDocument]:
        timings: dict[str, float] = {}

        def _timed(name: str, started: float):
            timings[name] = round(time.monotonic() - started, 2)

        self._progress(job_id, "scraping", 10, "Scraping site...", status=JobStatus.PROCESSING)
        t = time.monotonic()
        scraped = await self.scraper.scrape(url)
        _timed("scraping", t)
        self._progress(job_id, "scraping", 20, f"Scraped {scraped.title}")

        t = time.monotonic()
        if self.use_combined_detection:
            self._progress(job_id, "components", 30, "Detecting components and extracting models...")
            components, models = await self.pipeline.detect_components_and_models(scraped.html, scraped.screenshot)
        else:
            self._progress(job_id, "components", 30, "Detecting components...")
            components = await self.pipeline.detect_components(scraped.html, scraped.screenshot)
            self._progress(job_id, "models", 45, "Extracting content models...")
            models = await self.pipeline.extract_content_models(scraped.html, components)
        _timed("components_and_models", t)
        self._progress(job_id, "components", 60,
                       f"Found {len(components)} components and {len(models)} content models")

        self._progress(job_id, "mappings", 80, "Creating mappings...")
        t = time.monotonic()
        mappings = await self.pipeline.create_mappings(models, components, self.page_name)
        _timed("mapping", t)
        self._progress(job_id, "mappings", 90, f"Created {len(mappings)} page mappings")

        self._progress(job_id, "export", 95, "Generating Webflow export...")
        t = time.monotonic()
        document = export_to_webflow(models, components, mappings)
        _timed("export", t)

        analysis = AnalysisResult(
            content_models=models,
            ui_components=components,
            mappings=mappings,
            metadata=AnalysisMetadata(
                url=url,
                timestamp=datetime.now(timezone.utc).isoformat(),
                screenshot_path=scraped.screenshot_path,
            ),
        )
        logger.info(f"[analyzer] Job {job_id} stage timings: {timings}")
        return analysis, document

    async def _run_job(self, job_id: str, url: str):
        started = time.monotonic()
        try:
            analysis, document = await self.run_pipeline(job_id, url)
        except asyncio.CancelledError:
            self.jobs.update(job_id, status=JobStatus.ERROR, stage="error",
                             message="Analysis was interrupted", error="Analysis was interrupted")
            raise
        except Exception as e:
            message = str(e) or type(e).__name__
            logger.error(f"[analyzer] Job {job_id} failed after {time.monotonic() - started:.1f}s: {message}")
            self.jobs.update(job_id, status=JobStatus.ERROR, stage="error", message=message, error=message)
            return

        self.cache.set(url, analysis, document)
        self.jobs.update(
            job_id,
            status=JobStatus.COMPLETE,
            progress=100,
            stage="complete",
            message="Analysis complete!",
            result={"analysis": analysis.to_json(), "export": document.to_json()},
        )
        logger.info(f"[analyzer] Job {job_id} complete in {time.monotonic() - started:.1f}s "
                    f"({len(analysis.ui_components)} components, {len(analysis.content_models)} models, "
                    f"{len(analysis.mappings)} mappings)")

    async def wait_idle(self):
        """Wait for every in-flight job task. Used by tests and graceful shutdown."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self):
        for task in list(self._tasks):
            task.cancel()
        await self.wait_idle()
