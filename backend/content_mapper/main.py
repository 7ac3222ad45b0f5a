from contextlib import asynccontextmanager
from typing import Literal, Optional
import logging

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from pydantic import BaseModel

from content_mapper.analyzer import AnalysisService
from content_mapper.cache import AnalysisCache
from content_mapper.completion import build_completion_client
from content_mapper.config import Settings, get_settings
from content_mapper.errors import ExportFormatError, UnsafeUrlError
from content_mapper.export_formats import render_export
from content_mapper.extractor import ExtractionPipeline
from content_mapper.job_store import JobStore, start_sweeper
from content_mapper.logging_setup import configure_logging
from content_mapper.models import AnalysisResult, ExportDocument
from content_mapper.scraper import build_scraper

logger = logging.getLogger(__name__)


def build_service(settings: Settings) -> AnalysisService:
    return AnalysisService(
        jobs=JobStore(retention_seconds=settings.job_retention_seconds),
        cache=AnalysisCache(ttl_seconds=settings.cache_ttl_seconds),
        scraper=build_scraper(settings),
        pipeline=ExtractionPipeline(build_completion_client(settings), settings.markup_char_budget),
        use_combined_detection=settings.use_combined_detection,
    )


def create_app(settings: Optional[Settings] = None, service: Optional[AnalysisService] = None) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings.log_level)
        svc = service or build_service(settings)
        app.state.analysis = svc
        # Startup: periodic eviction of stale jobs and expired cache entries
        sweepers = [
            start_sweeper("job-store", svc.jobs.sweep, settings.job_sweep_interval_seconds),
            start_sweeper("cache", svc.cache.sweep, settings.cache_sweep_interval_seconds),
        ]
        logger.info("[startup] Analysis service ready")
        yield
        for task in sweepers:
            task.cancel()
        await svc.shutdown()
        if service is None:
            await svc.pipeline.completion.close()
        logger.info("[shutdown] Analysis service stopped")

    app = FastAPI(title="Content Mapper API", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_routes(app)
    return app


def get_service(request: Request) -> AnalysisService:
    return request.app.state.analysis


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------

class AnalyzeRequest(BaseModel):
    url: str


class ExportRequest(BaseModel):
    format: Literal["neutral", "webflow", "csv"] = "webflow"
    analysis: Optional[AnalysisResult] = None
    export: Optional[ExportDocument] = None


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

def register_routes(app: FastAPI):

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    @app.post("/analyze")
    async def analyze(request: AnalyzeRequest, service: AnalysisService = Depends(get_service)):
        """Start an analysis. Returns the cached result or a job id to poll."""
        try:
            started = await service.start(request.url)
        except UnsafeUrlError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return started.to_json()

    @app.get("/analyze/status/{job_id}")
    async def analysis_status(job_id: str, service: AnalysisService = Depends(get_service)):
        """Poll a job. 404 means the job is unknown or was evicted (session expired)."""
        job = service.jobs.get(job_id)
        if job is None:
            raise HTTPException(status_code=404, detail="Job not found")
        return job.to_json()

    @app.post("/export")
    async def export(request: ExportRequest):
        """Render an analysis or export document as a downloadable file."""
        try:
            payload = render_export(request.format, analysis=request.analysis, document=request.export)
        except ExportFormatError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return Response(content=payload.body, media_type=payload.media_type, headers=payload.headers)


app = create_app()
