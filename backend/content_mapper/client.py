"""
Async client for the analysis API.

Polls job status at a fixed interval until the job completes or fails.
A 404 while polling means the server no longer knows the job (restart or
eviction) and is reported as an expired session, not as a failed analysis.
"""

import asyncio
import logging
from typing import Callable, Optional

import httpx

logger = logging.getLogger(__name__)


class SessionExpiredError(Exception):
    """The server has no record of the job."""


class AnalysisFailedError(Exception):
    """The job finished with status=error; the message is the server's, verbatim."""


class AnalysisClient:
    def __init__(self, base_url: str, poll_interval: float = 2.0, timeout: float = 30,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.poll_interval = poll_interval
        self._client = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.close()

    async def close(self):
        await self._client.aclose()

    async def start(self, url: str) -> dict:
        response = await self._client.post("/analyze", json={"url": url})
        response.raise_for_status()
        return response.json()

    async def status(self, job_id: str) -> dict:
        response = await self._client.get(f"/analyze/status/{job_id}")
        if response.status_code == 404:
            raise SessionExpiredError(f"Job {job_id} not found; the analysis session has expired")
        response.raise_for_status()
        return response.json()

    async def wait(self, job_id: str, on_progress: Optional[Callable[[dict], None]] = None) -> dict:
        """Poll until a terminal status. Returns the job's result payload."""
        while True:
            job = await self.status(job_id)
            if on_progress is not None:
                on_progress(job)
            if job["status"] == "complete":
                return job["result"]
            if job["status"] == "error":
                raise AnalysisFailedError(job.get("error") or job.get("message") or "Analysis failed")
            await asyncio.sleep(self.poll_interval)

    async def analyze(self, url: str, on_progress: Optional[Callable[[dict], None]] = None) -> dict:
        """Start an analysis and return {"analysis", "export", "cached"} once available."""
        started = await self.start(url)
        if started.get("cached"):
            return {"analysis": started["analysis"], "export": started["export"], "cached": True}
        logger.info(f"[client] Polling job {started['job_id']}")
        result = await self.wait(started["job_id"], on_progress=on_progress)
        return {**result, "cached": False}

    async def export(self, fmt: str, *, analysis: Optional[dict] = None,
                     export: Optional[dict] = None) -> httpx.Response:
        response = await self._client.post("/export", json={"format": fmt, "analysis": analysis, "export": export})
        response.raise_for_status()
        return response
