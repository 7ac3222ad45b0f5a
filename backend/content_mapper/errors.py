"""
Exception taxonomy. Services raise these; main.py maps them to HTTP responses.
"""

from dataclasses import dataclass


class ContentMapperError(Exception):
    """Base class for every error raised by the analysis pipeline."""


class UnsafeUrlError(ContentMapperError):
    """URL has a disallowed scheme, an empty host, or targets a private address."""


class ScrapeError(ContentMapperError):
    """Every scrape strategy failed for a URL."""

    def __init__(self, url: str, failures: dict[str, str]):
        self.url = url
        self.failures = failures
        detail = "; ".join(f"{name}: {err}" for name, err in failures.items()) or "no strategy configured"
        super().__init__(f"Failed to scrape {url} ({detail})")


@dataclass
class AttemptDiagnostic:
    """Outcome of one attempt against the completion service."""
    name: str
    transport: str
    model: str
    status: int | None
    error: str


class CompletionError(ContentMapperError):
    """The completion service could not be reached with any attempt in the cascade."""

    def __init__(self, message: str, *, status: int | None, model: str, endpoint: str,
                 attempts: list[AttemptDiagnostic] | None = None):
        self.status = status
        self.model = model
        self.endpoint = endpoint
        self.attempts = attempts or []
        tried = ", ".join(f"{a.name}={a.status or 'error'}" for a in self.attempts)
        suffix = f" [attempts: {tried}]" if tried else ""
        super().__init__(f"{message} (status={status}, model={model}, endpoint={endpoint}){suffix}")


class ExtractionParseError(ContentMapperError):
    """No valid JSON could be recovered from a stage response."""

    def __init__(self, stage: str, message: str, *, raw: str, cleaned: str):
        self.stage = stage
        self.reason = message
        self.raw = raw
        self.cleaned = cleaned
        super().__init__(f"Failed to parse {stage} from AI response. {message}")


class ExportFormatError(ContentMapperError):
    """Requested export format is unknown or its data is missing."""
