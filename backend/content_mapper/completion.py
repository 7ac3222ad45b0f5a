"""
Completion service client.

The upstream service is inconsistent across model ids, response-format hints
and auth edge cases, so a call is an ordered table of attempts
(transport x model id x response-format flag) run by a small driver:

  primary          sdk     default model
  on 401/403  ->   direct  default model            (no hint)
                   direct  default model            (json hint)
  on 404      ->   direct  each fallback model, in order

The first success wins. When every attempt fails, one CompletionError carries
the primary status, model and endpoint plus every attempt's diagnostics.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Protocol

import anthropic
import httpx

from content_mapper.errors import AttemptDiagnostic, CompletionError
from content_mapper.image_utils import ImagePayload

logger = logging.getLogger(__name__)

ANTHROPIC_VERSION = "2023-06-01"

AUTH = "auth"
NOT_FOUND = "not_found"
OTHER = "other"


def classify_status(status: Optional[int]) -> str:
    if status in (401, 403):
        return AUTH
    if status == 404:
        return NOT_FOUND
    return OTHER


@dataclass(frozen=True)
class CompletionRequest:
    prompt: str
    image: Optional[ImagePayload] = None
    max_tokens: int = 4000
    system: Optional[str] = None

    def messages(self) -> list[dict]:
        if self.image is None:
            return [{"role": "user", "content": self.prompt}]
        return [{
            "role": "user",
            "content": [self.image.to_content_block(), {"type": "text", "text": self.prompt}],
        }]


@dataclass(frozen=True)
class Attempt:
    name: str
    transport: str
    model: str
    response_format: bool = False


class AttemptFailed(Exception):
    def __init__(self, message: str, status: Optional[int] = None):
        self.status = status
        self.kind = classify_status(status)
        super().__init__(message)


class Transport(Protocol):
    name: str

    async def send(self, attempt: Attempt, request: CompletionRequest) -> str: ...


def _text_from_blocks(blocks) -> str:
    parts = []
    for block in blocks or []:
        if isinstance(block, dict):
            if block.get("type") == "text":
                parts.append(block.get("text", ""))
        elif getattr(block, "type", None) == "text":
            parts.append(block.text)
    return "".join(parts)


class SdkTransport:
    """Normal path: the anthropic SDK."""

    name = "sdk"

    def __init__(self, api_key: str, base_url: str, timeout: float):
        self._client = anthropic.AsyncAnthropic(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
            max_retries=0,
        )

    async def send(self, attempt: Attempt, request: CompletionRequest) -> str:
        kwargs = {}
        if request.system:
            kwargs["system"] = request.system
        try:
            response = await self._client.messages.create(
                model=attempt.model,
                max_tokens=request.max_tokens,
                messages=request.messages(),
                **kwargs,
            )
        except anthropic.APIStatusError as e:
            raise AttemptFailed(str(e), status=e.status_code) from e
        except anthropic.APIError as e:
            # Connection errors and timeouts have no status
            raise AttemptFailed(str(e)) from e

        text = _text_from_blocks(response.content)
        if not text:
            raise AttemptFailed("Unexpected response type: no text content", status=None)
        return text

    async def close(self):
        await self._client.close()


class DirectTransport:
    """Raw HTTP to the messages endpoint, bypassing the SDK."""

    name = "direct"

    def __init__(self, api_key: str, base_url: str, timeout: float,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    @property
    def messages_url(self) -> str:
        return f"{self.base_url}/v1/messages"

    @property
    def models_url(self) -> str:
        return f"{self.base_url}/v1/models"

    def _headers(self) -> dict:
        return {
            "x-api-key": self.api_key,
            "authorization": f"Bearer {self.api_key}",
            "anthropic-version": ANTHROPIC_VERSION,
            "content-type": "application/json",
        }

    async def send(self, attempt: Attempt, request: CompletionRequest) -> str:
        body = {
            "model": attempt.model,
            "max_tokens": request.max_tokens,
            "messages": request.messages(),
        }
        if request.system:
            body["system"] = request.system
        if attempt.response_format:
            body["response_format"] = {"type": "json_object"}

        try:
            response = await self._client.post(self.messages_url, json=body, headers=self._headers())
        except httpx.HTTPError as e:
            raise AttemptFailed(f"{type(e).__name__}: {e}") from e

        if response.status_code >= 400:
            raise AttemptFailed(f"HTTP {response.status_code}: {response.text[:300]}",
                                status=response.status_code)

        try:
            payload = response.json()
        except ValueError as e:
            raise AttemptFailed(f"Non-JSON response body: {response.text[:200]}",
                                status=response.status_code) from e
        if not isinstance(payload, dict):
            raise AttemptFailed(f"Unexpected response body of type {type(payload).__name__}",
                                status=response.status_code)

        text = _text_from_blocks(payload.get("content"))
        if not text:
            # OpenAI-compatible gateways answer in choices[]
            choices = payload.get("choices") or []
            if choices:
                text = (choices[0].get("message") or {}).get("content") or ""
        if not text:
            raise AttemptFailed("Response had no text content", status=response.status_code)
        return text

    async def probe_models(self) -> Optional[bool]:
        """True if the credentials can list models, False if rejected, None if unknown."""
        try:
            response = await self._client.get(self.models_url, headers=self._headers())
        except httpx.HTTPError as e:
            logger.warning(f"[completion] Models probe failed: {e}")
            return None
        if response.status_code in (401, 403):
            return False
        if response.status_code < 400:
            return True
        return None

    async def close(self):
        await self._client.aclose()


@dataclass
class CompletionResult:
    text: str
    attempt: Attempt


class CompletionClient:
    def __init__(
        self,
        *,
        model: str,
        fallback_models: list[str],
        endpoint: str,
        transports: dict[str, Transport],
        probe_models: bool = True,
        max_tokens: int = 4000,
    ):
        self.model = model
        self.fallback_models = [m for m in fallback_models if m and m != model]
        self.endpoint = endpoint
        self.transports = transports
        self.probe_models = probe_models
        self.max_tokens = max_tokens

    # -- attempt table ------------------------------------------------------

    def primary_attempt(self) -> Attempt:
        return Attempt("primary", "sdk", self.model)

    def recovery_plan(self, kind: str) -> list[Attempt]:
        if kind == AUTH:
            return [
                Attempt("direct", "direct", self.model, response_format=False),
                Attempt("direct+json", "direct", self.model, response_format=True),
            ]
        if kind == NOT_FOUND:
            return [Attempt(f"fallback:{m}", "direct", m) for m in self.fallback_models]
        return []

    # -- driver ---------------------------------------------------------------

    async def _run(self, attempt: Attempt, request: CompletionRequest) -> str:
        transport = self.transports.get(attempt.transport)
        if transport is None:
            raise AttemptFailed(f"No '{attempt.transport}' transport configured")
        return await transport.send(attempt, request)

    async def complete(self, prompt: str, image: Optional[ImagePayload] = None,
                       system: Optional[str] = None) -> CompletionResult:
        request = CompletionRequest(prompt=prompt, image=image, max_tokens=self.max_tokens, system=system)
        diagnostics: list[AttemptDiagnostic] = []

        primary = self.primary_attempt()
        try:
            text = await self._run(primary, request)
            return CompletionResult(text=text, attempt=primary)
        except AttemptFailed as e:
            first = e
            diagnostics.append(AttemptDiagnostic(primary.name, primary.transport, primary.model, e.status, str(e)))
            logger.warning(f"[completion] {primary.name} ({primary.model}) failed: status={e.status} {e}")

        credentials_note = ""
        if first.kind == AUTH and self.probe_models:
            credentials_note = await self._probe_credentials()

        for attempt in self.recovery_plan(first.kind):
            try:
                text = await self._run(attempt, request)
            except AttemptFailed as e:
                diagnostics.append(AttemptDiagnostic(attempt.name, attempt.transport, attempt.model, e.status, str(e)))
                logger.warning(f"[completion] {attempt.name} ({attempt.model}) failed: status={e.status} {e}")
                continue
            logger.info(f"[completion] Recovered via {attempt.name} ({attempt.model})")
            return CompletionResult(text=text, attempt=attempt)

        message = {
            AUTH: "Completion service rejected the credentials",
            NOT_FOUND: "Completion service did not recognize any model identifier",
        }.get(first.kind, f"Completion request failed: {first}")
        if credentials_note:
            message = f"{message}; {credentials_note}"
        raise CompletionError(message, status=first.status, model=primary.model,
                              endpoint=self.endpoint, attempts=diagnostics)

    async def _probe_credentials(self) -> str:
        direct = self.transports.get("direct")
        probe = getattr(direct, "probe_models", None)
        if probe is None:
            return ""
        valid = await probe()
        if valid is True:
            logger.warning("[completion] Credentials can list models; likely a model/plan mismatch")
            return "credentials are valid, model or plan mismatch"
        if valid is False:
            logger.error("[completion] Credentials rejected by models endpoint")
            return "credentials are invalid"
        return ""

    async def close(self):
        for transport in self.transports.values():
            close = getattr(transport, "close", None)
            if close is not None:
                await close()


def build_completion_client(settings) -> CompletionClient:
    direct = DirectTransport(settings.anthropic_api_key, settings.completion_base_url, settings.completion_timeout)
    sdk = SdkTransport(settings.anthropic_api_key, settings.completion_base_url, settings.completion_timeout)
    return CompletionClient(
        model=settings.default_model,
        fallback_models=settings.fallback_models,
        endpoint=direct.messages_url,
        transports={sdk.name: sdk, direct.name: direct},
        probe_models=settings.probe_models_endpoint,
        max_tokens=settings.completion_max_tokens,
    )
