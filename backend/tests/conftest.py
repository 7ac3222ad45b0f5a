from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Optional

import pytest

from content_mapper.completion import CompletionResult, Attempt
from content_mapper.scraper import ScrapeResult


# -----------------------------
# Test doubles
# -----------------------------
class FakeClock:
    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeCompletion:
    """Returns canned response texts in order and records every prompt."""

    def __init__(self, responses: list[str]):
        self._responses = list(responses)
        self.prompts: list[str] = []
        self.images: list = []

    async def complete(self, prompt, image=None, system=None) -> CompletionResult:
        self.prompts.append(prompt)
        self.images.append(image)
        if not self._responses:
            raise AssertionError("FakeCompletion ran out of responses")
        text = self._responses.pop(0)
        if isinstance(text, Exception):
            raise text
        return CompletionResult(text=text, attempt=Attempt("primary", "sdk", "fake-model"))

    async def close(self):
        pass


@dataclass
class FakeScraper:
    html: str = "<html><head><title>Events</title></head><body><section class='hero'><h1>Hi</h1></section></body></html>"
    title: str = "Events"
    screenshot: Optional[bytes] = None
    error: Optional[Exception] = None
    calls: list = field(default_factory=list)

    async def scrape(self, url: str) -> ScrapeResult:
        self.calls.append(url)
        if self.error is not None:
            raise self.error
        return ScrapeResult(url=url, html=self.html, title=self.title, strategy="fake",
                            screenshot=self.screenshot)


# -----------------------------
# Canned model output
# -----------------------------
COMPONENTS = [
    {
        "name": "Hero",
        "selector": ".hero",
        "slots": [{"name": "heading", "selector": "h1", "type": "text"}],
    }
]
MODELS = [{"name": "Event", "fields": [{"name": "title", "type": "string"}]}]
MAPPINGS = [
    {
        "pageName": "Home",
        "componentMappings": [{"componentName": "Hero", "slotMappings": {"heading": "Event.title"}}],
    }
]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def combined_response() -> str:
    return "```json\n" + json.dumps({"components": COMPONENTS, "models": MODELS}) + "\n```"


@pytest.fixture
def mappings_response() -> str:
    return json.dumps({"mappings": MAPPINGS})
