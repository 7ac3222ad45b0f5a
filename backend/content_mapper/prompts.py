"""
Prompt text for the three extraction stages and the combined detection call.
"""

import json

SYSTEM_PROMPT = (
    "You analyze web pages for a CMS migration. You answer with JSON only: "
    "no markdown fences, no commentary."
)

COMPONENT_EXAMPLE = """[
  {
    "name": "HeroBanner",
    "selector": ".hero-section",
    "slots": [
      {"name": "title", "selector": "h1.title", "type": "text"},
      {"name": "subtitle", "selector": ".subtitle", "type": "text"},
      {"name": "background", "selector": ".hero-bg img", "type": "image"},
      {"name": "cta", "selector": ".cta-btn", "type": "link"}
    ],
    "variants": ["full", "teaser"],
    "description": "Main hero banner with title and CTA"
  }
]"""

MODEL_EXAMPLE = """[
  {
    "name": "Event",
    "fields": [
      {"name": "title", "type": "string", "description": "Event title"},
      {"name": "stats", "type": "array", "description": "Array of statistics"},
      {"name": "heroImage", "type": "image", "description": "Banner image"}
    ],
    "description": "Main event data model"
  }
]"""

MAPPING_EXAMPLE = """[
  {
    "pageName": "Homepage",
    "componentMappings": [
      {
        "componentName": "HeroBanner",
        "slotMappings": {
          "title": "Event.title",
          "background": "Event.heroImage",
          "cta": "Event.ctaLink"
        }
      },
      {
        "componentName": "StatsGrid",
        "slotMappings": {"items": "Event.stats[]"}
      }
    ]
  }
]"""

COMPONENT_RULES = """For each component identify:
1. Component name in PascalCase (e.g. "HeroBanner", "StatsGrid", "SpeakerCard"), unique on the page
2. A CSS selector that uniquely identifies the component
3. Slots inside it: name, CSS selector, and type (text, image, link, array, object)

Focus on components that repeat or could be reused as Webflow Symbols and that have clear content slots."""

MODEL_RULES = """For each model identify:
1. Model name (singular, PascalCase), unique on the page
2. Fields with types (string, number, boolean, array, object, image, url) and a short description

Prefer models for the main content entities, fields that feed component slots,
and arrays for repeating content (speakers, stats, items)."""


def _markup_block(html: str) -> str:
    return f"HTML Structure:\n```html\n{html}\n```"


def component_detection_prompt(html: str, has_screenshot: bool) -> str:
    source = "the screenshot and HTML" if has_screenshot else "the HTML"
    return f"""**Stage 1: Component Detection**

You are analyzing a webpage to identify reusable UI components.

{_markup_block(html)}

Analyze {source} and identify 5-10 reusable components.
{COMPONENT_RULES}

Output a JSON array with this exact structure:
{COMPONENT_EXAMPLE}

Return ONLY valid JSON."""


def content_modeling_prompt(html: str, components: list[dict]) -> str:
    return f"""**Stage 2: Content Modeling**

You are extracting the semantic content models behind a webpage.

{_markup_block(html)}

Detected Components:
{json.dumps(components, indent=2)}

A content model is the data structure that would populate these components.
{MODEL_RULES}

Output a JSON array with this exact structure:
{MODEL_EXAMPLE}

Return ONLY valid JSON."""


def mapping_prompt(models: list[dict], components: list[dict], page_name: str) -> str:
    return f"""**Stage 3: Explicit Mapping**

You are connecting content model fields to UI component slots for the page "{page_name}".

Content Models:
{json.dumps(models, indent=2)}

UI Components:
{json.dumps(components, indent=2)}

For each component used on the page, map each slot to a model field path:
- Format is "ModelName.fieldName" using the exact model and field names above
- Use "[]" for a whole array (e.g. "Event.speakers[]") and "[0]" for one item (e.g. "Event.stats[0]")
- Use null for static slots that no field should drive

Output a JSON array with this exact structure:
{MAPPING_EXAMPLE}

Return ONLY valid JSON."""


def combined_detection_prompt(html: str, has_screenshot: bool) -> str:
    source = "the screenshot and HTML" if has_screenshot else "the HTML"
    return f"""**Stage 1+2: Component Detection and Content Modeling**

You are analyzing a webpage to identify reusable UI components AND the content models that feed them.

{_markup_block(html)}

Analyze {source}.

Components (5-10):
{COMPONENT_RULES}

Content models:
{MODEL_RULES}

Output ONE JSON object with exactly two keys:
{{
  "components": {COMPONENT_EXAMPLE},
  "models": {MODEL_EXAMPLE}
}}

Return ONLY valid JSON."""
