"""
Extraction stages. Each stage is one completion call whose response goes
through response_parser and is then validated item by item: a malformed
component, model or slot mapping is dropped, never fatal to the stage.
"""

import logging
from typing import Optional, TypeVar

from pydantic import BaseModel, ValidationError

from content_mapper import prompts
from content_mapper.completion import CompletionClient
from content_mapper.html_preprocessor import extract_body_content, preprocess_html, preprocessing_stats
from content_mapper.image_utils import ImagePayload, encode_screenshot
from content_mapper.models import ComponentMapping, ContentModel, PageMapping, UIComponent
from content_mapper.response_parser import (
    InvalidValue,
    normalize_mapping_value,
    parse_combined_response,
    parse_stage_response,
)

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


def validate_items(items: list, model_cls: type[M], what: str) -> list[M]:
    """Validate raw dicts into model_cls, dropping invalid entries and duplicate names."""
    valid: list[M] = []
    seen: set[str] = set()
    for i, item in enumerate(items):
        if not isinstance(item, dict):
            logger.warning(f"[pipeline] Dropping {what} #{i}: not an object")
            continue
        try:
            obj = model_cls.model_validate(item)
        except ValidationError as e:
            logger.warning(f"[pipeline] Dropping {what} #{i}: {e.error_count()} validation error(s)")
            continue
        name = getattr(obj, "name", None)
        if name is not None:
            if name in seen:
                logger.warning(f"[pipeline] Dropping duplicate {what} '{name}'")
                continue
            seen.add(name)
        valid.append(obj)
    return valid


def clean_slot_mappings(raw: dict) -> dict:
    """Keep only slot values that normalize to a field path or display value."""
    kept = {}
    for slot, value in raw.items():
        if isinstance(normalize_mapping_value(value), InvalidValue):
            logger.debug(f"[pipeline] Dropping slot mapping '{slot}': {value!r}")
            continue
        kept[slot] = value
    return kept


def validate_page_mappings(items: list) -> list[PageMapping]:
    pages = []
    for i, item in enumerate(items):
        if not isinstance(item, dict):
            logger.warning(f"[pipeline] Dropping page mapping #{i}: not an object")
            continue
        component_mappings = []
        for cm in item.get("componentMappings") or []:
            if not isinstance(cm, dict) or not isinstance(cm.get("slotMappings", {}), (dict, type(None))):
                logger.warning(f"[pipeline] Dropping malformed component mapping on page #{i}")
                continue
            try:
                mapping = ComponentMapping.model_validate(cm)
            except ValidationError as e:
                logger.warning(f"[pipeline] Dropping component mapping on page #{i}: {e.error_count()} error(s)")
                continue
            component_mappings.append(
                mapping.model_copy(update={"slot_mappings": clean_slot_mappings(mapping.slot_mappings)})
            )
        try:
            pages.append(PageMapping(page_name=item.get("pageName"), component_mappings=component_mappings))
        except ValidationError:
            logger.warning(f"[pipeline] Dropping page mapping #{i}: missing pageName")
    return pages


def _dump(items: list[BaseModel]) -> list[dict]:
    return [item.model_dump(by_alias=True, exclude_none=True) for item in items]


class ExtractionPipeline:
    def __init__(self, completion: CompletionClient, markup_char_budget: int = 50_000):
        self.completion = completion
        self.markup_char_budget = markup_char_budget

    def prepare_markup(self, html: str) -> str:
        markup = preprocess_html(extract_body_content(html), max_chars=self.markup_char_budget)
        stats = preprocessing_stats(html or "", markup)
        logger.debug(f"[pipeline] Markup {stats['original_size']} -> {stats['processed_size']} chars "
                     f"({stats['reduction_percent']}% removed)")
        return markup

    def prepare_image(self, screenshot: Optional[bytes]) -> Optional[ImagePayload]:
        if not screenshot:
            return None
        try:
            return encode_screenshot(screenshot)
        except Exception as e:
            logger.warning(f"[pipeline] Screenshot unusable, continuing without it: {e}")
            return None

    async def _ask(self, prompt: str, image: Optional[ImagePayload] = None) -> str:
        result = await self.completion.complete(prompt, image=image, system=prompts.SYSTEM_PROMPT)
        return result.text

    async def detect_components(self, html: str, screenshot: Optional[bytes] = None) -> list[UIComponent]:
        image = self.prepare_image(screenshot)
        prompt = prompts.component_detection_prompt(self.prepare_markup(html), has_screenshot=image is not None)
        raw = await self._ask(prompt, image)
        components = validate_items(parse_stage_response(raw, "components"), UIComponent, "component")
        logger.info(f"[pipeline] Detected {len(components)} components")
        return components

    async def extract_content_models(self, html: str, components: list[UIComponent]) -> list[ContentModel]:
        prompt = prompts.content_modeling_prompt(self.prepare_markup(html), _dump(components))
        raw = await self._ask(prompt)
        models = validate_items(parse_stage_response(raw, "models"), ContentModel, "content model")
        logger.info(f"[pipeline] Extracted {len(models)} content models")
        return models

    async def create_mappings(self, models: list[ContentModel], components: list[UIComponent],
                              page_name: str = "Homepage") -> list[PageMapping]:
        prompt = prompts.mapping_prompt(_dump(models), _dump(components), page_name)
        raw = await self._ask(prompt)
        mappings = validate_page_mappings(parse_stage_response(raw, "mappings"))
        logger.info(f"[pipeline] Created {len(mappings)} page mappings")
        return mappings

    async def detect_components_and_models(
        self, html: str, screenshot: Optional[bytes] = None
    ) -> tuple[list[UIComponent], list[ContentModel]]:
        image = self.prepare_image(screenshot)
        prompt = prompts.combined_detection_prompt(self.prepare_markup(html), has_screenshot=image is not None)
        raw = await self._ask(prompt, image)
        raw_components, raw_models = parse_combined_response(raw)
        components = validate_items(raw_components, UIComponent, "component")
        models = validate_items(raw_models, ContentModel, "content model")
        logger.info(f"[pipeline] Detected {len(components)} components and {len(models)} content models")
        return components, models
