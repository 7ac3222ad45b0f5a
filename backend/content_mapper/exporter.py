"""
Webflow export: content models -> collections, components -> symbols,
page mappings -> pages. Pure functions, no I/O.

Slot bindings that cannot be resolved against the built collections are
dropped one at a time; a partially bound symbol is still a valid symbol.
"""

import logging
import re
from collections import Counter
from typing import Any, Optional

from content_mapper.models import (
    Collection,
    CollectionField,
    ComponentMapping,
    ContentModel,
    ExportDocument,
    ExportPage,
    PageMapping,
    Symbol,
    SymbolInstance,
    UIComponent,
)
from content_mapper.response_parser import FieldPath, normalize_mapping_value, split_field_path

logger = logging.getLogger(__name__)

FIELD_TYPE_MAP = {
    "string": "PlainText",
    "number": "Number",
    "boolean": "Bool",
    "array": "ItemReferenceSet",
    "object": "ItemReference",
    "image": "ImageRef",
    "url": "Link",
}
DEFAULT_FIELD_TYPE = "PlainText"

PLACEHOLDER_IMAGE = "https://via.placeholder.com/400"
PLACEHOLDER_URL = "https://example.com"

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def to_slug(text: str) -> str:
    return _NON_ALNUM.sub("-", text.lower()).strip("-")


def map_field_type(field_type: str) -> str:
    return FIELD_TYPE_MAP.get(field_type, DEFAULT_FIELD_TYPE)


def placeholder_value(field_type: str) -> Any:
    return {
        "string": "Sample text",
        "number": 0,
        "boolean": False,
        "array": [],
        "object": {},
        "image": PLACEHOLDER_IMAGE,
        "url": PLACEHOLDER_URL,
    }.get(field_type, "")


def build_collections(models: list[ContentModel]) -> list[Collection]:
    return [
        Collection(
            name=model.name,
            slug=to_slug(model.name),
            fields=[
                CollectionField(name=f.name, type=map_field_type(f.type), slug=to_slug(f.name))
                for f in model.fields
            ],
        )
        for model in models
    ]


class BindingResolver:
    """Resolves raw slot mapping values to "collectionSlug.fieldSlug" bindings."""

    def __init__(self, collections: list[Collection]):
        # First collection wins on a duplicate name
        self._collections: dict[str, Collection] = {}
        for c in collections:
            self._collections.setdefault(c.name, c)

    def resolve(self, raw_value: Any) -> Optional[tuple[Collection, str]]:
        value = normalize_mapping_value(raw_value)
        if not isinstance(value, FieldPath):
            return None
        parts = split_field_path(value.path)
        if parts is None:
            return None
        model_name, field_name = parts
        collection = self._collections.get(model_name)
        if collection is None:
            return None
        for f in collection.fields:
            if f.name == field_name:
                return collection, f"{collection.slug}.{f.slug}"
        return None

    def bindings(self, component_mapping: ComponentMapping) -> dict[str, str]:
        bound = {}
        for slot, raw_value in component_mapping.slot_mappings.items():
            resolved = self.resolve(raw_value)
            if resolved is None:
                logger.debug(f"[export] Unbound slot {component_mapping.component_name}.{slot}: {raw_value!r}")
                continue
            bound[slot] = resolved[1]
        return bound

    def primary_collection(self, component_mapping: ComponentMapping) -> Optional[str]:
        """Most referenced collection slug; ties go to the first one seen in slot order."""
        counts: Counter = Counter()
        for raw_value in component_mapping.slot_mappings.values():
            resolved = self.resolve(raw_value)
            if resolved is not None:
                counts[resolved[0].slug] += 1
        if not counts:
            return None
        # Counter preserves insertion order and max() returns the first maximal key
        return max(counts, key=counts.__getitem__)


def build_symbols(components: list[UIComponent], mappings: list[PageMapping],
                  resolver: BindingResolver) -> list[Symbol]:
    symbols = []
    for component in components:
        bindings: dict[str, str] = {}
        for page in mappings:
            for cm in page.component_mappings:
                if cm.component_name != component.name:
                    continue
                for slot, binding in resolver.bindings(cm).items():
                    bindings.setdefault(slot, binding)
        symbols.append(Symbol(name=component.name, component_name=component.name, bindings=bindings))
    return symbols


def build_pages(mappings: list[PageMapping], resolver: BindingResolver) -> list[ExportPage]:
    return [
        ExportPage(
            name=page.page_name,
            slug=to_slug(page.page_name),
            symbol_instances=[
                SymbolInstance(
                    symbol_name=cm.component_name,
                    collection_binding=resolver.primary_collection(cm),
                )
                for cm in page.component_mappings
            ],
        )
        for page in mappings
    ]


def generate_sample_rows(models: list[ContentModel],
                         sample_data: Optional[dict[str, Any]] = None) -> dict[str, list[dict[str, Any]]]:
    rows: dict[str, list[dict[str, Any]]] = {}
    for model in models:
        slug = to_slug(model.name)
        provided = (sample_data or {}).get(model.name)
        if provided:
            rows[slug] = list(provided) if isinstance(provided, list) else [provided]
        else:
            rows[slug] = [{to_slug(f.name): placeholder_value(f.type) for f in model.fields}]
    return rows


def export_to_webflow(
    models: list[ContentModel],
    components: list[UIComponent],
    mappings: list[PageMapping],
    *,
    include_sample_rows: bool = True,
    sample_data: Optional[dict[str, Any]] = None,
) -> ExportDocument:
    collections = build_collections(models)
    resolver = BindingResolver(collections)
    document = ExportDocument(
        collections=collections,
        symbols=build_symbols(components, mappings, resolver),
        pages=build_pages(mappings, resolver),
        csv_data=generate_sample_rows(models, sample_data) if include_sample_rows else None,
    )
    bound = sum(len(s.bindings) for s in document.symbols)
    logger.info(f"[export] {len(document.collections)} collections, {len(document.symbols)} symbols "
                f"({bound} bindings), {len(document.pages)} pages")
    return document
