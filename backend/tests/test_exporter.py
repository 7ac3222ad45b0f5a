from __future__ import annotations

from content_mapper.exporter import (
    BindingResolver,
    build_collections,
    export_to_webflow,
    generate_sample_rows,
    map_field_type,
    to_slug,
)
from content_mapper.models import ComponentMapping, ContentModel, PageMapping, UIComponent

from conftest import COMPONENTS, MAPPINGS, MODELS


def _models(raw):
    return [ContentModel.model_validate(m) for m in raw]


def _components(raw):
    return [UIComponent.model_validate(c) for c in raw]


def _mappings(raw):
    return [PageMapping.model_validate(m) for m in raw]


def test_end_to_end_export():
    doc = export_to_webflow(_models(MODELS), _components(COMPONENTS), _mappings(MAPPINGS))
    body = doc.to_json()

    assert body["collections"] == [
        {"name": "Event", "slug": "event", "fields": [{"name": "title", "type": "PlainText", "slug": "title"}]}
    ]
    assert body["symbols"] == [{"name": "Hero", "componentName": "Hero", "bindings": {"heading": "event.title"}}]
    assert body["pages"] == [
        {"name": "Home", "slug": "home", "symbolInstances": [{"symbolName": "Hero", "collectionBinding": "event"}]}
    ]
    assert body["csvData"] == {"event": [{"title": "Sample text"}]}


def test_slug_rules():
    assert to_slug("Event") == "event"
    assert to_slug("  Blog Post!! (Featured) ") == "blog-post-featured"
    assert to_slug("--Hero__Banner--") == "hero-banner"
    assert to_slug("Über") == "ber"


def test_field_type_mapping():
    assert map_field_type("image") == "ImageRef"
    assert map_field_type("url") == "Link"
    assert map_field_type("array") == "ItemReferenceSet"
    assert map_field_type("datetime") == "PlainText"


def test_unknown_field_type_is_exported_as_plaintext():
    models = _models([{"name": "Post", "fields": [{"name": "Published At", "type": "date"}]}])
    collection = build_collections(models)[0]
    assert collection.fields[0].type == "PlainText"
    assert collection.fields[0].slug == "published-at"


def test_invalid_mapping_value_is_dropped_without_touching_other_bindings():
    models = _models([{"name": "Event", "fields": [
        {"name": "title", "type": "string"},
        {"name": "speakers", "type": "array"},
        {"name": "cover", "type": "image"},
    ]}])
    components = _components([{"name": "Hero", "selector": ".hero", "slots": [
        {"name": "heading", "selector": "h1", "type": "text"},
        {"name": "people", "selector": "ul", "type": "array"},
        {"name": "junk", "selector": "p", "type": "text"},
        {"name": "static", "selector": "span", "type": "text"},
        {"name": "link", "selector": "a", "type": "link"},
        {"name": "image", "selector": "img", "type": "image"},
        {"name": "ghost", "selector": "i", "type": "text"},
    ]}])
    mappings = _mappings([{"pageName": "Home", "componentMappings": [{
        "componentName": "Hero",
        "slotMappings": {
            "heading": "Event.title",
            "people": "Event.speakers[]",
            "junk": 42,
            "static": None,
            "link": {"url": "https://example.com"},
            "image": {"label": "Event.cover"},
            "ghost": "Event.missing",
        },
    }]}])

    doc = export_to_webflow(models, components, mappings)

    assert doc.symbols[0].bindings == {
        "heading": "event.title",
        "people": "event.speakers",
        "image": "event.cover",
    }


def test_symbol_without_mapping_has_no_bindings():
    doc = export_to_webflow(_models(MODELS), _components(COMPONENTS + [{"name": "Footer", "selector": "footer"}]),
                            _mappings(MAPPINGS))
    assert doc.symbols[1].name == "Footer"
    assert doc.symbols[1].bindings == {}


def _resolver():
    models = _models([
        {"name": "Event", "fields": [{"name": f, "type": "string"} for f in ("a", "b", "c")]},
        {"name": "Team", "fields": [{"name": "name", "type": "string"}, {"name": "role", "type": "string"}]},
    ])
    return BindingResolver(build_collections(models))


def test_primary_collection_is_most_referenced():
    cm = ComponentMapping(component_name="Card", slot_mappings={
        "s1": "Team.name", "s2": "Event.a", "s3": "Event.b", "s4": "Event.c",
    })
    assert _resolver().primary_collection(cm) == "event"


def test_primary_collection_tie_goes_to_first_seen():
    cm = ComponentMapping(component_name="Card", slot_mappings={
        "s1": "Team.name", "s2": "Event.a", "s3": "Event.b", "s4": {"path": "Team.role"},
    })
    assert _resolver().primary_collection(cm) == "team"


def test_primary_collection_none_when_nothing_resolves():
    cm = ComponentMapping(component_name="Card", slot_mappings={"s1": None, "s2": "Nope.x"})
    assert _resolver().primary_collection(cm) is None


def test_sample_rows_placeholders_by_type():
    models = _models([{"name": "Kitchen Sink", "fields": [
        {"name": t.title(), "type": t}
        for t in ("string", "number", "boolean", "array", "object", "image", "url", "other")
    ]}])
    rows = generate_sample_rows(models)
    assert rows == {"kitchen-sink": [{
        "string": "Sample text",
        "number": 0,
        "boolean": False,
        "array": [],
        "object": {},
        "image": "https://via.placeholder.com/400",
        "url": "https://example.com",
        "other": "",
    }]}


def test_sample_rows_use_provided_data():
    models = _models(MODELS)
    assert generate_sample_rows(models, {"Event": {"title": "Launch"}}) == {"event": [{"title": "Launch"}]}
    assert generate_sample_rows(models, {"Event": [{"title": "A"}, {"title": "B"}]})["event"][1] == {"title": "B"}
