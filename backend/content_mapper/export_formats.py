"""
Downloadable renderings of an analysis: platform-neutral JSON,
Webflow JSON, and CSV sample rows.
"""

import json
from dataclasses import dataclass
from typing import Any, Optional

from content_mapper.errors import ExportFormatError
from content_mapper.exporter import export_to_webflow
from content_mapper.models import AnalysisResult, ExportDocument

FORMATS = ("neutral", "webflow", "csv")


@dataclass(frozen=True)
class ExportPayload:
    body: str
    media_type: str
    filename: str

    @property
    def headers(self) -> dict:
        return {"Content-Disposition": f'attachment; filename="{self.filename}"'}


def _csv_cell(value: Any) -> str:
    if isinstance(value, (list, dict)):
        text = json.dumps(value)
    elif isinstance(value, bool):
        text = "true" if value else "false"
    elif value is None:
        text = ""
    else:
        text = str(value)
    return '"' + text.replace('"', '""') + '"'


def render_csv(csv_data: dict[str, list[dict[str, Any]]]) -> str:
    sections = []
    for collection_slug, rows in csv_data.items():
        if not rows:
            continue
        columns = list(rows[0].keys())
        header = ",".join(columns)
        lines = [",".join(_csv_cell(row.get(k)) for k in columns) for row in rows]
        sections.append(f"Collection: {collection_slug}\n{header}\n" + "\n".join(lines) + "\n")
    return "\n".join(sections)


def render_export(
    fmt: str,
    analysis: Optional[AnalysisResult] = None,
    document: Optional[ExportDocument] = None,
) -> ExportPayload:
    if fmt not in FORMATS:
        raise ExportFormatError(f"Unknown export format '{fmt}' (expected one of: {', '.join(FORMATS)})")
    if analysis is None and document is None:
        raise ExportFormatError("An analysis or an export document is required")

    if document is None:
        document = export_to_webflow(analysis.content_models, analysis.ui_components, analysis.mappings)

    if fmt == "webflow":
        return ExportPayload(
            body=json.dumps(document.to_json(), indent=2),
            media_type="application/json",
            filename="webflow-export.json",
        )

    if fmt == "neutral":
        payload = {"export": document.to_json()}
        if analysis is not None:
            payload = {"analysis": analysis.to_json(), **payload}
        return ExportPayload(
            body=json.dumps(payload, indent=2),
            media_type="application/json",
            filename="site-analysis.json",
        )

    if not document.csv_data:
        raise ExportFormatError("Export document has no tabular data for CSV")
    return ExportPayload(
        body=render_csv(document.csv_data),
        media_type="text/csv",
        filename="webflow-export.csv",
    )
