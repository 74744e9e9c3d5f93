"""
billing/documents/html.py

HTML backend: a complete standalone page for an external print pipeline (browser / headless
Chromium "print to PDF").

Pagination is left to the print engine via CSS paged media:
- @page margins come from RenderSettings.top_margin / bottom_margin
- page numbers ("Page N of M") live in the bottom-right margin box, suppressed on @page :first
- each document in a bulk render starts on a new page (page-break-before)

Images (pad, signature) are inlined as data URIs so the output has no external references.
"""

from __future__ import annotations

from typing import Sequence

from jinja2 import Environment, PackageLoader, select_autoescape

from .images import ImageLoader
from .model import Document

_env = Environment(
    loader=PackageLoader("billing", "templates"),
    autoescape=select_autoescape(["html"]),
    trim_blocks=True,
    lstrip_blocks=True,
)


def _column_percentages(columns) -> list[float]:
    total = sum(column.width for column in columns) or 1
    return [round(column.width * 100 / total, 2) for column in columns]


def render_html(documents: Sequence[Document], images: ImageLoader | None = None) -> str:
    """Render one or more documents into one HTML string."""
    images = images or ImageLoader()
    settings = documents[0].settings

    pad_uri = images.data_uri(settings.pad_image, settings.pad_opacity) if settings.pad_enabled else None
    signature_uri = images.data_uri(settings.signature_image) if settings.signature_enabled else None

    template = _env.get_template("documents/document.html")
    return template.render(
        documents=documents,
        settings=settings,
        pad_uri=pad_uri,
        signature_uri=signature_uri,
        column_percentages=_column_percentages,
        page_title=" / ".join(f"{doc.title} {doc.number}" for doc in documents),
    )
