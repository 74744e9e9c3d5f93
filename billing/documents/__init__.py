"""
Document generation: block model, render settings and the HTML, PDF, XLSX and DOCX backends.
"""

from .config import RenderSettings, build_render_settings, to_stored_settings  # noqa: F401
from .images import ImageLoader  # noqa: F401
from .model import (  # noqa: F401
    DOCUMENT_TYPES,
    Document,
    build_bulk_documents,
    build_job_document,
    build_topsheet_document,
    document_number,
    get_document_type,
)
from .service import FORMATS, RenderedDocument, render_documents  # noqa: F401
