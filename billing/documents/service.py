"""
billing/documents/service.py

Render entry point shared by the API and the CLI.

    render_documents(documents, "pdf", filename_stem="QT-2024-0315", timeout=60, images=loader)
        -> RenderedDocument(content=b"%PDF...", mimetype="application/pdf", filename="QT-2024-0315.pdf")

IMPORTANT:
- Documents must be fully built (model.build_*) BEFORE calling this: the backend runs in a worker
  thread and only touches the plain block objects, never ORM rows.
- The render is bounded by `timeout` seconds. On expiry the caller gets RenderTimeoutError and no
  bytes; the worker thread is abandoned (reportlab/openpyxl/python-docx cannot be interrupted).
- Any backend exception is re-raised as DocumentRenderError (never a half-written payload).
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from typing import Callable, Dict, Sequence, Tuple, Union

from ..errors import DocumentRenderError, InvalidDocumentError, RenderTimeoutError
from .docx import render_docx
from .html import render_html
from .images import ImageLoader
from .model import Document
from .pdf import render_pdf
from .xlsx import render_xlsx

logger = logging.getLogger(__name__)

XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
DOCX_MIMETYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

FORMATS: Dict[str, Tuple[str, Callable]] = {
    "html": ("text/html; charset=utf-8", render_html),
    "pdf": ("application/pdf", render_pdf),
    "xlsx": (XLSX_MIMETYPE, render_xlsx),
    "docx": (DOCX_MIMETYPE, render_docx),
}


@dataclass(frozen=True)
class RenderedDocument:
    content: Union[str, bytes]
    mimetype: str
    filename: str

    @property
    def body(self) -> bytes:
        if isinstance(self.content, str):
            return self.content.encode("utf-8")
        return self.content


def _check_format(fmt: str) -> str:
    fmt = (fmt or "").lower()
    if fmt not in FORMATS:
        raise InvalidDocumentError(f"Unsupported output format: {fmt!r}", details={"formats": sorted(FORMATS)})
    return fmt


def render_documents(
    documents: Sequence[Document],
    fmt: str,
    *,
    filename_stem: str,
    timeout: float = 60,
    images: ImageLoader | None = None,
) -> RenderedDocument:
    """Render with one backend under a wall-clock bound."""
    fmt = _check_format(fmt)
    if not documents:
        raise InvalidDocumentError("Nothing to render")

    mimetype, backend = FORMATS[fmt]
    images = images or ImageLoader()
    label = f"{filename_stem}.{fmt}"

    logger.info("Rendering %s (%d document(s))", label, len(documents))
    started = time.monotonic()

    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="render")
    try:
        future = executor.submit(backend, documents, images)
        content = future.result(timeout=timeout)
    except FutureTimeoutError as exc:
        logger.error("Rendering %s timed out after %ss", label, timeout)
        raise RenderTimeoutError(f"Rendering {label} did not finish within {timeout} seconds") from exc
    except DocumentRenderError:
        raise
    except Exception as exc:
        logger.exception("Rendering %s failed", label)
        raise DocumentRenderError(f"Rendering {label} failed: {exc}") from exc
    finally:
        executor.shutdown(wait=False, cancel_futures=True)

    logger.info("Rendered %s in %.2fs", label, time.monotonic() - started)
    return RenderedDocument(content=content, mimetype=mimetype, filename=label)
