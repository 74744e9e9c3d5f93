"""
billing/blueprints/documents/routes.py

Document downloads: quotation / challan / bill for one job, several jobs (bulk), or a topsheet,
in html, pdf, xlsx or docx.

Routes (POST so a JSON body of per-call overrides can be sent):
- /api/documents/jobs/<id>/<doc_type>.<fmt>      -> {DOC_NUMBER}.{fmt}
- /api/documents/bulk/<doc_type>.<fmt>           -> {DOC_NUMBER}-bulk.{fmt}   (body: job_ids)
- /api/documents/topsheets/<id>.<fmt>            -> Topsheet-{number}.{fmt}

Body (all optional):
    {"ref_number": "...", "fontSize": 12, "includePad": true, "includeSignature": false, ...}

IMPORTANT:
- Settings are resolved ONCE per request (defaults -> stored -> body overrides) and handed to the
  builders; the backends never read config or the database.
- Documents are built from ORM rows here, in the request thread; only the block model crosses
  into the render worker (documents/service.py).
"""

from __future__ import annotations

import io
import logging
from datetime import date

from flask import Blueprint, current_app, send_file
from flask_login import login_required
from sqlalchemy.orm import selectinload

from ...documents import (
    ImageLoader,
    build_bulk_documents,
    build_job_document,
    build_topsheet_document,
    get_document_type,
    render_documents,
)
from ...errors import ValidationError
from ...models import Job, JobItem, Topsheet
from ...security import get_owned_or_404, owned
from ...settings_store import load_render_settings
from ...utils import json_payload, parse_optional_int

logger = logging.getLogger(__name__)

documents_bp = Blueprint("documents", __name__, url_prefix="/api/documents")


# ---------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------
def _image_loader() -> ImageLoader:
    return ImageLoader(
        asset_root=current_app.config.get("DOCUMENT_ASSET_ROOT"),
        timeout=current_app.config.get("IMAGE_FETCH_TIMEOUT_SECONDS", 10),
    )


def _overrides(payload: dict) -> dict:
    return {key: value for key, value in payload.items() if key not in ("ref_number", "job_ids")}


def _send(documents, fmt: str, filename_stem: str):
    rendered = render_documents(
        documents,
        fmt,
        filename_stem=filename_stem,
        timeout=current_app.config.get("RENDER_TIMEOUT_SECONDS", 60),
        images=_image_loader(),
    )
    return send_file(
        io.BytesIO(rendered.body),
        mimetype=rendered.mimetype,
        as_attachment=True,
        download_name=rendered.filename,
    )


def _jobs_query():
    return owned(Job).options(
        selectinload(Job.items).selectinload(JobItem.measurements),
        selectinload(Job.customer),
    )


# ---------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------
@documents_bp.route("/jobs/<int:job_id>/<doc_type>.<fmt>", methods=["POST"])
@login_required
def job_document(job_id: int, doc_type: str, fmt: str):
    document_type = get_document_type(doc_type)
    job = _jobs_query().filter(Job.id == job_id).first_or_404()
    payload = json_payload()

    settings = load_render_settings(_overrides(payload))
    document = build_job_document(
        job,
        document_type,
        settings,
        today=date.today(),
        ref_number=(payload.get("ref_number") or None),
    )
    return _send([document], fmt, document.number)


@documents_bp.route("/bulk/<doc_type>.<fmt>", methods=["POST"])
@login_required
def bulk_documents(doc_type: str, fmt: str):
    document_type = get_document_type(doc_type)
    payload = json_payload()

    raw_ids = payload.get("job_ids")
    if not isinstance(raw_ids, list) or not raw_ids:
        raise ValidationError("job_ids must be a non-empty list")
    job_ids = [parse_optional_int(value) for value in raw_ids]
    if any(value is None for value in job_ids):
        raise ValidationError("job_ids must be integers", details={"job_ids": raw_ids})

    by_id = {job.id: job for job in _jobs_query().filter(Job.id.in_(job_ids)).all()}
    missing = [job_id for job_id in job_ids if job_id not in by_id]
    if missing:
        raise ValidationError("Unknown jobs", details={"job_ids": missing})

    settings = load_render_settings(_overrides(payload))
    documents = build_bulk_documents([by_id[job_id] for job_id in job_ids], document_type, settings, today=date.today())
    stem = documents[0].number.rsplit("-", 1)[0]
    return _send(documents, fmt, f"{stem}-bulk")


@documents_bp.route("/topsheets/<int:topsheet_id>.<fmt>", methods=["POST"])
@login_required
def topsheet_document(topsheet_id: int, fmt: str):
    topsheet = get_owned_or_404(Topsheet, topsheet_id)
    settings = load_render_settings(_overrides(json_payload()))
    document = build_topsheet_document(topsheet, settings)
    return _send([document], fmt, f"Topsheet-{topsheet.topsheet_number}")
