"""HTML / PDF / XLSX / DOCX backends over the same block model."""

import io
import re
from datetime import date
from types import SimpleNamespace

import pytest
from docx import Document as WordDocument
from openpyxl import load_workbook
from PIL import Image

from billing.documents import (
    ImageLoader,
    build_bulk_documents,
    build_job_document,
    build_render_settings,
    build_topsheet_document,
    render_documents,
)
from billing.documents.docx import render_docx
from billing.documents.html import render_html
from billing.documents.pdf import render_pdf
from billing.documents.xlsx import render_xlsx
from billing.errors import InvalidDocumentError, RenderTimeoutError

from test_document_model import TODAY, _item, sample_job


def _page_count(pdf: bytes) -> int:
    return len(re.findall(rb"/Type\s*/Page\b(?!s)", pdf))


@pytest.fixture
def seal_png(tmp_path):
    path = tmp_path / "images" / "seal.png"
    path.parent.mkdir()
    Image.new("RGBA", (40, 20), (200, 0, 0, 255)).save(path)
    return tmp_path


@pytest.fixture
def settings():
    return build_render_settings()


@pytest.fixture
def quotation(settings):
    return build_job_document(sample_job(), "quotation", settings, today=TODAY)


@pytest.fixture
def topsheet_document(settings):
    topsheet = SimpleNamespace(
        topsheet_number="TS-7",
        date=date(2024, 3, 31),
        customer_name="Dhaka Bank Ltd",
        customer_address1="House 12",
        customer_address2=None,
        notes=None,
        jobs=[sample_job(items=[_item(1, "A", 1, 300)])],
    )
    return build_topsheet_document(topsheet, settings)


# ---------------------------------------------------------------------
# HTML
# ---------------------------------------------------------------------
def test_html_contains_blocks(quotation):
    html = render_html([quotation])
    assert "<title>QUOTATION QT-2024-0315</title>" in html
    assert "AMK Enterprise" in html
    assert "Doc No: QT-2024-0315" in html
    assert "Work Location: Branch 7" in html
    assert "15.00 sft" in html
    assert "৳ 2,000.00" in html
    assert "Two Thousand Taka Only" in html
    assert "Terms &amp; Conditions" in html
    assert 'class="footer pinned"' in html
    assert "font-size: 11pt" in html or "font-size: 11.0pt" in html


def test_html_challan_has_no_prices(settings):
    html = render_html([build_job_document(sample_job(), "challan", settings, today=TODAY)])
    assert "Unit Price" not in html
    assert "Taka Only" not in html
    assert "DELIVERY CHALLAN" in html


def test_html_bulk_footer_not_pinned(settings):
    documents = build_bulk_documents([sample_job(), sample_job(id=2)], "bill", settings, today=TODAY)
    html = render_html(documents)
    assert html.count('<section class="document"') == 2
    assert "pinned" not in html.split("</style>")[1]
    assert "INV-2024-0315-1" in html and "INV-2024-0315-2" in html


def test_html_signature_image_embedded(seal_png):
    settings = build_render_settings(overrides={"includeSignature": True, "signatureImage": "/images/seal.png"})
    document = build_job_document(sample_job(), "bill", settings, today=TODAY)
    html = render_html([document], ImageLoader(asset_root=seal_png))
    assert 'alt="Signature"' in html
    assert "data:image/png;base64," in html


def test_html_missing_pad_degrades(settings):
    settings = build_render_settings(overrides={"includePad": True, "padImage": "/images/missing.png"})
    document = build_job_document(sample_job(), "quotation", settings, today=TODAY)
    html = render_html([document], ImageLoader(asset_root="/nonexistent"))
    assert 'class="pad"' not in html
    assert "QUOTATION" in html


# ---------------------------------------------------------------------
# PDF
# ---------------------------------------------------------------------
def test_pdf_single_document(quotation):
    pdf = render_pdf([quotation])
    assert pdf.startswith(b"%PDF")
    assert _page_count(pdf) >= 1


def test_pdf_bulk_has_one_page_group_per_job(settings):
    documents = build_bulk_documents([sample_job(), sample_job(id=2), sample_job(id=3)], "bill", settings, today=TODAY)
    pdf = render_pdf(documents)
    assert pdf.startswith(b"%PDF")
    assert _page_count(pdf) >= 3


def test_pdf_long_table_paginates(settings):
    items = [_item(i, f"Line {i}", 1, 10, details="detail text") for i in range(1, 120)]
    document = build_job_document(sample_job(items=items), "quotation", settings, today=TODAY)
    assert _page_count(render_pdf([document])) >= 2


def test_pdf_with_pad_and_signature(seal_png):
    settings = build_render_settings(overrides={
        "includePad": True,
        "padImage": "/images/seal.png",
        "includeSignature": True,
        "signatureImage": "/images/seal.png",
    })
    document = build_job_document(sample_job(), "bill", settings, today=TODAY)
    assert render_pdf([document], ImageLoader(asset_root=seal_png)).startswith(b"%PDF")


def test_pdf_topsheet(topsheet_document):
    assert render_pdf([topsheet_document]).startswith(b"%PDF")


# ---------------------------------------------------------------------
# XLSX
# ---------------------------------------------------------------------
def _values(ws):
    return [cell.value for row in ws.iter_rows() for cell in row if cell.value is not None]


def test_xlsx_quotation(quotation):
    wb = load_workbook(io.BytesIO(render_xlsx([quotation])))
    assert wb.sheetnames == ["QT-2024-0315"]
    ws = wb.active
    values = _values(ws)
    assert "QUOTATION" in values
    assert "Unit Price" in values
    assert 2000 in values
    assert "Amount in words: Two Thousand Taka Only" in values

    total_cell = next(cell for row in ws.iter_rows() for cell in row if cell.value == 2000)
    assert total_cell.number_format == "#,##0.00"
    assert int(ws.page_setup.paperSize) == 9
    assert ws.oddFooter.left.text == "Doc No: QT-2024-0315"


def test_xlsx_topsheet_layout(topsheet_document):
    wb = load_workbook(io.BytesIO(render_xlsx([topsheet_document])))
    ws = wb["TS-7"]
    values = _values(ws)

    assert ws["A1"].value == "31/03/2024"
    assert ws["A2"].value == "Topsheet"
    header_row = next(row for row in ws.iter_rows() if row[0].value == "Sl.")
    assert [cell.value for cell in header_row] == [
        "Sl.", "Work Details", "Work Location", "Bill No.", "Challan Date", "Total", "BBL Bill No.",
    ]
    assert header_row[0].fill.start_color.rgb.endswith("20DCE5")
    assert [ws.column_dimensions[c].width for c in "ABC"] == [8, 50, 35]
    assert "Total:" in values
    assert "In-words: Three Hundred Taka Only" in values
    assert "Prepared By" in values and "Checked By" in values
    assert ws.print_title_rows.endswith(str(header_row[0].row))


def test_xlsx_bulk_one_sheet_per_document(settings):
    documents = build_bulk_documents([sample_job(), sample_job(id=2)], "challan", settings, today=TODAY)
    wb = load_workbook(io.BytesIO(render_xlsx(documents)))
    assert wb.sheetnames == ["CH-2024-0315-1", "CH-2024-0315-2"]
    assert "Unit Price" not in _values(wb["CH-2024-0315-1"])


# ---------------------------------------------------------------------
# DOCX
# ---------------------------------------------------------------------
def _word_text(word):
    texts = [paragraph.text for paragraph in word.paragraphs]
    for table in word.tables:
        for row in table.rows:
            texts.extend(cell.text for cell in row.cells)
    return texts


def test_docx_quotation(quotation):
    word = WordDocument(io.BytesIO(render_docx([quotation])))
    texts = _word_text(word)

    assert "QUOTATION" in texts
    assert "Unit Price" in texts
    assert "৳ 2,000.00" in texts
    assert any("Two Thousand Taka Only" in text for text in texts)
    assert word.core_properties.title == "QUOTATION QT-2024-0315"

    section = word.sections[0]
    assert round(section.page_width.mm) == 210
    footer_text = " ".join(paragraph.text for paragraph in section.footer.paragraphs)
    assert "Doc No: QT-2024-0315" in footer_text


def test_docx_bulk_one_section_per_document(settings):
    documents = build_bulk_documents([sample_job(), sample_job(id=2)], "challan", settings, today=TODAY)
    word = WordDocument(io.BytesIO(render_docx(documents)))

    assert len(word.sections) == 2
    assert "Unit Price" not in _word_text(word)
    footers = [" ".join(p.text for p in section.footer.paragraphs) for section in word.sections]
    assert "CH-2024-0315-1" in footers[0]
    assert "CH-2024-0315-2" in footers[1]


def test_docx_signature_image(seal_png):
    settings = build_render_settings(overrides={"includeSignature": True, "signatureImage": "/images/seal.png"})
    document = build_job_document(sample_job(), "bill", settings, today=TODAY)
    word = WordDocument(io.BytesIO(render_docx([document], ImageLoader(asset_root=seal_png))))
    assert len(word.inline_shapes) == 1


def test_render_documents_docx_mimetype(quotation):
    rendered = render_documents([quotation], "docx", filename_stem=quotation.number)
    assert rendered.filename == "QT-2024-0315.docx"
    assert rendered.mimetype.endswith("wordprocessingml.document")
    assert rendered.body.startswith(b"PK")


# ---------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------
def test_render_documents_sets_filename_and_mimetype(quotation):
    rendered = render_documents([quotation], "pdf", filename_stem=quotation.number)
    assert rendered.filename == "QT-2024-0315.pdf"
    assert rendered.mimetype == "application/pdf"
    assert rendered.body.startswith(b"%PDF")

    html = render_documents([quotation], "html", filename_stem=quotation.number)
    assert html.mimetype.startswith("text/html")
    assert isinstance(html.body, bytes)


def test_render_documents_rejects_unknown_format(quotation):
    with pytest.raises(InvalidDocumentError):
        render_documents([quotation], "odt", filename_stem="x")


def test_render_documents_times_out(monkeypatch, quotation):
    import threading

    from billing.documents import service

    release = threading.Event()

    def slow_backend(documents, images):
        release.wait(5)
        return b""

    monkeypatch.setitem(service.FORMATS, "pdf", ("application/pdf", slow_backend))
    try:
        with pytest.raises(RenderTimeoutError):
            render_documents([quotation], "pdf", filename_stem="slow", timeout=0.05)
    finally:
        release.set()
