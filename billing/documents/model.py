"""
billing/documents/model.py

Backend-agnostic document model.

A Document is an ordered list of typed blocks. The backends (html.py, pdf.py, xlsx.py, docx.py)
walk the same list, so titles, columns, totals and trailers are decided exactly once, here:

    HeaderBlock     company name / tagline / contact line (centered)
    MetaBlock       document number | date | reference
    TitleBlock      QUOTATION / DELIVERY CHALLAN / TAX INVOICE / Topsheet
    CustomerBlock   boxed name + address lines + work location
    SubjectBlock    synthesized subject line
    TableBlock      columns, rows (with sub-lines) and summary rows (grand total)
    WordsBlock      amount in words
    NoteBlock       notes, terms & conditions (one block each)
    SignatureBlock  two boxes, optional image, constant reserved height
    FooterBlock     document number + contact line, pinned to the page bottom

IMPORTANT:
- Challan documents carry no pricing: no price/total columns, no grand total, no words block.
  This is decided by DocumentType.shows_pricing, never by style settings.
- Money shown on job documents is recomputed from the items. Topsheet rows use
  totals.job_final_total(), never Job.total_amount.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import ClassVar, List, Optional, Sequence

from ..errors import InvalidDocumentError
from ..measurements import SQFT_UNIT, measurement_lines, ordered_measurements, total_sqft
from ..money import format_currency, format_price, number_to_words, to_float
from ..pricing import calculate_line_item
from ..totals import job_final_total
from .config import RenderSettings

DEFAULT_HEADER_FILL = "F3F4F6"
DEFAULT_TOTAL_FILL = "F9FAFB"
TOPSHEET_HEADER_FILL = "20DCE5"
TOPSHEET_TOTAL_FILL = "E6F2FF"


# ---------------------------------------------------------------------
# Document types
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class DocumentType:
    key: str
    prefix: str
    title: str
    shows_pricing: bool
    date_field: str


DOCUMENT_TYPES = {
    "quotation": DocumentType("quotation", "QT", "QUOTATION", True, "quotation_date"),
    "challan": DocumentType("challan", "CH", "DELIVERY CHALLAN", False, "challan_date"),
    "bill": DocumentType("bill", "INV", "TAX INVOICE", True, "bill_date"),
}
DOCUMENT_TYPE_ALIASES = {"invoice": "bill"}


def get_document_type(key: str) -> DocumentType:
    normalized = (key or "").strip().lower()
    normalized = DOCUMENT_TYPE_ALIASES.get(normalized, normalized)
    try:
        return DOCUMENT_TYPES[normalized]
    except KeyError:
        raise InvalidDocumentError(f"Unknown document type: {key!r}") from None


def document_number(prefix: str, today: date, index: int | None = None) -> str:
    """QT-2024-0315, or QT-2024-0315-2 for the 2nd job of a bulk render."""
    number = f"{prefix}-{today.year}-{today.month:02d}{today.day:02d}"
    if index is not None:
        number = f"{number}-{index}"
    return number


# ---------------------------------------------------------------------
# Blocks
# ---------------------------------------------------------------------
@dataclass
class HeaderBlock:
    kind: ClassVar[str] = "header"
    company_name: str
    tagline: str
    contact_line: str


@dataclass
class MetaBlock:
    kind: ClassVar[str] = "meta"
    date_text: str
    doc_number_text: Optional[str] = None
    ref_text: Optional[str] = None


@dataclass
class TitleBlock:
    kind: ClassVar[str] = "title"
    text: str


@dataclass
class CustomerBlock:
    kind: ClassVar[str] = "customer"
    name: str
    lines: List[str] = field(default_factory=list)


@dataclass
class SubjectBlock:
    kind: ClassVar[str] = "subject"
    label: str
    text: str


@dataclass
class Column:
    label: str
    width: float
    align: str = "left"
    numeric: bool = False


@dataclass
class SubLine:
    text: str
    style: str = "details"  # details | measurement | area


@dataclass
class Cell:
    text: str
    sub_lines: List[SubLine] = field(default_factory=list)
    value: Optional[float] = None


@dataclass
class SummaryRow:
    label: str
    text: str
    value: float
    emphasis: bool = False


@dataclass
class TableBlock:
    kind: ClassVar[str] = "table"
    columns: List[Column]
    rows: List[List[Cell]]
    summary: List[SummaryRow] = field(default_factory=list)
    empty_text: str = "No items"
    header_fill: str = DEFAULT_HEADER_FILL
    total_fill: str = DEFAULT_TOTAL_FILL


@dataclass
class WordsBlock:
    kind: ClassVar[str] = "words"
    label: str
    text: str


@dataclass
class NoteBlock:
    kind: ClassVar[str] = "note"
    title: str
    text: str


@dataclass
class SignatureBlock:
    kind: ClassVar[str] = "signature"
    left_label: str
    right_label: str
    image_src: Optional[str]
    image_width: float
    image_height: float
    reserved_height: float


@dataclass
class FooterBlock:
    kind: ClassVar[str] = "footer"
    left: str
    right: str


@dataclass
class Document:
    """One page-group (job document or topsheet) ready for any backend."""

    title: str
    number: str
    settings: RenderSettings
    blocks: list = field(default_factory=list)

    def blocks_of(self, kind: str) -> list:
        return [block for block in self.blocks if block.kind == kind]

    @property
    def footer(self) -> Optional[FooterBlock]:
        footers = self.blocks_of("footer")
        return footers[0] if footers else None


# ---------------------------------------------------------------------
# Shared block builders
# ---------------------------------------------------------------------
def _header(settings: RenderSettings) -> HeaderBlock:
    return HeaderBlock(settings.company_name, settings.company_tagline, settings.contact_line)


def _signature(settings: RenderSettings, left: str, right: str) -> SignatureBlock:
    return SignatureBlock(
        left_label=left,
        right_label=right,
        image_src=settings.signature_image if settings.signature_enabled else None,
        image_width=settings.signature_width,
        image_height=settings.signature_height,
        reserved_height=settings.signature_height,
    )


def _footer(settings: RenderSettings, label: str, number: str) -> FooterBlock:
    return FooterBlock(
        left=f"{label}: {number}",
        right=(
            "This is a computer generated document. "
            f"For any queries, please contact us at {settings.company_email}"
        ),
    )


def _notes(notes: str | None, terms: str | None) -> list:
    blocks = []
    if notes and notes.strip():
        blocks.append(NoteBlock("Notes", notes.strip()))
    if terms and terms.strip():
        blocks.append(NoteBlock("Terms & Conditions", terms.strip()))
    return blocks


def _number_text(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else f"{value:g}"


def quantity_text(quantity, unit: str | None) -> str:
    """'12.50 sqft' for area units, '3 nos' otherwise."""
    unit = unit or "nos"
    value = to_float(quantity)
    if unit.lower() in (SQFT_UNIT, "sft"):
        return f"{value:.2f} {unit}"
    return f"{_number_text(value)} {unit}"


# ---------------------------------------------------------------------
# Job documents
# ---------------------------------------------------------------------
def _job_items(job) -> list:
    items = getattr(job, "items", None)
    if items is None:
        raise InvalidDocumentError(f"Job {getattr(job, 'ref_number', '?')} has no items list")
    return sorted(items, key=lambda item: to_float(item.serial_number))


def _work_details_cell(item) -> Cell:
    sub_lines = []
    if item.details and item.details.strip():
        sub_lines.append(SubLine(item.details.strip(), "details"))

    sub_lines.extend(SubLine(text, "measurement") for text in measurement_lines(item))

    measurements = ordered_measurements(item)
    if len(measurements) > 1:
        sub_lines.append(SubLine(f"Total area: {total_sqft(measurements):.2f} sft", "area"))

    return Cell(item.work_description or "", sub_lines)


def _subject_text(job, doc_type: DocumentType) -> str | None:
    detail = (job.job_detail or job.subject or "").strip()
    if not detail:
        return None

    customer = getattr(job, "customer", None)
    customer_name = customer.name if customer else ""
    location = (job.work_location or (customer.location if customer else "") or "").strip()

    if not doc_type.shows_pricing:
        return ", ".join(part for part in (detail, location) if part)

    text = f"{doc_type.title} for {detail}"
    if customer_name:
        text += f" at {customer_name}"
    if location:
        text += f", {location}"
    return text


def _customer_block(job) -> CustomerBlock | None:
    customer = getattr(job, "customer", None)
    if customer is None:
        return None
    lines = list(customer.address_lines)
    if job.work_location:
        lines.append(f"Work Location: {job.work_location}")
    return CustomerBlock(customer.name, lines)


def _job_table(items: Sequence, doc_type: DocumentType, discount_percent) -> tuple[TableBlock, float]:
    if doc_type.shows_pricing:
        columns = [
            Column("Sl.", 8, "center"),
            Column("Work Details", 50),
            Column("Quantity", 15, "center"),
            Column("Unit Price", 15, "right", numeric=True),
            Column("Total", 18, "right", numeric=True),
        ]
    else:
        columns = [
            Column("Sl.", 8, "center"),
            Column("Work Details", 62),
            Column("Quantity", 20, "center"),
        ]

    rows = []
    subtotal = 0.0
    total_vat = 0.0
    for position, item in enumerate(items, start=1):
        calculated = calculate_line_item(item)
        subtotal += calculated["subtotal"]
        total_vat += to_float(item.vat_amount)

        row = [
            Cell(str(item.serial_number or position)),
            _work_details_cell(item),
            Cell(quantity_text(calculated["quantity"], calculated["unit"])),
        ]
        if doc_type.shows_pricing:
            row.append(Cell(format_price(calculated["unit_price"]), value=calculated["unit_price"]))
            row.append(Cell(format_price(calculated["subtotal"]), value=calculated["subtotal"]))
        rows.append(row)

    discount_amount = subtotal * (to_float(discount_percent) / 100)
    grand_total = subtotal - discount_amount + total_vat

    summary = []
    if doc_type.shows_pricing:
        if discount_amount:
            summary.append(SummaryRow("Subtotal", format_currency(subtotal), subtotal))
            summary.append(SummaryRow(
                f"Discount ({_number_text(to_float(discount_percent))}%)",
                f"- {format_currency(discount_amount)}",
                -discount_amount,
            ))
        if total_vat:
            summary.append(SummaryRow("VAT", format_currency(total_vat), total_vat))
        summary.append(SummaryRow("Grand Total", format_currency(grand_total), grand_total, emphasis=True))

    return TableBlock(columns=columns, rows=rows, summary=summary), grand_total


def build_job_document(
    job,
    doc_type: str | DocumentType,
    settings: RenderSettings,
    *,
    today: date | None = None,
    index: int | None = None,
    ref_number: str | None = None,
) -> Document:
    """Build the block list for one quotation / challan / bill."""
    if job is None:
        raise InvalidDocumentError("No job given")
    if not isinstance(doc_type, DocumentType):
        doc_type = get_document_type(doc_type)

    items = _job_items(job)
    today = today or date.today()
    number = document_number(doc_type.prefix, today, index)
    doc_date = getattr(job, doc_type.date_field, None) or job.date

    blocks: list = [
        _header(settings),
        MetaBlock(
            date_text=settings.format_date(doc_date),
            doc_number_text=f"Doc No: {number}",
            ref_text=f"Ref: {ref_number or job.ref_number or 'N/A'}",
        ),
        TitleBlock(doc_type.title),
    ]

    customer_block = _customer_block(job)
    if customer_block:
        blocks.append(customer_block)

    subject = _subject_text(job, doc_type)
    if subject:
        blocks.append(SubjectBlock("Subject:", subject))

    table, grand_total = _job_table(items, doc_type, job.discount_percent)
    blocks.append(table)

    if doc_type.shows_pricing and grand_total > 0:
        blocks.append(WordsBlock("Amount in words:", number_to_words(grand_total)))

    blocks.extend(_notes(job.notes, job.terms_conditions))
    blocks.append(_signature(settings, "Received By", "Authorized Signatory"))
    blocks.append(_footer(settings, "Doc No", number))

    return Document(title=doc_type.title, number=number, settings=settings, blocks=blocks)


def build_bulk_documents(jobs: Sequence, doc_type: str | DocumentType, settings: RenderSettings, *, today: date | None = None) -> List[Document]:
    """One document per job; numbers get a 1-based -{index} suffix."""
    if not jobs:
        raise InvalidDocumentError("Bulk render needs at least one job")
    if not isinstance(doc_type, DocumentType):
        doc_type = get_document_type(doc_type)
    today = today or date.today()
    return [
        build_job_document(job, doc_type, settings, today=today, index=position)
        for position, job in enumerate(jobs, start=1)
    ]


# ---------------------------------------------------------------------
# Topsheet
# ---------------------------------------------------------------------
TOPSHEET_TITLE = "Topsheet"


def build_topsheet_document(topsheet, settings: RenderSettings) -> Document:
    """
    One row per member job:
        Sl. | Work Details | Work Location | Bill No. | Challan Date | Total | BBL Bill No.

    Totals are recomputed per job from its items (job_final_total).
    """
    if topsheet is None:
        raise InvalidDocumentError("No topsheet given")
    jobs = getattr(topsheet, "jobs", None)
    if jobs is None:
        raise InvalidDocumentError(f"Topsheet {topsheet.topsheet_number} has no jobs list")

    columns = [
        Column("Sl.", 8, "center"),
        Column("Work Details", 50),
        Column("Work Location", 35),
        Column("Bill No.", 15, "center"),
        Column("Challan Date", 12, "center"),
        Column("Total", 15, "right", numeric=True),
        Column("BBL Bill No.", 15, "center"),
    ]

    rows = []
    grand_total = 0.0
    for position, job in enumerate(sorted(jobs, key=lambda j: (j.date or date.min, j.id or 0)), start=1):
        total = job_final_total(job)
        grand_total += total
        rows.append([
            Cell(str(position)),
            Cell(job.job_detail or job.subject or ""),
            Cell(job.work_location or ""),
            Cell(job.ref_number or ""),
            Cell(settings.format_date(job.challan_date, with_prefix=False) if job.challan_date else ""),
            Cell(format_price(total), value=total),
            Cell(job.bbl_bill_number or ""),
        ])

    table = TableBlock(
        columns=columns,
        rows=rows,
        summary=[SummaryRow("Total:", format_price(grand_total), grand_total, emphasis=True)],
        empty_text="No jobs",
        header_fill=TOPSHEET_HEADER_FILL,
        total_fill=TOPSHEET_TOTAL_FILL,
    )

    customer_lines = [line for line in (topsheet.customer_address1, topsheet.customer_address2) if line]
    blocks: list = [
        MetaBlock(date_text=settings.format_date(topsheet.date, with_prefix=False)),
        TitleBlock(TOPSHEET_TITLE),
        CustomerBlock(topsheet.customer_name or "", customer_lines),
        SubjectBlock("Subject:", f"Topsheet of workings at different places {topsheet.customer_name or ''}".rstrip()),
        table,
    ]
    if grand_total > 0:
        blocks.append(WordsBlock("In-words:", number_to_words(grand_total)))
    blocks.extend(_notes(topsheet.notes, None))
    blocks.append(_signature(settings, "Prepared By", "Checked By"))
    blocks.append(_footer(settings, "Topsheet No", topsheet.topsheet_number))

    return Document(title=TOPSHEET_TITLE, number=topsheet.topsheet_number, settings=settings, blocks=blocks)
