"""
billing/documents/pdf.py

PDF backend: builds a tree of reportlab platypus flowables (paragraphs, tables, images) from the
document blocks and lets the doc template paginate it.

Page furniture is drawn by page callbacks, not flowables:
- pad watermark (full page, behind content) on every page
- footer (document number + contact line) pinned to the bottom of every page
- "Page N of M" per document, suppressed on the document's first page

"M" is only known after pagination, so the document is built twice: the first pass counts pages
per document, the second pass draws the final numbers.

NOTE:
- Only the PDF base-14 fonts are embedded. The configured font family is mapped to the closest
  one (Times / Courier / Helvetica).
- Sizes: font sizes are points; signature width/height are CSS pixels (x 0.75 -> points).
"""

from __future__ import annotations

import io
import logging
from typing import Dict, List, Sequence
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER, TA_LEFT, TA_RIGHT
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader
from reportlab.platypus import (
    BaseDocTemplate,
    Flowable,
    Frame,
    Image,
    KeepTogether,
    PageBreak,
    PageTemplate,
    Paragraph,
    Spacer,
    Table,
    TableStyle,
)

from .config import RenderSettings
from .images import ImageLoader
from .model import Document

logger = logging.getLogger(__name__)

PAGE_WIDTH, PAGE_HEIGHT = A4
SIDE_MARGIN = 15 * mm
FOOTER_SPACE = 12 * mm
PX = 0.75

_ALIGN = {"left": TA_LEFT, "center": TA_CENTER, "right": TA_RIGHT}


def _font_names(family: str) -> tuple[str, str]:
    lowered = (family or "").lower()
    if "times" in lowered or ("serif" in lowered and "sans" not in lowered):
        return "Times-Roman", "Times-Bold"
    if "courier" in lowered or "mono" in lowered:
        return "Courier", "Courier-Bold"
    return "Helvetica", "Helvetica-Bold"


def _text(value: str) -> str:
    """Escape for Paragraph markup and keep line breaks."""
    return escape(value or "").replace("\n", "<br/>")


def _hex(value: str) -> colors.Color:
    value = value if value.startswith("#") else f"#{value}"
    return colors.HexColor(value)


class _DocumentStart(Flowable):
    """Zero-size marker placed before each document's flowables."""

    def __init__(self, document: Document):
        super().__init__()
        self.document = document

    def wrap(self, availWidth, availHeight):
        return 0, 0

    def draw(self):
        pass


class _BillingDocTemplate(BaseDocTemplate):
    """Tracks which document (and which page of it) is being laid out."""

    def __init__(self, buffer, **kwargs):
        super().__init__(buffer, **kwargs)
        self.current_document: Document | None = None
        self.section_start = 1

    def afterFlowable(self, flowable):
        if isinstance(flowable, _DocumentStart):
            self.current_document = flowable.document
            self.section_start = self.page


class _PdfRenderer:
    def __init__(self, documents: Sequence[Document], images: ImageLoader):
        self.documents = list(documents)
        self.settings: RenderSettings = self.documents[0].settings
        self.images = images
        self.page_counts: Dict[str, int] = {}
        self.final_counts: Dict[str, int] | None = None

        self.regular_font, self.bold_font = _font_names(self.settings.font_family)
        self.font_size = self.settings.font_size or 11
        self.font_color = _hex(self.settings.font_color)
        self.border_color = _hex(self.settings.table_border_color)
        self.frame_width = PAGE_WIDTH - 2 * SIDE_MARGIN

        self._pad_png = None
        if self.settings.pad_enabled:
            self._pad_png = images.png(self.settings.pad_image, self.settings.pad_opacity)
        self._signature_png = None
        if self.settings.signature_enabled:
            self._signature_png = images.png(self.settings.signature_image)

    # ------------------------------------------------------------------
    # Styles
    # ------------------------------------------------------------------
    def _style(self, name: str, *, size: float | None = None, bold: bool = False, align: str = "left",
               color: colors.Color | None = None, space_after: float = 0) -> ParagraphStyle:
        size = size or self.font_size
        return ParagraphStyle(
            name,
            fontName=self.bold_font if bold else self.regular_font,
            fontSize=size,
            leading=size * 1.3,
            alignment=_ALIGN[align],
            textColor=color or self.font_color,
            spaceAfter=space_after,
        )

    # ------------------------------------------------------------------
    # Page callbacks
    # ------------------------------------------------------------------
    def _draw_background(self, canvas, doc):
        if self._pad_png is None:
            return
        canvas.saveState()
        canvas.drawImage(
            ImageReader(io.BytesIO(self._pad_png)),
            0, 0,
            width=PAGE_WIDTH,
            height=PAGE_HEIGHT,
            mask="auto",
        )
        canvas.restoreState()

    def _draw_footer(self, canvas, doc):
        document = doc.current_document
        if document is None:
            return

        page_in_document = doc.page - doc.section_start + 1
        self.page_counts[document.number] = max(self.page_counts.get(document.number, 0), page_in_document)

        bottom = self.settings.bottom_margin * mm
        canvas.saveState()
        canvas.setStrokeColor(self.border_color)
        canvas.setLineWidth(0.5)
        canvas.line(SIDE_MARGIN, bottom + 8 * mm, PAGE_WIDTH - SIDE_MARGIN, bottom + 8 * mm)

        footer = document.footer
        canvas.setFillColor(colors.HexColor("#6b7280"))
        if footer is not None:
            canvas.setFont(self.regular_font, 7)
            canvas.drawString(SIDE_MARGIN, bottom + 5 * mm, footer.left)
            canvas.drawRightString(PAGE_WIDTH - SIDE_MARGIN, bottom + 5 * mm, footer.right)

        if page_in_document > 1:
            total = (self.final_counts or {}).get(document.number, page_in_document)
            canvas.setFont(self.regular_font, 8)
            canvas.drawCentredString(PAGE_WIDTH / 2, bottom + 1 * mm, f"Page {page_in_document} of {total}")
        canvas.restoreState()

    # ------------------------------------------------------------------
    # Blocks -> flowables
    # ------------------------------------------------------------------
    def _header(self, block) -> list:
        flowables = [Paragraph(_text(block.company_name), self._style("company", size=self.font_size * 1.8, bold=True, align="center"))]
        if block.tagline:
            flowables.append(Paragraph(_text(block.tagline), self._style("tagline", align="center")))
        flowables.append(Paragraph(
            _text(block.contact_line),
            self._style("contact", size=self.font_size * 0.85, align="center", color=colors.HexColor("#4b5563")),
        ))
        flowables.append(Spacer(1, 4 * mm))
        return flowables

    def _meta(self, block) -> list:
        if not block.doc_number_text and not block.ref_text:
            return [Paragraph(_text(block.date_text), self._style("meta-date", align="right")), Spacer(1, 2 * mm)]

        cells = [
            Paragraph(_text(block.doc_number_text or ""), self._style("meta-left")),
            Paragraph(_text(block.date_text), self._style("meta-center", align="center")),
            Paragraph(_text(block.ref_text or ""), self._style("meta-right", align="right")),
        ]
        table = Table([cells], colWidths=[self.frame_width / 3] * 3)
        table.setStyle(TableStyle([
            ("LEFTPADDING", (0, 0), (-1, -1), 0),
            ("RIGHTPADDING", (0, 0), (-1, -1), 0),
        ]))
        return [table, Spacer(1, 2 * mm)]

    def _title(self, block) -> list:
        return [
            Paragraph(f"<u>{_text(block.text)}</u>", self._style("title", size=self.font_size * 1.4, bold=True, align="center")),
            Spacer(1, 3 * mm),
        ]

    def _customer(self, block) -> list:
        content = [Paragraph(_text(block.name), self._style("customer-name", bold=True))]
        content.extend(Paragraph(_text(line), self._style("customer-line")) for line in block.lines)
        table = Table([[content]], colWidths=[self.frame_width])
        table.setStyle(TableStyle([
            ("BOX", (0, 0), (-1, -1), 0.75, self.border_color),
            ("LEFTPADDING", (0, 0), (-1, -1), 8),
            ("TOPPADDING", (0, 0), (-1, -1), 6),
            ("BOTTOMPADDING", (0, 0), (-1, -1), 6),
        ]))
        return [table, Spacer(1, 3 * mm)]

    def _subject(self, block) -> list:
        return [
            Paragraph(f"<b>{_text(block.label)}</b> {_text(block.text)}", self._style("subject")),
            Spacer(1, 3 * mm),
        ]

    def _cell(self, text: str, sub_lines=(), align: str = "left", bold: bool = False) -> Paragraph:
        parts = [_text(text)]
        small = self.font_size * 0.85
        for sub in sub_lines:
            color = self.settings.measurement_color if sub.style in ("measurement", "area") else "#4b5563"
            parts.append(f'<font size="{small:.1f}" color="{color}">{_text(sub.text)}</font>')
        return Paragraph("<br/>".join(parts), self._style("cell", align=align, bold=bold))

    def _table(self, block) -> list:
        total_width = sum(column.width for column in block.columns) or 1
        col_widths = [self.frame_width * column.width / total_width for column in block.columns]
        last_col = len(block.columns) - 1

        data: List[list] = [[self._cell(column.label, align=column.align, bold=True) for column in block.columns]]
        style = [
            ("GRID", (0, 0), (-1, -1), 0.5, self.border_color),
            ("BACKGROUND", (0, 0), (-1, 0), _hex(block.header_fill)),
            ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ]

        for row in block.rows:
            data.append([
                self._cell(cell.text, cell.sub_lines, block.columns[i].align) for i, cell in enumerate(row)
            ])

        if not block.rows:
            data.append([Paragraph(_text(block.empty_text), self._style("empty", align="center"))] + [""] * last_col)
            style.append(("SPAN", (0, len(data) - 1), (-1, len(data) - 1)))

        for summary in block.summary:
            data.append(
                [Paragraph(_text(summary.label), self._style("summary-label", align="right", bold=summary.emphasis))]
                + [""] * (last_col - 1)
                + [Paragraph(_text(summary.text), self._style("summary-value", align="right", bold=summary.emphasis))]
            )
            row_index = len(data) - 1
            if last_col > 1:
                style.append(("SPAN", (0, row_index), (last_col - 1, row_index)))
            style.append(("BACKGROUND", (0, row_index), (-1, row_index), _hex(block.total_fill)))

        table = Table(data, colWidths=col_widths, repeatRows=1)
        table.setStyle(TableStyle(style))
        return [table, Spacer(1, 3 * mm)]

    def _words(self, block) -> list:
        return [Paragraph(f"<b>{_text(block.label)}</b> {_text(block.text)}", self._style("words")), Spacer(1, 3 * mm)]

    def _note(self, block) -> list:
        return [
            Paragraph(f"<b>{_text(block.title)}:</b>", self._style("note-title")),
            Paragraph(_text(block.text), self._style("note-text", space_after=3 * mm)),
        ]

    def _signature_image(self, block):
        if not block.image_src or self._signature_png is None:
            return ""

        reader = ImageReader(io.BytesIO(self._signature_png))
        width_px, height_px = reader.getSize()
        scale = min(block.image_width / width_px, block.image_height / height_px)
        return Image(
            io.BytesIO(self._signature_png),
            width=width_px * scale * PX,
            height=height_px * scale * PX,
        )

    def _signature(self, block) -> list:
        label_style = self._style("signature-label", align="center")
        box_width = self.frame_width * 0.4
        gap = self.frame_width - 2 * box_width

        table = Table(
            [
                ["", "", self._signature_image(block)],
                [Paragraph(_text(block.left_label), label_style), "", Paragraph(_text(block.right_label), label_style)],
            ],
            colWidths=[box_width, gap, box_width],
            rowHeights=[block.reserved_height * PX, None],
        )
        table.setStyle(TableStyle([
            ("ALIGN", (0, 0), (-1, 0), "CENTER"),
            ("VALIGN", (0, 0), (-1, 0), "BOTTOM"),
            ("TOPPADDING", (0, 0), (-1, 0), 0),
            ("BOTTOMPADDING", (0, 0), (-1, 0), 0),
            ("LINEABOVE", (0, 1), (0, 1), 0.75, self.font_color),
            ("LINEABOVE", (2, 1), (2, 1), 0.75, self.font_color),
        ]))
        return [Spacer(1, 10 * mm), KeepTogether([table])]

    def _flowables(self) -> list:
        handlers = {
            "header": self._header,
            "meta": self._meta,
            "title": self._title,
            "customer": self._customer,
            "subject": self._subject,
            "table": self._table,
            "words": self._words,
            "note": self._note,
            "signature": self._signature,
        }
        story: list = []
        for position, document in enumerate(self.documents):
            if position:
                story.append(PageBreak())
            story.append(_DocumentStart(document))
            for block in document.blocks:
                handler = handlers.get(block.kind)
                if handler is not None:
                    story.extend(handler(block))
        return story

    # ------------------------------------------------------------------
    # Build
    # ------------------------------------------------------------------
    def _build_once(self) -> bytes:
        buffer = io.BytesIO()
        doc = _BillingDocTemplate(
            buffer,
            pagesize=A4,
            leftMargin=SIDE_MARGIN,
            rightMargin=SIDE_MARGIN,
            topMargin=self.settings.top_margin * mm,
            bottomMargin=self.settings.bottom_margin * mm,
            title=" / ".join(f"{d.title} {d.number}" for d in self.documents),
            author=self.settings.company_name,
        )
        frame = Frame(
            doc.leftMargin,
            doc.bottomMargin + FOOTER_SPACE,
            doc.width,
            doc.height - FOOTER_SPACE,
            id="content",
        )
        doc.addPageTemplates([
            PageTemplate(id="document", frames=[frame], onPage=self._draw_background, onPageEnd=self._draw_footer),
        ])
        self.page_counts = {}
        doc.build(self._flowables())
        return buffer.getvalue()

    def render(self) -> bytes:
        self._build_once()
        self.final_counts = dict(self.page_counts)
        return self._build_once()


def render_pdf(documents: Sequence[Document], images: ImageLoader | None = None) -> bytes:
    """Render one or more documents into a single PDF (each document starts on a new page)."""
    renderer = _PdfRenderer(documents, images or ImageLoader())
    data = renderer.render()
    logger.debug("PDF composed: %d document(s), %d bytes", len(renderer.documents), len(data))
    return data
