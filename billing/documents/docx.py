"""
billing/documents/docx.py

Word backend: walks the same block list as the HTML, PDF and XLSX backends and writes it with
python-docx, so the output stays editable in Word / LibreOffice.

Layout rules:
- A4 portrait; top/bottom margins from the render settings, 15 mm sides
- every document is its own section, so bulk output starts each document on a new page and
  each document keeps its own footer (document number | contact line | Page N of M)
- table column widths are the block's column widths scaled to the printable width
- the item table header row repeats on every page

NOTE:
- The pad watermark is not drawn here; Word output carries the letterhead text only.
- The signature image, when loaded, goes into the right signature box. A missing image leaves
  the reserved height empty.
"""

from __future__ import annotations

import io
import logging
from typing import Sequence

from docx import Document as WordDocument
from docx.enum.section import WD_SECTION
from docx.enum.table import WD_ROW_HEIGHT_RULE, WD_TABLE_ALIGNMENT
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.oxml import OxmlElement
from docx.oxml.ns import qn
from docx.shared import Mm, Pt, RGBColor
from PIL import Image

from .images import ImageLoader
from .model import Document

logger = logging.getLogger(__name__)

PAGE_WIDTH_MM, PAGE_HEIGHT_MM = 210, 297
SIDE_MARGIN_MM = 15
CONTENT_WIDTH_MM = PAGE_WIDTH_MM - 2 * SIDE_MARGIN_MM
PX = 0.75
MUTED = "4B5563"

ALIGNMENTS = {
    "left": WD_ALIGN_PARAGRAPH.LEFT,
    "center": WD_ALIGN_PARAGRAPH.CENTER,
    "right": WD_ALIGN_PARAGRAPH.RIGHT,
}


def _rgb(value: str) -> RGBColor:
    return RGBColor.from_string(value.lstrip("#").upper())


def _shade(cell, fill: str):
    shd = OxmlElement("w:shd")
    shd.set(qn("w:val"), "clear")
    shd.set(qn("w:color"), "auto")
    shd.set(qn("w:fill"), fill.lstrip("#").upper())
    cell._tc.get_or_add_tcPr().append(shd)


def _repeat_as_header(row):
    marker = OxmlElement("w:tblHeader")
    marker.set(qn("w:val"), "true")
    row._tr.get_or_add_trPr().append(marker)


def _field(paragraph, instruction: str):
    field = OxmlElement("w:fldSimple")
    field.set(qn("w:instr"), instruction)
    paragraph._p.append(field)


class _DocxWriter:
    def __init__(self, word, document: Document, images: ImageLoader):
        self.word = word
        self.document = document
        self.settings = document.settings
        self.images = images
        self.font_size = self.settings.font_size or 11
        self.color = _rgb(self.settings.font_color)
        self.muted = _rgb(MUTED)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _run(self, paragraph, text: str, *, size: float | None = None, bold: bool = False,
             italic: bool = False, underline: bool = False, color: RGBColor | None = None):
        run = paragraph.add_run(text)
        run.bold = bold
        run.italic = italic
        run.underline = underline
        run.font.name = self.settings.font_family
        run.font.size = Pt(size or self.font_size)
        run.font.color.rgb = color or self.color
        return run

    def _paragraph(self, text: str = "", *, container=None, align: str = "left", space_after: float = 4, **style):
        if container is None:
            container = self.word
        paragraph = container.add_paragraph()
        paragraph.alignment = ALIGNMENTS.get(align, WD_ALIGN_PARAGRAPH.LEFT)
        paragraph.paragraph_format.space_after = Pt(space_after)
        if text:
            self._run(paragraph, text, **style)
        return paragraph

    def _cell_text(self, cell, text: str, *, align: str = "left", **style):
        paragraph = cell.paragraphs[0]
        paragraph.alignment = ALIGNMENTS.get(align, WD_ALIGN_PARAGRAPH.LEFT)
        paragraph.paragraph_format.space_after = Pt(0)
        if text:
            self._run(paragraph, text, **style)
        return paragraph

    def _spacer(self):
        self._paragraph(space_after=2)

    # ------------------------------------------------------------------
    # Blocks
    # ------------------------------------------------------------------
    def header(self, block):
        self._paragraph(block.company_name, align="center", space_after=0, size=self.font_size * 1.8, bold=True)
        if block.tagline:
            self._paragraph(block.tagline, align="center", space_after=0)
        self._paragraph(block.contact_line, align="center", size=self.font_size * 0.85, color=self.muted)

    def meta(self, block):
        if not block.doc_number_text and not block.ref_text:
            self._paragraph(block.date_text, align="right")
            return
        table = self.word.add_table(rows=1, cols=3)
        texts = (block.doc_number_text or "", block.date_text, block.ref_text or "")
        for cell, text, align in zip(table.rows[0].cells, texts, ("left", "center", "right")):
            self._cell_text(cell, text, align=align)
        self._spacer()

    def title(self, block):
        self._paragraph(block.text, align="center", space_after=8, size=self.font_size * 1.4, bold=True, underline=True)

    def customer(self, block):
        table = self.word.add_table(rows=1, cols=1)
        table.style = "Table Grid"
        cell = table.cell(0, 0)
        self._cell_text(cell, block.name, bold=True)
        for line in block.lines:
            self._paragraph(line, container=cell, space_after=0)
        self._spacer()

    def subject(self, block):
        paragraph = self._paragraph(space_after=6)
        self._run(paragraph, f"{block.label} ", bold=True)
        self._run(paragraph, block.text)

    def table(self, block):
        columns = block.columns
        ncols = len(columns)
        total_width = sum(column.width for column in columns) or 1
        widths = [Mm(CONTENT_WIDTH_MM * column.width / total_width) for column in columns]

        table = self.word.add_table(rows=1, cols=ncols)
        table.style = "Table Grid"
        table.alignment = WD_TABLE_ALIGNMENT.CENTER
        table.autofit = False
        for grid_column, width in zip(table.columns, widths):
            grid_column.width = width

        header = table.rows[0]
        _repeat_as_header(header)
        for cell, column, width in zip(header.cells, columns, widths):
            cell.width = width
            _shade(cell, block.header_fill)
            self._cell_text(cell, column.label, align="center", bold=True)

        for row in block.rows:
            cells = table.add_row().cells
            for cell, column, width, value in zip(cells, columns, widths, row):
                cell.width = width
                self._cell_text(cell, value.text, align=column.align)
                for sub in value.sub_lines:
                    color = self.settings.measurement_color if sub.style in ("measurement", "area") else MUTED
                    self._paragraph(
                        sub.text, container=cell, align=column.align, space_after=0,
                        size=self.font_size * 0.85, color=_rgb(color),
                    )

        if not block.rows:
            cells = table.add_row().cells
            merged = cells[0].merge(cells[-1]) if ncols > 1 else cells[0]
            self._cell_text(merged, block.empty_text, align="center", italic=True)

        for summary in block.summary:
            cells = table.add_row().cells
            label = cells[0].merge(cells[-2]) if ncols > 2 else cells[0]
            value = cells[-1]
            self._cell_text(label, summary.label, align="right", bold=summary.emphasis)
            self._cell_text(value, summary.text, align="right", bold=summary.emphasis)
            _shade(label, block.total_fill)
            _shade(value, block.total_fill)
        self._spacer()

    def words(self, block):
        paragraph = self._paragraph(space_after=6)
        self._run(paragraph, f"{block.label} ", bold=True)
        self._run(paragraph, block.text, italic=True)

    def note(self, block):
        self._paragraph(f"{block.title}:", space_after=0, bold=True)
        self._paragraph(block.text, space_after=6)

    def _signature_picture(self, cell, block):
        data = self.images.png(block.image_src)
        if data is None:
            return
        with Image.open(io.BytesIO(data)) as image:
            width_px, height_px = image.size
        scale = min(block.image_width / width_px, block.image_height / height_px)
        paragraph = cell.paragraphs[0]
        paragraph.alignment = WD_ALIGN_PARAGRAPH.CENTER
        paragraph.add_run().add_picture(
            io.BytesIO(data),
            width=Pt(width_px * scale * PX),
            height=Pt(height_px * scale * PX),
        )

    def signature(self, block):
        self._spacer()
        table = self.word.add_table(rows=2, cols=3)
        image_row, label_row = table.rows
        image_row.height = Pt(max(block.reserved_height * PX, self.font_size))
        image_row.height_rule = WD_ROW_HEIGHT_RULE.AT_LEAST
        if block.image_src:
            self._signature_picture(image_row.cells[2], block)
        self._cell_text(label_row.cells[0], block.left_label, align="center")
        self._cell_text(label_row.cells[2], block.right_label, align="center")

    def footer(self, block):
        footer = self.word.sections[-1].footer
        footer.is_linked_to_previous = False

        left = footer.paragraphs[0] if footer.paragraphs else footer.add_paragraph()
        left.text = ""
        self._run(left, block.left, size=7, color=self.muted)

        right = footer.add_paragraph()
        right.alignment = WD_ALIGN_PARAGRAPH.RIGHT
        self._run(right, block.right, size=7, color=self.muted)

        pages = footer.add_paragraph()
        pages.alignment = WD_ALIGN_PARAGRAPH.CENTER
        self._run(pages, "Page ", size=8, color=self.muted)
        _field(pages, "PAGE")
        self._run(pages, " of ", size=8, color=self.muted)
        _field(pages, "NUMPAGES")

    # ------------------------------------------------------------------
    # Section
    # ------------------------------------------------------------------
    def _section(self, first: bool):
        section = self.word.sections[0] if first else self.word.add_section(WD_SECTION.NEW_PAGE)
        section.page_width = Mm(PAGE_WIDTH_MM)
        section.page_height = Mm(PAGE_HEIGHT_MM)
        section.left_margin = Mm(SIDE_MARGIN_MM)
        section.right_margin = Mm(SIDE_MARGIN_MM)
        section.top_margin = Mm(self.settings.top_margin)
        section.bottom_margin = Mm(self.settings.bottom_margin)

    def write(self, first: bool):
        self._section(first)
        for block in self.document.blocks:
            getattr(self, block.kind)(block)


def render_docx(documents: Sequence[Document], images: ImageLoader | None = None) -> bytes:
    """Render documents into one Word file (one section per document)."""
    images = images or ImageLoader()
    word = WordDocument()

    for position, document in enumerate(documents):
        _DocxWriter(word, document, images).write(first=position == 0)

    properties = word.core_properties
    properties.title = " / ".join(f"{d.title} {d.number}" for d in documents)
    if documents:
        properties.author = documents[0].settings.company_name

    buffer = io.BytesIO()
    word.save(buffer)
    data = buffer.getvalue()
    logger.debug("Word file composed: %d document(s), %d bytes", len(documents), len(data))
    return data
