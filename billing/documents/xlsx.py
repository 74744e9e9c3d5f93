"""
billing/documents/xlsx.py

Spreadsheet backend: one worksheet per document, laid out top-down in the same block order as
the HTML and PDF backends.

Layout rules:
- every full-width block is a row merged across all table columns
- column widths come from the table columns (character units)
- money cells are real numbers formatted '#,##0.00'
- the print footer carries the document number / contact line; page numbers are in the footer
  of every page except the first (differentFirst)
- A4, portrait, fit to one page wide; the table header row repeats on every printed page
  (for header-less documents such as topsheets, rows 1..header repeat)
"""

from __future__ import annotations

import io
import logging
import re
from typing import Sequence

from openpyxl import Workbook
from openpyxl.drawing.image import Image as XLImage
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from .images import ImageLoader
from .model import Document

logger = logging.getLogger(__name__)

NUMBER_FORMAT = "#,##0.00"
LINE_HEIGHT = 15
PX = 0.75
A4_WIDTH_PX, A4_HEIGHT_PX = 794, 1123
MM_PER_INCH = 25.4

_INVALID_SHEET_CHARS = re.compile(r"[\[\]:*?/\\]")


def _rgb(value: str) -> str:
    return value.lstrip("#").upper()


def _sheet_title(number: str, used: set) -> str:
    base = _INVALID_SHEET_CHARS.sub("-", number or "Sheet")[:31] or "Sheet"
    title, counter = base, 2
    while title in used:
        suffix = f" ({counter})"
        title = base[: 31 - len(suffix)] + suffix
        counter += 1
    used.add(title)
    return title


class _SheetWriter:
    def __init__(self, ws, document: Document, images: ImageLoader):
        self.ws = ws
        self.document = document
        self.settings = document.settings
        self.images = images
        self.row = 1
        self.header_row = None

        tables = document.blocks_of("table")
        self.columns = tables[0].columns if tables else []
        self.ncols = max(len(self.columns), 1)
        self.last_col = get_column_letter(self.ncols)

        size = self.settings.font_size or 11
        color = _rgb(self.settings.font_color)
        self.font = Font(name=self.settings.font_family, size=size, color=color)
        self.bold = Font(name=self.settings.font_family, size=size, color=color, bold=True)
        self.small = Font(name=self.settings.font_family, size=size * 0.85, color="4B5563")
        side = Side(style="thin", color=_rgb(self.settings.table_border_color))
        self.border = Border(left=side, right=side, top=side, bottom=side)
        self.side = side

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _full_row(self, text: str, *, font=None, align: str = "left", wrap: bool = False, lines: int = 1):
        ws = self.ws
        cell = ws.cell(row=self.row, column=1, value=text)
        cell.font = font or self.font
        cell.alignment = Alignment(horizontal=align, vertical="top", wrap_text=wrap)
        if self.ncols > 1:
            ws.merge_cells(start_row=self.row, start_column=1, end_row=self.row, end_column=self.ncols)
        if lines > 1:
            ws.row_dimensions[self.row].height = LINE_HEIGHT * lines
        self.row += 1
        return cell

    def _blank(self, count: int = 1):
        self.row += count

    def _put(self, column: int, value, *, font=None, align: str = "left", wrap: bool = False, number_format=None):
        cell = self.ws.cell(row=self.row, column=column, value=value)
        cell.font = font or self.font
        cell.alignment = Alignment(horizontal=align, vertical="top", wrap_text=wrap)
        if number_format:
            cell.number_format = number_format
        return cell

    # ------------------------------------------------------------------
    # Blocks
    # ------------------------------------------------------------------
    def header(self, block):
        size = self.font.size
        self._full_row(block.company_name, font=Font(name=self.font.name, size=size * 1.8, bold=True, color=self.font.color), align="center")
        self.ws.row_dimensions[self.row - 1].height = size * 1.8 * 1.4
        if block.tagline:
            self._full_row(block.tagline, align="center")
        self._full_row(block.contact_line, font=self.small, align="center")
        self._blank()

    def meta(self, block):
        if not block.doc_number_text and not block.ref_text:
            self._full_row(block.date_text, align="right")
            return
        self._put(1, block.doc_number_text or "")
        middle = (self.ncols + 1) // 2
        if middle not in (1, self.ncols):
            self._put(middle, block.date_text, align="center")
        else:
            self._put(self.ncols, block.date_text, align="right")
            self.row += 1
        self._put(self.ncols, block.ref_text or "", align="right")
        self.row += 1

    def title(self, block):
        self._full_row(block.text, font=Font(name=self.font.name, size=self.font.size * 1.4, bold=True, underline="single", color=self.font.color), align="center")
        self._blank()

    def customer(self, block):
        first = self.row
        self._full_row(block.name, font=self.bold)
        for line in block.lines:
            self._full_row(line)
        last = self.row - 1
        for row in range(first, last + 1):
            for column in range(1, self.ncols + 1):
                cell = self.ws.cell(row=row, column=column)
                cell.border = Border(
                    left=self.side if column == 1 else None,
                    right=self.side if column == self.ncols else None,
                    top=self.side if row == first else None,
                    bottom=self.side if row == last else None,
                )
        self._blank()

    def subject(self, block):
        text = f"{block.label} {block.text}"
        self._full_row(text, wrap=True, lines=text.count("\n") + 1)
        self._blank()

    def table(self, block):
        ws = self.ws
        header_fill = PatternFill(start_color=block.header_fill, end_color=block.header_fill, fill_type="solid")
        total_fill = PatternFill(start_color=block.total_fill, end_color=block.total_fill, fill_type="solid")

        self.header_row = self.row
        for index, column in enumerate(block.columns, start=1):
            cell = self._put(index, column.label, font=self.bold, align="center", wrap=True)
            cell.fill = header_fill
            cell.border = self.border
        self.row += 1

        for row in block.rows:
            line_count = 1
            for index, (column, value) in enumerate(zip(block.columns, row), start=1):
                if column.numeric and value.value is not None:
                    cell = self._put(index, value.value, align=column.align, number_format=NUMBER_FORMAT)
                else:
                    text = "\n".join([value.text] + [sub.text for sub in value.sub_lines])
                    line_count = max(line_count, len(value.sub_lines) + 1)
                    cell = self._put(index, text, align=column.align, wrap=True)
                cell.border = self.border
            if line_count > 1:
                ws.row_dimensions[self.row].height = LINE_HEIGHT * line_count
            self.row += 1

        if not block.rows:
            cell = self._put(1, block.empty_text, align="center")
            for column in range(1, self.ncols + 1):
                ws.cell(row=self.row, column=column).border = self.border
            if self.ncols > 1:
                ws.merge_cells(start_row=self.row, start_column=1, end_row=self.row, end_column=self.ncols)
            self.row += 1

        for summary in block.summary:
            font = self.bold if summary.emphasis else self.font
            self._put(1, summary.label, font=font, align="right")
            if self.ncols > 2:
                ws.merge_cells(start_row=self.row, start_column=1, end_row=self.row, end_column=self.ncols - 1)
            self._put(self.ncols, summary.value, font=font, align="right", number_format=NUMBER_FORMAT)
            for column in range(1, self.ncols + 1):
                cell = ws.cell(row=self.row, column=column)
                cell.fill = total_fill
                cell.border = self.border
            self.row += 1
        self._blank()

    def words(self, block):
        self._full_row(f"{block.label} {block.text}", wrap=True, lines=2)
        self._blank()

    def note(self, block):
        self._full_row(f"{block.title}:", font=self.bold)
        self._full_row(block.text, wrap=True, lines=block.text.count("\n") + 1)
        self._blank()

    def signature(self, block):
        ws = self.ws
        box = max(1, (self.ncols * 2) // 5)
        right_start = max(self.ncols - box + 1, box + 1) if self.ncols > 1 else 1

        self._blank()
        ws.row_dimensions[self.row].height = max(block.reserved_height * PX, LINE_HEIGHT)
        if block.image_src:
            data = self.images.png(block.image_src)
            if data is not None:
                image = XLImage(io.BytesIO(data))
                scale = min(block.image_width / image.width, block.image_height / image.height)
                image.width, image.height = image.width * scale, image.height * scale
                ws.add_image(image, f"{get_column_letter(right_start)}{self.row}")
        self.row += 1

        top = Border(top=Side(style="thin", color=self.font.color))
        self._put(1, block.left_label, align="center").border = top
        if box > 1:
            ws.merge_cells(start_row=self.row, start_column=1, end_row=self.row, end_column=box)
        if right_start != 1:
            self._put(right_start, block.right_label, align="center").border = top
            if right_start < self.ncols:
                ws.merge_cells(start_row=self.row, start_column=right_start, end_row=self.row, end_column=self.ncols)
        self.row += 1

    def footer(self, block):
        ws = self.ws
        for footer in (ws.oddFooter, ws.evenFooter, ws.firstFooter):
            footer.left.text = block.left
            footer.left.size = 7
            footer.right.text = block.right
            footer.right.size = 7
        for footer in (ws.oddFooter, ws.evenFooter):
            footer.center.text = "Page &P of &N"
            footer.center.size = 8
        ws.HeaderFooter.differentFirst = True

    # ------------------------------------------------------------------
    # Sheet
    # ------------------------------------------------------------------
    def _page_setup(self):
        ws = self.ws
        for index, column in enumerate(self.columns, start=1):
            ws.column_dimensions[get_column_letter(index)].width = column.width

        ws.page_setup.paperSize = ws.PAPERSIZE_A4
        ws.page_setup.orientation = ws.ORIENTATION_PORTRAIT
        ws.page_setup.fitToWidth = 1
        ws.page_setup.fitToHeight = 0
        ws.sheet_properties.pageSetUpPr.fitToPage = True
        ws.page_margins.top = self.settings.top_margin / MM_PER_INCH
        ws.page_margins.bottom = self.settings.bottom_margin / MM_PER_INCH

        if self.header_row is not None:
            first = 1 if not self.document.blocks_of("header") else self.header_row
            ws.print_title_rows = f"{first}:{self.header_row}"

    def _pad(self):
        if not self.settings.pad_enabled:
            return
        data = self.images.png(self.settings.pad_image, self.settings.pad_opacity)
        if data is None:
            return
        image = XLImage(io.BytesIO(data))
        image.width, image.height = A4_WIDTH_PX, A4_HEIGHT_PX
        self.ws.add_image(image, "A1")

    def write(self):
        for block in self.document.blocks:
            getattr(self, block.kind)(block)
        self._page_setup()
        self._pad()


def render_xlsx(documents: Sequence[Document], images: ImageLoader | None = None) -> bytes:
    """Render documents into one workbook (one sheet per document)."""
    images = images or ImageLoader()
    workbook = Workbook()
    workbook.remove(workbook.active)

    used_titles: set = set()
    for document in documents:
        ws = workbook.create_sheet(title=_sheet_title(document.number, used_titles))
        _SheetWriter(ws, document, images).write()

    buffer = io.BytesIO()
    workbook.save(buffer)
    data = buffer.getvalue()
    logger.debug("Workbook composed: %d sheet(s), %d bytes", len(documents), len(data))
    return data
