"""
PDF report export with reportlab

Layout runs first and produces pages of positioned blocks; drawing happens
afterwards, once the page count is known, so every page can carry a
"Page X of Y" footer. Positions are millimetres from the top of the page.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from io import BytesIO
from pathlib import Path
from typing import List, Optional, Tuple

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.lib.utils import simpleSplit
from reportlab.pdfgen import canvas

from ..core.config import settings
from ..core.exceptions import ReportException
from .builder import COLUMNS, Report, ReportSection

logger = logging.getLogger(__name__)

LEFT_MM = 20
RIGHT_MM = 190
CENTER_MM = 105
TEXT_WIDTH_MM = RIGHT_MM - LEFT_MM
COLUMN_X_MM = (LEFT_MM, 80, 125, 178)
CELL_PADDING_MM = 2
CELL_FONT_SIZE = 9
CELL_LINE_MM = 4.5
CELL_BASELINE_MM = 5

HEADER_FILL = colors.Color(11 / 255, 111 / 255, 242 / 255)
STRIPE_FILL = colors.Color(0.95, 0.95, 0.95)
FLAG_COLOR = colors.Color(0.8, 0.1, 0.1)

FONT = "Helvetica"
FONT_BOLD = "Helvetica-Bold"


@dataclass
class TextBlock:
    y: float
    text: str
    x: float = LEFT_MM
    size: float = 10
    bold: bool = False
    centered: bool = False


@dataclass
class RuleBlock:
    y: float


@dataclass
class RowBlock:
    y: float
    cells: Tuple[Tuple[str, ...], ...]
    height: float
    header: bool = False
    striped: bool = False
    flagged: bool = False


@dataclass
class Page:
    blocks: list = field(default_factory=list)


def footer_text(page_number: int, page_count: int) -> str:
    return f"Page {page_number} of {page_count}"


def column_widths_mm() -> Tuple[float, ...]:
    edges = COLUMN_X_MM + (RIGHT_MM,)
    return tuple(right - left for left, right in zip(edges, edges[1:]))


def wrap_cells(cells, bold: bool = False) -> Tuple[Tuple[str, ...], ...]:
    """Split each cell into lines that fit its column; embedded newlines are kept"""
    font = FONT_BOLD if bold else FONT
    wrapped = []
    for text, width in zip(cells, column_widths_mm()):
        lines = simpleSplit(str(text), font, CELL_FONT_SIZE, (width - 2 * CELL_PADDING_MM) * mm)
        wrapped.append(tuple(lines) or ("",))
    return tuple(wrapped)


class ReportLayout:
    """Places report content on pages, breaking at the configured threshold"""

    def __init__(self, page_break_mm: Optional[float] = None, top_margin_mm: Optional[float] = None,
                 row_height_mm: Optional[float] = None):
        self.page_break = page_break_mm if page_break_mm is not None else settings.report_page_break_mm
        self.top_margin = top_margin_mm if top_margin_mm is not None else settings.report_top_margin_mm
        self.row_height = row_height_mm if row_height_mm is not None else settings.report_row_height_mm
        self.pages: List[Page] = [Page()]
        self.y = self.top_margin

    @property
    def page(self) -> Page:
        return self.pages[-1]

    def new_page(self):
        self.pages.append(Page())
        self.y = self.top_margin

    def ensure_room(self, height: float) -> bool:
        """Start a new page when the next block would pass the threshold"""
        if self.y + height > self.page_break:
            self.new_page()
            return True
        return False

    def add(self, block):
        self.page.blocks.append(block)

    def layout(self, report: Report) -> List[Page]:
        self._header(report)
        for section in report.sections:
            self._section(section)
        return self.pages

    def _header(self, report: Report):
        self.add(TextBlock(20, settings.lab_name, x=CENTER_MM, size=18, bold=True, centered=True))
        self.add(TextBlock(28, settings.report_title, x=CENTER_MM, size=12, centered=True))
        self.add(RuleBlock(32))
        self.add(TextBlock(40, f"Patient: {report.patient_name}"))
        self.add(TextBlock(46, f"DNI: {report.dni}"))
        self.add(TextBlock(52, f"Date: {report.date}"))
        self.add(TextBlock(58, f"Insurer: {report.insurer}"))
        self.y = 70

    def _section(self, section: ReportSection):
        # keep the title together with the table header and a first row
        self.ensure_room(8 + 2 * self.row_height)
        self.add(TextBlock(self.y, section.title, size=12, bold=True))
        self.y += 8

        self._row(COLUMNS, header=True)
        for index, row in enumerate(section.rows):
            cells = wrap_cells(row.cells(), bold=row.out_of_range)
            if self.ensure_room(self.cell_height(cells)):
                self._row(COLUMNS, header=True)
            self._row(row.cells(), striped=index % 2 == 1, flagged=row.out_of_range, cells=cells)
        self.y += 10

        if section.observations:
            self.ensure_room(6 + 5)
            self.add(TextBlock(self.y, "Observations:", bold=True))
            self.y += 6
            for line in simpleSplit(section.observations, FONT, 10, TEXT_WIDTH_MM * mm):
                self.ensure_room(5)
                self.add(TextBlock(self.y, line))
                self.y += 5
            self.y += 10

    def cell_height(self, cells: Tuple[Tuple[str, ...], ...]) -> float:
        """Row height for the tallest wrapped cell, never below the configured row height"""
        lines = max(len(cell) for cell in cells)
        return max(self.row_height, CELL_BASELINE_MM + (lines - 1) * CELL_LINE_MM + CELL_PADDING_MM)

    def _row(self, texts, header=False, striped=False, flagged=False, cells=None):
        cells = cells or wrap_cells(texts, bold=header or flagged)
        height = self.cell_height(cells)
        self.add(RowBlock(self.y, cells, height, header=header, striped=striped, flagged=flagged))
        self.y += height


class PDFReportRenderer:
    """Draws laid out pages onto a reportlab canvas"""

    def __init__(self, pagesize=A4):
        self.pagesize = pagesize
        self.width, self.height = pagesize

    def _y(self, y_mm: float) -> float:
        return self.height - y_mm * mm

    def render(self, report: Report, layout: Optional[ReportLayout] = None) -> bytes:
        layout = layout or ReportLayout()
        pages = layout.layout(report)

        buffer = BytesIO()
        pdf = canvas.Canvas(buffer, pagesize=self.pagesize)
        pdf.setTitle(f"{settings.report_title} - {report.patient_name}")
        for number, page in enumerate(pages, start=1):
            for block in page.blocks:
                if isinstance(block, TextBlock):
                    self._draw_text(pdf, block)
                elif isinstance(block, RuleBlock):
                    pdf.line(LEFT_MM * mm, self._y(block.y), RIGHT_MM * mm, self._y(block.y))
                elif isinstance(block, RowBlock):
                    self._draw_row(pdf, block)
            pdf.setFont(FONT, 8)
            pdf.setFillColor(colors.black)
            pdf.drawCentredString(CENTER_MM * mm, self._y(settings.report_footer_mm),
                                  footer_text(number, len(pages)))
            pdf.showPage()
        pdf.save()
        return buffer.getvalue()

    def _draw_text(self, pdf, block: TextBlock):
        pdf.setFillColor(colors.black)
        pdf.setFont(FONT_BOLD if block.bold else FONT, block.size)
        if block.centered:
            pdf.drawCentredString(block.x * mm, self._y(block.y), block.text)
        else:
            pdf.drawString(block.x * mm, self._y(block.y), block.text)

    def _draw_row(self, pdf, block: RowBlock):
        fill = HEADER_FILL if block.header else STRIPE_FILL if block.striped else None
        if fill is not None:
            pdf.setFillColor(fill)
            pdf.rect(LEFT_MM * mm, self._y(block.y + block.height), TEXT_WIDTH_MM * mm,
                     block.height * mm, stroke=0, fill=1)

        if block.header:
            pdf.setFillColor(colors.white)
        elif block.flagged:
            pdf.setFillColor(FLAG_COLOR)
        else:
            pdf.setFillColor(colors.black)
        pdf.setFont(FONT_BOLD if block.header or block.flagged else FONT, CELL_FONT_SIZE)
        for x_mm, lines in zip(COLUMN_X_MM, block.cells):
            for number, line in enumerate(lines):
                baseline = self._y(block.y + CELL_BASELINE_MM + number * CELL_LINE_MM)
                pdf.drawString((x_mm + CELL_PADDING_MM) * mm, baseline, line)


def report_filename(report: Report, when: Optional[datetime] = None) -> str:
    when = when or datetime.now()
    return f"report-{report.dni}-{int(when.timestamp() * 1000)}.pdf"


def export_pdf(report: Report, directory: Optional[Path] = None) -> Path:
    """Write the report PDF and return its path"""
    directory = Path(directory) if directory else settings.create_report_directory()
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / report_filename(report)
    try:
        path.write_bytes(PDFReportRenderer().render(report))
    except OSError as e:
        raise ReportException(f"Could not write {path}: {e}") from e
    logger.info(f"Exported report for {report.dni} to {path}")
    return path
