"""
PDF export of the delivery sheet.

Draws a paginated grid table with PyMuPDF: the title on the first page,
the column headers repeated on every page, wrapped cell text and a
"Total Geral" footer after the last row.
"""

import logging
from pathlib import Path
from typing import Optional, Sequence, Union

import fitz  # PyMuPDF

from delivery_sheet.export.paths import export_path
from delivery_sheet.formatting import format_currency
from delivery_sheet.models.records import DeliveryRecord
from delivery_sheet.summary import total_amount

logger = logging.getLogger(__name__)

HEADERS = ["Data", "Coleta", "Destino", "Total", "Observacao"]
COLUMN_WIDTHS = [50, 140, 140, 75, 110]  # points, 515 in total

PAGE_WIDTH, PAGE_HEIGHT = fitz.paper_size("a4")
MARGIN = 40
TITLE_FONT_SIZE = 18
FONT_SIZE = 9
LINE_HEIGHT = 11
CELL_PADDING = 4
FOOTER_FONT_SIZE = 12

REGULAR_FONT = "helv"
BOLD_FONT = "hebo"

HEADER_FILL = (44 / 255, 62 / 255, 80 / 255)  # dark blue-gray
ALT_ROW_FILL = (245 / 255, 245 / 255, 245 / 255)
GRID_COLOR = (0.8, 0.8, 0.8)
WHITE = (1, 1, 1)
BLACK = (0, 0, 0)


def _text_width(text: str, fontname: str = REGULAR_FONT, fontsize: float = FONT_SIZE) -> float:
    return fitz.get_text_length(text, fontname=fontname, fontsize=fontsize)


def _split_word(word: str, width: float, fontname: str) -> list[str]:
    """Hard-break a word that is wider than the cell."""
    pieces, current = [], ""
    for char in word:
        if current and _text_width(current + char, fontname) > width:
            pieces.append(current)
            current = char
        else:
            current += char
    pieces.append(current)
    return pieces


def wrap_text(text: str, width: float, fontname: str = REGULAR_FONT) -> list[str]:
    """Greedy word wrap to ``width`` points; always returns at least one line."""
    lines: list[str] = []
    for paragraph in (text or "").splitlines() or [""]:
        current = ""
        for word in paragraph.split():
            candidate = f"{current} {word}" if current else word
            if _text_width(candidate, fontname) <= width:
                current = candidate
                continue
            if current:
                lines.append(current)
            pieces = _split_word(word, width, fontname)
            lines.extend(pieces[:-1])
            current = pieces[-1]
        lines.append(current)
    return lines or [""]


def _row_height(cells: list[list[str]]) -> float:
    return max(len(lines) for lines in cells) * LINE_HEIGHT + 2 * CELL_PADDING


def split_row(cells: list[list[str]], max_lines: int) -> list[list[list[str]]]:
    """Cut a row into pieces of at most ``max_lines`` text lines each."""
    tallest = max(len(lines) for lines in cells)
    return [
        [lines[start:start + max_lines] or [""] for lines in cells]
        for start in range(0, tallest, max_lines)
    ]


class PdfExporter:
    """Renders the delivery sheet as an A4 table document."""

    def __init__(self):
        self.table_width = sum(COLUMN_WIDTHS)
        self.bottom = PAGE_HEIGHT - MARGIN
        # Most text lines one row can hold below the header of a fresh page
        header_height = _row_height(self._header_cells())
        self.max_row_lines = int(
            (self.bottom - MARGIN - header_height - 2 * CELL_PADDING) // LINE_HEIGHT
        )

    def _new_page(self, doc: fitz.Document) -> fitz.Page:
        return doc.new_page(width=PAGE_WIDTH, height=PAGE_HEIGHT)

    def _draw_row(
        self,
        page: fitz.Page,
        y: float,
        cells: list[list[str]],
        fill: Optional[tuple],
        fontname: str = REGULAR_FONT,
        color: tuple = BLACK,
    ) -> float:
        """Draw one table row at ``y``; returns the y below it."""
        height = _row_height(cells)
        x = MARGIN
        for width, lines in zip(COLUMN_WIDTHS, cells):
            rect = fitz.Rect(x, y, x + width, y + height)
            page.draw_rect(rect, color=GRID_COLOR, fill=fill, width=0.5)
            baseline = y + CELL_PADDING + FONT_SIZE
            for line in lines:
                page.insert_text(
                    (x + CELL_PADDING, baseline),
                    line,
                    fontname=fontname,
                    fontsize=FONT_SIZE,
                    color=color,
                )
                baseline += LINE_HEIGHT
            x += width
        return y + height

    @staticmethod
    def _header_cells() -> list[list[str]]:
        return [
            wrap_text(header, width - 2 * CELL_PADDING, BOLD_FONT)
            for header, width in zip(HEADERS, COLUMN_WIDTHS)
        ]

    def _draw_header(self, page: fitz.Page, y: float) -> float:
        return self._draw_row(
            page, y, self._header_cells(), HEADER_FILL, fontname=BOLD_FONT, color=WHITE
        )

    def _row_cells(self, record: DeliveryRecord) -> list[list[str]]:
        values = [
            record.date or "",
            record.collection or "",
            record.destination or "",
            format_currency(record.total),
            record.observation or "",
        ]
        return [
            wrap_text(value, width - 2 * CELL_PADDING)
            for value, width in zip(values, COLUMN_WIDTHS)
        ]

    def render(self, records: Sequence[DeliveryRecord], title: str) -> bytes:
        """Render the document and return the PDF bytes."""
        doc = fitz.open()
        doc.set_metadata({"title": title})

        page = self._new_page(doc)
        page.insert_text(
            (MARGIN, 62),
            title,
            fontname=REGULAR_FONT,
            fontsize=TITLE_FONT_SIZE,
            color=BLACK,
        )
        y = self._draw_header(page, 85)

        for index, record in enumerate(records):
            fill = ALT_ROW_FILL if index % 2 == 1 else None
            # Rows taller than a page continue on the next one
            for piece in split_row(self._row_cells(record), self.max_row_lines):
                if y + _row_height(piece) > self.bottom:
                    page = self._new_page(doc)
                    y = self._draw_header(page, MARGIN)
                y = self._draw_row(page, y, piece, fill)

        # Footer with the grand total
        y += 10 + FOOTER_FONT_SIZE
        if y > self.bottom:
            page = self._new_page(doc)
            y = MARGIN + FOOTER_FONT_SIZE
        total_text = format_currency(total_amount(records))
        page.insert_text((MARGIN, y), "Total Geral:", fontname=BOLD_FONT, fontsize=FOOTER_FONT_SIZE)
        right_x = MARGIN + self.table_width - _text_width(total_text, BOLD_FONT, FOOTER_FONT_SIZE)
        page.insert_text((right_x, y), total_text, fontname=BOLD_FONT, fontsize=FOOTER_FONT_SIZE)

        data = doc.tobytes()
        page_count = doc.page_count
        doc.close()
        logger.debug(f"Rendered {len(records)} rows on {page_count} page(s)")
        return data

    def export(
        self,
        records: Sequence[DeliveryRecord],
        title: str,
        directory: Optional[Union[str, Path]] = None,
    ) -> Optional[Path]:
        """
        Write ``<slug>.pdf`` into ``directory``.

        Returns:
            Path to the file, or None when there is nothing to export
        """
        if not records:
            logger.info("No deliveries to export, skipping PDF")
            return None

        file_path = export_path(directory, title, "pdf")
        file_path.write_bytes(self.render(records, title))
        logger.info(f"Exported {len(records)} rows to {file_path}")
        return file_path


def export_pdf(
    records: Sequence[DeliveryRecord],
    title: str,
    directory: Optional[Union[str, Path]] = None,
) -> Optional[Path]:
    """Convenience function to export the delivery sheet as PDF."""
    return PdfExporter().export(records, title, directory)
