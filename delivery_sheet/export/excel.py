"""
Excel export module for the delivery sheet.

Handles:
- Writing deliveries to an .xlsx workbook
- BRL currency formatting on a numeric Total column
- A bold grand-total row after the data
"""

import logging
from io import BytesIO
from pathlib import Path
from typing import Optional, Sequence, Union

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side

from delivery_sheet.config import get_config
from delivery_sheet.export.paths import export_path
from delivery_sheet.models.records import DeliveryRecord
from delivery_sheet.summary import total_amount

logger = logging.getLogger(__name__)

SHEET_TITLE = "Entregas"
TOTAL_LABEL = "Total Geral"


class ExcelExporter:
    """
    Exports the delivery sheet to Excel files.

    Features:
    - BRL currency formatting (R$ #,##0.00)
    - One row per delivery, in sheet order
    - Appended grand-total row
    """

    # Column headers for the export
    HEADERS = ["Data", "Coleta", "Destino", "Total", "Observação"]

    # Column widths
    COLUMN_WIDTHS = {
        "A": 12,  # Data
        "B": 40,  # Coleta
        "C": 40,  # Destino
        "D": 15,  # Total
        "E": 50,  # Observação
    }

    TOTAL_COLUMN = 4

    def __init__(self, currency_format: Optional[str] = None):
        """Initialize the Excel exporter."""
        self.currency_format = currency_format or get_config().excel_currency_format
        self._setup_styles()

    def _setup_styles(self):
        """Set up Excel styles for formatting."""
        # Header style
        self.header_font = Font(bold=True, color="FFFFFF")
        self.header_fill = PatternFill(start_color="2C3E50", end_color="2C3E50", fill_type="solid")
        self.header_alignment = Alignment(horizontal="center", vertical="center", wrap_text=True)

        self.total_font = Font(bold=True)

        # Border style
        thin_border = Side(style="thin", color="CCCCCC")
        self.cell_border = Border(
            left=thin_border,
            right=thin_border,
            top=thin_border,
            bottom=thin_border,
        )

        # Alternating row colors
        self.even_row_fill = PatternFill(start_color="F5F5F5", end_color="F5F5F5", fill_type="solid")

    def build_workbook(self, records: Sequence[DeliveryRecord]) -> Workbook:
        """Build the workbook in memory."""
        wb = Workbook()
        ws = wb.active
        ws.title = SHEET_TITLE
        self._write_headers(ws)

        for row_num, record in enumerate(records, start=2):
            self._write_row(ws, row_num, record)
            if row_num % 2 == 0:
                for col in range(1, len(self.HEADERS) + 1):
                    ws.cell(row=row_num, column=col).fill = self.even_row_fill

        self._write_total(ws, len(records) + 2, records)

        for col_letter, width in self.COLUMN_WIDTHS.items():
            ws.column_dimensions[col_letter].width = width

        return wb

    def _write_headers(self, ws):
        """Write header row with formatting."""
        for col, header in enumerate(self.HEADERS, start=1):
            cell = ws.cell(row=1, column=col, value=header)
            cell.font = self.header_font
            cell.fill = self.header_fill
            cell.alignment = self.header_alignment
            cell.border = self.cell_border

        # Freeze header row
        ws.freeze_panes = "A2"

    def _write_row(self, ws, row_num: int, record: DeliveryRecord):
        """Write a single delivery row."""
        values = [
            record.date,
            record.collection,
            record.destination,
            float(record.amount),
            record.observation,
        ]
        for col, value in enumerate(values, start=1):
            cell = ws.cell(row=row_num, column=col, value=value)
            cell.border = self.cell_border
            if col == self.TOTAL_COLUMN:
                cell.number_format = self.currency_format

    def _write_total(self, ws, row_num: int, records: Sequence[DeliveryRecord]):
        """Write the grand-total row."""
        label = ws.cell(row=row_num, column=self.TOTAL_COLUMN - 1, value=TOTAL_LABEL)
        label.font = self.total_font

        total = ws.cell(row=row_num, column=self.TOTAL_COLUMN, value=float(total_amount(records)))
        total.font = self.total_font
        total.number_format = self.currency_format

    def to_bytes(self, records: Sequence[DeliveryRecord]) -> bytes:
        """Render the workbook to .xlsx bytes (for downloads)."""
        buffer = BytesIO()
        self.build_workbook(records).save(buffer)
        return buffer.getvalue()

    def export(
        self,
        records: Sequence[DeliveryRecord],
        title: str,
        directory: Optional[Union[str, Path]] = None,
    ) -> Optional[Path]:
        """
        Export deliveries to ``<slug>.xlsx`` in ``directory``.

        Args:
            records: Deliveries in sheet order
            title: Sheet title, used for the file name
            directory: Output directory, the configured export folder when omitted

        Returns:
            Path to the exported file, or None when there is nothing to export
        """
        if not records:
            logger.info("No deliveries to export, skipping Excel")
            return None

        file_path = export_path(directory, title, "xlsx")
        self.build_workbook(records).save(file_path)
        logger.info(f"Exported {len(records)} rows to {file_path}")

        return file_path


def export_xlsx(
    records: Sequence[DeliveryRecord],
    title: str,
    directory: Optional[Union[str, Path]] = None,
) -> Optional[Path]:
    """
    Convenience function to export the delivery sheet.

    Args:
        records: Deliveries in sheet order
        title: Sheet title
        directory: Output directory, the configured export folder when omitted

    Returns:
        Path to exported file
    """
    exporter = ExcelExporter()
    return exporter.export(records, title, directory)
