"""Export module for writing the delivery sheet to CSV, PDF and Excel, and for share links."""

from .csv_export import export_csv, render_csv
from .excel import ExcelExporter, export_xlsx
from .pdf import PdfExporter, export_pdf
from .share import email_share_url, whatsapp_share_url

__all__ = [
    "ExcelExporter",
    "PdfExporter",
    "email_share_url",
    "export_csv",
    "export_pdf",
    "export_xlsx",
    "render_csv",
    "whatsapp_share_url",
]
