"""
Delivery Sheet - Delivery and cost tracking spreadsheet with AI receipt extraction.

This package provides functionality for:
- Manual and AI-assisted entry of delivery records
- Cost tracking and financial summaries
- Local persistence of the sheet
- CSV, PDF and Excel export plus WhatsApp/e-mail sharing
"""

__version__ = "0.1.0"
__author__ = "Delivery Sheet"
