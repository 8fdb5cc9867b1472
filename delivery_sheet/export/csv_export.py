"""
CSV export of the delivery sheet.

Every data field is double-quoted (quotes doubled inside); the header is
written bare. The grand total is not part of the file.
"""

import logging
from pathlib import Path
from typing import Optional, Sequence, Union

from delivery_sheet.export.paths import export_path
from delivery_sheet.models.records import DeliveryRecord

logger = logging.getLogger(__name__)

HEADERS = ["Data", "Coleta", "Destino", "Total", "Observacao"]


def _quote(value: Optional[str]) -> str:
    return '"' + (value or "").replace('"', '""') + '"'


def render_csv(records: Sequence[DeliveryRecord]) -> str:
    """Render deliveries as CSV text, one row per record in sheet order."""
    lines = [",".join(HEADERS)]
    for record in records:
        values = [
            record.date,
            record.collection,
            record.destination,
            record.total,
            record.observation,
        ]
        lines.append(",".join(_quote(value) for value in values))
    return "\n".join(lines)


def export_csv(
    records: Sequence[DeliveryRecord],
    title: str,
    directory: Optional[Union[str, Path]] = None,
) -> Optional[Path]:
    """
    Write ``<slug>.csv`` into ``directory``.

    Returns:
        Path to the file, or None when there is nothing to export
    """
    if not records:
        logger.info("No deliveries to export, skipping CSV")
        return None

    file_path = export_path(directory, title, "csv")
    file_path.write_text(render_csv(records), encoding="utf-8")
    logger.info(f"Exported {len(records)} rows to {file_path}")
    return file_path
