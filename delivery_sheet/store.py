"""
In-memory record store for the delivery and cost sheets.

Every mutation replaces the whole collection with a new tuple, so callers
holding an earlier view never see it change. Persisting is the caller's
job: call ``delivery_sheet.storage.save_state`` after each mutation.
"""

import logging
from dataclasses import replace
from typing import Iterable, Optional, Sequence, TypeVar, Union

from delivery_sheet.formatting import format_date
from delivery_sheet.models.records import (
    CostRecord,
    DeliveryRecord,
    ExtractedDelivery,
    IdGenerator,
    record_field_names,
)

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Planilha de Entregas"

DELIVERY_FIELDS = record_field_names(DeliveryRecord)
COST_FIELDS = record_field_names(CostRecord)

Record = TypeVar("Record", DeliveryRecord, CostRecord)


class RecordStore:
    """
    Owns the delivery list, the cost list and the sheet title.

    Attributes:
        revision: Incremented by every mutation; lets the UI tell when
            state needs saving.
    """

    def __init__(
        self,
        deliveries: Iterable[DeliveryRecord] = (),
        costs: Iterable[CostRecord] = (),
        title: str = DEFAULT_TITLE,
        id_generator: Optional[IdGenerator] = None,
    ):
        self._deliveries: tuple[DeliveryRecord, ...] = tuple(deliveries)
        self._costs: tuple[CostRecord, ...] = tuple(costs)
        self._title = title
        self._ids = id_generator or IdGenerator()
        known_ids = [r.id for r in self._deliveries] + [r.id for r in self._costs]
        if known_ids:
            self._ids.seed(max(known_ids))
        self.revision = 0

    @property
    def deliveries(self) -> tuple[DeliveryRecord, ...]:
        return self._deliveries

    @property
    def costs(self) -> tuple[CostRecord, ...]:
        return self._costs

    @property
    def title(self) -> str:
        return self._title

    @property
    def is_empty(self) -> bool:
        return not self._deliveries and not self._costs

    def _touch(self) -> None:
        self.revision += 1

    # Deliveries

    def add_delivery(
        self,
        date: str,
        collection: str = "",
        destination: str = "",
        total: Union[str, int, float] = "0",
        observation: str = "",
    ) -> DeliveryRecord:
        """Append a manually entered delivery."""
        record = DeliveryRecord(
            id=self._ids.next_id(),
            date=format_date(date),
            collection=collection,
            destination=destination,
            total=str(total).strip() or "0",
            observation=observation or "",
        )
        self._deliveries = (*self._deliveries, record)
        self._touch()
        logger.debug(f"Added delivery {record.id}")
        return record

    def add_extracted(self, rows: Sequence[ExtractedDelivery]) -> list[DeliveryRecord]:
        """Append a batch of AI-extracted rows in a single replacement."""
        if not rows:
            return []
        ids = self._ids.next_ids(len(rows))
        records = [
            DeliveryRecord(
                id=record_id,
                date=format_date(row.date),
                collection=row.collection,
                destination=row.destination,
                total=row.total,
                observation=row.observation,
            )
            for record_id, row in zip(ids, rows)
        ]
        self._deliveries = (*self._deliveries, *records)
        self._touch()
        logger.info(f"Appended {len(records)} extracted deliveries")
        return records

    def update_delivery(self, record_id: int, **changes) -> Optional[DeliveryRecord]:
        """Update one or more fields of a delivery. Returns None for unknown ids."""
        self._deliveries, updated = _update(self._deliveries, record_id, changes, DELIVERY_FIELDS)
        if updated is not None:
            self._touch()
        return updated

    def delete_delivery(self, record_id: int) -> bool:
        self._deliveries, removed = _delete(self._deliveries, record_id)
        if removed:
            self._touch()
        return removed

    def clear_deliveries(self) -> None:
        self._deliveries = ()
        self._touch()

    # Costs

    def add_cost(
        self,
        date: str,
        description: str = "",
        total: Union[str, int, float] = "0",
        observation: Optional[str] = None,
    ) -> CostRecord:
        """Append a cost line item."""
        record = CostRecord(
            id=self._ids.next_id(),
            date=format_date(date),
            description=description,
            total=str(total).strip() or "0",
            observation=observation or "",
        )
        self._costs = (*self._costs, record)
        self._touch()
        logger.debug(f"Added cost {record.id}")
        return record

    def update_cost(self, record_id: int, **changes) -> Optional[CostRecord]:
        self._costs, updated = _update(self._costs, record_id, changes, COST_FIELDS)
        if updated is not None:
            self._touch()
        return updated

    def delete_cost(self, record_id: int) -> bool:
        self._costs, removed = _delete(self._costs, record_id)
        if removed:
            self._touch()
        return removed

    def clear_costs(self) -> None:
        self._costs = ()
        self._touch()

    # Title

    def set_title(self, title: str) -> bool:
        """Rename the sheet. Blank titles are ignored and return False."""
        title = (title or "").strip()
        if not title:
            return False
        if title != self._title:
            self._title = title
            self._touch()
        return True


def _update(
    records: tuple[Record, ...],
    record_id: int,
    changes: dict,
    allowed: frozenset[str],
) -> tuple[tuple[Record, ...], Optional[Record]]:
    unknown = set(changes) - allowed
    if unknown:
        raise ValueError(f"Cannot update field(s): {', '.join(sorted(unknown))}")
    changes = {key: "" if value is None else str(value) for key, value in changes.items()}

    updated = None
    result = []
    for record in records:
        if record.id == record_id:
            record = replace(record, **changes)
            updated = record
        result.append(record)

    if updated is None:
        logger.debug(f"Update ignored, no record with id {record_id}")
        return records, None
    return tuple(result), updated


def _delete(records: tuple[Record, ...], record_id: int) -> tuple[tuple[Record, ...], bool]:
    remaining = tuple(r for r in records if r.id != record_id)
    return remaining, len(remaining) != len(records)
