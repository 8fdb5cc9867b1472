"""Totals and per-key breakdowns over the delivery and cost sheets."""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Callable, Iterable, Sequence, Union

from delivery_sheet.models.records import CostRecord, DeliveryRecord

UNSPECIFIED = "Não especificado"

AnyRecord = Union[DeliveryRecord, CostRecord]


@dataclass(frozen=True)
class BreakdownItem:
    label: str
    total: Decimal


def total_amount(records: Iterable[AnyRecord]) -> Decimal:
    """Sum of record totals; unparseable totals count as zero."""
    return sum((record.amount for record in records), Decimal("0"))


def breakdown(
    records: Iterable[AnyRecord],
    key: Union[str, Callable[[AnyRecord], str]],
) -> list[BreakdownItem]:
    """
    Sum totals per distinct key, largest first.

    Keys are trimmed and blank keys are grouped under "Não especificado".
    Equal totals keep the order in which their keys first appeared.
    """
    get_key = key if callable(key) else (lambda record: getattr(record, key))
    grouped: dict[str, Decimal] = {}
    for record in records:
        label = (get_key(record) or "").strip() or UNSPECIFIED
        grouped[label] = grouped.get(label, Decimal("0")) + record.amount

    items = [BreakdownItem(label=label, total=total) for label, total in grouped.items()]
    return sorted(items, key=lambda item: item.total, reverse=True)


def deliveries_by_destination(deliveries: Iterable[DeliveryRecord]) -> list[BreakdownItem]:
    return breakdown(deliveries, "destination")


def costs_by_category(costs: Iterable[CostRecord]) -> list[BreakdownItem]:
    return breakdown(costs, "description")


@dataclass(frozen=True)
class FinancialSummary:
    """Revenue, costs and the final result of the sheet."""
    deliveries_total: Decimal
    costs_total: Decimal
    by_destination: list[BreakdownItem] = field(default_factory=list)
    by_category: list[BreakdownItem] = field(default_factory=list)

    @property
    def final_result(self) -> Decimal:
        return self.deliveries_total - self.costs_total

    @property
    def is_profit(self) -> bool:
        return self.final_result >= 0

    @classmethod
    def from_records(
        cls,
        deliveries: Sequence[DeliveryRecord],
        costs: Sequence[CostRecord],
    ) -> "FinancialSummary":
        return cls(
            deliveries_total=total_amount(deliveries),
            costs_total=total_amount(costs),
            by_destination=deliveries_by_destination(deliveries),
            by_category=costs_by_category(costs),
        )
