"""
Local persistence for the sheet.

``LocalStorage`` is a small string key-value store kept in one JSON file.
The sheet is saved under three keys: the delivery list and the cost list
(both JSON arrays) and the title (plain text). Corrupt saved data is
logged and treated as absent, never raised to the user.
"""

import json
import logging
import os
import tempfile
from dataclasses import replace
from pathlib import Path
from typing import Callable, Optional, TypeVar, Union

from delivery_sheet.models.records import CostRecord, DeliveryRecord, IdGenerator
from delivery_sheet.store import DEFAULT_TITLE, RecordStore

logger = logging.getLogger(__name__)

DELIVERIES_KEY = "spreadsheetDeliveryData"
COSTS_KEY = "spreadsheetCostsData"
TITLE_KEY = "spreadsheetTitle"

Record = TypeVar("Record", DeliveryRecord, CostRecord)


class LocalStorage:
    """String key-value storage backed by a JSON file."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path).expanduser()

    def _read(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.error(f"Could not read storage file {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.error(f"Storage file {self.path} does not hold an object, ignoring it")
            return {}
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _write(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=".storage-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(data, fh, ensure_ascii=False, indent=2)
            os.replace(tmp_path, self.path)
        except BaseException:
            Path(tmp_path).unlink(missing_ok=True)
            raise

    def get_item(self, key: str) -> Optional[str]:
        return self._read().get(key)

    def set_item(self, key: str, value: str) -> None:
        self.set_items({key: value})

    def set_items(self, items: dict[str, str]) -> None:
        """Write several keys with a single file replacement."""
        data = self._read()
        data.update(items)
        self._write(data)

    def remove_item(self, key: str) -> None:
        data = self._read()
        if data.pop(key, None) is not None:
            self._write(data)

    def clear(self) -> None:
        self._write({})


def save_state(storage: LocalStorage, store: RecordStore) -> None:
    """Write both collections and the title."""
    storage.set_items({
        DELIVERIES_KEY: json.dumps([r.to_dict() for r in store.deliveries], ensure_ascii=False),
        COSTS_KEY: json.dumps([r.to_dict() for r in store.costs], ensure_ascii=False),
        TITLE_KEY: store.title,
    })
    logger.debug(
        f"Saved {len(store.deliveries)} deliveries and {len(store.costs)} costs to {storage.path}"
    )


def _load_records(
    raw: Optional[str],
    factory: Callable[[dict], Record],
    label: str,
) -> list[Record]:
    if not raw:
        return []
    try:
        items = json.loads(raw)
        if not isinstance(items, list):
            raise TypeError(f"expected a list, got {type(items).__name__}")
        records = [factory(item) for item in items]
    except (json.JSONDecodeError, TypeError, ValueError, KeyError) as e:
        logger.error(f"Error loading saved {label}, starting empty: {e}")
        return []
    return records


def _dedupe_ids(records: list[Record], ids: IdGenerator, label: str) -> list[Record]:
    """Give fresh ids to records whose id was already seen."""
    seen: set[int] = set()
    result = []
    for record in records:
        if record.id in seen:
            new_id = ids.next_id()
            logger.warning(f"Duplicate {label} id {record.id} in saved data, reassigned to {new_id}")
            record = replace(record, id=new_id)
        seen.add(record.id)
        result.append(record)
    return result


def load_state(
    storage: LocalStorage,
    default_title: str = DEFAULT_TITLE,
    id_generator: Optional[IdGenerator] = None,
) -> RecordStore:
    """Rebuild the store from storage, falling back to an empty sheet."""
    deliveries = _load_records(storage.get_item(DELIVERIES_KEY), DeliveryRecord.from_dict, "deliveries")
    costs = _load_records(storage.get_item(COSTS_KEY), CostRecord.from_dict, "costs")
    title = storage.get_item(TITLE_KEY) or default_title

    ids = id_generator or IdGenerator()
    known_ids = [r.id for r in deliveries] + [r.id for r in costs]
    if known_ids:
        ids.seed(max(known_ids))
    deliveries = _dedupe_ids(deliveries, ids, "delivery")
    costs = _dedupe_ids(costs, ids, "cost")

    logger.info(f"Loaded {len(deliveries)} deliveries and {len(costs)} costs from {storage.path}")
    return RecordStore(deliveries=deliveries, costs=costs, title=title, id_generator=ids)
