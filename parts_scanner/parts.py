import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 10


class PartStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    DISCONTINUED = "discontinued"
    OUT_OF_STOCK = "out_of_stock"
    ON_ORDER = "on_order"


LOCATION_FIELDS = ("warehouse_location", "aisle", "rack", "bin")

LOCATION_EXAMPLES = {
    "warehouse_location": "e.g., Main",
    "aisle": "e.g., A",
    "rack": "e.g., R1",
    "bin": "e.g., B1",
}


def _optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _to_int(value: Any) -> int:
    if value is None or value == "":
        return 0
    return int(value)


def _to_decimal(value: Any) -> Decimal:
    if value is None or value == "":
        return Decimal("0")
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"Invalid decimal value: {value!r}") from exc


@dataclass(frozen=True)
class PartLocation:
    warehouse_location: Optional[str] = None
    aisle: Optional[str] = None
    rack: Optional[str] = None
    bin: Optional[str] = None

    def parts(self) -> List[str]:
        return [p for p in (self.warehouse_location, self.aisle, self.rack, self.bin) if p]

    def display(self) -> str:
        return " / ".join(self.parts())

    def is_empty(self) -> bool:
        return not self.parts()


@dataclass(frozen=True)
class PartRecord:
    """
    A part as last reported by the inventory service.

    Records are replaced wholesale by every lookup or quick-update response;
    nothing here is recomputed locally and sent back.
    """

    id: int
    part_number: str
    part_name: str
    quantity_on_hand: int = 0
    quantity_reserved: int = 0
    minimum_stock_level: int = 0
    location: PartLocation = field(default_factory=PartLocation)
    unit_cost: Decimal = Decimal("0")
    selling_price: Decimal = Decimal("0")
    currency: str = "PHP"
    status: str = PartStatus.ACTIVE.value
    manufacturer: Optional[str] = None
    barcode: Optional[str] = None
    sku: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "PartRecord":
        if "id" not in payload:
            raise KeyError("id")
        return cls(
            id=int(payload["id"]),
            part_number=str(payload.get("part_number") or ""),
            part_name=str(payload.get("part_name") or ""),
            quantity_on_hand=_to_int(payload.get("quantity_on_hand")),
            quantity_reserved=_to_int(payload.get("quantity_reserved")),
            minimum_stock_level=_to_int(payload.get("minimum_stock_level")),
            location=PartLocation(
                warehouse_location=_optional_str(payload.get("warehouse_location")),
                aisle=_optional_str(payload.get("aisle")),
                rack=_optional_str(payload.get("rack")),
                bin=_optional_str(payload.get("bin")),
            ),
            unit_cost=_to_decimal(payload.get("unit_cost")),
            selling_price=_to_decimal(payload.get("selling_price")),
            currency=str(payload.get("currency") or "PHP"),
            status=str(payload.get("status") or PartStatus.ACTIVE.value),
            manufacturer=_optional_str(payload.get("manufacturer")),
            barcode=_optional_str(payload.get("barcode")),
            sku=_optional_str(payload.get("sku")),
            raw=dict(payload),
        )

    @property
    def quantity_available(self) -> int:
        # display only
        return self.quantity_on_hand - self.quantity_reserved

    @property
    def label_code(self) -> str:
        return self.part_number or self.barcode or self.sku or str(self.id)

    def format_price(self, amount: Decimal) -> str:
        return f"{self.currency} {amount.quantize(Decimal('0.01'))}"


@dataclass(frozen=True)
class ScanHistoryEntry:
    code: str
    part: PartRecord
    timestamp: datetime


class ScanHistory:
    """Most-recent-first list of successful lookups, capped at ``limit``."""

    def __init__(self, limit: int = HISTORY_LIMIT):
        if limit < 1:
            raise ValueError("history limit must be at least 1")
        self.limit = limit
        self._entries: deque = deque(maxlen=limit)

    def push(self, code: str, part: PartRecord, timestamp: Optional[datetime] = None) -> ScanHistoryEntry:
        entry = ScanHistoryEntry(code=code, part=part, timestamp=timestamp or datetime.now())
        self._entries.appendleft(entry)
        return entry

    def entries(self) -> List[ScanHistoryEntry]:
        return list(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[ScanHistoryEntry]:
        return iter(list(self._entries))

    def __getitem__(self, index: int) -> ScanHistoryEntry:
        return self._entries[index]


@dataclass(frozen=True)
class Badge:
    label: str
    background: str
    foreground: str
    icon: str


OUT_OF_STOCK_BADGE = Badge("Out of Stock", "#fee2e2", "#991b1b", "alert-circle")
LOW_STOCK_BADGE = Badge("Low Stock", "#fef9c3", "#854d0e", "trending-down")
IN_STOCK_BADGE = Badge("In Stock", "#dcfce7", "#166534", "check-circle")

_STATUS_STYLES = {
    PartStatus.ACTIVE.value: ("#dcfce7", "#166534", "check-circle"),
    PartStatus.INACTIVE.value: ("#f3f4f6", "#1f2937", "x-circle"),
    PartStatus.DISCONTINUED.value: ("#fee2e2", "#991b1b", "alert-circle"),
    PartStatus.OUT_OF_STOCK.value: ("#ffedd5", "#9a3412", "alert-circle"),
    PartStatus.ON_ORDER.value: ("#dbeafe", "#1e40af", "trending-down"),
}


def stock_badge(part: PartRecord) -> Badge:
    if part.quantity_on_hand <= 0:
        return OUT_OF_STOCK_BADGE
    if part.quantity_on_hand <= part.minimum_stock_level:
        return LOW_STOCK_BADGE
    return IN_STOCK_BADGE


def status_badge(status: str) -> Badge:
    background, foreground, icon = _STATUS_STYLES.get(status, _STATUS_STYLES[PartStatus.ACTIVE.value])
    return Badge(status.replace("_", " ").upper(), background, foreground, icon)


def location_placeholders(part: Optional[PartRecord]) -> Dict[str, str]:
    """Placeholder text for the location editor: the part's current values, else examples."""
    placeholders = dict(LOCATION_EXAMPLES)
    if part is None:
        return placeholders
    for name in LOCATION_FIELDS:
        current = getattr(part.location, name)
        if current:
            placeholders[name] = current
    return placeholders
