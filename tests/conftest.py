import asyncio
from dataclasses import replace
from decimal import Decimal
from typing import Callable, Dict, List, Optional

import pytest

from parts_scanner.api import ApiResult, LocationUpdate, StockAdjustment
from parts_scanner.parts import PartLocation, PartRecord
from parts_scanner.session import CameraUnavailable, ScanSession


def make_part(part_id: int = 1, part_number: str = "PART-2025-001", **overrides) -> PartRecord:
    fields = dict(
        id=part_id,
        part_number=part_number,
        part_name=f"Brake Pad Set {part_id}",
        quantity_on_hand=10,
        quantity_reserved=2,
        minimum_stock_level=5,
        location=PartLocation("Main", "A", "R1", "B1"),
        unit_cost=Decimal("450.00"),
        selling_price=Decimal("799.50"),
        currency="PHP",
        status="active",
    )
    fields.update(overrides)
    return PartRecord(**fields)


class FakeTones:
    def __init__(self):
        self.success_count = 0
        self.error_count = 0

    def success(self) -> None:
        self.success_count += 1

    def error(self) -> None:
        self.error_count += 1


class FakeService:
    """In-memory inventory service; ``hold`` pauses a call until its event is set."""

    def __init__(self):
        self.parts_by_code: Dict[str, int] = {}
        self.parts: Dict[int, PartRecord] = {}
        self.lookup_calls: List[str] = []
        self.update_calls: List[tuple] = []
        self.gates: Dict[str, asyncio.Event] = {}
        self.update_gate: Optional[asyncio.Event] = None
        self.lookup_override: Optional[Callable[[str], ApiResult]] = None
        self.update_override: Optional[Callable[[int, object], ApiResult]] = None

    def add(self, code: str, part: PartRecord) -> PartRecord:
        self.parts_by_code[code] = part.id
        self.parts[part.id] = part
        return part

    def hold(self, code: str) -> asyncio.Event:
        gate = asyncio.Event()
        self.gates[code] = gate
        return gate

    def hold_updates(self) -> asyncio.Event:
        self.update_gate = asyncio.Event()
        return self.update_gate

    async def lookup(self, code: str) -> ApiResult:
        self.lookup_calls.append(code)
        gate = self.gates.get(code)
        if gate is not None:
            await gate.wait()
        if self.lookup_override is not None:
            return self.lookup_override(code)
        part_id = self.parts_by_code.get(code)
        if part_id is None:
            return ApiResult.failure("Part not found")
        return ApiResult.success(self.parts[part_id])

    async def quick_update(self, part_id: int, change) -> ApiResult:
        self.update_calls.append((part_id, change))
        if self.update_gate is not None:
            await self.update_gate.wait()
        if self.update_override is not None:
            return self.update_override(part_id, change)
        part = self.parts[part_id]
        if isinstance(change, StockAdjustment):
            new_quantity = part.quantity_on_hand + change.quantity_change
            if new_quantity < 0:
                return ApiResult.failure(f"Insufficient stock. Current quantity: {part.quantity_on_hand}")
            updated = replace(part, quantity_on_hand=new_quantity)
        elif isinstance(change, LocationUpdate):
            updated = replace(
                part,
                location=PartLocation(
                    change.warehouse_location or None,
                    change.aisle or None,
                    change.rack or None,
                    change.bin or None,
                ),
            )
        else:
            raise AssertionError(f"unexpected change {change!r}")
        self.parts[part_id] = updated
        return ApiResult.success(updated)


class FakeCamera:
    def __init__(self, fail_with: Optional[str] = None):
        self.fail_with = fail_with
        self.start_count = 0
        self.stop_count = 0
        self.on_decoded = None
        self.on_error = None

    def start(self, on_decoded, on_error) -> None:
        self.start_count += 1
        if self.fail_with is not None:
            raise CameraUnavailable(self.fail_with)
        self.on_decoded = on_decoded
        self.on_error = on_error

    def stop(self) -> None:
        self.stop_count += 1

    def decode(self, text: str):
        return self.on_decoded(text)

    def fail(self, message: str) -> None:
        self.on_error(message)


class CameraFactory:
    def __init__(self):
        self.cameras: List[FakeCamera] = []
        self.fail_with: Optional[str] = None

    def __call__(self) -> FakeCamera:
        camera = FakeCamera(self.fail_with)
        self.cameras.append(camera)
        return camera

    @property
    def last(self) -> FakeCamera:
        return self.cameras[-1]


@pytest.fixture
def service() -> FakeService:
    svc = FakeService()
    svc.add("A", make_part(1, "PART-A", quantity_on_hand=10))
    svc.add("B", make_part(2, "PART-B", quantity_on_hand=3))
    return svc


@pytest.fixture
def tones() -> FakeTones:
    return FakeTones()


@pytest.fixture
def cameras() -> CameraFactory:
    return CameraFactory()


@pytest.fixture
def session(service, tones, cameras) -> ScanSession:
    scan_session = ScanSession(service, tones, camera_factory=cameras)
    yield scan_session
    scan_session.close()
