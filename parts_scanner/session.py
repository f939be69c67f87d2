import asyncio
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Protocol, Set

from .api import ApiResult, LocationUpdate, QuickUpdate, StockAdjustment
from .parts import HISTORY_LIMIT, LOCATION_FIELDS, PartRecord, ScanHistory, ScanHistoryEntry

logger = logging.getLogger(__name__)

PRESET_DELTAS = (-10, -1, 1, 10)

CAMERA_START_FAILED = "Failed to start camera. Please ensure camera permissions are granted."


class CameraUnavailable(Exception):
    """Camera permission denied, device missing, or device failure."""


class PartsService(Protocol):
    async def lookup(self, code: str) -> ApiResult: ...

    async def quick_update(self, part_id: int, change: QuickUpdate) -> ApiResult: ...


class Tones(Protocol):
    def success(self) -> None: ...

    def error(self) -> None: ...


class CameraDecoder(Protocol):
    def start(self, on_decoded: Callable[[str], None], on_error: Callable[[str], None]) -> None: ...

    def stop(self) -> None: ...


class InputMode(str, Enum):
    IDLE = "idle"
    MANUAL = "manual"
    CAMERA = "camera"


class LookupState(str, Enum):
    NO_PART = "no_part"
    RESOLVING = "resolving"
    RESOLVED = "resolved"
    NOT_FOUND = "not_found"
    FAILED = "failed"


class Panel(str, Enum):
    STOCK_ADJUST = "stock_adjust"
    LOCATION_EDIT = "location_edit"


@dataclass(frozen=True)
class Banner:
    kind: str
    text: str

    @classmethod
    def success(cls, text: str) -> "Banner":
        return cls("success", text)

    @classmethod
    def error(cls, text: str) -> "Banner":
        return cls("error", text)

    @property
    def is_error(self) -> bool:
        return self.kind == "error"


@dataclass
class PendingAdjustment:
    quantity_change: int = 0
    committing: bool = False


@dataclass
class PendingLocationEdit:
    warehouse_location: str = ""
    aisle: str = ""
    rack: str = ""
    bin: str = ""
    committing: bool = False

    def to_update(self) -> LocationUpdate:
        return LocationUpdate(
            warehouse_location=self.warehouse_location,
            aisle=self.aisle,
            rack=self.rack,
            bin=self.bin,
        )


_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def parse_quantity(text: str) -> int:
    """Read a leading signed integer from free-entry text; anything else is 0."""
    match = _LEADING_INT.match(text or "")
    return int(match.group(1)) if match else 0


class ScanSession:
    """
    State of one scanner screen from construction to ``close()``.

    Lookups and quick-updates each take a ticket from a shared, increasing
    sequence. A response is applied only while its ticket is still the
    newest one, so a slow reply can never overwrite a later result. An
    update overtaken by a newer scan still gets its banner and tone but
    leaves ``part`` alone.
    """

    def __init__(
        self,
        service: PartsService,
        tones: Tones,
        camera_factory: Optional[Callable[[], CameraDecoder]] = None,
        *,
        history_limit: int = HISTORY_LIMIT,
    ):
        self.service = service
        self.tones = tones
        self._camera_factory = camera_factory
        self._camera: Optional[CameraDecoder] = None

        self.code = ""
        self.part: Optional[PartRecord] = None
        self.history = ScanHistory(history_limit)
        self.input_mode = InputMode.IDLE
        self.lookup_state = LookupState.NO_PART
        self.banner: Optional[Banner] = None
        self.camera_error: Optional[str] = None

        self.active_panel: Optional[Panel] = None
        self.adjustment: Optional[PendingAdjustment] = None
        self.location_edit: Optional[PendingLocationEdit] = None

        self._sequence = 0
        self._tasks: Set[asyncio.Task] = set()
        self._listeners: List[Callable[[], None]] = []
        self._closed = False

    # -- observers -----------------------------------------------------

    def subscribe(self, listener: Callable[[], None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener()

    def _next_ticket(self) -> int:
        self._sequence += 1
        return self._sequence

    def _is_current(self, ticket: int) -> bool:
        return ticket == self._sequence and not self._closed

    # -- state queries -------------------------------------------------

    @property
    def resolving(self) -> bool:
        return self.lookup_state is LookupState.RESOLVING

    @property
    def camera_active(self) -> bool:
        return self._camera is not None

    @property
    def input_enabled(self) -> bool:
        return not self.resolving and not self.camera_active

    @property
    def can_apply_adjustment(self) -> bool:
        pending = self.adjustment
        return (
            self.part is not None
            and pending is not None
            and not pending.committing
            and pending.quantity_change != 0
        )

    @property
    def can_apply_location(self) -> bool:
        pending = self.location_edit
        return self.part is not None and pending is not None and not pending.committing

    # -- lookups -------------------------------------------------------

    def set_code(self, text: str) -> None:
        self.code = text
        if not self.camera_active:
            self.input_mode = InputMode.MANUAL if text else InputMode.IDLE
        self._notify()

    async def submit(self) -> bool:
        if self.resolving:
            return False
        return await self.scan(self.code)

    async def replay(self, entry: ScanHistoryEntry) -> bool:
        return await self.scan(entry.code)

    async def scan(self, code: str) -> bool:
        code = (code or "").strip()
        if not code or self._closed:
            return False

        ticket = self._next_ticket()
        self.lookup_state = LookupState.RESOLVING
        self.banner = None
        self.part = None
        self._discard_panel()
        self._notify()

        result = await self.service.lookup(code)
        if not self._is_current(ticket):
            logger.info("Discarding superseded lookup for %s", code)
            return False

        if result.ok:
            self.part = result.part
            self.history.push(code, result.part)
            self.code = ""
            if self.input_mode is InputMode.MANUAL:
                self.input_mode = InputMode.IDLE
            self.lookup_state = LookupState.RESOLVED
            self.banner = Banner.success("Part found!")
            logger.info("Resolved %s to part %s", code, result.part.part_number)
            self.tones.success()
        else:
            self.part = None
            self.lookup_state = LookupState.FAILED if result.transport_error else LookupState.NOT_FOUND
            self.banner = Banner.error(result.message or "Part not found")
            logger.info("Lookup for %s failed: %s", code, self.banner.text)
            self.tones.error()
        self._notify()
        return result.ok

    def clear_history(self) -> None:
        self.history.clear()
        self._notify()

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    # -- camera --------------------------------------------------------

    def start_camera(self) -> bool:
        if self.camera_active or self._closed:
            return False
        self.camera_error = None
        if self._camera_factory is None:
            self.camera_error = CAMERA_START_FAILED
            self._notify()
            return False

        try:
            camera = self._camera_factory()
            camera.start(self._on_decoded, self._on_camera_failed)
        except CameraUnavailable as exc:
            logger.warning("Camera unavailable: %s", exc)
            self.camera_error = str(exc) or CAMERA_START_FAILED
            self.input_mode = InputMode.IDLE
            self._notify()
            return False

        self._camera = camera
        self.input_mode = InputMode.CAMERA
        logger.info("Camera scanner started")
        self._notify()
        return True

    def stop_camera(self) -> None:
        camera = self._camera
        if camera is None:
            return
        try:
            camera.stop()
        except CameraUnavailable as exc:
            logger.warning("Error stopping camera: %s", exc)
        finally:
            self._camera = None
            self.input_mode = InputMode.IDLE
            logger.info("Camera scanner released")
        self._notify()

    def _on_decoded(self, text: str) -> Optional[asyncio.Task]:
        if not self.camera_active:
            return None
        self.stop_camera()
        return self._spawn(self.scan(text))

    def _on_camera_failed(self, message: str) -> None:
        if not self.camera_active:
            return
        logger.warning("Camera failed: %s", message)
        self.stop_camera()
        self.camera_error = message or CAMERA_START_FAILED
        self._notify()

    # -- panels --------------------------------------------------------

    def toggle_panel(self, panel: Panel) -> None:
        if self.active_panel is panel:
            self.close_panel()
        else:
            self.open_panel(panel)

    def open_panel(self, panel: Panel) -> bool:
        if self.part is None or self.active_panel is panel:
            return False
        if self.active_panel is not None and not self.close_panel():
            return False
        self.active_panel = panel
        if panel is Panel.STOCK_ADJUST:
            self.adjustment = PendingAdjustment()
        else:
            self.location_edit = PendingLocationEdit()
        self._notify()
        return True

    def close_panel(self) -> bool:
        if self.active_panel is None:
            return True
        pending = self.adjustment if self.active_panel is Panel.STOCK_ADJUST else self.location_edit
        if pending is not None and pending.committing:
            return False
        self._discard_panel()
        self._notify()
        return True

    def _discard_panel(self) -> None:
        self.active_panel = None
        self.adjustment = None
        self.location_edit = None

    # -- stock adjustment ----------------------------------------------

    def set_quantity_change(self, delta: int) -> None:
        if self.adjustment is None or self.adjustment.committing:
            return
        self.adjustment.quantity_change = int(delta)
        self._notify()

    async def apply_adjustment(self) -> bool:
        if not self.can_apply_adjustment:
            return False
        part = self.part
        pending = self.adjustment
        delta = pending.quantity_change

        ticket = self._next_ticket()
        pending.committing = True
        self.banner = None
        self._notify()
        try:
            result = await self.service.quick_update(part.id, StockAdjustment(delta))
        finally:
            pending.committing = False

        if not self._is_current(ticket):
            self._report_superseded(
                part, result, f"Stock of {part.part_number} adjusted by {delta:+d}", "Failed to adjust stock"
            )
            return False

        if result.ok:
            self.part = result.part
            self.banner = Banner.success(f"Stock adjusted by {delta:+d}")
            self._discard_panel()
            logger.info("Adjusted stock of part %s by %+d", part.id, delta)
            self.tones.success()
        else:
            self.banner = Banner.error(result.message or "Failed to adjust stock")
            logger.info("Stock adjustment for part %s failed: %s", part.id, self.banner.text)
            self.tones.error()
        self._notify()
        return result.ok

    # -- location update -----------------------------------------------

    def set_location_field(self, name: str, value: str) -> None:
        if name not in LOCATION_FIELDS:
            raise ValueError(f"Unknown location field: {name}")
        if self.location_edit is None or self.location_edit.committing:
            return
        setattr(self.location_edit, name, value)
        self._notify()

    async def apply_location(self) -> bool:
        if not self.can_apply_location:
            return False
        part = self.part
        pending = self.location_edit

        ticket = self._next_ticket()
        pending.committing = True
        self.banner = None
        self._notify()
        try:
            result = await self.service.quick_update(part.id, pending.to_update())
        finally:
            pending.committing = False

        if not self._is_current(ticket):
            self._report_superseded(
                part, result, f"Location of {part.part_number} updated", "Failed to update location"
            )
            return False

        if result.ok:
            self.part = result.part
            self.banner = Banner.success("Location updated successfully")
            self._discard_panel()
            logger.info("Updated location of part %s", part.id)
            self.tones.success()
        else:
            self.banner = Banner.error(result.message or "Failed to update location")
            logger.info("Location update for part %s failed: %s", part.id, self.banner.text)
            self.tones.error()
        self._notify()
        return result.ok

    def _report_superseded(self, part: PartRecord, result: ApiResult, applied: str, rejected: str) -> None:
        """
        Announce the outcome of an update whose part is no longer on screen.

        The server has already acted on it, so the tone and banner still go
        out; the newer lookup keeps ownership of ``self.part``.
        """
        if self._closed:
            return
        if result.ok:
            self.banner = Banner.success(applied)
            logger.info("Superseded update for part %s committed: %s", part.id, applied)
            self.tones.success()
        else:
            self.banner = Banner.error(f"{part.part_number}: {result.message or rejected}")
            logger.info("Superseded update for part %s failed: %s", part.id, self.banner.text)
            self.tones.error()
        self._notify()

    # -- teardown ------------------------------------------------------

    def close(self) -> None:
        if self._closed:
            return
        self.stop_camera()
        self._closed = True
        for task in list(self._tasks):
            task.cancel()
        self._listeners.clear()
        logger.info("Scan session closed")
