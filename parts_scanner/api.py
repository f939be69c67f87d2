import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

import httpx

from .config import ApiConfig
from .parts import PartRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ApiResult:
    """
    Outcome of a lookup or quick-update call.

    ``transport_error`` separates network, server and malformed-response
    failures from domain rejections such as an unknown code.
    """

    ok: bool
    part: Optional[PartRecord] = None
    message: Optional[str] = None
    transport_error: bool = False

    @classmethod
    def success(cls, part: PartRecord, message: Optional[str] = None) -> "ApiResult":
        return cls(ok=True, part=part, message=message)

    @classmethod
    def failure(cls, message: str, *, transport_error: bool = False) -> "ApiResult":
        return cls(ok=False, message=message, transport_error=transport_error)


@dataclass(frozen=True)
class StockAdjustment:
    quantity_change: int

    def payload(self) -> Dict[str, Any]:
        return {"action": "adjust_stock", "quantity_change": self.quantity_change}


@dataclass(frozen=True)
class LocationUpdate:
    warehouse_location: str = ""
    aisle: str = ""
    rack: str = ""
    bin: str = ""

    def payload(self) -> Dict[str, Any]:
        return {
            "action": "update_location",
            "warehouse_location": self.warehouse_location,
            "aisle": self.aisle,
            "rack": self.rack,
            "bin": self.bin,
        }


QuickUpdate = Union[StockAdjustment, LocationUpdate]

_UPDATE_MESSAGES = {
    StockAdjustment: ("Failed to adjust stock", "Error adjusting stock. Please try again."),
    LocationUpdate: ("Failed to update location", "Error updating location. Please try again."),
}


class PartsApiClient:
    """
    Async client for the inventory service's scan and quick-update endpoints.

    Every failure is returned as an ``ApiResult``; nothing raised by httpx
    escapes ``lookup`` or ``quick_update``.
    """

    def __init__(self, config: ApiConfig, *, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config
        headers = {
            "Accept": "application/json",
            "X-Requested-With": "XMLHttpRequest",
        }
        if config.csrf_token:
            headers["X-CSRF-TOKEN"] = config.csrf_token
        self._client = httpx.AsyncClient(
            base_url=config.base_url,
            headers=headers,
            timeout=config.timeout_seconds,
            transport=transport,
        )

    async def lookup(self, code: str) -> ApiResult:
        logger.info("Looking up part code %s", code)
        return await self._post(
            self.config.lookup_path,
            {"code": code},
            rejected="Part not found",
            unreachable="Error scanning part. Please try again.",
        )

    async def quick_update(self, part_id: int, change: QuickUpdate) -> ApiResult:
        rejected, unreachable = _UPDATE_MESSAGES[type(change)]
        path = self.config.quick_update_path.format(part_id=part_id)
        payload = change.payload()
        logger.info("Quick-update %s for part %s", payload["action"], part_id)
        return await self._post(path, payload, rejected=rejected, unreachable=unreachable)

    async def _post(self, path: str, payload: Dict[str, Any], *, rejected: str, unreachable: str) -> ApiResult:
        try:
            response = await self._client.post(path, json=payload)
        except httpx.HTTPError as exc:
            logger.warning("Request to %s failed: %s", path, exc)
            return ApiResult.failure(unreachable, transport_error=True)

        try:
            data = response.json()
        except ValueError:
            logger.warning("Non-JSON response from %s (HTTP %s)", path, response.status_code)
            return ApiResult.failure(unreachable, transport_error=True)
        if not isinstance(data, dict):
            logger.warning("Unexpected response body from %s: %r", path, data)
            return ApiResult.failure(unreachable, transport_error=True)

        if response.is_success and data.get("success"):
            part_payload = data.get("part")
            if not isinstance(part_payload, dict):
                logger.warning("Response from %s is missing the part payload", path)
                return ApiResult.failure(unreachable, transport_error=True)
            try:
                part = PartRecord.from_dict(part_payload)
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("Malformed part payload from %s: %s", path, exc)
                return ApiResult.failure(unreachable, transport_error=True)
            return ApiResult.success(part, data.get("message"))

        message = data.get("message") or rejected
        logger.warning("Request to %s rejected (HTTP %s): %s", path, response.status_code, message)
        return ApiResult.failure(str(message), transport_error=response.is_server_error)

    async def aclose(self) -> None:
        await self._client.aclose()
