"""Client for the remote trip-record API."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

import aiohttp

from config import get_trip_api_base_url, get_trip_api_token
from core.exceptions import ExternalServiceException
from core.http.request import request_json
from core.http.retry import retry_async
from core.http.session import get_session
from trips.models import RoutePoint, Trip, TripPage, TripStatus

if TYPE_CHECKING:
    from collections.abc import Awaitable, Sequence

logger = logging.getLogger(__name__)

SERVICE_NAME = "Trip API"


def _serialize_route(points: Sequence[RoutePoint]) -> list[dict[str, Any]]:
    return [point.model_dump() for point in points]


def _unwrap_trip(payload: Any, operation: str) -> Trip:
    record = payload.get("data") if isinstance(payload, dict) else None
    if not isinstance(record, dict):
        msg = f"{SERVICE_NAME} {operation}: response missing trip data"
        raise ExternalServiceException(msg, {"payload": payload})
    return Trip.model_validate(record)


class TripApiClient:
    """Thin async client for the trip endpoints.

    Every method raises :class:`ExternalServiceException` on network errors
    and non-2xx responses. Only read calls are retried here; writes are
    retried by their callers' own triggers.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession | None = None,
        *,
        base_url: str | None = None,
        token: str | None = None,
    ) -> None:
        self._session = session
        self._base_url = (base_url or get_trip_api_base_url()).rstrip("/")
        self._token = token if token is not None else get_trip_api_token()

    async def _get_session(self) -> aiohttp.ClientSession:
        # Without an injected session, follow the shared one across cleanups.
        if self._session is not None:
            return self._session
        return await get_session()

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any | None = None,
    ) -> Any | None:
        session = await self._get_session()
        return await request_json(
            method,
            f"{self._base_url}{path}",
            session=session,
            params=params,
            json=json,
            headers=self._headers(),
            service_name=SERVICE_NAME,
        )

    @staticmethod
    async def _guard(call: Awaitable[Any], operation: str) -> Any:
        try:
            return await call
        except ExternalServiceException:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            msg = f"{SERVICE_NAME} {operation} failed: {exc or type(exc).__name__}"
            raise ExternalServiceException(msg, {"operation": operation}) from exc

    @retry_async(max_retries=2, retry_delay=0.5)
    async def _get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        return await self._request("GET", path, params=params)

    async def list_trips(
        self,
        status: TripStatus | str | None = None,
        page: int = 1,
        limit: int = 50,
    ) -> TripPage:
        params: dict[str, Any] = {"limit": limit, "page": page}
        if status:
            params["status"] = TripStatus(status).value
        payload = await self._guard(self._get("/trips", params), "list trips")
        if not isinstance(payload, dict):
            return TripPage(page=page)
        return TripPage.model_validate(payload)

    async def get_trip(self, trip_id: str) -> Trip:
        payload = await self._guard(self._get(f"/trips/{trip_id}"), "get trip")
        return _unwrap_trip(payload, "get trip")

    async def get_active_trip(self) -> Trip | None:
        page = await self.list_trips(TripStatus.ACTIVE, page=1, limit=1)
        return page.data[0] if page.data else None

    async def create_trip(
        self,
        purpose: str,
        start_odometer: float,
        initial_route: Sequence[RoutePoint] = (),
    ) -> Trip:
        body = {
            "purpose": purpose,
            "startOdometer": start_odometer,
            "route": _serialize_route(initial_route),
        }
        payload = await self._guard(
            self._request("POST", "/trips", json=body),
            "create trip",
        )
        trip = _unwrap_trip(payload, "create trip")
        logger.info("Created trip %s (%s)", trip.id, purpose)
        return trip

    async def update_route(self, trip_id: str, route: Sequence[RoutePoint]) -> Trip:
        """Overwrite the full route of a trip."""
        payload = await self._guard(
            self._request(
                "PUT",
                f"/trips/{trip_id}",
                json={"route": _serialize_route(route)},
            ),
            "update route",
        )
        return _unwrap_trip(payload, "update route")

    async def append_route_points(
        self,
        trip_id: str,
        points: Sequence[RoutePoint],
    ) -> None:
        """Deliver a batch of queued points; re-sending a batch is harmless."""
        await self._guard(
            self._request(
                "POST",
                f"/trips/{trip_id}/points",
                json={"points": _serialize_route(points)},
            ),
            "append route points",
        )

    async def end_trip(self, trip_id: str, end_odometer: float) -> Trip:
        payload = await self._guard(
            self._request(
                "PUT",
                f"/trips/{trip_id}/end",
                json={"endOdometer": end_odometer},
            ),
            "end trip",
        )
        trip = _unwrap_trip(payload, "end trip")
        logger.info("Ended trip %s", trip.id)
        return trip

    async def delete_trip(self, trip_id: str) -> None:
        await self._guard(self._request("DELETE", f"/trips/{trip_id}"), "delete trip")
        logger.info("Deleted trip %s", trip_id)


__all__ = ["TripApiClient"]
