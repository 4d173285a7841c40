"""One-shot location fixes with a last-known-position fallback."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from core.exceptions import LocationUnavailableError
from date_utils import now_epoch_ms

if TYPE_CHECKING:
    from collections.abc import Callable

    from tracking.services.local_store import LastKnownPositionStore
    from tracking.services.platform import PositionSource
    from trips.models import LocationSample

logger = logging.getLogger(__name__)


class LocationService:
    """Obtain a single fix, falling back to the last known one when allowed.

    The fallback is only used when the failure was not a permission denial.
    The returned fallback sample carries the current time as its timestamp.
    """

    def __init__(
        self,
        source: PositionSource,
        last_known: LastKnownPositionStore,
        *,
        clock: Callable[[], int] = now_epoch_ms,
    ) -> None:
        self._source = source
        self._last_known = last_known
        self._clock = clock

    async def remember(self, sample: LocationSample) -> None:
        await self._last_known.save(sample)

    async def get_current_position(self) -> LocationSample:
        try:
            sample = await self._source.get_current_position()
        except LocationUnavailableError as exc:
            if exc.permission_denied:
                raise
            fallback = await self._last_known.load()
            if fallback is None:
                raise
            logger.warning(
                "Location fix unavailable (%s); using last known position",
                exc.message,
            )
            return fallback.model_copy(update={"timestamp": self._clock()})

        await self._last_known.save(sample)
        return sample
