"""
Location permission escalation.

Background observation needs the "always" tier. On iOS the first prompt can
only grant "when in use", so once tracking has run for a grace period the
machine re-checks the status and, if still "when in use", asks for an
upgrade. Every other platform requests the broadest tier up front and the
machine reports ``not-ios`` without doing anything.

States::

    not-ios            terminal, no escalation logic applies
    granted / always   terminal success
    wheninuse          transient, may escalate
    denied / unknown   transient, needs an explanation before re-prompting

The tracked status only ever changes to what the platform reports.
"""

from __future__ import annotations

import asyncio
import contextlib
import inspect
import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from core.constants import ESCALATION_DELAY_SECONDS

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from tracking.services.platform import PermissionBackend

    PreExplain = Callable[[], Awaitable[bool] | bool]

logger = logging.getLogger(__name__)


class PermissionStatus(str, Enum):
    """Location permission states reported by (or derived from) the platform."""

    GRANTED = "granted"
    ALWAYS = "always"
    WHEN_IN_USE = "wheninuse"
    DENIED = "denied"
    UNKNOWN = "unknown"
    NOT_IOS = "not-ios"

    @classmethod
    def parse(cls, value: str | None) -> PermissionStatus:
        try:
            return cls(str(value or "").strip().lower())
        except ValueError:
            return cls.UNKNOWN


@dataclass(frozen=True)
class PermissionAdvice:
    status: PermissionStatus
    should_explain: bool
    can_request_always: bool


def advise(status: PermissionStatus) -> PermissionAdvice:
    """Derive escalation advice from an iOS permission status."""
    if status in (PermissionStatus.GRANTED, PermissionStatus.ALWAYS):
        return PermissionAdvice(status, should_explain=False, can_request_always=False)
    if status == PermissionStatus.WHEN_IN_USE:
        return PermissionAdvice(status, should_explain=True, can_request_always=True)
    return PermissionAdvice(status, should_explain=True, can_request_always=False)


class PermissionEscalator:
    """Tracks location permission and opportunistically escalates to always."""

    def __init__(
        self,
        backend: PermissionBackend,
        platform: str,
        *,
        escalation_delay_seconds: float = ESCALATION_DELAY_SECONDS,
        pre_explain: PreExplain | None = None,
    ) -> None:
        self._backend = backend
        self._platform = platform.lower()
        self._delay = escalation_delay_seconds
        self._pre_explain = pre_explain
        self._escalation_task: asyncio.Task[None] | None = None
        self.status: PermissionStatus = PermissionStatus.UNKNOWN

    @property
    def is_ios(self) -> bool:
        return self._platform == "ios"

    async def query_status(self) -> PermissionStatus:
        try:
            raw = await self._backend.get_status()
        except Exception:
            logger.warning("Permission status query failed", exc_info=True)
            raw = PermissionStatus.UNKNOWN.value
        self.status = PermissionStatus.parse(raw)
        return self.status

    async def evaluate(self) -> PermissionAdvice:
        if not self.is_ios:
            return PermissionAdvice(
                PermissionStatus.NOT_IOS,
                should_explain=False,
                can_request_always=False,
            )
        return advise(await self.query_status())

    async def request_permissions(self, always: bool = False) -> PermissionStatus:
        """Ask the platform for a permission tier and record its answer."""
        if always or not self.is_ios:
            tiers = [PermissionStatus.ALWAYS.value]
        else:
            tiers = [PermissionStatus.WHEN_IN_USE.value]
        try:
            raw = await self._backend.request(tiers)
        except Exception as exc:
            logger.warning("Permission request %s failed: %s", tiers, exc)
            raw = PermissionStatus.DENIED.value
        self.status = PermissionStatus.parse(raw)
        logger.info("Location permission after request %s: %s", tiers, self.status.value)
        return self.status

    async def escalate_to_always(
        self,
        pre_explain: PreExplain | None = None,
    ) -> PermissionStatus:
        advice = await self.evaluate()
        if not advice.can_request_always:
            return advice.status

        explain = pre_explain or self._pre_explain
        if explain is not None:
            proceed = explain()
            if inspect.isawaitable(proceed):
                proceed = await proceed
            if not proceed:
                logger.info("Escalation to always permission declined by user")
                return advice.status

        return await self.request_permissions(always=True)

    async def initial_flow(self) -> PermissionStatus:
        """Re-prompt for when-in-use once when iOS reports denied."""
        if not self.is_ios:
            return PermissionStatus.NOT_IOS
        status = await self.query_status()
        if status == PermissionStatus.DENIED:
            await self.request_permissions(always=False)
        return status

    def schedule_escalation(self) -> bool:
        """Arm the one-shot escalation check if the status is when-in-use."""
        if not self.is_ios or self.status != PermissionStatus.WHEN_IN_USE:
            return False
        self.cancel()
        self._escalation_task = asyncio.create_task(self._escalate_later())
        return True

    def cancel(self) -> None:
        if self._escalation_task is not None and not self._escalation_task.done():
            self._escalation_task.cancel()
        self._escalation_task = None

    async def wait_for_escalation(self) -> None:
        task = self._escalation_task
        if task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def _escalate_later(self) -> None:
        await asyncio.sleep(self._delay)
        try:
            advice = await self.evaluate()
            if advice.status == PermissionStatus.WHEN_IN_USE and advice.can_request_always:
                await self.escalate_to_always()
        except Exception:
            logger.warning("Scheduled permission escalation failed", exc_info=True)
