"""
Shared HTTP request helpers for the trip API client.

Keeps JSON request/response handling and error mapping consistent across
every trip endpoint. Error payloads are flattened into one readable message
so foreground callers can show it inline.
"""

from __future__ import annotations

import json as jsonlib
import logging
from typing import TYPE_CHECKING, Any

from core.exceptions import ExternalServiceException

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = logging.getLogger(__name__)

NO_CONTENT_STATUSES = frozenset({204, 205})


def _decode_body(raw_text: str, content_type: str) -> Any | None:
    if not raw_text or "json" not in content_type.lower():
        return None
    try:
        return jsonlib.loads(raw_text)
    except ValueError:
        return None


def normalize_error_message(payload: Any, raw_text: str, status: int) -> str:
    """Turn an error response body into a short human-readable message."""
    detail = payload
    if isinstance(payload, dict):
        detail = payload.get("error")
        if detail is None:
            detail = payload.get("message")
        if detail is None:
            detail = payload

    if isinstance(detail, str) and detail:
        return detail
    if isinstance(detail, dict):
        parts = [str(detail[key]) for key in ("code", "message") if detail.get(key)]
        if parts:
            return ": ".join(parts)
        return jsonlib.dumps(detail)
    if raw_text:
        return raw_text
    return f"HTTP {status}"


async def request_json(
    method: str,
    url: str,
    *,
    session: Any,
    params: dict[str, Any] | None = None,
    json: Any | None = None,
    headers: dict[str, str] | None = None,
    expected_status: int | Iterable[int] = (200, 201),
    none_on: Iterable[int] | None = None,
    service_name: str = "Service",
) -> Any | None:
    method_upper = method.upper()
    if isinstance(expected_status, int):
        expected = {expected_status}
    else:
        expected = set(expected_status)
    none_on_set = set(none_on or [])

    request_kwargs: dict[str, Any] = {"params": params, "headers": headers}
    if json is not None and method_upper != "GET":
        request_kwargs["json"] = json

    async with session.request(method_upper, url, **request_kwargs) as response:
        if response.status in none_on_set:
            logger.debug("%s returned %s for %s", service_name, response.status, url)
            return None
        if response.status in NO_CONTENT_STATUSES:
            return None

        content_type = response.headers.get("Content-Type", "")
        raw_text = await response.text()
        payload = _decode_body(raw_text, content_type)

        if response.status not in expected:
            message = normalize_error_message(payload, raw_text, response.status)
            raise ExternalServiceException(
                f"{service_name} error: {message}",
                {
                    "status": response.status,
                    "body": raw_text,
                    "url": str(getattr(response, "url", url)),
                },
            )
        return payload
