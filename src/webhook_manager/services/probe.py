"""Probe engine: sends one synthetic POST to a webhook URL and diagnoses failures."""
from __future__ import annotations

import asyncio
import errno
import time
from datetime import datetime, timezone
from typing import Any
from urllib.parse import urlsplit

import structlog
from aiohttp import ClientConnectorError, ClientError, ClientSession, ClientTimeout, InvalidURL

from webhook_manager.domain.enums import FailurePoint
from webhook_manager.domain.models import FailureDetails, NetworkInfo, ProbeResult
from webhook_manager.middleware.trace import SENSITIVE_HEADERS
from webhook_manager.otel import get_tracer
from webhook_manager.services.troubleshooting import lookup_guidance

logger = structlog.get_logger(__name__)

TEST_MESSAGE = "This is a test webhook from Kontent.ai Webhook Manager"
DEFAULT_USER_AGENT = "Kontent-Webhook-Manager/1.0"
_MAX_BODY_CHARS = 10_000


def build_test_payload(webhook_id: str, webhook_name: str) -> dict[str, Any]:
    return {
        "test": True,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "webhookId": webhook_id,
        "webhookName": webhook_name,
        "message": TEST_MESSAGE,
    }


def build_test_headers(
    webhook_id: str,
    custom_headers: dict[str, str] | None,
    *,
    user_agent: str = DEFAULT_USER_AGENT,
) -> dict[str, str]:
    """Default probe headers; custom headers override them case-insensitively."""
    headers = {
        "Content-Type": "application/json",
        "User-Agent": user_agent,
        "X-Webhook-Test": "true",
        "X-Webhook-ID": webhook_id,
    }
    for key, value in (custom_headers or {}).items():
        for existing in [k for k in headers if k.lower() == key.lower()]:
            del headers[existing]
        headers[key] = value
    return headers


def classify_status(status_code: int) -> FailurePoint | None:
    """Map an HTTP status to a failure point; ``None`` means the delivery succeeded."""
    if 200 <= status_code < 400:
        return None
    if status_code == 401:
        return FailurePoint.AUTHENTICATION
    if status_code == 403:
        return FailurePoint.AUTHORIZATION
    if 400 <= status_code < 500:
        return FailurePoint.CLIENT_ERROR
    if status_code >= 500:
        return FailurePoint.SERVER_ERROR
    return FailurePoint.UNKNOWN


def classify_exception(exc: BaseException) -> FailurePoint | None:
    """Map a transport exception to a failure point; ``None`` for non-transport errors.

    Order matters: aiohttp connect timeouts are also connection errors, and both
    must be reported as ``timeout``.
    """
    if isinstance(exc, asyncio.TimeoutError):
        return FailurePoint.TIMEOUT
    if isinstance(exc, InvalidURL):
        return FailurePoint.VALIDATION
    if isinstance(exc, ClientConnectorError):
        return FailurePoint.CONNECTION
    if isinstance(exc, ClientError):
        return FailurePoint.NETWORK
    return None


def _mask_headers(headers: dict[str, str]) -> dict[str, str]:
    return {k: ("***" if k.lower() in SENSITIVE_HEADERS else v) for k, v in headers.items()}


def _exception_error_code(failure_point: FailurePoint, exc: BaseException) -> str:
    if failure_point == FailurePoint.TIMEOUT:
        return "TIMEOUT"
    if failure_point == FailurePoint.CONNECTION:
        code = getattr(exc, "errno", None)
        return errno.errorcode.get(code, "CONNECTION_FAILED") if code else "CONNECTION_FAILED"
    if failure_point == FailurePoint.VALIDATION:
        return "INVALID_URL"
    return type(exc).__name__


def failure_result(
    failure_point: FailurePoint,
    *,
    error_message: str,
    error_code: str | None,
    status_code: int = 0,
    response_time_ms: int = 0,
    response: str = "",
    request_headers: dict[str, str] | None = None,
    request_payload: dict[str, Any] | None = None,
    response_headers: dict[str, str] | None = None,
    network_info: NetworkInfo | None = None,
) -> ProbeResult:
    """Assemble a failed ProbeResult with guidance looked up for ``failure_point``."""
    guidance = lookup_guidance(failure_point, status_code or None)
    return ProbeResult(
        success=False,
        status_code=status_code,
        response_time_ms=response_time_ms,
        response=response,
        error=error_message,
        failure_point=failure_point,
        failure_details=FailureDetails(
            stage=guidance.stage,
            error_code=error_code,
            error_message=error_message,
            suggestion=guidance.suggestion,
            http_headers=_mask_headers(request_headers) if request_headers else None,
            request_payload=request_payload,
            response_headers=response_headers,
            network_info=network_info,
        ),
        troubleshooting=guidance.troubleshooting,
    )


class ProbeEngine:
    """Stateless webhook tester.

    A shared ``ClientSession`` is used when the engine has been started (see
    :meth:`start`); otherwise every probe opens and closes its own session.
    """

    def __init__(
        self,
        *,
        timeout_seconds: float = 30.0,
        user_agent: str = DEFAULT_USER_AGENT,
    ):
        self.timeout_seconds = timeout_seconds
        self.user_agent = user_agent
        self._session: ClientSession | None = None

    async def start(self) -> None:
        if self._session is None:
            self._session = ClientSession()

    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def probe(
        self,
        url: str,
        headers: dict[str, str] | None,
        webhook_id: str,
        webhook_name: str,
    ) -> ProbeResult:
        payload = build_test_payload(webhook_id, webhook_name)
        request_headers = build_test_headers(webhook_id, headers, user_agent=self.user_agent)

        tracer = get_tracer(__name__)
        with tracer.start_as_current_span("webhook.probe") as span:
            span.set_attribute("webhook.id", webhook_id)
            span.set_attribute("http.url", url)
            if self._session is not None:
                result = await self._send(self._session, url, request_headers, payload)
            else:
                async with ClientSession() as session:
                    result = await self._send(session, url, request_headers, payload)
            span.set_attribute("http.status_code", result.status_code)
            span.set_attribute("webhook.probe.success", result.success)

        logger.info(
            "webhook probe completed",
            webhook_id=webhook_id,
            success=result.success,
            status_code=result.status_code,
            failure_point=result.failure_point.value if result.failure_point else None,
            response_time_ms=result.response_time_ms,
        )
        return result

    async def _send(
        self,
        session: ClientSession,
        url: str,
        request_headers: dict[str, str],
        payload: dict[str, Any],
    ) -> ProbeResult:
        started = time.perf_counter()
        try:
            async with session.post(
                url,
                json=payload,
                headers=request_headers,
                timeout=ClientTimeout(total=self.timeout_seconds),
            ) as resp:
                body = await resp.text(errors="replace")
                status = resp.status
                reason = resp.reason or ""
                response_headers = dict(resp.headers)
        except Exception as exc:
            elapsed_ms = int((time.perf_counter() - started) * 1000)
            failure_point = classify_exception(exc)
            if failure_point is None:
                raise
            return self._transport_failure(
                failure_point, exc, url, elapsed_ms, request_headers, payload
            )
        elapsed_ms = int((time.perf_counter() - started) * 1000)

        body = body[:_MAX_BODY_CHARS]
        failure_point = classify_status(status)
        if failure_point is None:
            return ProbeResult(
                success=True,
                status_code=status,
                response_time_ms=elapsed_ms,
                response=body,
            )

        message = f"HTTP {status}: {reason}".rstrip(": ")
        return failure_result(
            failure_point,
            error_message=message,
            error_code=str(status),
            status_code=status,
            response_time_ms=elapsed_ms,
            response=body,
            request_headers=request_headers,
            request_payload=payload,
            response_headers=response_headers,
            network_info=NetworkInfo(
                connection_established=True, request_sent=True, response_received=True
            ),
        )

    def _transport_failure(
        self,
        failure_point: FailurePoint,
        exc: BaseException,
        url: str,
        elapsed_ms: int,
        request_headers: dict[str, str],
        payload: dict[str, Any],
    ) -> ProbeResult:
        if failure_point == FailurePoint.TIMEOUT:
            message = f"Request timed out after {self.timeout_seconds:g} seconds"
            network_info = NetworkInfo(request_sent=None, response_received=False)
        elif failure_point == FailurePoint.CONNECTION:
            host = urlsplit(url).hostname or url
            message = f"Could not connect to {host}: {exc}"
            network_info = NetworkInfo(
                connection_established=False, request_sent=False, response_received=False
            )
        elif failure_point == FailurePoint.VALIDATION:
            message = f"Invalid webhook URL: {url}"
            network_info = NetworkInfo(
                connection_established=False, request_sent=False, response_received=False
            )
        else:
            message = f"Network error: {exc}" if str(exc) else f"Network error: {type(exc).__name__}"
            network_info = NetworkInfo(response_received=False)

        return failure_result(
            failure_point,
            error_message=message,
            error_code=_exception_error_code(failure_point, exc),
            response_time_ms=elapsed_ms,
            request_headers=request_headers,
            request_payload=payload,
            network_info=network_info,
        )
