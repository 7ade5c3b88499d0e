"""
HTTP transport for the payment gateway.

Posts JSON payment requests to the payment service and maps its replies onto
``PaymentResponse`` / ``PaymentError``. Trace context is injected into the
outgoing headers so the payment service continues the caller's trace.
"""
from typing import Any, Dict, Optional

import httpx
import structlog
from opentelemetry.propagate import inject
from pydantic import ValidationError

from subscription_platform.config import Settings, get_settings

from .payment_gateway import (
    PaymentError,
    PaymentErrorType,
    PaymentGateway,
    PaymentRequest,
    PaymentResponse,
)

logger = structlog.get_logger(__name__)


class HttpPaymentClient(PaymentGateway):
    """Payment gateway backed by the payment service's REST API."""

    backend_name = "http"

    def __init__(
        self,
        base_url: str,
        timeout_seconds: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize HTTP payment client.

        Args:
            base_url: Payment service base URL
            timeout_seconds: Per-request HTTP timeout
            transport: Optional httpx transport (tests mount the ASGI app here)
        """
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout_seconds),
            transport=transport,
        )

        logger.info("payment_client_initialized", base_url=self.base_url)

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "HttpPaymentClient":
        settings = settings or get_settings()
        return cls(
            base_url=settings.payment_service_url,
            timeout_seconds=settings.payment_timeout_seconds,
        )

    async def _process(self, request: PaymentRequest) -> PaymentResponse:
        headers: Dict[str, str] = {"Content-Type": "application/json"}
        inject(headers)

        try:
            response = await self._client.post(
                "/payments",
                content=request.model_dump_json(exclude_none=True),
                headers=headers,
            )
        except httpx.TimeoutException as e:
            raise PaymentError(
                f"payment service did not answer in time: {e}",
                PaymentErrorType.TIMEOUT,
            ) from e
        except httpx.HTTPError as e:
            raise PaymentError(
                f"failed to send payment request: {e}",
                PaymentErrorType.NETWORK_ERROR,
            ) from e

        if response.status_code != httpx.codes.OK:
            raise self._error_from_response(response)

        try:
            return PaymentResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise PaymentError(
                f"failed to decode payment response: {e}",
                PaymentErrorType.PROCESSING_ERROR,
            ) from e

    @staticmethod
    def _error_from_response(response: httpx.Response) -> PaymentError:
        """Rebuild the service's error, or a generic one for bodies we can't read."""
        fallback = PaymentError(
            f"payment failed with status: {response.status_code}",
            PaymentErrorType.PROCESSING_ERROR,
        )
        try:
            body: Any = response.json()
        except ValueError:
            return fallback

        detail = body.get("error") if isinstance(body, dict) else None
        if not isinstance(detail, dict):
            return fallback

        try:
            error_type = PaymentErrorType(detail.get("type"))
        except ValueError:
            error_type = PaymentErrorType.PROCESSING_ERROR

        return PaymentError(
            detail.get("message") or fallback.message,
            error_type,
            code=detail.get("code"),
        )

    async def health_check(self) -> Dict[str, Any]:
        try:
            response = await self._client.get("/health")
        except httpx.HTTPError as e:
            return {"status": "unhealthy", "backend": self.backend_name, "error": str(e)}
        status = "healthy" if response.status_code == httpx.codes.OK else "unhealthy"
        return {"status": status, "backend": self.backend_name}

    async def aclose(self) -> None:
        await self._client.aclose()
