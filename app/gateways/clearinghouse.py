"""HTTP clearinghouse gateway."""
import time
from typing import Any, Dict, List, Optional

import httpx

from app.config import settings
from app.gateways.base import (
    ClaimPayload,
    NON_RETRYABLE_ERROR_CODES,
    ProviderGateway,
    ProviderSubmissionResult,
    RETRYABLE_ERROR_CODES,
    order_by_priority,
)
from app.utils.logging_config import get_logger

logger = get_logger(__name__)

# HTTP statuses that indicate a transient condition on the clearinghouse side
RETRYABLE_HTTP_STATUSES = frozenset({408, 425, 429})


class HttpClearinghouseGateway(ProviderGateway):
    """
    Submits claims to a clearinghouse REST endpoint.

    The endpoint receives the claim payload as JSON and answers with
    ``{"success": true, "confirmationNumber": ..., "trackingNumber": ...}`` or
    ``{"success": false, "error": {"code", "message", "retryable"}}``.
    """

    def __init__(
        self,
        name: str,
        endpoint: str,
        priority: int = 100,
        timeout_seconds: float = 30.0,
        api_key: Optional[str] = None,
        health_endpoint: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(name=name, priority=priority, timeout_seconds=timeout_seconds)
        self.endpoint = endpoint
        self.api_key = api_key
        self.health_endpoint = health_endpoint or endpoint
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout_seconds)
        return self._client

    def _headers(self, payload: ClaimPayload) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            # Lets the clearinghouse de-duplicate retried deliveries
            "Idempotency-Key": payload.submission_id,
        }
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def submit(self, payload: ClaimPayload) -> ProviderSubmissionResult:
        """
        POST the claim to the clearinghouse and classify the response.

        Args:
            payload: Claim data to submit

        Returns:
            Success with confirmation/tracking numbers, or a failure that is
            retryable for timeouts, transport errors, 408/425/429 and 5xx
        """
        start_time = time.perf_counter()
        try:
            response = await self._get_client().post(
                self.endpoint,
                json=payload.to_dict(),
                headers=self._headers(payload),
                timeout=self.timeout_seconds,
            )
        except httpx.TimeoutException as e:
            return ProviderSubmissionResult.failed(
                "NETWORK_TIMEOUT", f"Request to {self.name} timed out: {e}", retryable=True
            )
        except httpx.TransportError as e:
            return ProviderSubmissionResult.failed(
                "NETWORK_ERROR", f"Could not reach {self.name}: {e}", retryable=True
            )

        latency_ms = round((time.perf_counter() - start_time) * 1000, 2)
        body = self._parse_body(response)

        if response.is_success and body.get("success", True):
            logger.debug(
                f"{self.name} accepted claim {payload.claim_id}",
                extra={"extra_fields": {"provider": self.name, "latency_ms": latency_ms}},
            )
            return ProviderSubmissionResult.accepted(
                body.get("confirmationNumber"),
                body.get("trackingNumber"),
                status_code=response.status_code,
                latency_ms=latency_ms,
            )

        error = body.get("error") if isinstance(body.get("error"), dict) else {}
        code = error.get("code") or f"HTTP_{response.status_code}"
        message = error.get("message") or response.reason_phrase or "Submission rejected"
        return ProviderSubmissionResult.failed(
            code,
            message,
            retryable=self._is_retryable(response.status_code, code, error.get("retryable")),
            status_code=response.status_code,
            latency_ms=latency_ms,
        )

    @staticmethod
    def _parse_body(response: httpx.Response) -> Dict[str, Any]:
        try:
            body = response.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}

    @staticmethod
    def _is_retryable(status_code: int, code: str, declared: Any) -> bool:
        """Explicit flag from the clearinghouse wins, then known codes, then HTTP status."""
        if isinstance(declared, bool):
            return declared
        if code in RETRYABLE_ERROR_CODES:
            return True
        if code in NON_RETRYABLE_ERROR_CODES:
            return False
        return status_code >= 500 or status_code in RETRYABLE_HTTP_STATUSES

    async def health_check(self) -> bool:
        """Consider the clearinghouse available if it answers below 500."""
        try:
            response = await self._get_client().get(self.health_endpoint, timeout=2.0)
        except httpx.HTTPError as e:
            logger.warning(f"Clearinghouse health check failed for {self.name}: {e}")
            return False
        return response.status_code < 500

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None


def build_provider_gateways(
    provider_configs: Optional[List[Dict[str, Any]]] = None,
) -> List[ProviderGateway]:
    """
    Build the configured clearinghouse gateways in priority order.

    Args:
        provider_configs: Provider dicts; defaults to CLEARINGHOUSE_PROVIDERS

    Returns:
        Gateways sorted by priority (declared order breaks ties)
    """
    configs = provider_configs if provider_configs is not None else settings.clearinghouse_providers_list
    gateways: List[ProviderGateway] = [
        HttpClearinghouseGateway(
            name=config["name"],
            endpoint=config["endpoint"],
            priority=int(config.get("priority", index + 1)),
            timeout_seconds=float(config.get("timeout_seconds", 30.0)),
            api_key=config.get("api_key") or settings.CLEARINGHOUSE_API_KEY,
            health_endpoint=config.get("health_endpoint"),
        )
        for index, config in enumerate(configs)
    ]
    return order_by_priority(gateways)
