"""
Module: push.py
Description: Signed HTTP push delivery to webhook targets.

Implements one delivery attempt: build the body, sign it when the
subscription has a secret, POST it with a bounded timeout, and turn
every non-2xx outcome into a DeliveryError the worker pool can record
and reschedule.
"""

from typing import Optional

import httpx

from event_relay.errors import PermanentDeliveryError, TransientDeliveryError
from event_relay.delivery.signing import build_body, build_headers
from event_relay.models.delivery import DeliveryJob
from event_relay.models.subscription import validate_target_url
from event_relay.utils.logger import get_logger

logger = get_logger(__name__)

# Keep ledger error text bounded
MAX_ERROR_BODY = 500


class WebhookDeliveryClient:
    """
    HTTP client for pushing events to subscriber endpoints.

    One client (and one connection pool) is shared by every worker in
    the pool. Call ``aclose()`` on shutdown.
    """

    def __init__(
        self,
        timeout_seconds: float = 10,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize push delivery client.

        Args:
            timeout_seconds: HTTP timeout in seconds
            transport: Optional httpx transport (tests use MockTransport)
        """
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")

        self.timeout = httpx.Timeout(timeout_seconds, connect=timeout_seconds)
        self._client = httpx.AsyncClient(timeout=self.timeout, transport=transport)

        logger.info(
            "Push delivery client initialized",
            timeout_seconds=timeout_seconds
        )

    async def send(self, job: DeliveryJob) -> int:
        """
        Deliver a job's payload via HTTP POST.

        Args:
            job: Job to deliver

        Returns:
            HTTP status code of the successful (2xx) response

        Raises:
            TransientDeliveryError: Timeout, network error or non-2xx
            PermanentDeliveryError: Target URL is malformed or the payload
                cannot be serialized
        """
        try:
            validate_target_url(job.target_url)
        except ValueError as e:
            raise PermanentDeliveryError(f"Invalid target URL: {e}")

        try:
            body = build_body(job.event_type, job.payload)
        except (TypeError, ValueError) as e:
            raise PermanentDeliveryError(f"Payload not serializable: {e}")

        headers = build_headers(job.event_type, body, job.secret)

        logger.debug(
            "Attempting webhook delivery",
            job_id=job.job_id,
            subscription_id=job.subscription_id,
            attempt=job.attempt,
            url=job.target_url
        )

        try:
            response = await self._client.post(
                job.target_url,
                content=body,
                headers=headers
            )

        except httpx.TimeoutException:
            raise TransientDeliveryError(
                f"Timed out after {self.timeout.read}s"
            )

        except (httpx.InvalidURL, httpx.UnsupportedProtocol) as e:
            raise PermanentDeliveryError(f"Invalid target URL: {e}")

        except httpx.HTTPError as e:
            raise TransientDeliveryError(f"{type(e).__name__}: {e}")

        if not response.is_success:
            raise TransientDeliveryError(
                f"HTTP {response.status_code}: {response.text[:MAX_ERROR_BODY]}",
                status_code=response.status_code
            )

        logger.info(
            "Webhook delivered",
            job_id=job.job_id,
            subscription_id=job.subscription_id,
            attempt=job.attempt,
            status_code=response.status_code,
            response_time_ms=response.elapsed.total_seconds() * 1000
        )
        return response.status_code

    async def aclose(self) -> None:
        await self._client.aclose()
