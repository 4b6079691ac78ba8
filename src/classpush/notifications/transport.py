"""httpx adapter that delivers a PushRequest to the push service."""

import httpx
import structlog

from classpush.notifications.errors import PushDeliveryError
from classpush.notifications.models import DeliveryOutcome
from classpush.notifications.request import PushRequest

logger = structlog.get_logger()

# push services return short diagnostics; keep logs and errors bounded
_MAX_ERROR_BODY = 512


def _retry_after(response: httpx.Response) -> int | None:
    value = response.headers.get("Retry-After")
    if value is None:
        return None
    try:
        return max(0, int(value))
    except ValueError:
        return None


class PushTransport:
    """Synchronous sender. Run in a worker thread from async code."""

    def __init__(
        self,
        timeout: float = 10.0,
        client: httpx.Client | None = None,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=timeout)

    def send(self, request: PushRequest) -> DeliveryOutcome:
        """POST the request; raise PushDeliveryError unless 2xx."""
        try:
            response = self._client.request(
                request.method,
                request.url,
                headers=request.headers,
                content=request.body,
            )
        except httpx.HTTPError as e:
            raise PushDeliveryError(
                None,
                body=str(e),
                endpoint=request.url,
            ) from e

        if response.is_success:
            return DeliveryOutcome(
                success=True,
                status_code=response.status_code,
                endpoint=request.url,
            )
        raise PushDeliveryError(
            response.status_code,
            body=response.text[:_MAX_ERROR_BODY],
            endpoint=request.url,
            retry_after=_retry_after(response),
        )

    def close(self) -> None:
        if self._owns_client:
            self._client.close()
