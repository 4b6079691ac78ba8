"""Error taxonomy for Web Push encryption and delivery."""


class WebPushError(Exception):
    """Base class for everything raised by the push engine."""


class ConfigError(WebPushError):
    """Missing or malformed VAPID keys, contact URI or token lifetime."""


class ValidationError(WebPushError):
    """A subscription or request option failed validation."""


class CryptoError(WebPushError):
    """Invalid curve point, bad key material or cipher failure."""


class PayloadTooLargeError(CryptoError):
    """Encrypted record would exceed the push service ceiling."""

    def __init__(self, size: int, limit: int) -> None:
        super().__init__(f"payload of {size} bytes exceeds limit of {limit} bytes")
        self.size = size
        self.limit = limit


class PushDeliveryError(WebPushError):
    """The push service refused the request (or could not be reached).

    ``status_code`` is None for network-level failures.
    """

    def __init__(
        self,
        status_code: int | None,
        body: str = "",
        endpoint: str = "",
        retry_after: int | None = None,
    ) -> None:
        if status_code is None:
            msg = f"push delivery failed: {body}"
        else:
            msg = f"push failed ({status_code}): {body}"
        super().__init__(msg)
        self.status_code = status_code
        self.body = body
        self.endpoint = endpoint
        self.retry_after = retry_after

    @property
    def subscription_gone(self) -> bool:
        """True when the subscription should be pruned."""
        return self.status_code in (404, 410)

    @property
    def retryable(self) -> bool:
        if self.status_code is None:
            return True
        return self.status_code == 429 or self.status_code >= 500
