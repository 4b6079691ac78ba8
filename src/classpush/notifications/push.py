"""Web Push delivery to every device a user has subscribed."""

import structlog

from classpush.notifications.encryption import MAX_PAYLOAD_SIZE
from classpush.notifications.engine import Payload, WebPushEngine
from classpush.notifications.errors import (
    CryptoError,
    PushDeliveryError,
    ValidationError,
)
from classpush.notifications.models import DeliveryOutcome, PushSubscription
from classpush.notifications.store import (
    PushSubscriptionStore,
    StoredSubscription,
)
from classpush.notifications.transport import PushTransport

logger = structlog.get_logger()


class PushNotifier:
    """Fan a notification out to a user's subscriptions.

    Owns the delivery policy the engine leaves to its caller: gone
    endpoints (404/410) are pruned from the store, everything else is
    logged and dropped. Nothing is retried here.
    """

    def __init__(
        self,
        store: PushSubscriptionStore,
        engine: WebPushEngine,
        transport: PushTransport,
    ) -> None:
        self._store = store
        self._engine = engine
        self._transport = transport

    @property
    def public_key(self) -> str:
        return self._engine.public_key

    @property
    def max_payload_size(self) -> int:
        return MAX_PAYLOAD_SIZE

    def send(
        self,
        subscription: PushSubscription,
        payload: Payload,
        *,
        ttl: int | None = None,
        urgency: str | None = None,
        topic: str | None = None,
    ) -> DeliveryOutcome:
        """Encrypt, sign and deliver one message. Errors propagate."""
        request = self._engine.build(
            subscription,
            payload,
            ttl=ttl,
            urgency=urgency,
            topic=topic,
        )
        return self._transport.send(request)

    def notify_user(self, user_id: str, payload: Payload) -> int:
        """Send payload to all of a user's devices.

        Returns number of notifications delivered.
        """
        subs = self._store.get_subscriptions_for_user(user_id)
        if not subs:
            return 0

        sent = 0
        for sub in subs:
            if self._send_one(sub, payload):
                sent += 1
        return sent

    def _send_one(self, sub: StoredSubscription, payload: Payload) -> bool:
        """Deliver a single push. Returns True on success."""
        try:
            self.send(sub.subscription, payload)
            logger.debug("push_sent", endpoint=sub.endpoint)
            return True
        except (ValidationError, CryptoError) as e:
            logger.warning(
                "push_rejected",
                endpoint=sub.endpoint,
                error=str(e),
            )
            return False
        except PushDeliveryError as e:
            if e.subscription_gone:
                logger.info(
                    "push_endpoint_gone",
                    endpoint=sub.endpoint,
                    status=e.status_code,
                )
                self._store.remove_endpoint(sub.endpoint)
            else:
                logger.warning(
                    "push_failed",
                    endpoint=sub.endpoint,
                    status=e.status_code,
                    retryable=e.retryable,
                    error=str(e),
                )
            return False

    def close(self) -> None:
        self._transport.close()
