"""Web Push engine: subscription + payload in, signed request out."""

from collections.abc import Mapping
from typing import Any

from classpush.notifications.encryption import (
    EncryptedRecord,
    derive_keys,
    encrypt_record,
)
from classpush.notifications.errors import ConfigError
from classpush.notifications.keys import (
    VapidKeyPair,
    generate_ephemeral_keypair,
)
from classpush.notifications.models import (
    NotificationPayload,
    PushSubscription,
    SubscriberKeys,
    decode_subscription,
    payload_to_bytes,
)
from classpush.notifications.request import PushRequest, build_request
from classpush.notifications.vapid import (
    DEFAULT_TOKEN_EXPIRATION,
    build_vapid_header,
    validate_contact_uri,
    validate_expiration,
)

DEFAULT_TTL = 24 * 3600

Payload = NotificationPayload | Mapping[str, Any] | str | bytes


class WebPushEngine:
    """Encrypt and sign push messages for one application server.

    Holds only the read-only VAPID key pair and settings; every call
    draws its own ephemeral key and salt, so instances can be shared
    across threads.
    """

    def __init__(
        self,
        vapid: VapidKeyPair,
        contact_uri: str,
        *,
        default_ttl: int = DEFAULT_TTL,
        token_expiration: int = DEFAULT_TOKEN_EXPIRATION,
    ) -> None:
        self._vapid = vapid
        self._contact_uri = validate_contact_uri(contact_uri)
        self._token_expiration = validate_expiration(token_expiration)
        if default_ttl < 0:
            raise ConfigError(f"default TTL must be non-negative, got {default_ttl}")
        self._default_ttl = default_ttl

    @property
    def public_key(self) -> str:
        """Application server key for browser subscriptions."""
        return self._vapid.public_key_b64

    def _encrypt(
        self,
        subscriber: SubscriberKeys,
        payload: Payload,
        padding: int,
    ) -> EncryptedRecord:
        data = payload_to_bytes(payload)
        keys = derive_keys(generate_ephemeral_keypair(), subscriber)
        return encrypt_record(data, keys, padding=padding)

    def encrypt(
        self,
        subscription: PushSubscription,
        payload: Payload,
        *,
        padding: int = 0,
    ) -> EncryptedRecord:
        """Encrypt payload for a subscription (no signing)."""
        return self._encrypt(decode_subscription(subscription), payload, padding)

    def build(
        self,
        subscription: PushSubscription,
        payload: Payload,
        *,
        ttl: int | None = None,
        urgency: str | None = None,
        topic: str | None = None,
        padding: int = 0,
    ) -> PushRequest:
        """Full pipeline: validate, encrypt, sign and assemble.

        Raises:
            ValidationError: malformed subscription or request options.
            CryptoError: invalid subscriber key or oversized payload.
        """
        subscriber = decode_subscription(subscription)
        record = self._encrypt(subscriber, payload, padding)
        header = build_vapid_header(
            self._vapid,
            subscriber.endpoint,
            self._contact_uri,
            expiration=self._token_expiration,
        )
        return build_request(
            subscriber,
            record,
            header,
            self._default_ttl if ttl is None else ttl,
            urgency=urgency,
            topic=topic,
        )
