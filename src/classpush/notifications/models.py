"""Subscription, payload and outcome types shared by the push engine."""

import base64
import binascii
import json
import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlsplit

from pydantic import BaseModel, Field

from classpush.notifications.errors import ValidationError

P256_POINT_SIZE = 65
AUTH_SECRET_SIZE = 16

_B64URL_RE = re.compile(r"[A-Za-z0-9_-]*")


def b64url_encode(data: bytes) -> str:
    """URL-safe base64 without padding."""
    return base64.urlsafe_b64encode(data).decode().rstrip("=")


def b64url_decode(value: str) -> bytes:
    """Decode unpadded (or padded) URL-safe base64.

    Raises ValueError on characters outside the base64url alphabet.
    """
    stripped = value.rstrip("=")
    if not _B64URL_RE.fullmatch(stripped):
        raise ValueError("not base64url")
    try:
        return base64.urlsafe_b64decode(stripped + "=" * (-len(stripped) % 4))
    except binascii.Error as e:
        raise ValueError(str(e)) from e


@dataclass(frozen=True)
class PushSubscription:
    """A Web Push subscription as stored by the browser."""

    endpoint: str
    p256dh: str
    auth: str

    @classmethod
    def from_json(cls, data: Mapping[str, Any]) -> "PushSubscription":
        """Build from ``PushSubscription.toJSON()`` output."""
        keys = data.get("keys") or {}
        return cls(
            endpoint=data.get("endpoint", ""),
            p256dh=keys.get("p256dh", ""),
            auth=keys.get("auth", ""),
        )


@dataclass(frozen=True)
class SubscriberKeys:
    """Decoded and validated subscriber key material."""

    endpoint: str
    public_key: bytes
    auth_secret: bytes


def _decode_field(name: str, value: str, size: int) -> bytes:
    if not value:
        raise ValidationError(f"subscription {name} is missing")
    try:
        raw = b64url_decode(value)
    except ValueError as e:
        raise ValidationError(f"subscription {name} is not base64url") from e
    if len(raw) != size:
        raise ValidationError(
            f"subscription {name} must be {size} bytes, got {len(raw)}"
        )
    return raw


def decode_subscription(sub: PushSubscription) -> SubscriberKeys:
    """Validate a subscription and decode its keys.

    Raises ValidationError for a non-https endpoint, a p256dh that is
    not a 65-byte uncompressed point, or an auth secret that is not
    16 bytes. Curve membership is checked later, at ECDH time.
    """
    try:
        parts = urlsplit(sub.endpoint or "")
        # port is parsed lazily and raises on non-numeric or out-of-range values
        parts.port  # noqa: B018
    except ValueError as e:
        raise ValidationError(f"invalid push endpoint: {sub.endpoint!r}") from e
    if parts.scheme != "https" or not parts.hostname:
        raise ValidationError(f"invalid push endpoint: {sub.endpoint!r}")

    public_key = _decode_field("p256dh", sub.p256dh, P256_POINT_SIZE)
    if public_key[0] != 0x04:
        raise ValidationError("subscription p256dh is not an uncompressed point")
    auth_secret = _decode_field("auth", sub.auth, AUTH_SECRET_SIZE)
    return SubscriberKeys(
        endpoint=sub.endpoint,
        public_key=public_key,
        auth_secret=auth_secret,
    )


class NotificationPayload(BaseModel):
    """Notification shown by the service worker."""

    title: str
    body: str
    url: str | None = None
    icon: str | None = None
    tag: str | None = None
    data: dict[str, Any] | None = Field(
        default=None,
        description="Extra fields passed through to the service worker",
    )

    def to_bytes(self) -> bytes:
        return self.model_dump_json(exclude_none=True).encode()


def payload_to_bytes(
    payload: NotificationPayload | Mapping[str, Any] | str | bytes,
) -> bytes:
    """Serialize any accepted payload form to UTF-8 bytes."""
    if isinstance(payload, NotificationPayload):
        return payload.to_bytes()
    if isinstance(payload, bytes):
        return payload
    if isinstance(payload, str):
        return payload.encode()
    return json.dumps(dict(payload), separators=(",", ":")).encode()


@dataclass(frozen=True)
class DeliveryOutcome:
    """Successful hand-off to the push service."""

    success: bool
    status_code: int
    endpoint: str
